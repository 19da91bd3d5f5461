"""Parsing utilities to convert YouTube Data API responses into NonStop models."""

from __future__ import annotations

import re
from typing import Any

from nonstop.helpers.uri import create_uri
from nonstop.models.enums import ProviderTag
from nonstop.models.media import Album, AlbumImage, Artist, Track

ISO_DURATION_RE = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
THUMBNAIL_PREFERENCE = ("maxres", "high", "medium", "default")
YOUTUBE_ALBUM_ID = "youtube-music"
YOUTUBE_ALBUM_NAME = "YouTube Music"


def parse_iso_duration(duration: str | None) -> int:
    """Parse an ISO 8601 duration (e.g. PT1H2M3S) into milliseconds, 0 if invalid."""
    if not duration or not (match := ISO_DURATION_RE.match(duration)):
        return 0
    days, hours, minutes, seconds = (int(x or 0) for x in match.groups())
    return (((days * 24 + hours) * 60 + minutes) * 60 + seconds) * 1000


def get_video_id(item: dict[str, Any]) -> str:
    """Return the video id of a (search result or video) item."""
    item_id = item.get("id")
    if isinstance(item_id, dict):
        return str(item_id.get("videoId") or "")
    return str(item_id or "")


def get_best_thumbnail(thumbnails: dict[str, Any] | None) -> AlbumImage | None:
    """Return the largest available thumbnail."""
    for key in THUMBNAIL_PREFERENCE:
        if (thumb := (thumbnails or {}).get(key)) and thumb.get("url"):
            return AlbumImage(
                url=thumb["url"], width=thumb.get("width") or 0, height=thumb.get("height") or 0
            )
    return None


def parse_video(item: dict[str, Any]) -> Track:
    """Parse a youtube video item into a Track."""
    video_id = get_video_id(item)
    snippet = item.get("snippet") or {}
    content_details = item.get("contentDetails") or {}
    thumbnail = get_best_thumbnail(snippet.get("thumbnails"))
    channel = snippet.get("channelTitle", "")
    return Track(
        id=video_id,
        name=snippet.get("title", ""),
        duration_ms=parse_iso_duration(content_details.get("duration")),
        artists=(Artist(id=snippet.get("channelId") or f"yt-artist-{channel}", name=channel),),
        album=Album(
            id=YOUTUBE_ALBUM_ID,
            name=YOUTUBE_ALBUM_NAME,
            images=(thumbnail,) if thumbnail else (),
        ),
        uri=create_uri(ProviderTag.YOUTUBE, video_id),
        provider=ProviderTag.YOUTUBE,
    )


def parse_videos(items: list[dict[str, Any]]) -> list[Track]:
    """Parse a list of youtube video items, skipping items without a video id."""
    return [parse_video(item) for item in items if get_video_id(item)]
