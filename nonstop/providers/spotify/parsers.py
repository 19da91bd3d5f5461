"""Parsing utilities to convert Spotify API responses into NonStop models."""

from __future__ import annotations

from typing import Any

from nonstop.helpers.uri import create_uri
from nonstop.models.enums import ProviderTag
from nonstop.models.media import Album, AlbumImage, Artist, ArtistProfile, Device, Track


def parse_images(images_obj: list[dict[str, Any]] | None) -> tuple[AlbumImage, ...]:
    """Parse (album) images."""
    return tuple(
        AlbumImage(url=img["url"], width=img.get("width") or 0, height=img.get("height") or 0)
        for img in images_obj or []
        if img.get("url")
    )


def parse_track(track_obj: dict[str, Any]) -> Track:
    """Parse spotify track object to generic layout."""
    album_obj = track_obj.get("album") or {}
    return Track(
        id=track_obj["id"],
        name=track_obj.get("name", ""),
        duration_ms=track_obj.get("duration_ms") or 0,
        artists=tuple(
            Artist(id=artist.get("id") or "", name=artist.get("name", ""))
            for artist in track_obj.get("artists", [])
        ),
        album=Album(
            id=album_obj.get("id") or "",
            name=album_obj.get("name", ""),
            images=parse_images(album_obj.get("images")),
        ),
        uri=create_uri(ProviderTag.SPOTIFY, track_obj["id"]),
        provider=ProviderTag.SPOTIFY,
    )


def parse_tracks(items: list[dict[str, Any] | None]) -> list[Track]:
    """Parse a list of spotify track objects, skipping local/unavailable items."""
    return [
        parse_track(item)
        for item in items
        if item and item.get("id") and item.get("type", "track") == "track"
    ]


def parse_device(device_obj: dict[str, Any]) -> Device:
    """Parse spotify device object to generic layout."""
    return Device(
        id=device_obj.get("id") or "",
        name=device_obj.get("name", ""),
        type=device_obj.get("type", ""),
        is_active=bool(device_obj.get("is_active")),
        volume_percent=device_obj.get("volume_percent"),
    )


def parse_artist_profile(artist_obj: dict[str, Any]) -> ArtistProfile:
    """Parse spotify (full) artist object to an artist profile."""
    return ArtistProfile(
        id=artist_obj["id"],
        name=artist_obj.get("name", ""),
        genres=tuple(artist_obj.get("genres", [])),
    )
