"""Helpers to build suggestion prompts and to parse the (free-form) model responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from nonstop.constants import AI_BATCH_SIZE
from nonstop.errors import MalformedSuggestion
from nonstop.models.media import Suggestion

from .json import JSON_DECODE_EXCEPTIONS, json_dumps, json_loads

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nonstop.models.media import ArtistProfile, Track

NAME_KEYS = ("name", "n", "title")
ARTIST_KEYS = ("artist", "a")
MAX_GENRES = 3

SYSTEM_PROMPT = f"""You are a DJ creating a seamless playlist. Based on the user's recent \
tracks and taste, suggest exactly {AI_BATCH_SIZE} NEW tracks that flow well together.

## Data Format
Input uses a compact format: n=name, a=artists, u=uri (for tracks), n=name, g=genres \
(for artists)

## Output Format
Return ONLY a JSON array of {AI_BATCH_SIZE} track suggestions. Each object must have:
- n: track name (string, exact track name)
- a: artist name (string, main artist only)

Example response:
[{{"n":"Blinding Lights","a":"The Weeknd"}},{{"n":"Electric Feel","a":"MGMT"}},\
{{"n":"Midnight City","a":"M83"}},{{"n":"Take On Me","a":"a-ha"}},\
{{"n":"Dreams","a":"Fleetwood Mac"}}]

IMPORTANT RULES:
- Use exact track names as they appear on music services
- Do NOT suggest tracks from the recent tracks list, suggest NEW discoveries
- Keep variety, suggest tracks from DIFFERENT artists (at least 3-4 different)
- Mix popular hits with lesser-known gems for variety
- Maintain mood/energy flow
- No explanations, just the JSON array"""

GENERIC_TASTE_SUMMARY = json_dumps([{"n": "Various Artists", "g": "mixed"}])


def encode_recent_tracks(tracks: Iterable[Track]) -> str:
    """Encode tracks as compact {n, a, u} records."""
    return json_dumps([{"n": x.name, "a": x.artist_names, "u": x.uri} for x in tracks])


def encode_artists(artists: Iterable[ArtistProfile]) -> str:
    """Encode artists as compact {n, g} records (at most 3 genres each)."""
    return json_dumps([{"n": x.name, "g": ", ".join(x.genres[:MAX_GENRES])} for x in artists])


def build_mood_directive(mood: str | None) -> str:
    """Return the directive to prioritize the user's requested mood (empty if none)."""
    if not mood:
        return ""
    return (
        f"IMPORTANT USER REQUEST: The user specifically wants \"{mood}\". "
        "Prioritize this mood/genre!"
    )


def _get_first(item: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        if (value := item.get(key)) and isinstance(value, str):
            return value.strip()
    return ""


def parse_suggestions(items: list[Any]) -> list[Suggestion]:
    """Parse a list of (loosely formatted) suggestion objects."""
    result: list[Suggestion] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if not (name := _get_first(item, NAME_KEYS)):
            continue
        result.append(Suggestion(name=name, artist=_get_first(item, ARTIST_KEYS)))
    return result


def extract_suggestions(text: str) -> list[Suggestion]:
    """
    Extract the suggestions from a free-form model response.

    The first well-formed JSON array (holding at least one usable suggestion) wins,
    so any prose, markdown fences or trailing remarks around it are ignored.
    Raises MalformedSuggestion if no such array is found.
    """
    start = text.find("[")
    while start != -1:
        end = text.find("]", start)
        while end != -1:
            try:
                parsed = json_loads(text[start : end + 1])
            except JSON_DECODE_EXCEPTIONS:
                end = text.find("]", end + 1)
                continue
            if isinstance(parsed, list) and (suggestions := parse_suggestions(parsed)):
                return suggestions
            break
        start = text.find("[", start + 1)
    msg = f"No suggestions found in model response: {text[:200]}"
    raise MalformedSuggestion(msg)
