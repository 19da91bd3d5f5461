"""Models for media items (tracks, artists, devices) as reported by the backends."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro import DataClassDictMixin

from .enums import ProviderTag


@dataclass(frozen=True, kw_only=True)
class Artist(DataClassDictMixin):
    """Artist reference on a track."""

    id: str
    name: str


@dataclass(frozen=True, kw_only=True)
class AlbumImage(DataClassDictMixin):
    """Album (cover) image."""

    url: str
    width: int = 0
    height: int = 0


@dataclass(frozen=True, kw_only=True)
class Album(DataClassDictMixin):
    """Album reference on a track."""

    id: str
    name: str
    images: tuple[AlbumImage, ...] = ()


@dataclass(frozen=True, kw_only=True)
class Track(DataClassDictMixin):
    """Canonical (immutable) track representation, shared by all backends."""

    id: str
    name: str
    duration_ms: int
    artists: tuple[Artist, ...]
    album: Album
    uri: str
    provider: ProviderTag

    @property
    def artist_names(self) -> str:
        """Return all artist names joined as a single string."""
        return ", ".join(artist.name for artist in self.artists)

    def __hash__(self) -> int:
        """Return custom hash."""
        return hash(self.uri)

    def __eq__(self, other: object) -> bool:
        """Check equality of two items."""
        if not isinstance(other, Track):
            return False
        return self.uri == other.uri


@dataclass(frozen=True, kw_only=True)
class ArtistProfile(DataClassDictMixin):
    """Artist with genres, as used for the (compact) taste summary."""

    id: str
    name: str
    genres: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class PlaybackState(DataClassDictMixin):
    """Snapshot of the playback state of a backend."""

    is_playing: bool
    progress_ms: int
    track: Track | None = None

    @property
    def remaining_ms(self) -> int | None:
        """Return the remaining time of the current track (None if unknown)."""
        if self.track is None or self.track.duration_ms <= 0:
            return None
        return self.track.duration_ms - self.progress_ms


@dataclass(frozen=True, kw_only=True)
class Device(DataClassDictMixin):
    """A (remote) playback endpoint of a backend with device semantics."""

    id: str
    name: str
    type: str
    is_active: bool = False
    volume_percent: int | None = None

    @property
    def is_desktop(self) -> bool:
        """Return True if this is a desktop-class device."""
        return self.type.lower() == "computer"


@dataclass(frozen=True, kw_only=True)
class QueuedTrack(DataClassDictMixin):
    """Entry of the AI generated queue."""

    name: str
    artists: str
    uri: str

    @classmethod
    def from_track(cls, track: Track) -> QueuedTrack:
        """Create a QueuedTrack from a (resolved) Track."""
        return cls(name=track.name, artists=track.artist_names, uri=track.uri)


@dataclass(frozen=True, kw_only=True)
class Suggestion(DataClassDictMixin):
    """A single track/artist pair as suggested by the suggestion model."""

    name: str
    artist: str = ""

