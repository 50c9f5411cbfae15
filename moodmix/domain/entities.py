from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union


class Platform(str, Enum):
    """Origin platform of a playlist item; selects the inline player downstream."""

    SPOTIFY = "Spotify"
    YOUTUBE = "YouTube"


class ProviderSession(str, Enum):
    """Providers a caller can hold an authenticated session with."""

    SPOTIFY = "Spotify"
    FITNESS_TRACKER = "FitnessTracker"


@dataclass(frozen=True)
class ArtistRef:
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name}


@dataclass(frozen=True)
class TopTrack:
    name: Optional[str] = None
    url: Optional[str] = None
    album: Optional[str] = None
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "url": self.url, "album": self.album, "image": self.image}


@dataclass(frozen=True)
class RelatedArtist:
    name: Optional[str] = None
    top_tracks: List[TopTrack] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "topTracks": [t.to_dict() for t in self.top_tracks]}


@dataclass(frozen=True)
class PlaylistItem:
    """Uniform, renderable record produced from any upstream payload.

    Every key is always present in the wire form; absent optional values are
    ``None`` and absent sequences are empty lists.
    """

    platform: Platform
    name: Optional[str] = None
    artist_name: Optional[str] = None
    artists: List[ArtistRef] = field(default_factory=list)
    url: Optional[str] = None
    album: Optional[str] = None
    image: Optional[str] = None
    thumbnail: Optional[str] = None
    title: Optional[str] = None
    related_artists: List[RelatedArtist] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "artistName": self.artist_name,
            "artists": [a.to_dict() for a in self.artists],
            "url": self.url,
            "album": self.album,
            "image": self.image,
            "thumbnail": self.thumbnail,
            "title": self.title,
            "platform": self.platform.value,
            "relatedArtists": [r.to_dict() for r in self.related_artists],
        }


@dataclass(frozen=True)
class AuthContext:
    """Who is asking, and which providers they are signed in to."""

    provider_sessions: FrozenSet[ProviderSession] = frozenset()
    access_token: Optional[str] = None
    user_id: Optional[str] = None

    def is_authenticated(self, provider: ProviderSession) -> bool:
        if provider not in self.provider_sessions:
            return False
        # Spotify calls are made with the caller's token, so a session without one is not usable
        if provider == ProviderSession.SPOTIFY:
            return bool(self.access_token)
        return True

    @property
    def has_any_session(self) -> bool:
        return any(self.is_authenticated(p) for p in self.provider_sessions)

    @classmethod
    def anonymous(cls) -> "AuthContext":
        return cls()


@dataclass(frozen=True)
class RequestClause:
    """One ``key=value`` clause of a generation request."""

    key: str
    value: str


@dataclass(frozen=True)
class Fulfilled:
    label: str
    payload: Any

    ok = True


@dataclass(frozen=True)
class Rejected:
    label: str
    reason: BaseException

    ok = False


UpstreamOutcome = Union[Fulfilled, Rejected]
