from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Tuple

from .entities import AuthContext


class CatalogSource(Protocol):
    """Port for the music streaming catalog.

    Every method returns a provider-shaped payload (a plain dict shaped like the
    provider HTTP responses) or raises an ``AdapterFailure``. Methods taking an
    optional ``auth`` use the caller's library when it is authenticated and the
    public catalog otherwise.
    """

    def search_by_mood(self, mood: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Playlists matching a mood: ``{"playlists": [...]}``."""

    def search_by_genre(self, genre: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Playlists matching a genre: ``{"playlists": [...]}``."""

    def search_by_artist(self, artist_name: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Songs by an artist: ``{"songs": [...]}``."""

    def related_artists(self, artist_name: str) -> Dict[str, Any]:
        """Artists related to the given one, with top tracks: ``{"artists": [...]}``."""

    def library_by_mood(self, mood: str, auth: AuthContext) -> Dict[str, Any]:
        """Saved tracks whose title mentions the mood: ``{"savedTracks": [...]}``."""

    def library_by_genre(self, genre: str, auth: AuthContext) -> Dict[str, Any]:
        """Saved tracks whose lead artist belongs to the genre: ``{"tracks": [...]}``."""

    def user_playlists_by_mood(self, mood: str, auth: AuthContext) -> Dict[str, Any]:
        """The caller's playlists whose name mentions the mood."""

    def user_playlists_by_genre(self, genre: str, auth: AuthContext) -> Dict[str, Any]:
        """The caller's playlists containing tracks of the genre."""

    def free_text_search(self, query: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        """Generic playlist search on an unstructured query."""

    def personalized_recommendations(self, auth: AuthContext) -> Dict[str, Any]:
        """Personal recommendation payload for an authenticated caller."""

    def playlists_for_mood(self, mood: str) -> List[Dict[str, Any]]:
        """Public playlists for a mood, as bare ``{name, url, image}`` records."""

    def playlists_for_genre(self, genre: str) -> List[Dict[str, Any]]:
        """Public playlists for a genre, as bare ``{name, url, image}`` records."""


class VideoSource(Protocol):
    """Port for the video platform."""

    def videos_by_mood(self, mood: str) -> Dict[str, Any]:
        ...

    def videos_by_genre(self, genre: str) -> Dict[str, Any]:
        ...

    def videos_by_artist(self, artist_name: str) -> Dict[str, Any]:
        ...

    def playlists_for(self, query: str) -> List[Dict[str, Any]]:
        ...

    def surprise_videos(self, seed_video_id: str) -> Dict[str, Any]:
        ...

    def keyword_videos(self) -> Dict[str, Any]:
        ...


class FitnessSource(Protocol):
    """Port for the fitness tracker."""

    def activity_summary(self, auth: AuthContext) -> Tuple[int, List[str]]:
        """Return lifetime step count and lower-cased recent activity names."""


class WeatherSource(Protocol):
    """Port for the weather provider."""

    def current_conditions(self, city: str) -> Tuple[float, str]:
        """Return temperature in Celsius and the lower-cased main condition."""
