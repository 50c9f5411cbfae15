import random
from typing import List, Optional, Dict, Any, Callable
import logging

import requests
import spotipy
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOAuth, SpotifyOauthError

from moodmix.crosscutting.config import Settings, TokenStore
from moodmix.domain.entities import AuthContext, ProviderSession
from moodmix.domain.errors import NotFound, PermanentFailure, TemporaryFailure
from moodmix.domain.ports import CatalogSource

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = '/image2.jpeg'
SEARCH_LIMIT = 5
LIBRARY_LIMIT = 50
USER_PLAYLIST_LIMIT = 20
# Spotify rejects searches where offset + limit exceeds 1000
MAX_SEARCH_OFFSET = 995
# Public playlist searches link to '#' when Spotify omits the playlist URL
PUBLIC_PLAYLIST_URL_DEFAULT = '#'


def _first_image(images: Optional[List[Dict[str, Any]]]) -> str:
    if images:
        return images[0].get('url') or PLACEHOLDER_IMAGE
    return PLACEHOLDER_IMAGE


def _playlist_record(playlist: Dict[str, Any], default_url: Optional[str] = None) -> Dict[str, Any]:
    return {
        'name': playlist.get('name') or 'Unknown Playlist',
        'url': (playlist.get('external_urls') or {}).get('spotify') or default_url,
        'image': _first_image(playlist.get('images')),
        'tracks': (playlist.get('tracks') or {}).get('total', 0),
        'owner': (playlist.get('owner') or {}).get('display_name') or 'Unknown Owner',
    }


def _track_record(track: Dict[str, Any]) -> Dict[str, Any]:
    album = track.get('album') or {}
    return {
        'name': track.get('name'),
        'artists': ', '.join(a.get('name', '') for a in track.get('artists', []) if a.get('name')),
        'url': (track.get('external_urls') or {}).get('spotify'),
        'album': album.get('name'),
        'image': _first_image(album.get('images')),
    }


class SpotifyCatalogAdapter(CatalogSource):
    """Spotify catalog adapter.

    Public searches run on an app-level client-credentials client. Personal
    calls run on a per-call client built from the caller's access token; a 401
    triggers one token refresh and one retry.
    """

    def __init__(self,
                 settings: Settings,
                 token_store: Optional[TokenStore] = None,
                 public_client: Optional[spotipy.Spotify] = None,
                 client_factory: Optional[Callable[[str], spotipy.Spotify]] = None,
                 rng: Optional[random.Random] = None):
        """Initialize the adapter.

        Args:
            settings: Credentials, market and request timeout
            token_store: Where refreshed user tokens are written back
            public_client: Client used for public catalog calls (built lazily when omitted)
            client_factory: Builds a client for a user access token
            rng: Random source for search offsets and shuffling
        """
        self.settings = settings
        self.token_store = token_store
        self._public_client = public_client
        self._client_factory = client_factory or self._default_client
        self._rng = rng or random.Random()

    def _default_client(self, access_token: str) -> spotipy.Spotify:
        return spotipy.Spotify(auth=access_token, requests_timeout=self.settings.request_timeout)

    @property
    def public_client(self) -> spotipy.Spotify:
        if self._public_client is None:
            if not self.settings.spotify_client_id or not self.settings.spotify_client_secret:
                raise PermanentFailure("Spotify client credentials are not configured")
            manager = SpotifyClientCredentials(
                client_id=self.settings.spotify_client_id,
                client_secret=self.settings.spotify_client_secret,
            )
            self._public_client = spotipy.Spotify(
                client_credentials_manager=manager,
                requests_timeout=self.settings.request_timeout,
            )
        return self._public_client

    def _random_offset(self, upper: int = MAX_SEARCH_OFFSET) -> int:
        return self._rng.randrange(max(upper, 1))

    def _translate(self, error: Exception, operation: str) -> Exception:
        status = getattr(error, 'http_status', None)
        if isinstance(error, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
            return TemporaryFailure(f"{operation} timed out or could not connect: {error}")
        if status == 404:
            return NotFound(f"{operation}: {error}")
        if status == 429 or (status is not None and status >= 500):
            return TemporaryFailure(f"{operation}: {error}")
        if status is not None:
            return PermanentFailure(f"{operation}: {error}")
        return TemporaryFailure(f"{operation}: {error}")

    def _refresh_access_token(self, auth: AuthContext) -> Optional[str]:
        """Refresh the caller's access token.

        Several calls of one batch may do this at once; each stores whatever it
        got and the last write wins.
        """
        if not self.token_store or not auth.user_id:
            return None
        tokens = self.token_store.get_spotify_tokens(auth.user_id) or {}
        refresh_token = tokens.get('refresh_token')
        if not refresh_token:
            logger.warning(f"Cannot refresh token for user {auth.user_id}: no refresh token stored")
            return None
        if not self.settings.spotify_client_id or not self.settings.spotify_client_secret:
            logger.warning("Cannot refresh token: missing client credentials")
            return None

        try:
            logger.info("Refreshing Spotify access token...")
            oauth_manager = SpotifyOAuth(
                client_id=self.settings.spotify_client_id,
                client_secret=self.settings.spotify_client_secret,
                redirect_uri=self.settings.spotify_redirect_uri,
                scope=self.settings.get_spotify_scope_string(),
                open_browser=False,
            )
            token_info = oauth_manager.refresh_access_token(refresh_token)
        except (spotipy.SpotifyException, SpotifyOauthError, requests.exceptions.RequestException) as e:
            logger.error(f"Failed to refresh Spotify token: {e}")
            return None

        access_token = (token_info or {}).get('access_token')
        if not access_token:
            logger.error("Failed to refresh token: invalid response")
            return None
        self.token_store.update_spotify_access_token(auth.user_id, access_token)
        logger.info("Spotify access token refreshed successfully")
        return access_token

    def _with_user_client(self, auth: AuthContext, operation: str,
                          action: Callable[[spotipy.Spotify], Any]) -> Any:
        if not auth or not auth.is_authenticated(ProviderSession.SPOTIFY):
            raise PermanentFailure(f"{operation} requires a Spotify session")

        token = auth.access_token
        for attempt in range(2):
            try:
                return action(self._client_factory(token))
            except spotipy.SpotifyException as e:
                if e.http_status == 401 and attempt == 0:
                    logger.warning(f"Spotify token expired during {operation}, attempting refresh...")
                    token = self._refresh_access_token(auth)
                    if token:
                        continue
                raise self._translate(e, operation) from e
            except requests.exceptions.RequestException as e:
                raise self._translate(e, operation) from e

    def _with_public_client(self, operation: str, action: Callable[[spotipy.Spotify], Any]) -> Any:
        try:
            return action(self.public_client)
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise self._translate(e, operation) from e

    def _search_playlists(self, client: spotipy.Spotify, query: str) -> List[Dict[str, Any]]:
        results = client.search(q=query, type='playlist', limit=SEARCH_LIMIT, offset=self._random_offset())
        items = ((results or {}).get('playlists') or {}).get('items') or []
        playlists = [_playlist_record(p) for p in items if p]
        return [p for p in playlists if p['name'] != 'Unknown Playlist']

    def _public_playlists(self, query: str, operation: str) -> Dict[str, Any]:
        def action(client):
            # Fetch the total first so the random offset stays within the result set
            first_page = client.search(q=query, type='playlist', limit=1)
            total = ((first_page or {}).get('playlists') or {}).get('total') or 0
            if total == 0:
                raise NotFound(f"No playlists found for '{query}'")
            offset = self._random_offset(min(total - SEARCH_LIMIT, MAX_SEARCH_OFFSET))
            results = client.search(q=query, type='playlist', limit=SEARCH_LIMIT, offset=offset)
            items = ((results or {}).get('playlists') or {}).get('items') or []
            return [_playlist_record(p, PUBLIC_PLAYLIST_URL_DEFAULT) for p in items if p]

        playlists = [p for p in self._with_public_client(operation, action) if p['name'] != 'Unknown Playlist']
        if not playlists:
            raise NotFound(f"No playlists found for '{query}'")
        return {'playlists': playlists}

    def _personal_playlists(self, query: str, auth: AuthContext, operation: str) -> Dict[str, Any]:
        playlists = self._with_user_client(auth, operation, lambda c: self._search_playlists(c, query))
        if not playlists:
            raise NotFound(f"No playlists found for '{query}'")
        return {'playlists': playlists}

    def search_by_mood(self, mood: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        if auth is not None:
            return self._personal_playlists(mood, auth, 'search playlists by mood')
        return self._public_playlists(mood, 'public playlists by mood')

    def search_by_genre(self, genre: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        query = f'genre:"{genre}"'
        if auth is not None:
            return self._personal_playlists(query, auth, 'search playlists by genre')
        return self._public_playlists(query, 'public playlists by genre')

    def free_text_search(self, query: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        return self.search_by_mood(query, auth)

    def search_by_artist(self, artist_name: str, auth: Optional[AuthContext] = None) -> Dict[str, Any]:
        def action(client):
            results = client.search(q=artist_name, type='track', limit=SEARCH_LIMIT,
                                    offset=self._random_offset())
            items = ((results or {}).get('tracks') or {}).get('items') or []
            return [_track_record(t) for t in items if t]

        if auth is not None:
            songs = self._with_user_client(auth, 'search artist songs', action)
        else:
            songs = self._with_public_client('public artist songs', action)
        return {'songs': songs}

    def related_artists(self, artist_name: str) -> Dict[str, Any]:
        """Artists sharing the lead genre of ``artist_name``, each with up to three top tracks."""
        def find_artists(client):
            found = client.search(q=artist_name, type='artist', limit=1)
            matches = ((found or {}).get('artists') or {}).get('items') or []
            if not matches:
                raise NotFound(f"Artist '{artist_name}' not found")
            genres = matches[0].get('genres') or []
            if not genres:
                return [matches[0]]
            related = client.search(q=f'genre:"{genres[0]}"', type='artist', limit=SEARCH_LIMIT)
            return ((related or {}).get('artists') or {}).get('items') or []

        artists = self._with_public_client('related artists', find_artists)

        enriched = []
        for artist in artists:
            try:
                top = self._with_public_client(
                    'artist top tracks',
                    lambda c: c.artist_top_tracks(artist['id'], country=self.settings.market),
                )
                tracks = list((top or {}).get('tracks') or [])
                self._rng.shuffle(tracks)
                top_tracks = [{
                    'name': t.get('name'),
                    'album': (t.get('album') or {}).get('name'),
                    'url': (t.get('external_urls') or {}).get('spotify'),
                    'image': _first_image((t.get('album') or {}).get('images')),
                } for t in tracks[:3]]
            except (TemporaryFailure, PermanentFailure, NotFound) as e:
                logger.warning(f"Error fetching top tracks for artist {artist.get('name')}: {e}")
                top_tracks = []

            enriched.append({
                'name': artist.get('name'),
                'genres': artist.get('genres') or [],
                'url': (artist.get('external_urls') or {}).get('spotify'),
                'image': _first_image(artist.get('images')),
                'topTracks': top_tracks,
            })

        self._rng.shuffle(enriched)
        return {'artists': enriched}

    def _saved_tracks(self, client: spotipy.Spotify) -> List[Dict[str, Any]]:
        saved = client.current_user_saved_tracks(limit=LIBRARY_LIMIT)
        return [item['track'] for item in (saved or {}).get('items') or [] if item.get('track')]

    def library_by_mood(self, mood: str, auth: AuthContext) -> Dict[str, Any]:
        needle = mood.lower()

        def action(client):
            return [_track_record(t) for t in self._saved_tracks(client)
                    if needle in (t.get('name') or '').lower()]

        return {'savedTracks': self._with_user_client(auth, 'user library by mood', action)}

    def library_by_genre(self, genre: str, auth: AuthContext) -> Dict[str, Any]:
        needle = genre.lower()

        def action(client):
            matched = []
            genre_cache: Dict[str, List[str]] = {}
            for track in self._saved_tracks(client):
                artists = track.get('artists') or []
                if not artists or not artists[0].get('id'):
                    continue
                artist_id = artists[0]['id']
                if artist_id not in genre_cache:
                    genre_cache[artist_id] = (client.artist(artist_id) or {}).get('genres') or []
                if needle in genre_cache[artist_id]:
                    matched.append(_track_record(track))
            return matched

        return {'tracks': self._with_user_client(auth, 'user library by genre', action)}

    def _own_playlists(self, client: spotipy.Spotify) -> List[Dict[str, Any]]:
        playlists = client.current_user_playlists(limit=USER_PLAYLIST_LIMIT)
        return [p for p in (playlists or {}).get('items') or [] if p]

    def user_playlists_by_mood(self, mood: str, auth: AuthContext) -> Dict[str, Any]:
        needle = mood.lower()

        def action(client):
            return [_playlist_record(p) for p in self._own_playlists(client)
                    if needle in (p.get('name') or '').lower()]

        return {'playlists': self._with_user_client(auth, 'user playlists by mood', action)}

    def user_playlists_by_genre(self, genre: str, auth: AuthContext) -> Dict[str, Any]:
        """Own playlists holding at least one track whose lead artist is tagged with the genre."""
        needle = genre.lower()

        def action(client):
            genre_cache: Dict[str, List[str]] = {}
            matched = []
            for playlist in self._own_playlists(client):
                if not playlist.get('id'):
                    continue
                items = (client.playlist_items(playlist['id'], limit=LIBRARY_LIMIT) or {}).get('items') or []
                for item in items:
                    artists = (item.get('track') or {}).get('artists') or []
                    if not artists or not artists[0].get('id'):
                        continue
                    artist_id = artists[0]['id']
                    if artist_id not in genre_cache:
                        genre_cache[artist_id] = (client.artist(artist_id) or {}).get('genres') or []
                    if needle in genre_cache[artist_id]:
                        matched.append(_playlist_record(playlist))
                        break
            return matched

        return {'playlists': self._with_user_client(auth, 'user playlists by genre', action)}

    def personalized_recommendations(self, auth: AuthContext) -> Dict[str, Any]:
        def action(client):
            top = client.current_user_top_tracks(limit=10, time_range='short_term')
            return [_track_record(t) for t in (top or {}).get('items') or [] if t]

        return {'tracks': self._with_user_client(auth, 'personalized recommendations', action)}

    def _bundle_playlists(self, query: str, operation: str) -> List[Dict[str, Any]]:
        def action(client):
            results = client.search(q=query, type='playlist', limit=SEARCH_LIMIT, offset=self._random_offset())
            items = ((results or {}).get('playlists') or {}).get('items') or []
            # Bundles only keep complete playlists
            return [{
                'name': p['name'],
                'url': p['external_urls']['spotify'],
                'image': p['images'][0]['url'],
            } for p in items
                if p and p.get('name') and (p.get('external_urls') or {}).get('spotify')
                and p.get('images') and p['images'][0].get('url')]

        return self._with_public_client(operation, action)

    def playlists_for_mood(self, mood: str) -> List[Dict[str, Any]]:
        return self._bundle_playlists(mood, 'playlists for mood')

    def playlists_for_genre(self, genre: str) -> List[Dict[str, Any]]:
        return self._bundle_playlists(f'genre:"{genre}"', 'playlists for genre')
