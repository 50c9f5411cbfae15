import os
import json
import threading
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import load_dotenv


class ConfigError(Exception):
    """Configuration error."""
    pass


SPOTIFY_USER_SCOPES = [
    'user-library-read',          # Saved tracks for library_* requests
    'user-read-email',
    'user-top-read',              # Personalized recommendations
    'playlist-read-private',      # Own playlists for playlist_* requests
]


@dataclass
class Settings:
    """Runtime settings resolved from the environment."""

    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: str = 'http://localhost:3001/callback'
    youtube_api_key: Optional[str] = None
    openweather_api_key: Optional[str] = None
    fitbit_client_id: Optional[str] = None
    fitbit_client_secret: Optional[str] = None
    request_timeout: float = 10.0
    market: str = 'US'
    tokens_file: str = str(Path.home() / '.moodmix' / 'tokens.json')

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'Settings':
        """Build settings from environment variables, optionally loading a .env file first."""
        if env_file:
            load_dotenv(env_file, override=False)

        timeout_raw = os.getenv('MOODMIX_REQUEST_TIMEOUT', '10')
        try:
            timeout = float(timeout_raw)
        except ValueError:
            raise ConfigError(f"MOODMIX_REQUEST_TIMEOUT must be a number, got {timeout_raw!r}")

        return cls(
            spotify_client_id=os.getenv('SPOTIFY_CLIENT_ID'),
            spotify_client_secret=os.getenv('SPOTIFY_CLIENT_SECRET'),
            spotify_redirect_uri=os.getenv('SPOTIFY_REDIRECT_URI', cls.spotify_redirect_uri),
            youtube_api_key=os.getenv('YOUTUBE_API_KEY'),
            openweather_api_key=os.getenv('OPENWEATHER_API_KEY'),
            fitbit_client_id=os.getenv('FITBIT_CLIENT_ID'),
            fitbit_client_secret=os.getenv('FITBIT_CLIENT_SECRET'),
            request_timeout=timeout,
            market=os.getenv('MOODMIX_MARKET', cls.market),
            tokens_file=os.getenv('MOODMIX_TOKENS_FILE', cls.tokens_file),
        )

    def get_spotify_scope_string(self) -> str:
        return ' '.join(SPOTIFY_USER_SCOPES)

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which upstream credentials are present."""
        return {
            'spotify_client_id': bool(self.spotify_client_id),
            'spotify_client_secret': bool(self.spotify_client_secret),
            'youtube_api_key': bool(self.youtube_api_key),
            'openweather_api_key': bool(self.openweather_api_key),
            'fitbit_client_id': bool(self.fitbit_client_id),
        }


class TokenStore:
    """Minimal per-user token state persisted as JSON.

    Layout: ``{user_id: {"spotify": {...}, "fitbit": {...}}}``. Writes are
    serialized with a lock so that concurrent refreshes within one fan-out batch
    are safe; the last successful write wins.
    """

    def __init__(self, tokens_file: str):
        self.tokens_file = Path(tokens_file)
        self.tokens_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.tokens_file.exists():
            return {}
        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def _save(self, tokens: Dict[str, Any]) -> None:
        try:
            with open(self.tokens_file, 'w') as f:
                json.dump(tokens, f, indent=2, ensure_ascii=False)
        except IOError as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def get(self, user_id: str, provider: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(user_id, {}).get(provider)

    def save(self, user_id: str, provider: str, values: Dict[str, Any]) -> None:
        """Merge token values for one user and provider."""
        with self._lock:
            tokens = self._load()
            user_tokens = tokens.setdefault(user_id, {})
            user_tokens.setdefault(provider, {}).update(values)
            self._save(tokens)

    def get_spotify_tokens(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get(user_id, 'spotify')

    def save_spotify_tokens(self, user_id: str, access_token: str, refresh_token: Optional[str] = None) -> None:
        values = {'access_token': access_token}
        if refresh_token:
            values['refresh_token'] = refresh_token
        self.save(user_id, 'spotify', values)

    def update_spotify_access_token(self, user_id: str, access_token: str) -> None:
        """Store a refreshed access token. Repeating the call with any token is harmless."""
        self.save(user_id, 'spotify', {'access_token': access_token})

    def get_fitbit_token(self, user_id: str) -> Optional[str]:
        fitbit = self.get(user_id, 'fitbit') or {}
        return fitbit.get('access_token')

    def save_fitbit_token(self, user_id: str, access_token: str) -> None:
        self.save(user_id, 'fitbit', {'access_token': access_token})
