import json
import os
import tempfile
import threading
from unittest.mock import patch

import pytest

from moodmix.crosscutting.config import ConfigError, Settings, TokenStore, SPOTIFY_USER_SCOPES


class TestSettings:
    """Tests for settings resolution."""

    def test_defaults_without_environment(self):
        settings = Settings.from_env()

        assert settings.spotify_client_id is None
        assert settings.request_timeout == 10.0
        assert settings.market == 'US'
        assert settings.spotify_redirect_uri == 'http://localhost:3001/callback'

    def test_reads_environment(self):
        with patch.dict(os.environ, {
            'SPOTIFY_CLIENT_ID': 'cid',
            'YOUTUBE_API_KEY': 'yt',
            'MOODMIX_REQUEST_TIMEOUT': '2.5',
            'MOODMIX_MARKET': 'GB',
        }):
            settings = Settings.from_env()

        assert settings.spotify_client_id == 'cid'
        assert settings.youtube_api_key == 'yt'
        assert settings.request_timeout == 2.5
        assert settings.market == 'GB'

    def test_loads_env_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            env_file = os.path.join(temp_dir, '.env')
            with open(env_file, 'w') as f:
                f.write('OPENWEATHER_API_KEY=from-file\n')
            try:
                settings = Settings.from_env(env_file)
            finally:
                os.environ.pop('OPENWEATHER_API_KEY', None)

        assert settings.openweather_api_key == 'from-file'

    def test_invalid_timeout_raises(self):
        with patch.dict(os.environ, {'MOODMIX_REQUEST_TIMEOUT': 'soon'}):
            with pytest.raises(ConfigError):
                Settings.from_env()

    def test_scope_string_and_validation(self):
        settings = Settings(spotify_client_id='cid')

        assert settings.get_spotify_scope_string().split() == SPOTIFY_USER_SCOPES
        report = settings.validate_configuration()
        assert report['spotify_client_id'] is True
        assert report['youtube_api_key'] is False


class TestTokenStore:
    """Tests for the per-user token store."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.tokens_file = os.path.join(self.temp_dir.name, 'nested', 'tokens.json')
        self.store = TokenStore(self.tokens_file)

    def teardown_method(self):
        self.temp_dir.cleanup()

    def test_missing_file_reads_as_empty(self):
        assert self.store.get_spotify_tokens('u1') is None
        assert self.store.get_fitbit_token('u1') is None

    def test_save_and_read_back_per_user(self):
        self.store.save_spotify_tokens('u1', 'access-1', 'refresh-1')
        self.store.save_fitbit_token('u1', 'fit-1')
        self.store.save_spotify_tokens('u2', 'access-2')

        assert self.store.get_spotify_tokens('u1') == {'access_token': 'access-1', 'refresh_token': 'refresh-1'}
        assert self.store.get_fitbit_token('u1') == 'fit-1'
        assert self.store.get_spotify_tokens('u2') == {'access_token': 'access-2'}

    def test_access_token_update_keeps_refresh_token(self):
        self.store.save_spotify_tokens('u1', 'old', 'refresh')

        self.store.update_spotify_access_token('u1', 'new')
        self.store.update_spotify_access_token('u1', 'new')

        assert self.store.get_spotify_tokens('u1') == {'access_token': 'new', 'refresh_token': 'refresh'}

    def test_concurrent_updates_leave_a_valid_file(self):
        self.store.save_spotify_tokens('u1', 'start', 'refresh')
        threads = [threading.Thread(target=self.store.update_spotify_access_token, args=('u1', f'tok-{i}'))
                   for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        with open(self.tokens_file) as f:
            data = json.load(f)
        assert data['u1']['spotify']['access_token'].startswith('tok-')
        assert data['u1']['spotify']['refresh_token'] == 'refresh'

    def test_corrupt_file_raises_config_error(self):
        with open(self.tokens_file, 'w') as f:
            f.write('{not json')

        with pytest.raises(ConfigError):
            self.store.get_spotify_tokens('u1')
