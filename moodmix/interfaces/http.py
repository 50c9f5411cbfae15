import asyncio
import os
import logging
from typing import Dict, Any, List, Optional
from datetime import datetime
from flask import Flask, request, jsonify
import requests
from spotipy.oauth2 import SpotifyOAuth

from moodmix.crosscutting.logging import log_error
from moodmix.domain.entities import PlaylistItem
from moodmix.domain.errors import ValidationFailure
from moodmix.interfaces.services import Services, build_services


def _items_response(items: List[PlaylistItem]):
    return jsonify({
        'items': [item.to_dict() for item in items],
        'count': len(items),
    }), 200


class HTTPServer:
    """HTTP server for MoodMix: playlist generation, recommendations and Spotify OAuth."""

    def __init__(self, services: Optional[Services] = None,
                 host: str = 'localhost', port: int = 3001, debug: bool = False):
        """Initialize HTTP server."""
        self.host = host
        self.port = port
        self.debug = debug
        self.services = services or build_services()
        self.app = Flask(__name__)
        self.logger = logging.getLogger(__name__)

        # Version info
        self.version = "0.1.0"
        self.commit = os.getenv('GIT_COMMIT', 'unknown')

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.errorhandler(ValidationFailure)
        def validation_failed(error):
            return jsonify({'error': str(error)}), 400

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check endpoint."""
            return jsonify({
                'status': 'healthy',
                'version': self.version,
                'commit': self.commit,
                'credentials': self.services.settings.validate_configuration(),
                'timestamp': datetime.now().isoformat()
            }), 200

        @self.app.route('/', methods=['GET'])
        def root():
            """Root endpoint with basic info."""
            return jsonify({
                'service': 'MoodMix HTTP Interface',
                'version': self.version,
                'endpoints': {
                    'health': '/health',
                    'generate': '/generate',
                    'surprise': '/surprise',
                    'workout_music': '/workout-music',
                    'weather_music': '/weather-music',
                    'spotify_auth': '/auth/spotify',
                    'oauth_callback': '/callback'
                }
            }), 200

        @self.app.route('/generate', methods=['GET', 'POST'])
        def generate():
            """Generate a playlist from ``input`` such as ``mood=happy, genre=pop``."""
            params = self._request_params()
            raw_input = params.get('input')
            if raw_input is not None and not isinstance(raw_input, str):
                raise ValidationFailure("'input' must be a string")
            user_id = params.get('userId')
            generator = self.services.generator_for(user_id)
            auth = self.services.auth_for(user_id)
            items = asyncio.run(generator.generate(raw_input, auth))
            return _items_response(items)

        @self.app.route('/surprise', methods=['GET'])
        def surprise():
            """Surprise feed built around a rotating seed video."""
            generator = self.services.generator_for(request.args.get('userId'))
            items = asyncio.run(generator.surprise())
            return _items_response(items)

        @self.app.route('/workout-music', methods=['GET'])
        def workout_music():
            workout = self._required_arg('workout')
            generator = self.services.generator_for(request.args.get('userId'))
            items = asyncio.run(generator.recommend(
                'recommendations.for_workout', self.services.builder.for_workout, workout))
            return _items_response(items)

        @self.app.route('/weather-music', methods=['GET'])
        def weather_music():
            city = self._required_arg('city')
            generator = self.services.generator_for(request.args.get('userId'))
            items = asyncio.run(generator.recommend(
                'recommendations.for_weather', self.services.builder.for_weather, city))
            return _items_response(items)

        @self.app.route('/auth/spotify', methods=['GET'])
        def spotify_auth():
            """Initiate Spotify OAuth flow. ``userId`` travels through the ``state`` parameter."""
            oauth = self._spotify_oauth()
            if oauth is None:
                return jsonify({
                    'error': 'Spotify client ID not configured'
                }), 500

            return jsonify({
                'auth_url': oauth.get_authorize_url(state=request.args.get('userId')),
                'redirect_uri': self.services.settings.spotify_redirect_uri
            }), 200

        @self.app.route('/callback', methods=['GET'])
        def oauth_callback():
            """OAuth callback endpoint for Spotify."""
            code = request.args.get('code')
            error = request.args.get('error')

            if error:
                self.logger.error(f"OAuth error: {error}")
                return jsonify({
                    'error': 'OAuth authorization failed',
                    'details': error
                }), 400

            if not code:
                return jsonify({
                    'error': 'Missing authorization code'
                }), 400

            self.logger.info(f"Received OAuth code: {code[:10]}...")
            tokens = self._exchange_code_for_tokens(code)
            if not tokens:
                return jsonify({
                    'error': 'Failed to exchange code for tokens'
                }), 502

            user_id = request.args.get('state') or 'default'
            self.services.token_store.save_spotify_tokens(
                user_id, tokens['access_token'], tokens.get('refresh_token'))
            self.services.registry.discard(user_id)
            self.logger.info(f"OAuth tokens saved for user {user_id}")

            return jsonify({
                'status': 'success',
                'userId': user_id,
                'message': 'OAuth tokens saved successfully',
                'timestamp': datetime.now().isoformat()
            }), 200

    def _request_params(self) -> Dict[str, Any]:
        params = request.args.to_dict()
        if request.method == 'POST':
            params.update(request.form.to_dict())
            body = request.get_json(silent=True) or {}
            if isinstance(body, dict):
                params.update(body)
        return params

    def _required_arg(self, name: str) -> str:
        value = (request.args.get(name) or '').strip()
        if not value:
            raise ValidationFailure(f"'{name}' query parameter is required")
        return value

    def _spotify_oauth(self) -> Optional[SpotifyOAuth]:
        settings = self.services.settings
        if not settings.spotify_client_id or not settings.spotify_client_secret:
            return None
        return SpotifyOAuth(
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            scope=settings.get_spotify_scope_string(),
            show_dialog=True,
            open_browser=False,
        )

    def _exchange_code_for_tokens(self, code: str) -> Optional[Dict[str, Any]]:
        """Exchange authorization code for access and refresh tokens."""
        settings = self.services.settings
        if not settings.spotify_client_id or not settings.spotify_client_secret:
            self.logger.error("Spotify client credentials not configured")
            return None

        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': settings.spotify_redirect_uri,
            'client_id': settings.spotify_client_id,
            'client_secret': settings.spotify_client_secret
        }
        try:
            response = requests.post('https://accounts.spotify.com/api/token', data=data,
                                     timeout=settings.request_timeout)
        except requests.exceptions.RequestException as e:
            log_error(self.logger, "Token exchange error", e)
            return None

        if response.status_code != 200:
            self.logger.error(f"Token exchange failed: {response.status_code} - {response.text}")
            return None

        tokens = response.json()
        if not tokens.get('access_token'):
            self.logger.error("Token exchange returned no access token")
            return None
        return tokens

    def run(self) -> None:
        """Run the HTTP server."""
        self.logger.info(f"Starting MoodMix HTTP server on {self.host}:{self.port}")
        self.app.run(
            host=self.host,
            port=self.port,
            debug=self.debug
        )


def create_app(services: Optional[Services] = None) -> Flask:
    """Create Flask app, optionally around pre-built services (used by tests)."""
    server = HTTPServer(services=services)
    return server.app
