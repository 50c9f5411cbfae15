from dataclasses import dataclass
from typing import Optional
import logging

from moodmix.application.aggregator import PlaylistGenerator
from moodmix.application.dispatcher import FanOutDispatcher
from moodmix.application.recommendations import RecommendationBuilder
from moodmix.application.sessions import GeneratorRegistry, VideoRotation
from moodmix.crosscutting.config import Settings, TokenStore
from moodmix.domain.entities import AuthContext, ProviderSession
from moodmix.domain.ports import CatalogSource, FitnessSource, VideoSource, WeatherSource
from moodmix.infrastructure.providers.fitbit import FitbitAdapter
from moodmix.infrastructure.providers.spotify import SpotifyCatalogAdapter
from moodmix.infrastructure.providers.weather import OpenWeatherAdapter
from moodmix.infrastructure.providers.youtube import YouTubeVideoAdapter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP and CLI front ends need, wired once per process."""

    settings: Settings
    token_store: TokenStore
    catalog: CatalogSource
    videos: VideoSource
    weather: WeatherSource
    fitness: FitnessSource
    builder: RecommendationBuilder
    dispatcher: FanOutDispatcher
    rotation: VideoRotation
    registry: GeneratorRegistry

    def auth_for(self, user_id: Optional[str]) -> AuthContext:
        """Resolve the caller's provider sessions from stored tokens."""
        if not user_id:
            return AuthContext.anonymous()

        sessions = set()
        spotify = self.token_store.get_spotify_tokens(user_id) or {}
        access_token = spotify.get('access_token')
        if access_token:
            sessions.add(ProviderSession.SPOTIFY)
        if self.token_store.get_fitbit_token(user_id):
            sessions.add(ProviderSession.FITNESS_TRACKER)

        return AuthContext(provider_sessions=frozenset(sessions),
                           access_token=access_token, user_id=user_id)

    def generator_for(self, user_id: Optional[str]) -> PlaylistGenerator:
        return self.registry.for_user(user_id)


def build_services(settings: Optional[Settings] = None,
                   token_store: Optional[TokenStore] = None,
                   catalog: Optional[CatalogSource] = None,
                   videos: Optional[VideoSource] = None,
                   weather: Optional[WeatherSource] = None,
                   fitness: Optional[FitnessSource] = None,
                   rotation: Optional[VideoRotation] = None) -> Services:
    """Wire adapters, dispatcher and generators. Any piece can be swapped in for tests."""
    settings = settings or Settings.from_env()
    token_store = token_store or TokenStore(settings.tokens_file)
    catalog = catalog or SpotifyCatalogAdapter(settings, token_store)
    videos = videos or YouTubeVideoAdapter(settings)
    weather = weather or OpenWeatherAdapter(settings)
    fitness = fitness or FitbitAdapter(settings, token_store)
    rotation = rotation or VideoRotation()

    builder = RecommendationBuilder(catalog, videos, weather=weather, fitness=fitness)
    dispatcher = FanOutDispatcher(catalog, videos, personalized_sources={
        ProviderSession.SPOTIFY: catalog.personalized_recommendations,
        ProviderSession.FITNESS_TRACKER: builder.for_fitness,
    })
    registry = GeneratorRegistry(lambda: PlaylistGenerator(dispatcher, videos, rotation))

    missing = [name for name, present in settings.validate_configuration().items() if not present]
    if missing:
        logger.warning(f"Missing credentials, related sources will fail: {', '.join(missing)}")

    return Services(
        settings=settings,
        token_store=token_store,
        catalog=catalog,
        videos=videos,
        weather=weather,
        fitness=fitness,
        builder=builder,
        dispatcher=dispatcher,
        rotation=rotation,
        registry=registry,
    )
