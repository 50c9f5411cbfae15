from typing import Optional, Tuple
import logging

import requests

from moodmix.crosscutting.config import Settings
from moodmix.domain.errors import NotFound, PermanentFailure, TemporaryFailure
from moodmix.domain.ports import WeatherSource

logger = logging.getLogger(__name__)

CURRENT_WEATHER_URL = 'https://api.openweathermap.org/data/2.5/weather'


class OpenWeatherAdapter(WeatherSource):
    """Current conditions from OpenWeatherMap, in metric units."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def current_conditions(self, city: str) -> Tuple[float, str]:
        if not self.settings.openweather_api_key:
            raise PermanentFailure("OPENWEATHER_API_KEY is not configured")

        try:
            response = self.session.get(
                CURRENT_WEATHER_URL,
                params={'q': city, 'appid': self.settings.openweather_api_key, 'units': 'metric'},
                timeout=self.settings.request_timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TemporaryFailure(f"Weather request failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PermanentFailure(f"Weather request failed: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"City '{city}' not found")
        if response.status_code == 429 or response.status_code >= 500:
            raise TemporaryFailure(f"Weather service returned {response.status_code}")
        if response.status_code >= 400:
            raise PermanentFailure(f"Weather service returned {response.status_code}")

        data = response.json()
        try:
            temperature = float(data['main']['temp'])
            condition = data['weather'][0]['main'].lower()
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise PermanentFailure(f"Unexpected weather payload for '{city}': {e}") from e

        logger.debug(f"Weather in {city}: {temperature}C, {condition}")
        return temperature, condition
