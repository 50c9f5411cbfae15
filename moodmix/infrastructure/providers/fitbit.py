from typing import List, Optional, Tuple
import logging

import requests

from moodmix.crosscutting.config import Settings, TokenStore
from moodmix.domain.entities import AuthContext, ProviderSession
from moodmix.domain.errors import NotFound, PermanentFailure, TemporaryFailure
from moodmix.domain.ports import FitnessSource

logger = logging.getLogger(__name__)

ACTIVITIES_URL = 'https://api.fitbit.com/1/user/-/activities.json'


class FitbitAdapter(FitnessSource):
    """Reads lifetime steps and recent activity names from Fitbit."""

    def __init__(self, settings: Settings, token_store: TokenStore,
                 session: Optional[requests.Session] = None):
        self.settings = settings
        self.token_store = token_store
        self.session = session or requests.Session()

    def activity_summary(self, auth: AuthContext) -> Tuple[int, List[str]]:
        if not auth or not auth.user_id or not auth.is_authenticated(ProviderSession.FITNESS_TRACKER):
            raise PermanentFailure("Fitness data requires a fitness tracker session")

        access_token = self.token_store.get_fitbit_token(auth.user_id)
        if not access_token:
            raise NotFound(f"No Fitbit access token stored for user {auth.user_id}")

        try:
            response = self.session.get(
                ACTIVITIES_URL,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=self.settings.request_timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TemporaryFailure(f"Fitbit request failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PermanentFailure(f"Fitbit request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TemporaryFailure(f"Fitbit returned {response.status_code}")
        if response.status_code >= 400:
            raise PermanentFailure(f"Fitbit returned {response.status_code}")

        data = response.json()
        steps = int((((data.get('lifetime') or {}).get('total') or {}).get('steps')) or 0)
        if steps == 0:
            logger.warning(f"No meaningful fitness data for user {auth.user_id}, is the tracker synced?")
        activities = [a['name'].lower() for a in data.get('activities') or [] if a.get('name')]
        return steps, activities
