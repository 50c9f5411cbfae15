import os
import tempfile
from unittest.mock import Mock

import pytest
import requests

from moodmix.crosscutting.config import Settings, TokenStore
from moodmix.domain.entities import AuthContext, ProviderSession
from moodmix.domain.errors import NotFound, PermanentFailure, TemporaryFailure
from moodmix.infrastructure.providers.fitbit import ACTIVITIES_URL, FitbitAdapter
from moodmix.infrastructure.providers.weather import CURRENT_WEATHER_URL, OpenWeatherAdapter


def _response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestFitbitAdapter:
    """Contract tests for the Fitbit adapter."""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.token_store = TokenStore(os.path.join(self.temp_dir.name, 'tokens.json'))
        self.session = Mock()
        self.adapter = FitbitAdapter(Settings(request_timeout=4), self.token_store, session=self.session)
        self.auth = AuthContext(provider_sessions=frozenset({ProviderSession.FITNESS_TRACKER}), user_id='u1')

    def teardown_method(self):
        self.temp_dir.cleanup()

    def test_activity_summary(self):
        self.token_store.save_fitbit_token('u1', 'fit-token')
        self.session.get.return_value = _response({
            'lifetime': {'total': {'steps': 13000}},
            'activities': [{'name': 'Yoga'}, {'name': 'Running'}, {}],
        })

        steps, activities = self.adapter.activity_summary(self.auth)

        assert steps == 13000
        assert activities == ['yoga', 'running']
        args, kwargs = self.session.get.call_args
        assert args[0] == ACTIVITIES_URL
        assert kwargs['headers'] == {'Authorization': 'Bearer fit-token'}
        assert kwargs['timeout'] == 4

    def test_missing_data_reads_as_zero_steps(self):
        self.token_store.save_fitbit_token('u1', 'fit-token')
        self.session.get.return_value = _response({})

        assert self.adapter.activity_summary(self.auth) == (0, [])

    def test_requires_fitness_session(self):
        with pytest.raises(PermanentFailure):
            self.adapter.activity_summary(AuthContext(user_id='u1'))

    def test_missing_token_is_not_found(self):
        with pytest.raises(NotFound):
            self.adapter.activity_summary(self.auth)

    def test_server_error_is_temporary(self):
        self.token_store.save_fitbit_token('u1', 'fit-token')
        self.session.get.return_value = _response({}, status_code=502)

        with pytest.raises(TemporaryFailure):
            self.adapter.activity_summary(self.auth)


class TestOpenWeatherAdapter:
    """Contract tests for the weather adapter."""

    def setup_method(self):
        self.session = Mock()
        self.adapter = OpenWeatherAdapter(Settings(openweather_api_key='ow-key'), session=self.session)

    def test_current_conditions(self):
        self.session.get.return_value = _response({'main': {'temp': 21.4}, 'weather': [{'main': 'Clear'}]})

        assert self.adapter.current_conditions('Lisbon') == (21.4, 'clear')
        args, kwargs = self.session.get.call_args
        assert args[0] == CURRENT_WEATHER_URL
        assert kwargs['params'] == {'q': 'Lisbon', 'appid': 'ow-key', 'units': 'metric'}

    def test_unknown_city_is_not_found(self):
        self.session.get.return_value = _response({'message': 'city not found'}, status_code=404)

        with pytest.raises(NotFound):
            self.adapter.current_conditions('Atlantis')

    def test_malformed_payload_is_permanent_failure(self):
        self.session.get.return_value = _response({'main': {}, 'weather': []})

        with pytest.raises(PermanentFailure):
            self.adapter.current_conditions('Lisbon')

    def test_missing_api_key(self):
        adapter = OpenWeatherAdapter(Settings(), session=self.session)

        with pytest.raises(PermanentFailure):
            adapter.current_conditions('Lisbon')

    def test_connection_error_is_temporary(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError('down')

        with pytest.raises(TemporaryFailure):
            self.adapter.current_conditions('Lisbon')
