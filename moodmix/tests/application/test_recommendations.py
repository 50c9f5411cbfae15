from unittest.mock import Mock

import pytest

from moodmix.application.recommendations import (
    DEFAULT_MOOD, RecommendationBuilder, mood_for_fitness, mood_for_weather, mood_for_workout,
)
from moodmix.domain.entities import AuthContext, ProviderSession
from moodmix.domain.errors import NotFound, TemporaryFailure


@pytest.mark.parametrize('workout,expected', [
    ('running', ('energetic', 'dance')),
    ('Weight Training', ('motivational', 'rock')),
    ('yoga', ('relaxed', 'ambient')),
    ('hiit', ('intense', 'hardcore')),
    ('swimming', ('peaceful', 'classical')),
    ('chess', DEFAULT_MOOD),
])
def test_mood_for_workout(workout, expected):
    assert mood_for_workout(workout) == expected


@pytest.mark.parametrize('temperature,condition,expected', [
    (5, 'clouds', ('relaxed', 'acoustic')),
    (15, 'clouds', ('calm', 'classical')),
    (25, 'clouds', ('energetic', 'summer')),
    (25, 'clear', ('upbeat', 'party')),
    (15, 'clear', ('calm', 'classical')),
    (12, 'drizzle', ('reflective', 'lo-fi')),
    (-2, 'snow', ('cozy', 'holiday')),
])
def test_mood_for_weather(temperature, condition, expected):
    assert mood_for_weather(temperature, condition) == expected


def test_mood_for_fitness_uses_steps_then_activities():
    assert mood_for_fitness(1000, []) == ('relaxed', 'classical')
    assert mood_for_fitness(8000, []) == ('happy', 'indie')
    assert mood_for_fitness(15000, ['walk']) == ('energetic', 'pop')
    assert mood_for_fitness(15000, ['Yoga', 'Running']) == ('relaxed', 'ambient')
    assert mood_for_fitness(0, ['circuit training', 'yoga']) == ('focused', 'electronic')


class TestRecommendationBuilder:
    """Tests for recommendation bundles."""

    def setup_method(self):
        self.catalog = Mock()
        self.videos = Mock()
        self.weather = Mock()
        self.fitness = Mock()
        self.builder = RecommendationBuilder(self.catalog, self.videos, self.weather, self.fitness)

    def test_bundle_collects_every_slot(self):
        self.catalog.playlists_for_mood.return_value = [{'name': 'M', 'url': 'u', 'image': 'i'}]
        self.catalog.playlists_for_genre.return_value = [{'name': 'G', 'url': 'u', 'image': 'i'}]
        self.videos.playlists_for.return_value = [{'name': 'Y', 'url': 'u', 'image': 'i'}]

        bundle = self.builder.bundle('happy', 'pop', 'hello')

        assert bundle['mood'] == 'happy' and bundle['genre'] == 'pop'
        assert bundle['recommendations']['spotify']['moodPlaylists'][0]['name'] == 'M'
        assert bundle['recommendations']['spotify']['genrePlaylists'][0]['name'] == 'G'
        assert bundle['recommendations']['youtube'][0]['name'] == 'Y'
        self.videos.playlists_for.assert_called_once_with('happy pop playlist')

    def test_failed_slot_leaves_others_intact(self):
        self.catalog.playlists_for_mood.side_effect = TemporaryFailure('timeout')
        self.catalog.playlists_for_genre.return_value = [{'name': 'G'}]
        self.videos.playlists_for.side_effect = NotFound('nothing')

        bundle = self.builder.bundle('sad', 'blues', 'msg')

        assert bundle['recommendations']['spotify']['moodPlaylists'] == []
        assert bundle['recommendations']['spotify']['genrePlaylists'] == [{'name': 'G'}]
        assert bundle['recommendations']['youtube'] == []

    def test_for_workout_maps_then_bundles(self):
        self.catalog.playlists_for_mood.return_value = []
        self.catalog.playlists_for_genre.return_value = []
        self.videos.playlists_for.return_value = []

        bundle = self.builder.for_workout('running')

        self.catalog.playlists_for_mood.assert_called_once_with('energetic')
        self.catalog.playlists_for_genre.assert_called_once_with('dance')
        assert 'workout' in bundle['message']

    def test_for_weather_propagates_weather_failure(self):
        self.weather.current_conditions.side_effect = NotFound('no such city')

        with pytest.raises(NotFound):
            self.builder.for_weather('Atlantis')

    def test_for_weather_uses_conditions(self):
        self.weather.current_conditions.return_value = (3.0, 'snow')
        self.catalog.playlists_for_mood.return_value = []
        self.catalog.playlists_for_genre.return_value = []
        self.videos.playlists_for.return_value = []

        bundle = self.builder.for_weather('Oslo')

        assert (bundle['mood'], bundle['genre']) == ('cozy', 'holiday')
        assert 'Oslo' in bundle['message']

    def test_for_fitness_uses_activity_summary(self):
        auth = AuthContext(provider_sessions=frozenset({ProviderSession.FITNESS_TRACKER}), user_id='u1')
        self.fitness.activity_summary.return_value = (20000, ['running'])
        self.catalog.playlists_for_mood.return_value = []
        self.catalog.playlists_for_genre.return_value = []
        self.videos.playlists_for.return_value = []

        bundle = self.builder.for_fitness(auth)

        self.fitness.activity_summary.assert_called_once_with(auth)
        assert (bundle['mood'], bundle['genre']) == ('energetic', 'dance')
