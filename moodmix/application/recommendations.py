"""Signal-driven recommendation bundles (workout, weather, fitness).

Each signal is reduced to a ``(mood, genre)`` pair, which is then used to pull
Spotify mood/genre playlists and YouTube playlists into a single
``recommendations`` payload the normalizer understands.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Tuple

from moodmix.crosscutting.logging import log_upstream_failure
from moodmix.domain.entities import AuthContext
from moodmix.domain.errors import AdapterFailure
from moodmix.domain.ports import CatalogSource, FitnessSource, VideoSource, WeatherSource


logger = logging.getLogger(__name__)

DEFAULT_MOOD = ('happy', 'pop')

_WORKOUT_MOODS = {
    ('cardio training', 'running', 'cycling'): ('energetic', 'dance'),
    ('weight training', 'strength training', 'squats', 'lunge'): ('motivational', 'rock'),
    ('pilates', 'yoga', 'dynamic stretching', 'flexibility training'): ('relaxed', 'ambient'),
    ('circuit training', 'hiit'): ('intense', 'hardcore'),
    ('swimming', 'functional training'): ('peaceful', 'classical'),
}

# Checked in order; first activity group present in the user's history wins
_ACTIVITY_MOODS = [
    (('hiit', 'circuit training'), ('focused', 'electronic')),
    (('pilates', 'yoga'), ('relaxed', 'ambient')),
    (('weight training', 'strength training'), ('motivational', 'rock')),
    (('running', 'cycling'), ('energetic', 'dance')),
    (('walking', 'functional training'), ('peaceful', 'acoustic')),
]


def mood_for_workout(workout: str) -> Tuple[str, str]:
    key = (workout or '').strip().lower()
    for workouts, pair in _WORKOUT_MOODS.items():
        if key in workouts:
            return pair
    return DEFAULT_MOOD


def mood_for_weather(temperature: float, condition: str) -> Tuple[str, str]:
    """Pick a mood from temperature bands, then let the sky condition override it."""
    if temperature < 10:
        mood = ('relaxed', 'acoustic')
    elif temperature <= 20:
        mood = ('calm', 'classical')
    else:
        mood = ('energetic', 'summer')

    condition = (condition or '').lower()
    if 'rain' in condition or 'drizzle' in condition:
        mood = ('reflective', 'lo-fi')
    elif 'snow' in condition:
        mood = ('cozy', 'holiday')
    elif 'clear' in condition and temperature > 20:
        mood = ('upbeat', 'party')
    return mood


def mood_for_fitness(steps: int, activities: Iterable[str]) -> Tuple[str, str]:
    mood = ('relaxed', 'classical')
    if steps > 12000:
        mood = ('energetic', 'pop')
    elif steps > 5000:
        mood = ('happy', 'indie')

    names = {a.lower() for a in activities}
    for group, pair in _ACTIVITY_MOODS:
        if names.intersection(group):
            return pair
    return mood


class RecommendationBuilder:
    """Builds ``recommendations`` payloads from a mood/genre pair."""

    def __init__(self, catalog: CatalogSource, videos: VideoSource,
                 weather: WeatherSource = None, fitness: FitnessSource = None):
        self.catalog = catalog
        self.videos = videos
        self.weather = weather
        self.fitness = fitness

    def _slot(self, source: str, fetch: Callable[[], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        # One empty slot must not sink the whole bundle
        try:
            return fetch()
        except AdapterFailure as e:
            log_upstream_failure(logger, source, e)
            return []

    def bundle(self, mood: str, genre: str, message: str) -> Dict[str, Any]:
        return {
            'message': message,
            'mood': mood,
            'genre': genre,
            'recommendations': {
                'spotify': {
                    'moodPlaylists': self._slot('catalog.playlists_for_mood',
                                                lambda: self.catalog.playlists_for_mood(mood)),
                    'genrePlaylists': self._slot('catalog.playlists_for_genre',
                                                 lambda: self.catalog.playlists_for_genre(genre)),
                },
                'youtube': self._slot('videos.playlists_for',
                                      lambda: self.videos.playlists_for(f'{mood} {genre} playlist')),
            },
        }

    def for_workout(self, workout: str) -> Dict[str, Any]:
        mood, genre = mood_for_workout(workout)
        logger.info(f"Workout '{workout}' mapped to mood={mood}, genre={genre}")
        return self.bundle(mood, genre, 'Music recommendations generated for your workout!')

    def for_weather(self, city: str) -> Dict[str, Any]:
        """Raises AdapterFailure when the weather itself cannot be fetched."""
        temperature, condition = self.weather.current_conditions(city)
        mood, genre = mood_for_weather(temperature, condition)
        logger.info(f"Weather in {city} ({temperature}C, {condition}) mapped to mood={mood}, genre={genre}")
        return self.bundle(mood, genre, f'Music recommendations generated for the weather in {city}!')

    def for_fitness(self, auth: AuthContext) -> Dict[str, Any]:
        steps, activities = self.fitness.activity_summary(auth)
        mood, genre = mood_for_fitness(steps, activities)
        return self.bundle(mood, genre, 'Music recommendations generated based on your fitness data!')
