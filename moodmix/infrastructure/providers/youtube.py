import random
import re
from typing import List, Optional, Dict, Any
import logging

import requests

from moodmix.crosscutting.config import Settings
from moodmix.domain.errors import NotFound, PermanentFailure, TemporaryFailure
from moodmix.domain.ports import VideoSource

logger = logging.getLogger(__name__)

API_BASE = 'https://www.googleapis.com/youtube/v3'
MUSIC_CATEGORY = '10'
ORDER_OPTIONS = ('date', 'relevance', 'viewCount')
EXCLUDED_KEYWORDS = (
    'reaction', 'review', 'interview', 'analysis', 'vlog',
    'shorts', 'trailer', 'asmr', 'recap', 'top',
)
MIN_VIEW_COUNT = 1000
MIN_DURATION_SECONDS = 60
MAX_FILTERED_VIDEOS = 5

KEYWORD_QUERIES = (
    'playlist', 'playlist, slowed', 'playlist, reverb', 'playlist , edits',
    'playlist , aesthetic', 'playlist , mood booster', 'late night drive playlist',
    'nostalgia playlist', 'study with me playlist', 'dark academia playlist',
    'classical playlist', 'chillhop playlist', 'rainy day playlist', 'vaporwave  playlist',
)

_DURATION_RE = re.compile(r'PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?')


def parse_duration(iso_duration: Optional[str]) -> int:
    """Convert an ISO 8601 duration such as ``PT4M13S`` to seconds; 0 when unparsable."""
    if not iso_duration:
        return 0
    match = _DURATION_RE.match(iso_duration)
    if not match:
        return 0
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def is_music_video(video: Dict[str, Any]) -> bool:
    """Long enough, watched enough and not commentary about music."""
    duration = parse_duration((video.get('contentDetails') or {}).get('duration'))
    try:
        views = int((video.get('statistics') or {}).get('viewCount') or 0)
    except (TypeError, ValueError):
        views = 0
    title = ((video.get('snippet') or {}).get('title') or '').lower()
    return (duration > MIN_DURATION_SECONDS
            and views >= MIN_VIEW_COUNT
            and not any(keyword in title for keyword in EXCLUDED_KEYWORDS))


def _thumbnail(snippet: Dict[str, Any]) -> Optional[str]:
    return ((snippet.get('thumbnails') or {}).get('default') or {}).get('url')


class YouTubeVideoAdapter(VideoSource):
    """YouTube Data API v3 adapter."""

    def __init__(self, settings: Settings,
                 session: Optional[requests.Session] = None,
                 rng: Optional[random.Random] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self._rng = rng or random.Random()

    def _get(self, resource: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.settings.youtube_api_key:
            raise PermanentFailure("YOUTUBE_API_KEY is not configured")

        params = dict(params, key=self.settings.youtube_api_key)
        try:
            response = self.session.get(f'{API_BASE}/{resource}', params=params,
                                        timeout=self.settings.request_timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            raise TemporaryFailure(f"YouTube {resource} request failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PermanentFailure(f"YouTube {resource} request failed: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"YouTube {resource} returned 404")
        if response.status_code == 429 or response.status_code >= 500:
            raise TemporaryFailure(f"YouTube {resource} returned {response.status_code}")
        if response.status_code >= 400:
            raise PermanentFailure(f"YouTube {resource} returned {response.status_code}: {response.text[:200]}")
        return response.json()

    def _filtered_videos(self, query: str, subject: str) -> Dict[str, Any]:
        search = self._get('search', {
            'part': 'snippet,id',
            'q': query,
            'order': self._rng.choice(ORDER_OPTIONS),
            'type': 'video',
            'videoCategoryId': MUSIC_CATEGORY,
            'maxResults': 50,
        })
        video_ids = [item['id']['videoId'] for item in search.get('items') or []
                     if (item.get('id') or {}).get('videoId')]
        if not video_ids:
            raise NotFound(f"No suitable videos found for the given {subject}")

        details = self._get('videos', {
            'part': 'snippet,contentDetails,statistics',
            'id': ','.join(video_ids),
        })
        videos = [{
            'title': video['snippet']['title'],
            'url': f"https://www.youtube.com/watch?v={video['id']}",
            'thumbnail': _thumbnail(video['snippet']),
        } for video in details.get('items') or [] if video.get('snippet') and is_music_video(video)]

        self._rng.shuffle(videos)
        videos = videos[:MAX_FILTERED_VIDEOS]
        if not videos:
            raise NotFound(f"No suitable videos found for the given {subject}")
        logger.debug(f"YouTube query '{query}' kept {len(videos)} video(s)")
        return {'success': True, 'videos': videos}

    def videos_by_mood(self, mood: str) -> Dict[str, Any]:
        query = self._rng.choice([f'{mood} music', f'{mood} playlist', f'{mood} hits', f'{mood} songs'])
        return self._filtered_videos(query, 'mood')

    def videos_by_genre(self, genre: str) -> Dict[str, Any]:
        query = self._rng.choice([f'{genre} music', f'{genre} playlist', f'{genre} hits', f'best {genre} songs'])
        return self._filtered_videos(query, 'genre')

    def videos_by_artist(self, artist_name: str) -> Dict[str, Any]:
        query = self._rng.choice([
            f'{artist_name} official music video',
            f'{artist_name} lyric video',
            f'{artist_name} songs',
            f'{artist_name} hits',
            f'{artist_name} playlist',
        ])
        return self._filtered_videos(query, 'artist')

    def playlists_for(self, query: str) -> List[Dict[str, Any]]:
        data = self._get('search', {
            'part': 'snippet',
            'q': query,
            'type': 'playlist',
            'maxResults': 5,
        })
        return [{
            'name': item['snippet']['title'],
            'url': f"https://www.youtube.com/playlist?list={item['id']['playlistId']}",
            'image': _thumbnail(item['snippet']),
        } for item in data.get('items') or []
            if (item.get('snippet') or {}).get('title') and (item.get('id') or {}).get('playlistId')]

    def _search_items(self, query: str, max_results: int, order: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {
            'part': 'snippet',
            'type': 'video',
            'maxResults': max_results,
            'q': query,
            'videoCategoryId': MUSIC_CATEGORY,
        }
        if order:
            params['order'] = order
        data = self._get('search', params)
        return [{
            'title': item['snippet']['title'],
            'videoId': item['id']['videoId'],
            'thumbnail': _thumbnail(item['snippet']),
            'url': f"https://www.youtube.com/watch?v={item['id']['videoId']}",
        } for item in data.get('items') or []
            if item.get('snippet') and (item.get('id') or {}).get('videoId')]

    def surprise_videos(self, seed_video_id: str) -> Dict[str, Any]:
        """Videos related to the seed, searched by two of its shuffled tags or by its title."""
        data = self._get('videos', {'part': 'snippet', 'id': seed_video_id})
        items = data.get('items') or []
        if not items:
            raise NotFound(f"No video details found for {seed_video_id}")

        snippet = items[0].get('snippet') or {}
        tags = list(snippet.get('tags') or [])
        self._rng.shuffle(tags)
        query = ' '.join(tags[:2]) or snippet.get('title') or ''

        videos = self._search_items(query, 3, order=self._rng.choice(ORDER_OPTIONS))
        if not videos:
            raise NotFound("No recommended videos found")
        return {'success': True, 'videos': videos}

    def keyword_videos(self) -> Dict[str, Any]:
        keyword = self._rng.choice(KEYWORD_QUERIES)
        # The API caps maxResults at 50
        videos = self._search_items(keyword, 50)
        self._rng.shuffle(videos)
        videos = videos[:3]
        if not videos:
            raise NotFound("No videos found")
        return {'success': True, 'keyword': keyword, 'videos': videos}
