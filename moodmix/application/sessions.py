from __future__ import annotations

import random
import threading
from typing import Callable, Dict, Optional, Sequence

# Seed videos for the surprise feed
DEFAULT_VIDEO_POOL = (
    '0d8R1u4vj1Q', 'bHbSqH_xf0A', 'khRJMiquAjA', 'vW2HWHYd_jg', 'z79SoohPrgg',
    '4-S4unSPNJQ', 'jyWqLnUYkEc', 'nSveado5ZKU', '-I4iPvLblVE', 'PIqMYtF0DoA',
    'Xyj0Mq-YdUY', 'n7YSG0AV5iI', 'VsTY-kyp2Js', 'ExN66QlCf7Y', 'IcIv_YExiJ8',
    'Y_jvuLZW0_I', 'Vn4bBO78bJc', 'fviMGUZcUgk', 'H4Dk2T0AQ2U', 'm-HeBQLb7C8',
    '1-Au_oI3iBM', 'GKN-GEkJihQ', 'zAd4uTaUiDM', 'J1GerpUssss', '428zWT8w8IE',
)


class VideoRotation:
    """Picks seed videos from a pool without repeating the previous pick."""

    def __init__(self, pool: Sequence[str] = DEFAULT_VIDEO_POOL, rng: Optional[random.Random] = None):
        if not pool:
            raise ValueError("Video pool must not be empty")
        self.pool = tuple(pool)
        self.last_video_id: Optional[str] = None
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            candidates = [v for v in self.pool if v != self.last_video_id] or list(self.pool)
            video_id = self._rng.choice(candidates)
            self.last_video_id = video_id
            return video_id


class GeneratorRegistry:
    """Keeps one generator per user id so result state lives as long as that user's session.

    Anonymous callers share nothing: each gets a fresh generator.
    """

    def __init__(self, factory: Callable[[], object]):
        self._factory = factory
        self._generators: Dict[str, object] = {}
        self._lock = threading.Lock()

    def for_user(self, user_id: Optional[str]):
        if not user_id:
            return self._factory()
        with self._lock:
            if user_id not in self._generators:
                self._generators[user_id] = self._factory()
            return self._generators[user_id]

    def discard(self, user_id: Optional[str]) -> None:
        if not user_id:
            return
        with self._lock:
            self._generators.pop(user_id, None)
