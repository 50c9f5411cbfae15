from __future__ import annotations

import logging
import threading
import uuid
from enum import Enum
from typing import Any, Callable, List, Optional

from moodmix.application.dispatcher import FanOutDispatcher, PlannedCall, parse_request, settle_all
from moodmix.application.sessions import VideoRotation
from moodmix.crosscutting.logging import (
    CorrelationContext, log_generation_complete, log_generation_start, log_upstream_failure,
)
from moodmix.crosscutting.metrics import GenerationMetrics, MetricsCollector
from moodmix.domain.entities import AuthContext, PlaylistItem, UpstreamOutcome
from moodmix.domain.errors import ShapeMismatch
from moodmix.domain.normalization import normalize_payload
from moodmix.domain.ports import VideoSource


logger = logging.getLogger(__name__)

# HTTP-style wrappers around the actual list of records
_ENVELOPE_KEYS = ('playlists', 'videos', 'recommendations')


def unwrap_envelope(payload: Any) -> Any:
    """Strip ``{playlists: [...]}``-style envelopes; leave every other payload as is."""
    if isinstance(payload, dict):
        for key in _ENVELOPE_KEYS:
            if isinstance(payload.get(key), list):
                return payload[key]
    return payload


def aggregate(outcomes: List[UpstreamOutcome],
              metrics: Optional[MetricsCollector] = None) -> List[PlaylistItem]:
    """Concatenate normalized items of every fulfilled outcome, in outcome order.

    Each rejection is logged once and contributes nothing.
    """
    items: List[PlaylistItem] = []
    for outcome in outcomes:
        if not outcome.ok:
            log_upstream_failure(logger, outcome.label, outcome.reason)
            if metrics:
                metrics.record_rejected()
            continue

        try:
            normalized = normalize_payload(unwrap_envelope(outcome.payload))
        except ShapeMismatch as e:
            log_upstream_failure(logger, outcome.label, e)
            if metrics:
                metrics.record_rejected()
            continue
        logger.debug(f"{outcome.label} contributed {len(normalized)} item(s)")
        items.extend(normalized)
        if metrics:
            metrics.record_fulfilled(len(normalized))
    return items


class GenerationState(Enum):
    IDLE = 'idle'
    DISPATCHING = 'dispatching'
    AGGREGATING = 'aggregating'


class PlaylistGenerator:
    """Runs user-triggered generations and holds the latest result list.

    A generation started while another is in flight clears the results and
    makes the older one stale: whatever the older one fetches is discarded.
    Its network calls still run to completion.
    """

    def __init__(self, dispatcher: FanOutDispatcher,
                 videos: Optional[VideoSource] = None,
                 rotation: Optional[VideoRotation] = None):
        self.dispatcher = dispatcher
        self.videos = videos or dispatcher.videos
        self.rotation = rotation or VideoRotation()
        self.state = GenerationState.IDLE
        self.results: List[PlaylistItem] = []
        self.last_metrics: Optional[GenerationMetrics] = None
        self._generation = 0
        # Guards the generation token and results; runs may finish on different threads
        self._lock = threading.Lock()

    def _begin(self) -> int:
        with self._lock:
            self._generation += 1
            self.results = []
            self.state = GenerationState.DISPATCHING
            return self._generation

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def _finish(self, token: int) -> None:
        with self._lock:
            if self._is_current(token):
                self.state = GenerationState.IDLE

    def _enter(self, token: int, state: GenerationState) -> None:
        with self._lock:
            if self._is_current(token):
                self.state = state

    def _publish(self, token: int, items: List[PlaylistItem]) -> bool:
        with self._lock:
            if not self._is_current(token):
                logger.info("Discarding results of a superseded generation")
                return False
            self.results.extend(items)
            return True

    def _snapshot(self, token: int) -> List[PlaylistItem]:
        with self._lock:
            return list(self.results) if self._is_current(token) else []

    async def generate(self, raw_input: str, auth: Optional[AuthContext] = None) -> List[PlaylistItem]:
        """General pass, then the personalized pass when the caller holds any session.

        Raises ValidationFailure for blank input before anything is dispatched.
        Returns an empty list when superseded by a newer generation.
        """
        auth = auth or AuthContext.anonymous()
        parse_request(raw_input)

        token = self._begin()
        generation_id = uuid.uuid4().hex
        collector = MetricsCollector(generation_id)
        log_generation_start(logger, generation_id, raw_input, auth.has_any_session)

        try:
            with CorrelationContext(generation_id=generation_id, user_id=auth.user_id):
                with collector.batch_context('general'):
                    outcomes = await self.dispatcher.dispatch(raw_input, auth)
                    self._enter(token, GenerationState.AGGREGATING)
                    if not self._publish(token, aggregate(outcomes, collector)):
                        return []

                if auth.has_any_session:
                    self._enter(token, GenerationState.DISPATCHING)
                    with collector.batch_context('personalized'):
                        outcomes = await self.dispatcher.dispatch_personalized(auth)
                        self._enter(token, GenerationState.AGGREGATING)
                        if not self._publish(token, aggregate(outcomes, collector)):
                            return []
        finally:
            self._finish(token)

        metrics = collector.finish()
        self.last_metrics = metrics
        results = self._snapshot(token)
        log_generation_complete(logger, generation_id, len(results), metrics.total_rejected,
                                rejected_rate=round(metrics.overall_rejected_rate, 3),
                                duration_ms=metrics.total_duration_ms,
                                batches=collector.to_dict()['batches'])
        return results

    async def _replace_with(self, calls: List[PlannedCall]) -> List[PlaylistItem]:
        token = self._begin()
        try:
            outcomes = await settle_all(calls)
            self._enter(token, GenerationState.AGGREGATING)
            if not self._publish(token, aggregate(outcomes)):
                return []
        finally:
            self._finish(token)
        return self._snapshot(token)

    async def surprise(self) -> List[PlaylistItem]:
        """Surprise feed: videos related to a rotating seed plus a random keyword search."""
        seed = self.rotation.next()
        logger.info(f"Surprise seed video {seed}")
        return await self._replace_with([
            PlannedCall('videos.surprise_videos', self.videos.surprise_videos, (seed,)),
            PlannedCall('videos.keyword_videos', self.videos.keyword_videos),
        ])

    async def recommend(self, label: str, func: Callable[..., Any], *args: Any) -> List[PlaylistItem]:
        """Replace the results with a single recommendation payload, e.g. a workout bundle."""
        return await self._replace_with([PlannedCall(label, func, args)])
