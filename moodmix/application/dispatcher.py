from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from moodmix.domain.entities import (
    AuthContext, Fulfilled, ProviderSession, Rejected, RequestClause, UpstreamOutcome,
)
from moodmix.domain.errors import ValidationFailure
from moodmix.domain.ports import CatalogSource, VideoSource


logger = logging.getLogger(__name__)

RECOGNIZED_KEYS = (
    'mood', 'genre', 'artistName', 'relatedArtists',
    'library_mood', 'library_genre', 'playlist_mood', 'playlist_genre',
)


@dataclass
class PlannedCall:
    """One upstream adapter invocation waiting to be issued."""

    label: str
    func: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    def __call__(self) -> Any:
        return self.func(*self.args, **self.kwargs)


def parse_request(raw_input: Optional[str]) -> List[RequestClause]:
    """Parse ``"mood=happy, genre=pop"`` into clauses.

    Raises ValidationFailure for empty or whitespace-only input. Clauses with no
    ``=`` or an empty value are dropped; unrecognized keys are kept so the
    caller can decide what to ignore.
    """
    if raw_input is None or not raw_input.strip():
        raise ValidationFailure("Generation input must not be empty")

    clauses = []
    for part in raw_input.split(','):
        if '=' not in part:
            continue
        key, value = part.split('=', 1)
        key, value = key.strip(), value.strip()
        if not key or not value:
            continue
        clauses.append(RequestClause(key=key, value=value))
    return clauses


async def settle_all(calls: List[PlannedCall]) -> List[UpstreamOutcome]:
    """Run every call concurrently and wait for all of them.

    Outcomes are returned in issuance order. A failing call never cancels its
    siblings; it becomes a Rejected outcome instead.
    """
    if not calls:
        return []
    results = await asyncio.gather(
        *(asyncio.to_thread(call) for call in calls),
        return_exceptions=True,
    )

    outcomes: List[UpstreamOutcome] = []
    for call, result in zip(calls, results):
        if isinstance(result, Exception):
            outcomes.append(Rejected(label=call.label, reason=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(Fulfilled(label=call.label, payload=result))
    return outcomes


class FanOutDispatcher:
    """Derives independent upstream calls from a request and issues them together."""

    def __init__(self,
                 catalog: CatalogSource,
                 videos: VideoSource,
                 personalized_sources: Optional[Dict[ProviderSession, Callable[[AuthContext], Any]]] = None):
        self.catalog = catalog
        self.videos = videos
        self.personalized_sources = personalized_sources or {
            ProviderSession.SPOTIFY: catalog.personalized_recommendations,
        }

    def _plan_clause(self, clause: RequestClause, auth: AuthContext) -> List[PlannedCall]:
        key, value = clause.key, clause.value
        signed_in = auth.is_authenticated(ProviderSession.SPOTIFY)
        # Personal variants receive the auth context, public ones do not
        personal = (auth,) if signed_in else ()

        if key == 'mood':
            return [
                PlannedCall('catalog.search_by_mood', self.catalog.search_by_mood, (value, *personal)),
                PlannedCall('videos.videos_by_mood', self.videos.videos_by_mood, (value,)),
            ]
        if key == 'genre':
            return [
                PlannedCall('catalog.search_by_genre', self.catalog.search_by_genre, (value, *personal)),
                PlannedCall('videos.videos_by_genre', self.videos.videos_by_genre, (value,)),
            ]
        if key == 'artistName':
            return [
                PlannedCall('catalog.search_by_artist', self.catalog.search_by_artist, (value, *personal)),
                PlannedCall('videos.videos_by_artist', self.videos.videos_by_artist, (value,)),
            ]
        if key == 'relatedArtists':
            return [PlannedCall('catalog.related_artists', self.catalog.related_artists, (value,))]

        if not signed_in:
            if key in RECOGNIZED_KEYS:
                logger.debug(f"Skipping '{key}': requires a Spotify session")
            return []

        if key == 'library_mood':
            return [PlannedCall('catalog.library_by_mood', self.catalog.library_by_mood, (value, auth))]
        if key == 'library_genre':
            return [PlannedCall('catalog.library_by_genre', self.catalog.library_by_genre, (value, auth))]
        if key == 'playlist_mood':
            return [PlannedCall('catalog.user_playlists_by_mood', self.catalog.user_playlists_by_mood, (value, auth))]
        if key == 'playlist_genre':
            return [PlannedCall('catalog.user_playlists_by_genre', self.catalog.user_playlists_by_genre, (value, auth))]
        return []

    def plan(self, raw_input: str, auth: AuthContext) -> List[PlannedCall]:
        """Select the adapter calls for a request. Raises ValidationFailure on blank input."""
        clauses = parse_request(raw_input)

        calls: List[PlannedCall] = []
        recognized = False
        for clause in clauses:
            if clause.key not in RECOGNIZED_KEYS:
                logger.debug(f"Ignoring unrecognized key '{clause.key}'")
                continue
            recognized = True
            calls.extend(self._plan_clause(clause, auth))

        if not recognized:
            signed_in = auth.is_authenticated(ProviderSession.SPOTIFY)
            query = raw_input.strip()
            args = (query, auth) if signed_in else (query,)
            calls.append(PlannedCall('catalog.free_text_search', self.catalog.free_text_search, args))

        return calls

    def plan_personalized(self, auth: AuthContext) -> List[PlannedCall]:
        calls = []
        for provider in ProviderSession:
            source = self.personalized_sources.get(provider)
            if source is not None and auth.is_authenticated(provider):
                calls.append(PlannedCall(f'personalized.{provider.value}', source, (auth,)))
        return calls

    async def dispatch(self, raw_input: str, auth: AuthContext) -> List[UpstreamOutcome]:
        """General pass: issue every planned call and collect each outcome."""
        calls = self.plan(raw_input, auth)
        logger.info(f"Dispatching {len(calls)} upstream call(s)")
        return await settle_all(calls)

    async def dispatch_personalized(self, auth: AuthContext) -> List[UpstreamOutcome]:
        """Personalized pass: one call per authenticated provider session."""
        calls = self.plan_personalized(auth)
        if calls:
            logger.info(f"Dispatching {len(calls)} personalized call(s)")
        return await settle_all(calls)
