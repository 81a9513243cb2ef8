"""
Streaming coordinator — drives one talent pipeline run.

Run contract:
  1. Acquire a token. Failure → one ``ErrorRecord``, stop.
  2. Fetch rankings.  Failure → one ``ErrorRecord``, stop.
  3. Walk the entries in leaderboard order:
       - "Anonymous" entries are skipped and do not consume a rank;
       - an entry without a report code / fight id gets ``MISSING_REPORT_DATA``
         and no network call;
       - any resolution failure gets ``TALENT_UNAVAILABLE`` and the run goes on;
       - each record is pushed to the sink as soon as it is built;
       - a closed sink ends the run immediately, silently.
  4. Stop after ``max_records`` records or when entries run out.

The coordinator never pushes a "done" marker.  ``start()`` closes the sender
side of the channel when the background task ends, for every outcome, and
the transport adapter turns that into the completion event.

States::

    IDLE → TOKEN_ACQUIRED → RANKINGS_FETCHED → RESOLVING_ENTRY*
         → DONE | ABORTED_AUTH | ABORTED_FETCH | ABORTED_SINK_CLOSED
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Protocol

import httpx

from talent_trends.config import MAX_RECORDS_LIMIT, AppConfig
from talent_trends.exceptions import (
    AuthError,
    ConfigError,
    FetchError,
    TalentTrendsError,
)
from talent_trends.ingestion.graphql_client import WarcraftLogsClient
from talent_trends.ingestion.rankings import RankingEntry, RankingsFetcher
from talent_trends.ingestion.talents import TalentResolver
from talent_trends.ingestion.token_cache import TokenCache
from talent_trends.models.query import QueryParameters
from talent_trends.models.talent import (
    MISSING_REPORT_DATA,
    TALENT_UNAVAILABLE,
    ErrorRecord,
    StreamItem,
    TalentRecord,
    build_log_url,
)
from talent_trends.pipeline.channel import ChannelClosedError, RecordChannel

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"


class CoordinatorState(StrEnum):
    """Lifecycle of a single pipeline run."""

    IDLE = "idle"
    TOKEN_ACQUIRED = "token_acquired"
    RANKINGS_FETCHED = "rankings_fetched"
    RESOLVING_ENTRY = "resolving_entry"
    DONE = "done"
    ABORTED_AUTH = "aborted_auth"
    ABORTED_FETCH = "aborted_fetch"
    ABORTED_SINK_CLOSED = "aborted_sink_closed"


class RecordSink(Protocol):
    """Anything the coordinator can push stream items into."""

    async def send(self, item: StreamItem) -> None: ...


class StreamCoordinator:
    """Produce ranked ``TalentRecord``s for one query, one entry at a time.

    Attributes:
        config: Application config (stream limits, report URL base).
        token_cache: Process-wide token cell.
        fetcher: Leaderboard stage.
        resolver: Per-entry talent stage.
    """

    def __init__(
        self,
        config: AppConfig,
        token_cache: TokenCache,
        fetcher: RankingsFetcher,
        resolver: TalentResolver,
    ) -> None:
        self.config = config
        self.token_cache = token_cache
        self.fetcher = fetcher
        self.resolver = resolver
        self.max_records = min(config.stream.max_records, MAX_RECORDS_LIMIT)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        token_cache: TokenCache,
        http_client: httpx.AsyncClient,
    ) -> "StreamCoordinator":
        """Wire the fetch and resolve stages around a shared HTTP client."""
        client = WarcraftLogsClient(config.warcraftlogs, token_cache, http_client)
        return cls(
            config=config,
            token_cache=token_cache,
            fetcher=RankingsFetcher(client, config.warcraftlogs),
            resolver=TalentResolver(client),
        )

    def start(
        self, params: QueryParameters
    ) -> tuple["asyncio.Task[CoordinatorState]", RecordChannel[StreamItem]]:
        """Launch ``run()`` as a background task feeding a fresh channel."""
        channel: RecordChannel[StreamItem] = RecordChannel(self.config.stream.channel_capacity)
        task = asyncio.create_task(self._run_and_close(params, channel))
        return task, channel

    async def _run_and_close(
        self, params: QueryParameters, channel: RecordChannel[StreamItem]
    ) -> CoordinatorState:
        try:
            return await self.run(params, channel)
        finally:
            channel.close_sender()

    async def run(self, params: QueryParameters, sink: RecordSink) -> CoordinatorState:
        """Execute one pipeline run, pushing records into ``sink``.

        Returns:
            The terminal ``CoordinatorState``.

        Raises:
            Exception: Anything other than the pipeline's own error types is
                logged and re-raised.
        """
        logger.info(
            "Talent run starting | class=%s spec=%s encounter=%d region=%s",
            params.class_name, params.spec_name, params.encounter_id,
            params.region or "all",
        )
        try:
            return await self._run(params, sink)
        except Exception:
            logger.exception("Talent run crashed | class=%s spec=%s",
                             params.class_name, params.spec_name)
            raise

    async def _run(self, params: QueryParameters, sink: RecordSink) -> CoordinatorState:
        try:
            await self.token_cache.get_token()
        except (ConfigError, AuthError) as exc:
            logger.error("Talent run aborted: %s", exc)
            await _push_error(sink, exc)
            return CoordinatorState.ABORTED_AUTH
        logger.debug("Coordinator state=%s", CoordinatorState.TOKEN_ACQUIRED)

        try:
            entries = await self.fetcher.fetch_rankings(params)
        except (ConfigError, AuthError) as exc:
            logger.error("Talent run aborted: %s", exc)
            await _push_error(sink, exc)
            return CoordinatorState.ABORTED_AUTH
        except FetchError as exc:
            logger.error("Talent run aborted: %s", exc)
            await _push_error(sink, exc)
            return CoordinatorState.ABORTED_FETCH
        logger.debug(
            "Coordinator state=%s | entries=%d",
            CoordinatorState.RANKINGS_FETCHED, len(entries),
        )

        rank = 1
        for entry in entries:
            if rank > self.max_records:
                break
            if entry.name == ANONYMOUS_NAME:
                continue
            if getattr(sink, "receiver_closed", False):
                return self._sink_closed(rank - 1)

            logger.debug(
                "Coordinator state=%s | rank=%d name=%r",
                CoordinatorState.RESOLVING_ENTRY, rank, entry.name,
            )
            record = TalentRecord(
                rank=rank,
                name=entry.name,
                talent_string=await self._talent_string(entry),
                log_url=build_log_url(
                    self.config.warcraftlogs.report_base_url,
                    entry.report_code,
                    entry.fight_id,
                ),
            )
            try:
                await sink.send(record)
            except ChannelClosedError:
                return self._sink_closed(rank - 1)
            rank += 1

        logger.info("Talent run complete | records=%d", rank - 1)
        return CoordinatorState.DONE

    async def _talent_string(self, entry: RankingEntry) -> str:
        if not entry.has_report:
            logger.info("Entry %r has no report reference", entry.name)
            return MISSING_REPORT_DATA
        try:
            resolution = await self.resolver.resolve(entry)
        except TalentTrendsError as exc:
            logger.warning(
                "Talent lookup failed for %r (report=%s fight=%d): %s",
                entry.name, entry.report_code, entry.fight_id, exc,
            )
            return TALENT_UNAVAILABLE
        return resolution.talent_code

    @staticmethod
    def _sink_closed(emitted: int) -> CoordinatorState:
        logger.info("Consumer disconnected after %d records; stopping run", emitted)
        return CoordinatorState.ABORTED_SINK_CLOSED


async def _push_error(sink: RecordSink, exc: TalentTrendsError) -> None:
    try:
        await sink.send(ErrorRecord(kind=type(exc).__name__, message=exc.user_message))
    except ChannelClosedError:
        logger.info("Consumer disconnected before error record could be sent")
