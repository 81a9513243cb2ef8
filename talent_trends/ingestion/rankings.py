"""
Leaderboard stage: one ``characterRankings`` query per pipeline run.

Only the first page is requested.  Entries come back in leaderboard order
and are returned in that order; nothing here re-sorts or filters them
(Anonymous exclusion belongs to the coordinator).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from talent_trends.config import WarcraftLogsConfig
from talent_trends.exceptions import FetchError, ParseError, TransportError
from talent_trends.ingestion.graphql_client import WarcraftLogsClient, dig
from talent_trends.models.query import QueryParameters

logger = logging.getLogger(__name__)

RANKINGS_QUERY = """
query(
    $encounterId: Int!,
    $className: String!,
    $specName: String!,
    $metric: CharacterRankingMetricType!,
    $difficulty: Int!,
    $serverRegion: String
) {
    worldData {
        encounter(id: $encounterId) {
            characterRankings(
                className: $className
                specName: $specName
                metric: $metric
                difficulty: $difficulty
                serverRegion: $serverRegion
                page: 1
            )
        }
    }
}
"""


@dataclass(frozen=True)
class RankingEntry:
    """One leaderboard row.

    ``report_code`` is ``""`` and ``fight_id`` is ``0`` when the upstream row
    has no usable report reference.
    """

    name: str
    report_code: str
    fight_id: int

    @property
    def has_report(self) -> bool:
        return bool(self.report_code) and self.fight_id > 0


def normalize_class_name(class_name: str) -> str:
    """Convert a configured class key to the form the rankings query expects.

    ``"Death_Knight"`` and ``"Death Knight"`` both become ``"DeathKnight"``.
    """
    return "".join(part for part in class_name.replace("_", " ").split())


class RankingsFetcher:
    """Fetch the first page of character rankings for a query tuple."""

    def __init__(self, client: WarcraftLogsClient, config: WarcraftLogsConfig) -> None:
        self.client = client
        self.config = config

    def build_variables(self, params: QueryParameters) -> dict[str, Any]:
        variables: dict[str, Any] = {
            "encounterId": params.encounter_id,
            "className": normalize_class_name(params.class_name),
            "specName": params.spec_name,
            "metric": self.config.metric,
            "difficulty": self.config.difficulty,
        }
        if params.region:
            variables["serverRegion"] = params.region
        return variables

    async def fetch_rankings(self, params: QueryParameters) -> list[RankingEntry]:
        """Return leaderboard entries in upstream rank order.

        Raises:
            FetchError: If the query fails, returns an error payload, or the
                ``rankings`` array is absent.
            ConfigError, AuthError: Propagated from the token cache.
        """
        variables = self.build_variables(params)
        logger.info(
            "Fetching rankings | class=%s spec=%s encounter=%d region=%s",
            variables["className"], params.spec_name, params.encounter_id,
            params.region or "all",
        )
        try:
            data = await self.client.query(RANKINGS_QUERY, variables)
        except (TransportError, ParseError) as exc:
            raise FetchError(f"Rankings query failed: {exc}") from exc

        rankings = dig(data, "worldData", "encounter", "characterRankings", "rankings")
        if not isinstance(rankings, list):
            raise FetchError(
                f"Rankings query returned no rankings array for encounter "
                f"{params.encounter_id}"
            )

        entries = [entry for entry in map(_parse_entry, rankings) if entry is not None]
        logger.info("Rankings fetched | entries=%d", len(entries))
        return entries


def _parse_entry(row: Any) -> RankingEntry | None:
    if not isinstance(row, dict):
        logger.warning("Skipping malformed rankings row: %r", row)
        return None

    report = row.get("report") if isinstance(row.get("report"), dict) else {}
    try:
        fight_id = int(report.get("fightID") or 0)
    except (TypeError, ValueError):
        fight_id = 0

    return RankingEntry(
        name=str(row.get("name") or ""),
        report_code=str(report.get("code") or ""),
        fight_id=fight_id,
    )
