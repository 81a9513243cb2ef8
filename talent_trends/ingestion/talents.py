"""
Per-entry talent resolution: two dependent report queries.

Stage 1 (``resolve_actor``)
    Load the report's player roster and the fight's participant list, then
    pick the actor whose name exactly matches the leaderboard display name.
    The first match in roster order wins; duplicates are logged.

Stage 2 (``fetch_talent_code``)
    Ask the fight for the talent import code of the stage-1 actor.

Stage 2 needs stage 1's actor id, so the two always run in sequence and a
stage-1 failure short-circuits the entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from talent_trends.exceptions import NotFoundError, ParseError
from talent_trends.ingestion.graphql_client import WarcraftLogsClient, dig
from talent_trends.ingestion.rankings import RankingEntry

logger = logging.getLogger(__name__)

ACTOR_ROSTER_QUERY = """
query($reportCode: String!, $fightIds: [Int]!) {
    reportData {
        report(code: $reportCode) {
            masterData {
                actors(type: "Player") {
                    id
                    name
                }
            }
            fights(fightIDs: $fightIds) {
                id
                friendlyPlayers
            }
        }
    }
}
"""

TALENT_CODE_QUERY = """
query($reportCode: String!, $fightIds: [Int]!, $actorId: Int!) {
    reportData {
        report(code: $reportCode) {
            fights(fightIDs: $fightIds) {
                id
                talentImportCode(actorID: $actorId)
            }
        }
    }
}
"""


@dataclass(frozen=True)
class TalentResolution:
    """Outcome of a successful two-stage resolution."""

    actor_id: int
    talent_code: str


class TalentResolver:
    """Resolve a leaderboard entry to its talent import code."""

    def __init__(self, client: WarcraftLogsClient) -> None:
        self.client = client

    async def resolve(self, entry: RankingEntry) -> TalentResolution:
        """Run both stages for ``entry``.

        Raises:
            NotFoundError: Actor not in the roster, or no talent code.
            TransportError, ParseError: Upstream failure in either stage.
        """
        actor_id = await self.resolve_actor(entry.report_code, entry.fight_id, entry.name)
        talent_code = await self.fetch_talent_code(entry.report_code, entry.fight_id, actor_id)
        return TalentResolution(actor_id=actor_id, talent_code=talent_code)

    async def resolve_actor(self, report_code: str, fight_id: int, name: str) -> int:
        data = await self.client.query(
            ACTOR_ROSTER_QUERY,
            {"reportCode": report_code, "fightIds": [fight_id]},
        )
        report = dig(data, "reportData", "report")
        if not isinstance(report, dict):
            raise NotFoundError(f"Report {report_code} not found")

        actors = dig(report, "masterData", "actors")
        if not isinstance(actors, list):
            raise ParseError(f"Report {report_code} has no actor roster")

        in_fight = _fight_participants(report.get("fights"), fight_id)
        matches = [
            actor["id"]
            for actor in actors
            if isinstance(actor, dict)
            and actor.get("name") == name
            and isinstance(actor.get("id"), int)
            and (in_fight is None or actor["id"] in in_fight)
        ]
        if not matches:
            raise NotFoundError(
                f"No player named {name!r} in report {report_code} fight {fight_id}"
            )
        if len(matches) > 1:
            logger.warning(
                "Duplicate player name %r in report %s fight %d: actor ids %s; using %d",
                name, report_code, fight_id, matches, matches[0],
            )
        return matches[0]

    async def fetch_talent_code(self, report_code: str, fight_id: int, actor_id: int) -> str:
        data = await self.client.query(
            TALENT_CODE_QUERY,
            {"reportCode": report_code, "fightIds": [fight_id], "actorId": actor_id},
        )
        fights = dig(data, "reportData", "report", "fights")
        if isinstance(fights, list):
            for fight in fights:
                code = fight.get("talentImportCode") if isinstance(fight, dict) else None
                if isinstance(code, str) and code:
                    return code
        raise NotFoundError(
            f"No talent code for actor {actor_id} in report {report_code} fight {fight_id}"
        )


def _fight_participants(fights: Any, fight_id: int) -> set[int] | None:
    """Actor ids that took part in ``fight_id``, or ``None`` if unknown."""
    if not isinstance(fights, list):
        return None
    for fight in fights:
        if not isinstance(fight, dict) or fight.get("id") != fight_id:
            continue
        players = fight.get("friendlyPlayers")
        if isinstance(players, list):
            return {p for p in players if isinstance(p, int)}
    return None
