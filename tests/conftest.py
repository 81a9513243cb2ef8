"""
Shared pytest fixtures for the Talent Trends test suite.

Provides:
  - ``FakeWarcraftLogs``: an in-process stand-in for the token endpoint and
    the GraphQL API, plugged into httpx through ``httpx.MockTransport``.
    It records every upstream call so tests can assert on call counts.
  - ``app_config`` / ``credentials``: minimal valid configuration.
  - ``run_pipeline``: drive one coordinator run end to end and collect what
    reached the channel.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest

from talent_trends.config import AppConfig, Credentials
from talent_trends.ingestion.token_cache import TokenCache
from talent_trends.models.query import QueryParameters
from talent_trends.pipeline.coordinator import StreamCoordinator

TOKEN_URL = "https://www.warcraftlogs.com/oauth/token"


def ranking_row(name: str, code: Optional[str], fight_id: Optional[int]) -> dict:
    """One ``characterRankings`` row as Warcraft Logs returns it."""
    row: dict[str, Any] = {"name": name, "class": "DeathKnight", "spec": "Unholy", "amount": 1.0}
    if code is not None:
        row["report"] = {"code": code, "fightID": fight_id, "startTime": 0}
    return row


# ── Fake upstream ─────────────────────────────────────────────────────────────

@dataclass
class FakeWarcraftLogs:
    """Scriptable fake of the Warcraft Logs token endpoint and GraphQL API.

    Attributes:
        rankings: Rows returned by the rankings query.
        rosters: report code → list of ``{"id", "name"}`` player actors.
        talent_codes: (report code, actor id) → talent import code.
        rankings_errors: If set, the rankings query returns this error payload.
        failing_reports: Report codes whose queries answer HTTP 500.
        token_status: HTTP status of the token endpoint.
        token_body: Override for the token endpoint JSON body.
        calls: ``(kind, variables)`` for each upstream request, in order.
    """

    rankings: list[dict] = field(default_factory=list)
    rosters: dict[str, list[dict]] = field(default_factory=dict)
    talent_codes: dict[tuple[str, int], str] = field(default_factory=dict)
    rankings_errors: Optional[list[dict]] = None
    failing_reports: set[str] = field(default_factory=set)
    token_status: int = 200
    token_body: Optional[Any] = None
    token_expires_in: int = 3600
    calls: list[tuple[str, dict]] = field(default_factory=list)

    def add_player(self, name: str, code: str, fight_id: int, actor_id: int) -> None:
        """Register a ranked player whose talents resolve successfully."""
        self.rankings.append(ranking_row(name, code, fight_id))
        self.rosters.setdefault(code, []).append({"id": actor_id, "name": name})
        self.talent_codes[(code, actor_id)] = f"CODE-{name}"

    def add_row(self, name: str, code: Optional[str] = None, fight_id: Optional[int] = None) -> None:
        """Register a ranked row with no roster behind it."""
        self.rankings.append(ranking_row(name, code, fight_id))

    def calls_of(self, kind: str) -> list[dict]:
        return [variables for k, variables in self.calls if k == kind]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            return self._token(request)

        body = json.loads(request.content)
        query, variables = body["query"], body["variables"]
        if "characterRankings" in query:
            return self._rankings(variables)
        if "masterData" in query:
            return self._roster(variables)
        if "talentImportCode" in query:
            return self._talent_code(variables)
        return httpx.Response(400, json={"errors": [{"message": "unknown query"}]})

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(("token", {"auth": request.headers.get("authorization", "")}))
        if self.token_status != 200:
            return httpx.Response(self.token_status, text='{"error":"invalid_client"}')
        if self.token_body is not None:
            return httpx.Response(200, json=self.token_body)
        return httpx.Response(
            200,
            json={
                "access_token": "tok-123",
                "token_type": "Bearer",
                "expires_in": self.token_expires_in,
            },
        )

    def _rankings(self, variables: dict) -> httpx.Response:
        self.calls.append(("rankings", variables))
        if self.rankings_errors is not None:
            return httpx.Response(200, json={"errors": self.rankings_errors, "data": None})
        return httpx.Response(
            200,
            json={
                "data": {
                    "worldData": {
                        "encounter": {
                            "characterRankings": {
                                "page": 1,
                                "hasMorePages": True,
                                "count": len(self.rankings),
                                "rankings": self.rankings,
                            }
                        }
                    }
                }
            },
        )

    def _roster(self, variables: dict) -> httpx.Response:
        self.calls.append(("roster", variables))
        code = variables["reportCode"]
        if code in self.failing_reports:
            return httpx.Response(500, text="upstream exploded")
        roster = self.rosters.get(code)
        if roster is None:
            return httpx.Response(200, json={"data": {"reportData": {"report": None}}})
        fight_id = variables["fightIds"][0]
        report = {
            "masterData": {"actors": roster},
            "fights": [{"id": fight_id, "friendlyPlayers": [a["id"] for a in roster]}],
        }
        return httpx.Response(200, json={"data": {"reportData": {"report": report}}})

    def _talent_code(self, variables: dict) -> httpx.Response:
        self.calls.append(("talents", variables))
        code = variables["reportCode"]
        if code in self.failing_reports:
            return httpx.Response(500, text="upstream exploded")
        fight_id = variables["fightIds"][0]
        talent = self.talent_codes.get((code, variables["actorId"]))
        fights = [{"id": fight_id, "talentImportCode": talent}]
        return httpx.Response(
            200, json={"data": {"reportData": {"report": {"fights": fights}}}}
        )


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def fake_wcl() -> FakeWarcraftLogs:
    """A fresh fake upstream with no rankings."""
    return FakeWarcraftLogs()


@pytest.fixture
def app_config() -> AppConfig:
    """Default ``AppConfig`` (no TOML needed)."""
    return AppConfig()


@pytest.fixture
def credentials() -> Credentials:
    """Complete fake Warcraft Logs credentials."""
    return Credentials(client_id="client-id", client_secret="client-secret")


@pytest.fixture
def query_params() -> QueryParameters:
    """A valid Unholy Death Knight query on Plexus Sentinel, all regions."""
    return QueryParameters(class_name="Death_Knight", spec_name="Unholy", encounter_id=3129)


@pytest.fixture
def run_pipeline(fake_wcl, app_config, credentials):
    """Return ``async run(params, config=None, creds=None)``.

    The coroutine performs one full coordinator run against ``fake_wcl`` and
    returns ``(final_state, items_received_from_channel)``.
    """

    async def _run(params, config=None, creds=None):
        config = config or app_config
        async with httpx.AsyncClient(transport=fake_wcl.transport) as http:
            cache = TokenCache(
                creds if creds is not None else credentials, config.warcraftlogs, http
            )
            coordinator = StreamCoordinator.from_config(config, cache, http)
            task, channel = coordinator.start(params)
            items = [item async for item in channel]
            state = await task
        return state, items

    return _run
