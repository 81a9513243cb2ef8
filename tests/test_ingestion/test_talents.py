"""
Tests for talent_trends.ingestion.talents — two-stage talent resolution.

Covers:
  - actor lookup by exact name, then talent code lookup by actor id
  - stage 2 never runs when stage 1 finds nothing
  - missing report / missing talent code → NotFoundError
  - duplicate names resolve to the first roster match and log a warning
  - actors outside the fight are ignored
"""

from __future__ import annotations

import asyncio
import logging

import httpx
import pytest

from talent_trends.config import WarcraftLogsConfig
from talent_trends.exceptions import NotFoundError, TransportError
from talent_trends.ingestion.graphql_client import WarcraftLogsClient
from talent_trends.ingestion.rankings import RankingEntry
from talent_trends.ingestion.talents import TalentResolution, TalentResolver
from talent_trends.ingestion.token_cache import TokenCache


def _resolve(fake_wcl, credentials, entry: RankingEntry):
    async def _main():
        config = WarcraftLogsConfig()
        async with httpx.AsyncClient(transport=fake_wcl.transport) as http:
            client = WarcraftLogsClient(config, TokenCache(credentials, config, http), http)
            return await TalentResolver(client).resolve(entry)

    return asyncio.run(_main())


class TestResolve:
    def test_resolves_actor_then_code(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)

        result = _resolve(fake_wcl, credentials, RankingEntry("Kaelith", "abcXYZ", 4))

        assert result == TalentResolution(actor_id=21, talent_code="CODE-Kaelith")
        assert [kind for kind, _ in fake_wcl.calls if kind != "token"] == ["roster", "talents"]

    def test_talent_query_uses_resolved_actor(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)
        _resolve(fake_wcl, credentials, RankingEntry("Kaelith", "abcXYZ", 4))

        talent_call = fake_wcl.calls_of("talents")[0]
        assert talent_call == {"reportCode": "abcXYZ", "fightIds": [4], "actorId": 21}

    def test_name_match_is_exact(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)
        with pytest.raises(NotFoundError):
            _resolve(fake_wcl, credentials, RankingEntry("kaelith", "abcXYZ", 4))

    def test_unknown_actor_skips_stage_two(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)

        with pytest.raises(NotFoundError):
            _resolve(fake_wcl, credentials, RankingEntry("Nobody", "abcXYZ", 4))
        assert fake_wcl.calls_of("talents") == []

    def test_missing_report_raises_not_found(self, fake_wcl, credentials):
        with pytest.raises(NotFoundError, match="not found"):
            _resolve(fake_wcl, credentials, RankingEntry("Kaelith", "gone", 4))

    def test_missing_talent_code_raises_not_found(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)
        fake_wcl.talent_codes.clear()

        with pytest.raises(NotFoundError, match="No talent code"):
            _resolve(fake_wcl, credentials, RankingEntry("Kaelith", "abcXYZ", 4))

    def test_upstream_failure_raises_transport_error(self, fake_wcl, credentials):
        fake_wcl.add_player("Kaelith", "abcXYZ", 4, 21)
        fake_wcl.failing_reports.add("abcXYZ")

        with pytest.raises(TransportError):
            _resolve(fake_wcl, credentials, RankingEntry("Kaelith", "abcXYZ", 4))


class TestDuplicateNames:
    def test_first_roster_match_wins(self, fake_wcl, credentials, caplog):
        fake_wcl.add_player("Twin", "dupREP", 2, 30)
        fake_wcl.rosters["dupREP"].append({"id": 31, "name": "Twin"})

        with caplog.at_level(logging.WARNING, logger="talent_trends.ingestion.talents"):
            result = _resolve(fake_wcl, credentials, RankingEntry("Twin", "dupREP", 2))

        assert result.actor_id == 30
        assert "Duplicate player name" in caplog.text


class TestFightParticipants:
    def test_actor_outside_fight_is_ignored(self, credentials):
        roster = {
            "masterData": {"actors": [{"id": 5, "name": "Benched"}, {"id": 6, "name": "Benched"}]},
            "fights": [{"id": 9, "friendlyPlayers": [6]}],
        }

        def _handler(request):
            if "oauth" in str(request.url):
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"data": {"reportData": {"report": roster}}})

        async def _main():
            config = WarcraftLogsConfig()
            async with httpx.AsyncClient(transport=httpx.MockTransport(_handler)) as http:
                client = WarcraftLogsClient(config, TokenCache(credentials, config, http), http)
                return await TalentResolver(client).resolve_actor("rep", 9, "Benched")

        assert asyncio.run(_main()) == 6
