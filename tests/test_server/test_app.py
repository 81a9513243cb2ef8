"""
Tests for talent_trends.server — FastAPI routes over the fake upstream.
"""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from talent_trends.server import create_app


def _frames(body: str) -> list[tuple[str, dict]]:
    """Parse an SSE body into ``(event, data)`` pairs, ignoring comments."""
    out = []
    for block in body.split("\n\n"):
        lines = [l for l in block.splitlines() if l and not l.startswith(":")]
        if not lines:
            continue
        event = next(l[len("event: "):] for l in lines if l.startswith("event: "))
        data = "\n".join(l[len("data: "):] for l in lines if l.startswith("data: "))
        out.append((event, json.loads(data)))
    return out


@pytest.fixture
def client(fake_wcl, app_config, credentials):
    app = create_app(app_config, credentials, upstream_transport=fake_wcl.transport)
    with TestClient(app) as test_client:
        yield test_client


class TestBasics:
    def test_health_before_any_run(self, client):
        assert client.get("/health").json() == {
            "status": "ok",
            "token": "empty",
            "token_exchanges": 0,
        }

    def test_health_reports_cached_token(self, client, fake_wcl):
        fake_wcl.add_player("Alpha", "R1", 1, 101)
        params = {"class": "Death_Knight", "spec": "Unholy", "encounter": 3129}
        client.get("/api/talents", params=params)
        client.get("/api/talents", params=params)

        body = client.get("/health").json()

        assert body["token"] == "populated"
        assert body["token_exchanges"] == 1

    def test_reference_lists_classes_encounters_regions(self, client):
        body = client.get("/api/reference").json()
        dk = next(c for c in body["classes"] if c["key"] == "Death_Knight")
        assert dk["name"] == "Death Knight"
        assert "Unholy" in dk["specs"]
        assert {"id": 3129, "name": "Plexus Sentinel"} in body["encounters"]
        assert any(r["code"] == "EU" for r in body["regions"])


class TestTalentStream:
    def test_streams_records_then_done(self, client, fake_wcl):
        fake_wcl.add_player("Alpha", "R1", 1, 101)
        fake_wcl.add_row("Anonymous", "R2", 2)
        fake_wcl.add_player("Bravo", "R3", 3, 103)

        resp = client.get(
            "/api/talents",
            params={"class": "Death_Knight", "spec": "Unholy", "encounter": 3129, "region": "EU"},
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        frames = _frames(resp.text)
        assert [e for e, _ in frames] == ["talent", "talent", "done"]
        assert [d["rank"] for _, d in frames[:2]] == [1, 2]
        assert frames[1][1]["name"] == "Bravo"
        assert fake_wcl.calls_of("rankings")[0]["serverRegion"] == "EU"

    def test_rankings_error_streams_error_then_done(self, client, fake_wcl):
        fake_wcl.rankings_errors = [{"message": "nope"}]

        resp = client.get(
            "/api/talents",
            params={"class": "Mage", "spec": "Fire", "encounter": 3129},
        )

        frames = _frames(resp.text)
        assert [e for e, _ in frames] == ["error", "done"]
        assert frames[0][1]["kind"] == "FetchError"

    @pytest.mark.parametrize(
        "params",
        [
            {"class": "Bard", "spec": "Lute", "encounter": 3129},
            {"class": "Mage", "spec": "Unholy", "encounter": 3129},
            {"class": "Mage", "spec": "Fire", "encounter": 1},
            {"class": "Mage", "spec": "Fire", "encounter": 3129, "region": "MARS"},
        ],
    )
    def test_invalid_query_rejected(self, client, fake_wcl, params):
        resp = client.get("/api/talents", params=params)
        assert resp.status_code == 422
        assert fake_wcl.calls == []

    def test_missing_parameter_rejected(self, client):
        resp = client.get("/api/talents", params={"class": "Mage"})
        assert resp.status_code == 422
