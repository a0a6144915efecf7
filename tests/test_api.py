"""
Test Suite for the Session API

Uses FastAPI's TestClient with the service dependency overridden, so the
suggestion source is fake and the database is in memory. Background
tasks run before TestClient returns the response.
"""

import random
import pytest
from fastapi.testclient import TestClient

from api.sessions import app, get_service
from src.collector import Pacer
from src.services import SessionService


@pytest.fixture
def api(store, test_settings, make_client):
    """TestClient factory; the fake source is configurable per test."""
    def _make(responses=None, **kwargs) -> TestClient:
        client = make_client(responses or {"cold brew": ["cold brew recipe", "cold brew maker"]}, **kwargs)
        service = SessionService(
            store=store,
            client_factory=lambda: client,
            pacer_factory=Pacer.disabled,
            settings=test_settings,
            rng=random.Random(3),
        )
        app.dependency_overrides[get_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def create(http: TestClient, seed: str = "cold brew") -> dict:
    response = http.post("/api/sessions", json={"seed": seed})
    assert response.status_code == 201
    return response.json()


class TestSessionEndpoints:
    """Test session creation and lookup."""

    def test_create(self, api):
        session = create(api())
        assert session["seed_normalized"] == "cold brew"
        assert session["status"] == "created"
        assert session["candidate_count"] == 0

    def test_create_blank_seed(self, api):
        response = api().post("/api/sessions", json={"seed": "  !! "})
        assert response.status_code == 400

    def test_get_and_list(self, api):
        http = api()
        session = create(http)

        assert http.get(f"/api/sessions/{session['id']}").json()["id"] == session["id"]
        assert len(http.get("/api/sessions").json()) == 1

    def test_unknown_session(self, api):
        assert api().get("/api/sessions/missing").status_code == 404

    def test_root(self, api):
        assert api().get("/").json()["status"] == "ok"


class TestSeedSignalEndpoint:
    """Test the seed strength check."""

    def test_strong_seed(self, api):
        http = api({"legacy planning": [
            "legacy planning tips",
            "how to start legacy planning",
            "legacy planning for beginners",
            "legacy planning checklist",
            "legacy planning mistakes",
            "legacy planning law group",
        ]})

        response = http.get("/api/sessions/seed-signal", params={"seed": "legacy planning"})

        assert response.status_code == 200
        body = response.json()
        assert body["signal_strength"] == "strong"
        assert body["topic_match_count"] == 5
        assert body["brand_match_count"] == 1
        assert body["suggestion_count"] == 6
        assert http.get("/api/sessions").json() == []

    def test_short_seed(self, api):
        assert api().get("/api/sessions/seed-signal", params={"seed": " a "}).status_code == 400

    def test_missing_seed(self, api):
        assert api().get("/api/sessions/seed-signal").status_code == 422

    def test_source_down(self, api):
        response = api(fail_all=True).get("/api/sessions/seed-signal", params={"seed": "legacy planning"})
        assert response.status_code == 503


class TestExpansionEndpoints:
    """Test harvesting through the API."""

    def test_background_expansion(self, api):
        http = api()
        session = create(http)

        response = http.post(f"/api/sessions/{session['id']}/expand", json={"phases": ["top10"]})
        assert response.status_code == 202
        job_id = response.json()["job_id"]

        job = http.get(f"/api/sessions/{session['id']}/jobs/{job_id}").json()
        assert job["status"] == "completed"
        assert job["result"]["total_added"] == 2
        assert job["progress"]["method"] == "top10"

    def test_unknown_phase(self, api):
        http = api()
        session = create(http)
        response = http.post(f"/api/sessions/{session['id']}/expand", json={"phases": ["bogus"]})
        assert response.status_code == 400

    def test_sync_expansion(self, api):
        http = api()
        session = create(http)

        report = http.post(f"/api/sessions/{session['id']}/expand/sync", json={"phases": ["top10"]}).json()
        assert report["added_by_phase"] == {"top10": 2}

        phrases = http.get(f"/api/sessions/{session['id']}/phrases").json()
        assert phrases["count"] == 3

    def test_sync_child_without_parents(self, api):
        http = api()
        session = create(http)
        response = http.post(f"/api/sessions/{session['id']}/expand/sync", json={"phases": ["child"]})
        assert response.status_code == 400

    def test_sync_source_down(self, api):
        http = api(fail_all=True)
        session = create(http)

        response = http.post(f"/api/sessions/{session['id']}/expand/sync", json={"phases": ["az"]})

        assert response.status_code == 503
        assert response.json()["detail"]["report"]["total_added"] == 0
        assert http.get(f"/api/sessions/{session['id']}").json()["status"] == "failed"

    def test_sync_outage_reports_counts(self, api):
        http = api(fail_after=10)
        session = create(http)

        response = http.post(f"/api/sessions/{session['id']}/expand/sync", json={"phases": ["top10", "az"]})

        assert response.status_code == 503
        report = response.json()["detail"]["report"]
        assert report["total_added"] == 20
        assert report["added_by_phase"] == {"top10": 2, "az": 18}
        assert report["failed_phase"] == "az"

    def test_background_failure_recorded(self, api):
        http = api(fail_all=True)
        session = create(http)

        job_id = http.post(f"/api/sessions/{session['id']}/expand", json={"phases": ["az"]}).json()["job_id"]

        job = http.get(f"/api/sessions/{session['id']}/jobs/{job_id}").json()
        assert job["status"] == "failed"
        assert job["error"]

    def test_background_outage_keeps_counts(self, api):
        http = api(fail_after=10)
        session = create(http)

        job_id = http.post(
            f"/api/sessions/{session['id']}/expand", json={"phases": ["top10", "az"]}
        ).json()["job_id"]

        job = http.get(f"/api/sessions/{session['id']}/jobs/{job_id}").json()
        assert job["status"] == "failed"
        assert job["result"]["total_added"] == 20
        assert job["result"]["added_by_phase"] == {"top10": 2, "az": 18}

    def test_unknown_job(self, api):
        http = api()
        session = create(http)
        assert http.get(f"/api/sessions/{session['id']}/jobs/nope").status_code == 404
        assert http.post(f"/api/sessions/{session['id']}/jobs/nope/stop").status_code == 404


class TestPhraseEndpoints:
    """Test hiding, tagging and scoring."""

    @pytest.fixture
    def expanded(self, api):
        http = api()
        session = create(http)
        http.post(f"/api/sessions/{session['id']}/expand/sync", json={"phases": ["top10"]})
        phrases = http.get(f"/api/sessions/{session['id']}/phrases").json()["phrases"]
        return http, session, phrases

    def test_hide_phrase(self, expanded):
        http, session, phrases = expanded
        maker = next(p for p in phrases if p["normalized_text"] == "cold brew maker")

        response = http.post(f"/api/sessions/{session['id']}/phrases/{maker['id']}/hide", json={"hidden": True})

        assert response.status_code == 200
        assert response.json()["is_hidden"] is True
        assert response.json()["candidate_count"] == 1
        visible = http.get(f"/api/sessions/{session['id']}/phrases").json()
        assert visible["count"] == 2
        everything = http.get(f"/api/sessions/{session['id']}/phrases", params={"include_hidden": True}).json()
        assert everything["count"] == 3

    def test_hide_seed_rejected(self, expanded):
        http, session, phrases = expanded
        seed = next(p for p in phrases if p["generation_method"] == "seed")
        response = http.post(f"/api/sessions/{session['id']}/phrases/{seed['id']}/hide", json={"hidden": True})
        assert response.status_code == 400

    def test_hide_phrase_from_other_session(self, expanded):
        http, _, phrases = expanded
        other = create(http, "iced tea")
        response = http.post(f"/api/sessions/{other['id']}/phrases/{phrases[1]['id']}/hide", json={"hidden": True})
        assert response.status_code == 404

    def test_classify(self, expanded):
        http, session, _ = expanded
        tags = http.post(f"/api/sessions/{session['id']}/classify").json()["tags"]
        assert tags["top_10"] == 2

    def test_score_sync(self, expanded):
        http, session, _ = expanded

        report = http.post(f"/api/sessions/{session['id']}/score/sync").json()
        assert report["scored"] == 3
        assert report["ceiling"] == 15

        phrases = http.get(f"/api/sessions/{session['id']}/phrases").json()["phrases"]
        assert all(p["demand_score"] is not None for p in phrases)

    def test_background_scoring(self, expanded):
        http, session, _ = expanded

        job_id = http.post(f"/api/sessions/{session['id']}/score").json()["job_id"]

        job = http.get(f"/api/sessions/{session['id']}/jobs/{job_id}").json()
        assert job["status"] == "completed"
        assert job["kind"] == "scoring"
        assert job["result"]["scored"] == 3

    def test_score_empty_session(self, api):
        http = api()
        session = create(http)
        assert http.post(f"/api/sessions/{session['id']}/score").status_code == 400
        assert http.post(f"/api/sessions/{session['id']}/score/sync").status_code == 400
