"""
Integration Tests for the Session Service

Runs the whole workflow (create -> harvest -> classify -> score) against
a fake suggestion source and an in-memory database.
"""

import random
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from src.collector import ExpansionInputError, ExpansionReport, Pacer, SourceUnavailableError
from src.models import GenerationMethod
from src.services import ScoringInputError, SessionNotFoundError, SessionService, get_anchor_texts


ANCHORS = {"cold brew": ["cold brew recipe", "cold brew maker"]}


@pytest.fixture
def make_service(store, test_settings):
    def _make(client) -> SessionService:
        return SessionService(
            store=store,
            client_factory=lambda: client,
            pacer_factory=Pacer.disabled,
            settings=test_settings,
            rng=random.Random(3),
        )
    return _make


@pytest.fixture
def harvested(make_service, make_client):
    """A session harvested through top10 and az."""
    async def _harvest():
        service = make_service(make_client(ANCHORS))
        session = service.create_session("cold brew")
        report = await service.run_expansion(session.id, phases=["top10", "az"])
        return service, session, report
    return _harvest


class TestSessionLifecycle:
    """Test session creation and statistics."""

    def test_create_uses_settings_locale(self, make_service, make_client):
        session = make_service(make_client()).create_session("cold brew")
        assert session.language == "en"
        assert session.country == "US"

    def test_require_unknown_session(self, make_service, make_client):
        with pytest.raises(SessionNotFoundError):
            make_service(make_client()).require_session("missing")

    @pytest.mark.asyncio
    async def test_expansion_updates_session(self, harvested):
        service, session, report = await harvested()

        assert report.added_by_phase == {"top10": 2, "az": 52}
        loaded = service.require_session(session.id)
        assert loaded.status == "expanded"
        assert loaded.candidate_count == 54
        assert loaded.ecosystem_score == 5
        assert loaded.seed_score == 15

    @pytest.mark.asyncio
    async def test_hide_refreshes_stats(self, harvested):
        service, session, _ = await harvested()
        phrase = service.list_phrases(session.id)[-1]

        service.hide_phrase(phrase["id"])

        assert service.require_session(session.id).candidate_count == 53
        assert len(service.list_phrases(session.id)) == 54
        assert len(service.list_phrases(session.id, include_hidden=True)) == 55

    def test_hide_unknown_phrase(self, make_service, make_client):
        with pytest.raises(SessionNotFoundError):
            make_service(make_client()).hide_phrase("missing")


class TestExpansionFailures:
    """Test session status after failed runs."""

    @pytest.mark.asyncio
    async def test_source_down_marks_failed(self, make_service, make_client):
        service = make_service(make_client(fail_all=True))
        session = service.create_session("cold brew")

        with pytest.raises(SourceUnavailableError):
            await service.run_expansion(session.id, phases=["az"])

        assert service.require_session(session.id).status == "failed"

    @pytest.mark.asyncio
    async def test_partial_counts_survive_outage(self, make_service, make_client):
        service = make_service(make_client(ANCHORS, fail_after=10))
        session = service.create_session("cold brew")

        with pytest.raises(SourceUnavailableError) as exc_info:
            await service.run_expansion(session.id, phases=["top10", "az"])

        assert exc_info.value.report.added_by_phase == {"top10": 2, "az": 18}
        loaded = service.require_session(session.id)
        assert loaded.status == "failed"
        assert loaded.candidate_count == 20

    @pytest.mark.asyncio
    async def test_invalid_request_restores_status(self, make_service, make_client):
        service = make_service(make_client())
        session = service.create_session("cold brew")

        with pytest.raises(ExpansionInputError):
            await service.run_expansion(session.id, phases=["child"])

        assert service.require_session(session.id).status == "created"


class TestClassificationAndScoring:
    """Test tagging and the scoring pass."""

    @pytest.mark.asyncio
    async def test_classify(self, harvested):
        service, session, _ = await harvested()

        distribution = service.classify_session(session.id)

        assert distribution == {"top_10": 2, "t10_child": 0, "t10_related": 0, "no_tag": 52}
        anchors = get_anchor_texts(service.store.read_all(session.id))
        assert anchors == ["cold brew recipe", "cold brew maker"]

    @pytest.mark.asyncio
    async def test_score_session(self, harvested):
        service, session, _ = await harvested()

        report = await service.score_session(session.id)

        assert report.scored == 55
        assert report.ceiling == 15
        assert report.skipped == []

        phrases = service.list_phrases(session.id)
        seed = next(p for p in phrases if p["generation_method"] == GenerationMethod.SEED.value)
        assert seed["demand_score"] == 15
        assert all(0 <= p["demand_score"] <= 15 for p in phrases)
        assert all(0 <= p["opportunity_score"] <= 100 for p in phrases)
        assert service.require_session(session.id).status == "scored"

    @pytest.mark.asyncio
    async def test_rescoring_overwrites(self, harvested):
        service, session, _ = await harvested()

        await service.score_session(session.id)
        await service.score_session(session.id)

        assert len(service.store.read_scores(session.id)) == 55

    @pytest.mark.asyncio
    async def test_score_empty_session(self, make_service, make_client):
        service = make_service(make_client())
        session = service.create_session("cold brew")

        with pytest.raises(ScoringInputError):
            await service.score_session(session.id)

    @pytest.mark.asyncio
    async def test_score_unknown_session(self, make_service, make_client):
        with pytest.raises(ScoringInputError):
            await make_service(make_client()).score_session("missing")


class TestExpansionWiring:
    """Test how settings reach the controller."""

    @pytest.mark.asyncio
    async def test_controller_configured_from_settings(self, make_service, make_client):
        service = make_service(make_client())
        session = service.create_session("cold brew")

        controller = MagicMock()
        controller.harvest = AsyncMock(return_value=ExpansionReport(session_id=session.id))

        with patch("src.services.sessions.ExpansionController", return_value=controller) as factory:
            await service.run_expansion(session.id, phases=["az"])

        config = factory.call_args.kwargs["config"]
        assert config.reference_year == 2026
        assert config.max_consecutive_failures == 3
        assert config.max_child_parents == 5
        assert factory.call_args.kwargs["calibration"] is service.calibration
        controller.harvest.assert_awaited_once()
        assert controller.harvest.call_args.kwargs["phases"] == ["az"]
        assert service.require_session(session.id).status == "expanded"


class TestSeedSignal:
    """Test the seed strength check."""

    @pytest.mark.asyncio
    async def test_check_seed_signal(self, make_service, make_client):
        client = make_client({"cold brew": ["cold brew recipe", "cold brew tips", "cold brew coffee shop"]})
        service = make_service(client)

        signal = await service.check_seed_signal("  cold brew ")

        assert client.calls == ["cold brew"]
        assert signal.topic_match_count == 2
        assert signal.brand_match_count == 1
        assert signal.strength.value == "weak"
        assert service.store.list_sessions() == []

    @pytest.mark.asyncio
    async def test_short_seed(self, make_service, make_client):
        client = make_client()
        with pytest.raises(ExpansionInputError):
            await make_service(client).check_seed_signal("a")
        assert client.calls == []
