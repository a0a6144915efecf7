"""
Test Suite for Demand Scoring

Tests the demand formula components and the session ceiling:
- Ecosystem tiers and SeedScore
- Density and relevancy tables
- Inheritance bonus / anchor boost combination
- Cap offsets, clamping and jitter
- Phrase signal extraction
"""

import random
import pytest
from src.models import PhraseSignals, SessionAggregate
from src.scoring import (
    MatchStrength,
    RelevancyBand,
    ScoringCalibration,
    build_demand_context,
    calculate_anchor_boost,
    calculate_demand_score,
    calculate_phrase_signals,
    get_demand_summary,
    get_density_score,
    get_ecosystem_score,
    get_length_adjustment,
    get_relevancy_band,
    get_seed_score,
)
from src.scoring.helpers import CAP_OFFSETS

NO_JITTER = ScoringCalibration(jitter=0)


def make_context(size=582, frequency=None, seed="cold brew coffee", calibration=NO_JITTER):
    aggregate = SessionAggregate(candidate_count=size, word_frequency=frequency or {})
    return build_demand_context(seed, aggregate, calibration)


# =============================================================================
# SESSION CEILING
# =============================================================================


class TestSessionCeiling:
    """Test ecosystem tiers and SeedScore."""

    @pytest.mark.parametrize("size,expected", [
        (0, 5),
        (99, 5),
        (100, 10),
        (250, 15),
        (582, 27),
        (600, 30),
        (5000, 30),
    ])
    def test_ecosystem_tiers(self, size, expected):
        assert get_ecosystem_score(size) == expected

    def test_seed_score(self):
        assert get_seed_score(27) == 81
        assert get_seed_score(30) == 90
        assert get_seed_score(5) == 15

    def test_seed_score_capped(self):
        calibration = ScoringCalibration(seed_multiplier=4)
        assert get_seed_score(30, calibration) == 92

    def test_context_resolved_once(self):
        context = make_context(size=582)
        assert context.ecosystem_score == 27
        assert context.seed_score == 81
        assert context.seed_words == {"cold", "brew", "coffee"}


# =============================================================================
# COMPONENT TABLES
# =============================================================================


class TestComponents:
    """Test individual component lookups."""

    def test_density_non_decreasing(self):
        scores = [get_density_score(n) for n in range(0, 25)]
        assert scores == sorted(scores)
        assert get_density_score(0) == 0
        assert get_density_score(100) == get_density_score(14)

    @pytest.mark.parametrize("exact,topic,band", [
        (80, 0, RelevancyBand.MOSTLY_EXACT),
        (70, 100, RelevancyBand.MOSTLY_EXACT),
        (50, 100, RelevancyBand.MIXED),
        (10, 75, RelevancyBand.MOSTLY_TOPIC),
        (10, 20, RelevancyBand.LOW),
    ])
    def test_relevancy_bands(self, exact, topic, band):
        """Exact share is checked before topic share."""
        assert get_relevancy_band(exact, topic) == band

    @pytest.mark.parametrize("words,adjustment", [
        (1, -6), (2, -3), (3, 0), (4, 3), (5, 4), (6, 3), (7, 0), (8, -2), (9, -5), (15, -5),
    ])
    def test_length_adjustment(self, words, adjustment):
        assert get_length_adjustment(words) == adjustment

    def test_anchor_boost_skips_seed_and_filler_words(self):
        context = make_context(frequency={"cold": 50, "brew": 50, "best": 50, "recipe": 6})
        assert calculate_anchor_boost("best cold brew recipe", context) == 4

    def test_anchor_boost_capped(self):
        context = make_context(frequency={"recipe": 20, "ideas": 20, "easy": 20})
        assert calculate_anchor_boost("easy recipe ideas", context) == 15


# =============================================================================
# DEMAND SCORE
# =============================================================================


class TestDemandScore:
    """Test the full demand calculation."""

    def test_seed_scores_exactly_seed_score(self):
        """The seed phrase is the ceiling."""
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=14, exact_match_pct=100, topic_match_pct=100)
        analysis = calculate_demand_score("cold brew coffee", signals, context, is_seed=True)
        assert analysis.demand_score == 81
        assert analysis.is_seed

    def test_strong_phrase_capped_below_ceiling(self):
        """size 582, exact 50% -> mixed band; capped at 81 - 2."""
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=10, exact_match_pct=50, topic_match_pct=60)
        analysis = calculate_demand_score(
            "cold brew coffee recipe ideas", signals, context,
            match_strength=MatchStrength.STRONG, calibration=NO_JITTER,
        )
        assert analysis.relevancy_band == RelevancyBand.MIXED
        assert analysis.relevancy_score == 20
        assert analysis.density_score == 32
        assert analysis.inheritance_bonus == 20
        assert analysis.length_adjustment == 4
        assert analysis.raw_score == 27 + 32 + 20 + 20 + 4
        assert analysis.cap == 79
        assert analysis.demand_score == 79

    def test_content_creation_session(self):
        """Seed 'content creation', 582 phrases: ceiling 81, mixed band, capped below it."""
        context = make_context(size=582, seed="content creation")
        signals = PhraseSignals(suggestion_count=10, exact_match_pct=50, topic_match_pct=80)

        analysis = calculate_demand_score(
            "content creation tips for beginners", signals, context,
            match_strength=MatchStrength.STRONG, calibration=NO_JITTER,
        )

        assert context.ecosystem_score == 27
        assert context.seed_score == 81
        assert analysis.relevancy_band == RelevancyBand.MIXED
        assert analysis.cap == 81 - CAP_OFFSETS[MatchStrength.STRONG]
        assert analysis.demand_score == 79

    @pytest.mark.parametrize("strength", list(MatchStrength))
    def test_never_reaches_ceiling(self, strength):
        """Every non-seed phrase stays strictly below SeedScore."""
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=14, exact_match_pct=100, topic_match_pct=100)
        rng = random.Random(5)
        for _ in range(20):
            analysis = calculate_demand_score(
                "cold brew coffee recipe ideas", signals, context,
                match_strength=strength, rng=rng,
            )
            assert analysis.demand_score <= context.seed_score - CAP_OFFSETS[strength]
            assert analysis.demand_score < context.seed_score

    def test_uncapped_phrase(self):
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=2, exact_match_pct=0, topic_match_pct=0)
        analysis = calculate_demand_score("iced tea", signals, context, calibration=NO_JITTER)
        # 27 ecosystem + 6 density + 5 low relevancy - 3 length
        assert analysis.demand_score == 35
        assert analysis.cap == 66

    def test_jitter_bounded_and_applied_before_clamp(self):
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=2, exact_match_pct=0, topic_match_pct=0)
        rng = random.Random(42)
        seen = set()
        for _ in range(60):
            analysis = calculate_demand_score("iced tea", signals, context, rng=rng)
            assert -2 <= analysis.jitter <= 2
            assert analysis.demand_score == analysis.raw_score + analysis.jitter
            seen.add(analysis.jitter)
        assert len(seen) > 1, "Jitter never varied"

    def test_reproducible_with_same_rng(self):
        context = make_context(size=300)
        signals = PhraseSignals(suggestion_count=5, exact_match_pct=20, topic_match_pct=80)
        first = [
            calculate_demand_score("cold brew ratio", signals, context, rng=rng).demand_score
            for rng in [random.Random(9)] for _ in range(10)
        ]
        second = [
            calculate_demand_score("cold brew ratio", signals, context, rng=rng).demand_score
            for rng in [random.Random(9)] for _ in range(10)
        ]
        assert first == second

    def test_never_negative(self):
        context = make_context(size=0)
        signals = PhraseSignals(suggestion_count=0, exact_match_pct=0, topic_match_pct=0)
        analysis = calculate_demand_score("x", signals, context, rng=random.Random(1))
        assert analysis.demand_score >= 0


class TestBonusCombination:
    """Test the inheritance / anchor boost switch."""

    FREQUENCY = {"recipe": 20, "ideas": 10}
    SIGNALS = PhraseSignals(suggestion_count=3, exact_match_pct=0, topic_match_pct=0)

    def test_both_bonuses_by_default(self):
        context = make_context(size=100, frequency=self.FREQUENCY)
        analysis = calculate_demand_score(
            "cold brew recipe ideas", self.SIGNALS, context,
            match_strength=MatchStrength.MODERATE, calibration=NO_JITTER,
        )
        assert analysis.inheritance_bonus == 12
        assert analysis.anchor_boost == 15

    def test_exclusive_prefers_inheritance(self):
        calibration = ScoringCalibration(jitter=0, combine_anchor_and_inheritance=False)
        context = make_context(size=100, frequency=self.FREQUENCY, calibration=calibration)
        analysis = calculate_demand_score(
            "cold brew recipe ideas", self.SIGNALS, context,
            match_strength=MatchStrength.MODERATE, calibration=calibration,
        )
        assert analysis.inheritance_bonus == 12
        assert analysis.anchor_boost == 0

    def test_exclusive_falls_back_to_anchor_boost(self):
        calibration = ScoringCalibration(jitter=0, combine_anchor_and_inheritance=False)
        context = make_context(size=100, frequency=self.FREQUENCY, calibration=calibration)
        analysis = calculate_demand_score(
            "cold brew recipe ideas", self.SIGNALS, context,
            match_strength=MatchStrength.NONE, calibration=calibration,
        )
        assert analysis.inheritance_bonus == 0
        assert analysis.anchor_boost == 15


class TestCalibration:
    """Test calibration validation."""

    def test_zero_cap_offset_rejected(self):
        offsets = dict(CAP_OFFSETS)
        offsets[MatchStrength.STRONG] = 0
        with pytest.raises(ValueError):
            ScoringCalibration(cap_offsets=offsets)

    def test_negative_jitter_rejected(self):
        with pytest.raises(ValueError):
            ScoringCalibration(jitter=-1)

    def test_from_settings(self, test_settings):
        calibration = ScoringCalibration.from_settings(test_settings)
        assert calibration.jitter == 2
        assert calibration.combine_anchor_and_inheritance is True


# =============================================================================
# SIGNALS AND SUMMARY
# =============================================================================


class TestPhraseSignals:
    """Test signal extraction from a phrase's own suggestions."""

    def test_exact_and_topic_shares(self):
        signals = calculate_phrase_signals("cold brew", [
            "cold brew recipe",
            "Cold Brew Maker",
            "how to make cold brew",
            "iced coffee",
        ])
        assert signals.suggestion_count == 4
        assert signals.exact_match_pct == 50
        assert signals.topic_match_pct == 75

    def test_no_suggestions(self):
        signals = calculate_phrase_signals("cold brew", [])
        assert signals == PhraseSignals(suggestion_count=0, exact_match_pct=0, topic_match_pct=0)


class TestDemandSummary:
    """Test batch summary."""

    def test_summary(self):
        context = make_context(size=582)
        signals = PhraseSignals(suggestion_count=14, exact_match_pct=100, topic_match_pct=100)
        analyses = [
            calculate_demand_score("cold brew coffee", signals, context, is_seed=True),
            calculate_demand_score(
                "cold brew coffee maker", signals, context,
                match_strength=MatchStrength.STRONG, calibration=NO_JITTER,
            ),
        ]
        summary = get_demand_summary(analyses)

        assert summary["total"] == 2
        assert summary["ceiling"] == 81
        assert summary["capped"] == 1
        assert summary["distribution"]["high"] == 2

    def test_empty(self):
        assert get_demand_summary([])["total"] == 0
