import pytest
import numpy as np

from riskcheck.classifier import classify
from riskcheck.errors import EngineUnavailable
from riskcheck.models import MediaFile, MediaSubmission, RiskTier, TextSubmission
from riskcheck.scoring import (
    DEFAULT_INDICATOR_TERMS,
    MAX_FAKE_SCORE,
    HeuristicScoringEngine,
    combine,
    count_indicator_hits,
)

SCAM_TEXT = "You have WON a lottery prize! Click to verify your account."
BENIGN_TEXT = "Meeting moved to 3pm, see you then."

SAMPLE_TEXTS = [
    SCAM_TEXT,
    BENIGN_TEXT,
    "URGENT: your bank account will be suspended, share the OTP and password now",
    "Congratulations! Earn free money with this internship, act now on WhatsApp, KYC needed",
    "lottery lottery lottery",
    "ok",
]


class MaxRng:
    """Always returns the largest value in range."""

    def integers(self, low, high):
        return high - 1


def test_scam_text_hits_six_indicators():
    assert count_indicator_hits(SCAM_TEXT, DEFAULT_INDICATOR_TERMS) == 6


def test_benign_text_has_no_hits():
    assert count_indicator_hits(BENIGN_TEXT, DEFAULT_INDICATOR_TERMS) == 0


def test_hits_count_distinct_terms_case_insensitively():
    assert count_indicator_hits("PRIZE prize Prize", DEFAULT_INDICATOR_TERMS) == 1
    assert count_indicator_hits("Please ACT NOW", DEFAULT_INDICATOR_TERMS) == 1


def test_combine_formula_and_cap():
    assert combine(0).fake_score == 14
    assert combine(3, jitter=5).fake_score == 14 + 36 + 5
    capped = combine(len(DEFAULT_INDICATOR_TERMS), jitter=14)
    assert capped.fake_score == MAX_FAKE_SCORE
    assert capped.real_score == 100 - MAX_FAKE_SCORE


@pytest.mark.asyncio
async def test_scam_text_scores_high():
    engine = HeuristicScoringEngine(seed=7)
    pair = await engine.score(TextSubmission(content=SCAM_TEXT))
    assert 86 <= pair.fake_score <= 96
    assert classify(pair.fake_score) is RiskTier.HIGH


@pytest.mark.asyncio
async def test_benign_text_scores_low():
    engine = HeuristicScoringEngine(seed=7)
    pair = await engine.score(TextSubmission(content=BENIGN_TEXT))
    assert 14 <= pair.fake_score < 29
    assert classify(pair.fake_score) is RiskTier.LOW


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(5))
async def test_text_scores_are_complementary_and_bounded(seed):
    engine = HeuristicScoringEngine(seed=seed)
    for text in SAMPLE_TEXTS:
        pair = await engine.score(TextSubmission(content=text))
        assert pair.fake_score + pair.real_score == 100
        assert 0 <= pair.fake_score <= MAX_FAKE_SCORE


@pytest.mark.asyncio
async def test_zero_jitter_is_deterministic():
    engine = HeuristicScoringEngine(jitter=0)
    first = await engine.score(TextSubmission(content=SCAM_TEXT))
    second = await engine.score(TextSubmission(content=SCAM_TEXT))
    assert first == second
    assert first.fake_score == 86


@pytest.mark.asyncio
async def test_injected_noise_source_bounds_jitter():
    engine = HeuristicScoringEngine(rng=MaxRng())
    pair = await engine.score(TextSubmission(content=BENIGN_TEXT))
    assert pair.fake_score == 14 + 14


@pytest.mark.asyncio
async def test_same_seed_reproduces_scores():
    text = TextSubmission(content=SCAM_TEXT)
    first = await HeuristicScoringEngine(seed=42).score(text)
    second = await HeuristicScoringEngine(seed=42).score(text)
    assert first == second


@pytest.mark.asyncio
async def test_custom_vocabulary():
    engine = HeuristicScoringEngine(terms=["Gift Card"], jitter=0)
    pair = await engine.score(TextSubmission(content="Buy a GIFT CARD for the lottery"))
    assert pair.fake_score == 26


def test_negative_jitter_rejected():
    with pytest.raises(ValueError):
        HeuristicScoringEngine(jitter=-1)


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["video", "audio"])
async def test_media_uses_stand_in_feature_count(kind):
    engine = HeuristicScoringEngine(jitter=0, rng=np.random.default_rng(3))
    media = MediaFile(name="sample.bin", size_bytes=4, data=b"\x00\x01\x02\x03")
    for _ in range(20):
        pair = await engine.score(MediaSubmission(kind=kind, file=media))
        assert pair.fake_score in {14 + hits * 12 for hits in range(2, 7)}


@pytest.mark.asyncio
async def test_unreadable_media_is_engine_unavailable():
    engine = HeuristicScoringEngine(jitter=0)
    media = MediaFile(name="empty.mp4", size_bytes=1024, mime_type="video/mp4", data=b"")
    with pytest.raises(EngineUnavailable):
        await engine.score(MediaSubmission(kind="video", file=media))


@pytest.mark.parametrize(
    "fake_score, expected",
    [
        (0, RiskTier.LOW),
        (33, RiskTier.LOW),
        (34, RiskTier.MEDIUM),
        (60, RiskTier.MEDIUM),
        (61, RiskTier.HIGH),
        (96, RiskTier.HIGH),
        (100, RiskTier.HIGH),
    ],
)
def test_classify_boundaries(fake_score, expected):
    assert classify(fake_score) is expected


def test_classify_is_total_over_valid_scores():
    tiers = [classify(score) for score in range(101)]
    assert all(isinstance(tier, RiskTier) for tier in tiers)
    assert tiers.count(RiskTier.LOW) == 34
    assert tiers.count(RiskTier.MEDIUM) == 27
    assert tiers.count(RiskTier.HIGH) == 40


@pytest.mark.parametrize("fake_score", [-1, 101])
def test_classify_rejects_out_of_range(fake_score):
    with pytest.raises(ValueError):
        classify(fake_score)
