from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

import numpy as np

from .errors import EngineError, EngineUnavailable
from .media import MediaFeatureExtractor
from .models import MediaSubmission, ScorePair, Submission, TextSubmission

logger = logging.getLogger(__name__)

DEFAULT_INDICATOR_TERMS: tuple[str, ...] = (
    "lottery",
    "won",
    "prize",
    "urgent",
    "click",
    "verify",
    "internship",
    "earn",
    "otp",
    "account",
    "suspend",
    "bank",
    "password",
    "free",
    "act now",
    "kyc",
    "congratulations",
    "whatsapp",
)

BASE_FAKE_SCORE = 14
POINTS_PER_HIT = 12
# Never claim absolute certainty.
MAX_FAKE_SCORE = 96
DEFAULT_JITTER = 15


class ScoringEngine(Protocol):
    async def score(self, submission: Submission) -> ScorePair:
        ...


def count_indicator_hits(text: str, terms: Iterable[str]) -> int:
    """Number of distinct terms present as case-insensitive substrings."""
    lowered = text.lower()
    return len({term for term in terms if term and term.lower() in lowered})


def combine(hits: int, jitter: int = 0) -> ScorePair:
    fake_score = min(MAX_FAKE_SCORE, max(0, BASE_FAKE_SCORE + hits * POINTS_PER_HIT + jitter))
    return ScorePair(fake_score=fake_score, real_score=100 - fake_score)


class HeuristicScoringEngine:
    """
    Local keyword/feature engine.

    ``jitter`` is model-confidence noise: every score gets an integer in
    ``[0, jitter)`` added before clamping, drawn from ``rng``. Pass ``jitter=0``
    for fully deterministic scores, or a seeded generator for repeatable ones.
    """

    def __init__(
        self,
        *,
        terms: Sequence[str] | None = None,
        jitter: int = DEFAULT_JITTER,
        rng: np.random.Generator | None = None,
        seed: int | None = None,
        latency: float = 0.0,
    ) -> None:
        if jitter < 0:
            raise ValueError("jitter must be non-negative")
        self._terms = tuple(term.lower() for term in (terms or DEFAULT_INDICATOR_TERMS))
        self._jitter = jitter
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._latency = latency
        self._media = MediaFeatureExtractor(self._rng)

    @property
    def terms(self) -> tuple[str, ...]:
        return self._terms

    async def score(self, submission: Submission) -> ScorePair:
        if self._latency:
            await asyncio.sleep(self._latency)
        try:
            hits = self._count_hits(submission)
        except EngineError:
            raise
        except Exception as exc:
            raise EngineUnavailable(f"Feature extraction failed: {exc}") from exc
        pair = combine(hits, self._draw_jitter())
        logger.info("Scored %s submission: hits=%d fake=%d", submission.kind, hits, pair.fake_score)
        return pair

    def _count_hits(self, submission: Submission) -> int:
        if isinstance(submission, TextSubmission):
            return count_indicator_hits(submission.content, self._terms)
        if isinstance(submission, MediaSubmission):
            return self._media.count_hits(submission)
        raise EngineUnavailable(f"No feature extractor for {type(submission).__name__}")

    def _draw_jitter(self) -> int:
        if self._jitter == 0:
            return 0
        return int(self._rng.integers(0, self._jitter))
