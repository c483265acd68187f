from __future__ import annotations

from .models import RiskTier

HIGH_RISK_ABOVE = 60
MEDIUM_RISK_ABOVE = 33


def classify(fake_score: int) -> RiskTier:
    """Map a fake score to its risk tier. 60 is Medium, 33 is Low."""
    if not 0 <= fake_score <= 100:
        raise ValueError(f"fake_score must be within [0, 100], got {fake_score}")
    if fake_score > HIGH_RISK_ABOVE:
        return RiskTier.HIGH
    if fake_score > MEDIUM_RISK_ABOVE:
        return RiskTier.MEDIUM
    return RiskTier.LOW
