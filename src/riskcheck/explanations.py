from __future__ import annotations

from .models import RiskTier

# Display order matters: the first entry is the headline finding.
_EXPLANATIONS: dict[RiskTier, tuple[str, ...]] = {
    RiskTier.HIGH: (
        "⚠ Urgency manipulation detected — designed to make you panic",
        "⚠ Matches known scam/phishing templates with high confidence",
        "⚠ Requests sensitive personal data under false legitimacy",
        "⚠ AI verdict: high probability fraudulent — do not respond",
        "💡 Legitimate banks never ask for OTPs or passwords via message",
    ),
    RiskTier.MEDIUM: (
        "⚠ Some phrases used in social engineering attacks found",
        "⚠ Mild urgency triggers present — verify before responding",
        "⚠ Source credibility cannot be confirmed from this message alone",
        "💡 Call the organization on their official number to confirm",
    ),
    RiskTier.LOW: (
        "✓ No strong fraud indicators detected",
        "✓ Language pattern appears natural and coherent",
        "✓ No suspicious links or data-harvesting attempts found",
        "💡 Content appears legitimate — good instinct checking anyway",
    ),
}


def explain(risk: RiskTier) -> tuple[str, ...]:
    return _EXPLANATIONS[RiskTier(risk)]
