"""
End-of-round rating.

A tier is awarded when the round meets BOTH its minimum accuracy and its
minimum share of the reference high score. Tiers are checked from the most
demanding down, so the best qualifying tier wins. The configuration
guarantees a zero-minimum tier, which makes rate() total.

Examples:
    >>> from maskoff.config_loader import load_default_config
    >>> from maskoff.models import RoundSummary
    >>> tiers = load_default_config().ratings
    >>> summary = RoundSummary(score=90, correct_hits=8, wrong_hits=2)
    >>> rate(summary, 100, tiers).id
    'hypocrisy_hunter'
"""

from typing import List, Sequence

from maskoff.models import RatingTier, RoundSummary


def reference_high_score(personal_high_score: int, global_high_score: int) -> int:
    """Score the round is compared against; never below 1."""
    return max(personal_high_score, global_high_score, 1)


def score_percent(score: int, reference: int) -> float:
    """Score as a fraction of the reference, capped at 1.0."""
    return min(score / max(reference, 1), 1.0)


def ordered_tiers(tiers: Sequence[RatingTier]) -> List[RatingTier]:
    """Tiers from the highest thresholds to the lowest."""
    return sorted(tiers, key=lambda t: (t.min_score_percent, t.min_accuracy), reverse=True)


def rate(summary: RoundSummary, reference: int, tiers: Sequence[RatingTier]) -> RatingTier:
    """Classify a round summary.

    Args:
        summary: Final round statistics
        reference: Reference high score (see reference_high_score)
        tiers: Configured rating tiers in any order

    Returns:
        The highest tier whose minimums are both met

    Raises:
        ValueError: If no tier matches, i.e. the tiers lack a zero-minimum tier
    """
    percent = score_percent(summary.score, reference)
    for tier in ordered_tiers(tiers):
        if summary.accuracy >= tier.min_accuracy and percent >= tier.min_score_percent:
            return tier
    raise ValueError("Rating tiers must include a tier with zero minimums")
