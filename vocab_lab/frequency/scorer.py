"""
Distribution scoring and difficulty tiers.

Difficulty is derived from how broadly useful a word is across the corpus,
not from raw frequency, so a word repeated many times in a single article
does not look easier than one that appears steadily everywhere.

Formula:
    distributionRatio = articleCount / totalArticles
    avgDensity        = totalCount / articleCount
    score = totalCount × sqrt(distributionRatio) × log10(avgDensity + 1)

Tiers (lower score ⇒ rarer ⇒ harder):
    score ≥ 20 → 1 (entry)
    score ≥ 10 → 2 (easy)
    score ≥ 5  → 3 (medium)
    score ≥ 2  → 4 (hard)
    otherwise  → 5 (expert)
"""

import math
from typing import Dict, List, Tuple

# (minimum score, tier) pairs checked top-down
DIFFICULTY_THRESHOLDS: Tuple[Tuple[float, int], ...] = (
    (20.0, 1),
    (10.0, 2),
    (5.0, 3),
    (2.0, 4),
)
HARDEST_TIER = 5
NEUTRAL_TIER = 3

DIFFICULTY_LABELS: Dict[int, str] = {
    1: "entry",
    2: "easy",
    3: "medium",
    4: "hard",
    5: "expert",
}


def distribution_score(total_count: int, article_count: int, total_articles: int) -> float:
    """
    Compute the distribution score of a stem.

    Args:
        total_count: Occurrences of the stem across the corpus
        article_count: Number of articles containing the stem
        total_articles: Number of articles analyzed so far

    Returns:
        Score (0.0 when there is nothing to measure)

    Example:
        >>> round(distribution_score(6, 2, 10), 3)
        1.615
    """
    if total_articles <= 0 or article_count <= 0 or total_count <= 0:
        return 0.0

    distribution_ratio = article_count / total_articles
    avg_density = total_count / article_count

    return total_count * math.sqrt(distribution_ratio) * math.log10(avg_density + 1)


def score_to_difficulty(score: float) -> int:
    """
    Map a distribution score to a difficulty tier (1 easiest, 5 hardest).

    Examples:
        >>> score_to_difficulty(20)
        1
        >>> score_to_difficulty(19.99)
        2
        >>> score_to_difficulty(0)
        5
    """
    for minimum, tier in DIFFICULTY_THRESHOLDS:
        if score >= minimum:
            return tier
    return HARDEST_TIER


def clamp_tier(value: float) -> int:
    """Round half-up and clamp into the 1-5 tier range."""
    return max(1, min(HARDEST_TIER, int(math.floor(value + 0.5))))


def difficulty_label(tier: int) -> str:
    """Human-readable label for a tier; unknown tiers read as medium."""
    return DIFFICULTY_LABELS.get(tier, DIFFICULTY_LABELS[NEUTRAL_TIER])


def difficulty_breakdown(tiers: List[int]) -> Dict[str, int]:
    """
    Bucket per-word tiers into easy (≤2), medium (3) and hard (≥4) counts.
    """
    breakdown = {"easy": 0, "medium": 0, "hard": 0}
    for tier in tiers:
        if tier <= 2:
            breakdown["easy"] += 1
        elif tier <= 3:
            breakdown["medium"] += 1
        else:
            breakdown["hard"] += 1
    return breakdown
