"""
Preference analytics helpers for QA dashboards and reporting.

Provides:
- Topic rankings and preference categories
- Weight histograms over the whole preference tree
- Interaction ledger statistics
- Net weight movement from weight-change records
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Tuple

from trivia_feed.models.interaction import WeightChange
from trivia_feed.models.user_profile import UserProfile


def topic_rankings(profile: UserProfile, k: Optional[int] = None) -> List[Tuple[str, float]]:
    """
    Rank topics by weight, strongest first.

    Args:
        profile: User profile
        k: Only return the top k topics (all if None)

    Returns:
        List of (topic, weight) tuples; ties are broken alphabetically

    Example:
        >>> topic_rankings(profile, k=2)
        [('Science', 0.9), ('Music', 0.6)]
    """
    ranked = sorted(
        ((name, node.weight) for name, node in profile.topics.items()),
        key=lambda kv: (-kv[1], kv[0]),
    )
    return ranked[:k] if k is not None else ranked


def preference_categories(
    profile: UserProfile, threshold: float = 0.5
) -> Dict[str, List[str]]:
    """
    Split topics into preferred (> threshold), neutral (== threshold) and
    disliked (< threshold).

    Example:
        >>> preference_categories(profile)["preferred"]
        ['Science']
    """
    categories: Dict[str, List[str]] = {"preferred": [], "neutral": [], "disliked": []}
    for name, node in sorted(profile.topics.items()):
        if node.weight > threshold:
            categories["preferred"].append(name)
        elif math.isclose(node.weight, threshold):
            categories["neutral"].append(name)
        else:
            categories["disliked"].append(name)
    return categories


def weight_histogram(profile: UserProfile, bin_size: float = 0.1) -> List[Tuple[str, int]]:
    """
    Histogram of every node weight in the tree (topics, subtopics, branches).

    Args:
        profile: User profile
        bin_size: Width of each bin

    Returns:
        List of (bin_label, count) tuples, sorted by bin start

    Example:
        >>> weight_histogram(profile)
        [('0.4-0.5', 1), ('0.5-0.6', 2), ('0.7-0.8', 1)]
    """
    if bin_size <= 0:
        raise ValueError(f"bin_size must be > 0, got {bin_size}")

    bins: Dict[float, int] = {}
    for node in profile.iter_nodes():
        # Nudge before flooring so 0.3 lands in 0.3-0.4, not 0.2-0.3
        start = math.floor(node.weight / bin_size + 1e-9) * bin_size
        # A weight of exactly 1.0 goes in the last bin
        if start >= 1.0:
            start = 1.0 - bin_size
        start = round(start, 4)
        bins[start] = bins.get(start, 0) + 1

    return [
        (f"{start:.1f}-{start + bin_size:.1f}", count)
        for start, count in sorted(bins.items())
    ]


def interaction_summary(profile: UserProfile) -> Dict[str, float]:
    """
    Statistics over the interaction ledger.

    Returns:
        Dict with total, correct, incorrect, skipped, accuracy (percent of
        graded answers) and mean_time_ms

    Example:
        >>> interaction_summary(profile)["accuracy"]
        66.67
    """
    records = list(profile.interactions.values())
    correct = sum(1 for r in records if r.was_correct is True)
    incorrect = sum(1 for r in records if r.was_correct is False)
    skipped = sum(1 for r in records if r.was_correct is None and r.was_skipped)
    graded = correct + incorrect

    return {
        "total": len(records),
        "correct": correct,
        "incorrect": incorrect,
        "skipped": skipped,
        "accuracy": round(100.0 * correct / graded, 2) if graded else 0.0,
        "mean_time_ms": (
            round(sum(r.time_spent_ms for r in records) / len(records), 2) if records else 0.0
        ),
    }


def net_topic_movement(changes: Iterable[WeightChange]) -> Dict[str, float]:
    """
    Net topic-level weight movement per topic across weight-change records.

    Useful for checking that skip compensation actually offsets earlier skips.

    Example:
        >>> net_topic_movement([skip_change, correct_change])
        {'Science': 0.125}
    """
    movement: Dict[str, float] = {}
    for change in changes:
        delta = change.new_weights.topic - change.old_weights.topic
        movement[change.topic] = round(movement.get(change.topic, 0.0) + delta, 4)
    return movement
