"""
Scorer: numeric desirability of a candidate item for one user.

Scores are deterministic for a fixed profile snapshot and clock, which makes
them cacheable by (question id, profile fingerprint).
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime
from typing import Optional

from trivia_feed.config import config
from trivia_feed.models.items import CandidateItem
from trivia_feed.models.user_profile import UserProfile
from trivia_feed.utils.timestamps import days_between, ensure_utc, utc_now

logger = logging.getLogger(__name__)


def score_item(
    item: CandidateItem, profile: UserProfile, now: Optional[datetime] = None
) -> tuple[float, list[str]]:
    """
    Score one candidate for a user.

    Components:
        - Topic affinity: mean of topic/subtopic/branch weights x 0.30
        - Seen before: accuracy (+/-0.25), answer time (+/-0.15),
          skip penalty (-0.20), cooldown bonus (0.1/day, capped at 0.5)
        - Never seen: flat novelty bonus (+0.15)

    Args:
        item: Candidate item
        profile: User profile (read only)
        now: Clock override (UTC), used for the cooldown bonus

    Returns:
        (score, explanations)
    """
    s = config.scoring
    now = ensure_utc(now) if now else utc_now()
    explanations = []

    weights = profile.item_weights(item)
    affinity = sum(weights) / 3
    score = affinity * s.topic_affinity
    explanations.append(
        f"Topic affinity: {affinity:.2f} ({item.topic}/{item.subtopic}/{item.branch})"
    )

    interaction = profile.interactions.get(item.id)
    if interaction is None:
        score += s.novelty
        explanations.append(f"Novelty bonus: +{s.novelty:.2f} (never seen)")
        return score, explanations

    if interaction.was_correct is not None:
        score += s.accuracy if interaction.was_correct else -s.accuracy
        sign = "+" if interaction.was_correct else "-"
        explanations.append(f"Previous accuracy: {sign}{s.accuracy:.2f}")

    time_score = 0.0
    if interaction.time_spent_ms < s.fast_answer_ms:
        time_score = s.time_spent
    elif interaction.time_spent_ms > s.slow_answer_ms:
        time_score = -s.time_spent
    score += time_score
    explanations.append(f"Time spent: {time_score:+.2f} ({interaction.time_spent_ms}ms)")

    if interaction.was_skipped:
        score += s.skip_penalty
        explanations.append(f"Skip penalty: {s.skip_penalty:.2f}")

    days = max(0.0, days_between(interaction.viewed_at, now))
    cooldown = min(days * s.cooldown_per_day, s.cooldown_cap)
    score += cooldown
    explanations.append(f"Cooldown bonus: +{cooldown:.2f} ({days:.1f} days)")

    return score, explanations


def profile_fingerprint(profile: UserProfile) -> str:
    """SHA-1 of the profile's canonical JSON form."""
    canonical = json.dumps(profile.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class ScoreCache:
    """
    Memoizes scores for one clock value.

    Keys are (question_id, profile fingerprint), so a changed profile never
    reuses a stale score.
    """

    def __init__(self, now: Optional[datetime] = None):
        self.now = ensure_utc(now) if now else utc_now()
        self._scores: dict[tuple[str, str], tuple[float, list[str]]] = {}
        self.hits = 0
        self.misses = 0

    def score(
        self,
        item: CandidateItem,
        profile: UserProfile,
        fingerprint: Optional[str] = None,
    ) -> tuple[float, list[str]]:
        """Cached score_item; pass a precomputed fingerprint when scoring a whole pool."""
        key = (item.id, fingerprint or profile_fingerprint(profile))
        cached = self._scores.get(key)
        if cached is not None:
            self.hits += 1
            return cached[0], list(cached[1])

        self.misses += 1
        score, explanations = score_item(item, profile, self.now)
        self._scores[key] = (score, list(explanations))
        return score, explanations

    def clear(self) -> None:
        self._scores.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._scores)
