"""
Feed Selector: turns a candidate pool and a profile into the next batch.

Users still in cold start get the scripted cold-start policy. Everyone else
gets score-ranked selection that mixes familiar material with new branches,
subtopics and topics.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from trivia_feed.config import config
from trivia_feed.engine.cold_start import ColdStartPolicy, PoolLike
from trivia_feed.engine.decay import decay
from trivia_feed.engine.random_source import RandomSource
from trivia_feed.engine.scoring import ScoreCache, profile_fingerprint
from trivia_feed.models.cold_start_state import Phase
from trivia_feed.models.items import CandidateItem, coerce_items, unique_items
from trivia_feed.models.user_profile import UserProfile
from trivia_feed.utils.timestamps import ensure_utc, utc_now

logger = logging.getLogger(__name__)

COLD_START = "cold_start"
STEADY_STATE = "steady_state"

# Exploration buckets in fill order
NEW_BRANCH = "new_branch"
NEW_SUBTOPIC = "new_subtopic"
NEW_TOPIC = "new_topic"
KNOWN = "known"

_BUCKET_LABELS = {
    NEW_BRANCH: "Exploration: New branch within known subtopic",
    NEW_SUBTOPIC: "Exploration: New subtopic within known topic",
    NEW_TOPIC: "Exploration: Entirely new topic",
}


@dataclass
class FeedBatch:
    """
    Selected batch.

    Attributes:
        items: Ordered items to present
        explanations: Explanation lines per item id
        profile: Profile to persist (cold-start state or decay applied)
        strategy: "cold_start" or "steady_state"
        phase: Cold-start phase used, None for steady state
    """

    items: list[CandidateItem]
    explanations: dict[str, list[str]] = field(default_factory=dict)
    profile: Optional[UserProfile] = None
    strategy: str = STEADY_STATE
    phase: Optional[Phase] = None

    @property
    def ids(self) -> list[str]:
        return [item.id for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class _Scored:
    item: CandidateItem
    score: float
    explanations: list[str]


class FeedSelector:
    """
    Orchestrates decay, scoring, cold start and diversity into a batch.

    Usage:
        selector = FeedSelector(RandomSource(seed=1))
        batch = selector.select_batch(pool, profile, batch_size=20)
        profile = batch.profile  # persist before the next call
    """

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        cold_start: Optional[ColdStartPolicy] = None,
    ):
        self.rng = rng or RandomSource.from_config()
        self.cold_start = cold_start or ColdStartPolicy(self.rng)
        self.settings = config.feed
        self.cache: Optional[ScoreCache] = None

    def in_cold_start(self, profile: UserProfile) -> bool:
        return (
            profile.total_questions_answered < config.cold_start.completion_threshold
            and not profile.cold_start_complete
        )

    def score_cache(self, now: datetime) -> ScoreCache:
        """Score cache for this clock value; a new clock starts a fresh cache."""
        if self.cache is None or self.cache.now != now:
            self.cache = ScoreCache(now)
        return self.cache

    def select_batch(
        self,
        pool: PoolLike,
        profile: UserProfile,
        batch_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> FeedBatch:
        """
        Select the next batch for a user.

        Args:
            pool: Candidate items (CandidateItem or catalog dicts)
            profile: User profile (left untouched)
            batch_size: Items wanted (defaults to FeedConfig.batch_size)
            now: Clock override (UTC)

        Returns:
            FeedBatch; shorter than requested when the pool runs dry

        Raises:
            ValueError: If batch_size is negative or an item is invalid
        """
        batch_size = self.settings.batch_size if batch_size is None else batch_size
        if batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")
        now = ensure_utc(now) if now else utc_now()
        items = unique_items(coerce_items(pool))

        if self.in_cold_start(profile):
            return self._select_cold_start(items, profile, batch_size)
        if not items or batch_size == 0:
            return FeedBatch(items=[], profile=profile.copy())
        return self._select_steady_state(items, profile, batch_size, now)

    # ==================== Cold start ====================

    def _select_cold_start(
        self, items: list[CandidateItem], profile: UserProfile, batch_size: int
    ) -> FeedBatch:
        result = self.cold_start.select(items, profile, batch_size)
        survivors = unique_items(result.items)
        if len(survivors) != len(result.items):
            logger.warning(
                "Cold start returned %d duplicate items", len(result.items) - len(survivors)
            )
        explanations = {
            item.id: list(result.explanations.get(item.id, [])) for item in survivors
        }
        logger.info(
            "Cold start (%s) batch of %d items", result.phase.value, len(survivors)
        )
        return FeedBatch(
            items=survivors,
            explanations=explanations,
            profile=result.profile,
            strategy=COLD_START,
            phase=result.phase,
        )

    # ==================== Steady state ====================

    def _select_steady_state(
        self,
        items: list[CandidateItem],
        profile: UserProfile,
        batch_size: int,
        now: datetime,
    ) -> FeedBatch:
        profile = decay(profile, now)
        cache = self.score_cache(now)
        fingerprint = profile_fingerprint(profile)

        buckets: dict[str, list[_Scored]] = {
            NEW_TOPIC: [],
            NEW_SUBTOPIC: [],
            NEW_BRANCH: [],
            KNOWN: [],
        }
        for item in items:
            score, lines = cache.score(item, profile, fingerprint)
            buckets[self.classify(item, profile)].append(_Scored(item, score, lines))
        for bucket in buckets.values():
            bucket.sort(key=lambda s: s.score, reverse=True)

        selected: list[_Scored] = []
        explanations: dict[str, list[str]] = {}
        per_topic: dict[str, int] = {}
        topic_cap = max(
            self.settings.min_topic_cap, math.ceil(self.settings.topic_cap_share * batch_size)
        )

        def add(entry: _Scored, extra: Optional[str] = None) -> None:
            selected.append(entry)
            per_topic[entry.item.topic] = per_topic.get(entry.item.topic, 0) + 1
            lines = [*entry.explanations, f"Score: {entry.score:.2f}"]
            if extra:
                lines.append(extra)
            explanations[entry.item.id] = lines

        # Familiar material, strong topics first
        known_target = min(batch_size, math.ceil(self.settings.known_share * batch_size))
        threshold = config.cold_start.preferred_threshold
        known = sorted(
            buckets[KNOWN],
            key=lambda s: profile.topic_weight(s.item.topic) > threshold,
            reverse=True,
        )
        for entry in known:
            if len(selected) >= known_target:
                break
            if per_topic.get(entry.item.topic, 0) < topic_cap:
                add(entry)

        known_count = len(selected)

        # Exploration, one slot per topic
        explored: set[str] = set()
        for bucket_name in (NEW_BRANCH, NEW_SUBTOPIC, NEW_TOPIC):
            for entry in buckets[bucket_name]:
                if len(selected) >= batch_size:
                    break
                if entry.item.topic in explored:
                    continue
                add(entry, _BUCKET_LABELS[bucket_name])
                explored.add(entry.item.topic)

        # Top up from leftovers; the topic cap is soft
        chosen = {s.item.id for s in selected}
        leftovers = sorted(
            (s for bucket in buckets.values() for s in bucket if s.item.id not in chosen),
            key=lambda s: s.score,
            reverse=True,
        )
        for respect_cap in (True, False):
            for entry in leftovers:
                if len(selected) >= batch_size:
                    break
                if entry.item.id in chosen:
                    continue
                if respect_cap and per_topic.get(entry.item.topic, 0) >= topic_cap:
                    continue
                add(entry, "Top-up: best remaining score")
                chosen.add(entry.item.id)

        final = unique_items(s.item for s in selected)
        logger.info(
            "Steady-state batch of %d items (%d known, %d exploration)",
            len(final),
            known_count,
            len(explored),
        )
        logger.debug("Score cache: %d hits, %d misses", cache.hits, cache.misses)
        return FeedBatch(
            items=final,
            explanations={item.id: explanations[item.id] for item in final},
            profile=profile,
            strategy=STEADY_STATE,
        )

    @staticmethod
    def classify(item: CandidateItem, profile: UserProfile) -> str:
        """Bucket an item by how familiar its path is to the user."""
        if not profile.knows_topic(item.topic):
            return NEW_TOPIC
        if not profile.knows_subtopic(item.topic, item.subtopic):
            return NEW_SUBTOPIC
        if not profile.knows_branch(*item.path):
            return NEW_BRANCH
        return KNOWN
