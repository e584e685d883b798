"""
Cold-Start Phase Policy: scripted, diversity-first selection for new users.

Phases are derived from how many questions were shown so far:
- Exploration (0-4): one item per topic from the initial exploration set
- Branching (5-19): 2 items from topics the user engaged with + 2 from new topics
- Normal (20+): ~70% weighted toward preferred topics, ~30% exploration

Every call starts with a reconciliation step that loads the persisted state,
folds the pending last-answered marker into the in-session weight snapshot,
seeds missing weights and recomputes the phase.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from trivia_feed.config import config
from trivia_feed.engine.diversity import MINIMAL, STRICT, WITHIN_BATCH, DiversityGovernor
from trivia_feed.engine.random_source import RandomSource
from trivia_feed.models.cold_start_state import ColdStartState, Phase, phase_for
from trivia_feed.models.items import CandidateItem, coerce_items, unique_items
from trivia_feed.models.user_profile import UserProfile, clamp_weight
from trivia_feed.topics import INITIAL_EXPLORATION_TOPICS, canonical_topics

logger = logging.getLogger(__name__)

PoolLike = Iterable[Union[CandidateItem, Mapping[str, Any]]]


@dataclass
class ColdStartResult:
    """
    Outcome of one cold-start selection.

    Attributes:
        items: Ordered batch
        explanations: Per-item explanation lines
        state: Cold-start state after the batch
        profile: Profile carrying the serialized state
        phase: Phase the batch was selected in
    """

    items: list[CandidateItem]
    explanations: dict[str, list[str]]
    state: ColdStartState
    profile: UserProfile
    phase: Phase = Phase.EXPLORATION
    exploration_ids: set[str] = field(default_factory=set)


class _BatchBuilder:
    """Collects picks for one batch and keeps the state in step."""

    def __init__(
        self,
        policy: ColdStartPolicy,
        state: ColdStartState,
        pool: list[CandidateItem],
        target: int,
    ):
        self.policy = policy
        self.state = state
        self.pool = pool
        self.target = target
        self.items: list[CandidateItem] = []
        self.explanations: dict[str, list[str]] = {}
        self.exploration_ids: set[str] = set()
        self._ids: set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.items) >= self.target

    @property
    def topics(self) -> list[str]:
        return list(dict.fromkeys(item.topic for item in self.items))

    def available(self, topic: Optional[str] = None) -> list[CandidateItem]:
        """Unseen items not yet in the batch, optionally for one topic."""
        return [
            item
            for item in self.pool
            if item.id not in self._ids
            and item.id not in self.state.shown_question_ids
            and (topic is None or item.topic == topic)
        ]

    def available_topics(self) -> list[str]:
        return list(dict.fromkeys(item.topic for item in self.available()))

    def has_items(self, topic: str) -> bool:
        return any(True for _ in self.available(topic))

    def place(self, item: CandidateItem, exploration: bool, reasons: list[str]) -> None:
        state = self.state
        self.policy.governor.record_selection(state, item.topic)
        self.items.append(item)
        self._ids.add(item.id)
        state.shown_question_ids.add(item.id)
        state.topics_shown.add(item.topic)
        state.subtopics_shown.setdefault(item.topic, set()).add(item.subtopic)
        if exploration:
            self.exploration_ids.add(item.id)
            state.exploration_question_ids.add(item.id)

        kind = "Exploration" if exploration else "Preferred"
        self.explanations[item.id] = [
            f"{kind} pick: {item.topic} (weight {state.weight_of(item.topic):.2f})",
            f"Phase: {state.phase.value}",
            *reasons,
        ]
        logger.debug("Placed %s (%s) as %s", item.id, item.topic, kind.lower())


class ColdStartPolicy:
    """
    Selects batches for users still in cold start.

    Usage:
        policy = ColdStartPolicy(RandomSource(seed=7))
        result = policy.select(pool, profile, batch_size=5)
        profile = result.profile  # persist this
    """

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        governor: Optional[DiversityGovernor] = None,
    ):
        self.rng = rng or RandomSource.from_config()
        self.governor = governor or DiversityGovernor()
        self.settings = config.cold_start

    # ==================== Public API ====================

    def select(
        self,
        pool: PoolLike,
        profile: UserProfile,
        batch_size: int,
    ) -> ColdStartResult:
        """
        Select the next cold-start batch.

        Args:
            pool: Candidate items (CandidateItem or catalog dicts)
            profile: User profile (left untouched)
            batch_size: Requested batch size (the phase may hand out fewer)

        Returns:
            ColdStartResult with the updated profile

        Raises:
            ValueError: If batch_size is negative or an item is invalid
        """
        if batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")

        items = unique_items(coerce_items(pool))
        updated = profile.copy()
        state = self.reconcile(updated, items)
        phase = state.phase

        if phase == Phase.NORMAL and state.questions_shown >= self.settings.completion_threshold:
            if not updated.cold_start_complete:
                logger.info("Cold start complete after %d questions", state.questions_shown)
            updated.cold_start_complete = True

        builder = _BatchBuilder(self, state, items, self._phase_target(phase, batch_size))
        self.governor.start_batch(state)

        if builder.target > 0 and items:
            if phase == Phase.EXPLORATION:
                self._select_exploration(builder)
            elif phase == Phase.BRANCHING:
                self._select_branching(builder, updated)
            else:
                self._select_normal(builder)
            self._fill_fallback(builder)

        state.questions_shown += len(builder.items)
        state.previously_interested_topics |= state.answered_topics()
        state.phase = phase_for(state.questions_shown)
        if state.phase != phase:
            logger.info("Cold start phase %s -> %s", phase.value, state.phase.value)

        updated.cold_start_state = state.to_dict()
        logger.debug(
            "Cold start %s batch: %d/%d items, topics=%s",
            phase.value,
            len(builder.items),
            builder.target,
            builder.topics,
        )
        return ColdStartResult(
            items=builder.items,
            explanations=builder.explanations,
            state=state,
            profile=updated,
            phase=phase,
            exploration_ids=builder.exploration_ids,
        )

    # ==================== Reconciliation ====================

    def reconcile(self, profile: UserProfile, pool: list[CandidateItem]) -> ColdStartState:
        """
        Bring the cold-start state up to date with the profile.

        Mutates `profile` (clears the pending marker), so pass a copy.
        """
        state = self.load_state(profile, pool)
        self.fold_last_answered(state, profile)
        self.seed_weights(state, profile, pool)
        state.phase = phase_for(state.questions_shown)
        return state

    def load_state(self, profile: UserProfile, pool: list[CandidateItem]) -> ColdStartState:
        if profile.cold_start_state is not None:
            return ColdStartState.from_dict(profile.cold_start_state)
        if profile.interactions:
            return ColdStartState.reconstruct(profile, pool)
        return ColdStartState()

    def fold_last_answered(self, state: ColdStartState, profile: UserProfile) -> None:
        """Fold the pending marker into counters and the in-session weights."""
        marker = profile.last_question_answered
        if marker is None:
            return
        profile.last_question_answered = None

        if marker.question_id not in state.shown_question_ids:
            logger.debug("Ignoring marker for %s: not shown by cold start", marker.question_id)
            return

        topic = marker.topic
        w = config.weights
        if marker.correct is True:
            counter, delta = state.correct_by_topic, w.correct_deltas[0]
        elif marker.correct is False:
            counter, delta = state.incorrect_by_topic, w.incorrect_deltas[0]
        elif marker.skipped:
            counter, delta = state.skipped_by_topic, w.skip_deltas[0]
        else:
            return
        counter[topic] = counter.get(topic, 0) + 1
        state.topic_weights[topic] = clamp_weight(state.weight_of(topic) + delta)

        answered = marker.correct is not None
        if answered:
            state.topics_shown.add(topic)
        elif topic not in state.answered_topics():
            # Skipped-only topics stay eligible as "new"
            state.topics_shown.discard(topic)

        if answered and marker.question_id in state.exploration_question_ids:
            nudge = self.settings.exploration_engagement_nudge
            for other in profile.topics:
                if other != topic:
                    state.topic_weights[other] = clamp_weight(state.weight_of(other) + nudge)

        logger.debug(
            "Folded %s on %s: in-session weight %.2f",
            "correct" if marker.correct else "incorrect" if answered else "skip",
            topic,
            state.topic_weights[topic],
        )

    def seed_weights(
        self, state: ColdStartState, profile: UserProfile, pool: list[CandidateItem]
    ) -> None:
        """Profile weights first, then neutral weight for catalog and pool topics."""
        for topic, node in profile.topics.items():
            state.topic_weights.setdefault(topic, node.weight)
        neutral = config.weights.default_weight
        for topic in canonical_topics() + [item.topic for item in pool]:
            state.topic_weights.setdefault(topic, neutral)

    # ==================== Item picking ====================

    def _phase_target(self, phase: Phase, batch_size: int) -> int:
        if phase == Phase.EXPLORATION:
            return min(self.settings.exploration_batch_size, batch_size)
        if phase == Phase.BRANCHING:
            per_batch = self.settings.branching_preferred + self.settings.branching_exploration
            return min(per_batch, batch_size)
        return batch_size

    def _easy_mode(self, state: ColdStartState) -> bool:
        return state.questions_shown < self.settings.easy_questions_until

    def _pick_item(self, builder: _BatchBuilder, topic: str) -> Optional[CandidateItem]:
        """
        Random unseen item of a topic.

        Prefers subtopics the user has not seen yet and, early on, easy or
        medium difficulty.
        """
        candidates = builder.available(topic)
        if not candidates:
            return None
        if self._easy_mode(builder.state):
            easy = [i for i in candidates if i.difficulty in self.settings.easy_difficulties]
            candidates = easy or candidates
        seen_subtopics = builder.state.subtopics_shown.get(topic, set())
        fresh = [i for i in candidates if i.subtopic not in seen_subtopics]
        return self.rng.choice(fresh or candidates)

    def _place_from_topics(
        self,
        builder: _BatchBuilder,
        topics: Iterable[str],
        exploration: bool,
        reason: str,
        skip_batch_topics: bool = False,
    ) -> bool:
        """Place one item from the first allowed topic of `topics`."""
        in_batch = set(builder.topics)
        for topic in topics:
            if skip_batch_topics and topic in in_batch:
                continue
            if not self.governor.is_topic_allowed(builder.state, topic):
                continue
            item = self._pick_item(builder, topic)
            if item is None:
                continue
            builder.place(item, exploration, [reason])
            return True
        return False

    # ==================== Exploration ====================

    def _select_exploration(self, builder: _BatchBuilder) -> None:
        state = builder.state
        initial = self.rng.shuffled(INITIAL_EXPLORATION_TOPICS)
        # Initial topics the user has not seen come first
        initial.sort(key=lambda t: t in state.topics_shown)

        while not builder.full and self._place_from_topics(
            builder, initial, True, "Initial exploration topic", skip_batch_topics=True
        ):
            pass

        others = self.rng.shuffled(
            [t for t in builder.available_topics() if t not in INITIAL_EXPLORATION_TOPICS]
        )
        while not builder.full and self._place_from_topics(
            builder, others, True, "Unused topic", skip_batch_topics=True
        ):
            pass

        while not builder.full and self._place_from_topics(
            builder, initial, True, "Further initial exploration"
        ):
            pass

    # ==================== Branching ====================

    def _select_branching(self, builder: _BatchBuilder, profile: UserProfile) -> None:
        state = builder.state
        preferred_target = min(self.settings.branching_preferred, builder.target)

        engaged = state.answered_topics() | state.previously_interested_topics
        engaged |= {
            t for t, node in profile.topics.items() if node.weight > self.settings.preferred_threshold
        }
        engaged = [t for t in sorted(engaged) if builder.has_items(t)]

        if engaged:
            ordered = self._preferred_order(state, engaged)
            exploration, reason = False, "Engaged topic"
        else:
            # Nothing answered yet: rank unused topics instead
            unused = [t for t in builder.available_topics() if t not in state.topics_shown]
            ordered = sorted(
                self.rng.shuffled(unused),
                key=lambda t: state.weight_of(t) * (1 + (t not in state.recent_topics)),
                reverse=True,
            )
            exploration, reason = True, "Unused topic (no answers yet)"

        placed = 0
        while placed < preferred_target and not builder.full:
            if not self._place_from_topics(builder, ordered, exploration, reason):
                break
            placed += 1

        while not builder.full:
            if not self._place_exploration(builder, favor_present=False):
                break

    def _preferred_order(self, state: ColdStartState, topics: list[str]) -> list[str]:
        """Topics by weight, penalized for recent use; above-threshold topics only when any exist."""
        threshold = self.settings.preferred_threshold
        strong = [t for t in topics if state.weight_of(t) > threshold]
        topics = strong or topics
        penalty = self.settings.recent_use_penalty

        def adjusted(topic: str) -> float:
            return state.weight_of(topic) * max(0.0, 1 - penalty * state.times_recent(topic))

        return sorted(self.rng.shuffled(topics), key=adjusted, reverse=True)

    # ==================== Normal ====================

    def _select_normal(self, builder: _BatchBuilder) -> None:
        state = builder.state
        threshold = self.settings.preferred_threshold
        preferred_target = math.ceil(self.settings.normal_preferred_share * builder.target)

        topics = [t for t in builder.available_topics()]
        preferred = [t for t in topics if state.weight_of(t) > threshold]
        if preferred:
            draw_weights = {t: state.weight_of(t) - threshold for t in preferred}
        else:
            preferred = sorted(topics, key=state.weight_of, reverse=True)[:3]
            draw_weights = {t: 1.0 for t in preferred}

        placed = 0
        while not builder.full:
            if placed < preferred_target:
                live = [t for t in preferred if builder.has_items(t)]
                if not live:
                    placed = preferred_target
                    continue
                allowed = [t for t in live if self.governor.is_topic_allowed(state, t)]
                if allowed:
                    topic = self.rng.weighted_choice(allowed, [draw_weights[t] for t in allowed])
                    builder.place(
                        self._pick_item(builder, topic),
                        False,
                        [f"Weighted draw (weight - {threshold:.1f} = {draw_weights[topic]:.2f})"],
                    )
                    placed += 1
                    continue
                # Every preferred topic is blocked: space them out
                if not self._place_exploration(builder, favor_present=True):
                    break
                continue

            if not self._place_exploration(builder, favor_present=False):
                break

    # ==================== Exploration picks ====================

    def _place_exploration(self, builder: _BatchBuilder, favor_present: bool) -> bool:
        """
        Place one exploration pick, walking the tiers in order.

        Tiers: (topics already in the batch, when spacing) -> completely new ->
        skipped-only -> low weight -> not recently used -> anything unseen.
        """
        state = builder.state
        threshold = self.settings.preferred_threshold
        topics = builder.available_topics()
        skipped_only = state.skipped_only_topics()

        tiers = []
        if favor_present:
            present = set(builder.topics)
            tiers.append(("Spacer from batch topic", [t for t in topics if t in present]))
        tiers.extend(
            [
                (
                    "Completely new topic",
                    [
                        t
                        for t in topics
                        if t not in state.topics_shown
                        and t not in skipped_only
                        and state.weight_of(t) <= threshold
                    ],
                ),
                (
                    "Skipped-only topic",
                    [t for t in topics if t not in state.topics_shown and t in skipped_only],
                ),
                ("Low-weight topic", [t for t in topics if state.weight_of(t) <= threshold]),
                ("Not recently used", [t for t in topics if t not in state.recent_topics]),
                ("Any topic", topics),
            ]
        )

        for reason, tier in tiers:
            if self._place_from_topics(builder, self.rng.shuffled(tier), True, reason):
                return True
        return False

    # ==================== Fallback ====================

    def _fill_fallback(self, builder: _BatchBuilder) -> None:
        """
        Top up a short batch.

        Unseen items under progressively relaxed diversity rules, then
        previously shown items as a last resort.
        """
        state = builder.state
        for level in (STRICT, WITHIN_BATCH, MINIMAL):
            for item in self.rng.shuffled(builder.available()):
                if builder.full:
                    return
                if item.id in builder.explanations:
                    continue
                if self.governor.is_topic_allowed(state, item.topic, level=level):
                    builder.place(item, False, ["Fallback: any unseen item"])

        if builder.full:
            return
        repeats = [i for i in builder.pool if i.id not in builder.explanations]
        for item in self.rng.shuffled(repeats):
            if builder.full:
                return
            if self.governor.is_topic_allowed(state, item.topic, level=MINIMAL):
                builder.place(item, False, ["Fallback: previously shown item"])
        if not builder.full:
            logger.debug("Short batch: %d/%d items", len(builder.items), builder.target)
