"""
Cold-Start State: bookkeeping for a user's first ~20 questions.

The state lives inside the profile in serialized form (plain JSON: sets become
sorted lists and maps become lists of [key, value] entries) and is rebuilt at
the top of every cold-start selection call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from trivia_feed.config import config
from trivia_feed.models.items import CandidateItem
from trivia_feed.models.user_profile import UserProfile, clamp_weight

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    EXPLORATION = "exploration"
    BRANCHING = "branching"
    NORMAL = "normal"


def phase_for(questions_shown: int) -> Phase:
    """
    Phase for a given number of questions already shown.

    Exploration for 0-4, Branching for 5-19, Normal from 20 on.
    """
    if questions_shown < config.cold_start.exploration_until:
        return Phase.EXPLORATION
    if questions_shown < config.cold_start.branching_until:
        return Phase.BRANCHING
    return Phase.NORMAL


@dataclass
class ColdStartState:
    """
    In-session selection state for the cold-start policy.

    Attributes:
        phase: Current phase (derived from questions_shown)
        questions_shown: Items handed out so far
        topics_shown: Topics the user has seen (and not only skipped)
        shown_question_ids: Every question id handed out
        subtopics_shown: Subtopics seen per topic
        recent_topics: Last few distinct topics, most recent first
        correct_by_topic: Correct answers per topic
        incorrect_by_topic: Incorrect answers per topic
        skipped_by_topic: Skips per topic
        previously_interested_topics: Topics the user answered in earlier batches
        exploration_question_ids: Ids handed out as exploration picks
        topic_weights: In-session weight snapshot per topic
        topic_count_in_batch: Per-batch occurrence counts (diversity)
        last_selected_topics: Ring buffer of recent picks, most recent first
    """

    phase: Phase = Phase.EXPLORATION
    questions_shown: int = 0
    topics_shown: set[str] = field(default_factory=set)
    shown_question_ids: set[str] = field(default_factory=set)
    subtopics_shown: dict[str, set[str]] = field(default_factory=dict)
    recent_topics: list[str] = field(default_factory=list)
    correct_by_topic: dict[str, int] = field(default_factory=dict)
    incorrect_by_topic: dict[str, int] = field(default_factory=dict)
    skipped_by_topic: dict[str, int] = field(default_factory=dict)
    previously_interested_topics: set[str] = field(default_factory=set)
    exploration_question_ids: set[str] = field(default_factory=set)
    topic_weights: dict[str, float] = field(default_factory=dict)
    topic_count_in_batch: dict[str, int] = field(default_factory=dict)
    last_selected_topics: list[str] = field(default_factory=list)

    # ==================== Queries ====================

    def answered_topics(self) -> set[str]:
        """Topics with at least one correct or incorrect answer."""
        return {
            t
            for t in set(self.correct_by_topic) | set(self.incorrect_by_topic)
            if self.correct_by_topic.get(t, 0) + self.incorrect_by_topic.get(t, 0) > 0
        }

    def skipped_only_topics(self) -> set[str]:
        return {
            t for t, n in self.skipped_by_topic.items() if n > 0
        } - self.answered_topics()

    def weight_of(self, topic: str) -> float:
        return self.topic_weights.get(topic, config.weights.default_weight)

    def times_recent(self, topic: str) -> int:
        """Occurrences of a topic in the ring buffer."""
        return self.last_selected_topics.count(topic)

    def remember_topic(self, topic: str) -> None:
        """Push a topic onto the bounded recent-topics list (distinct, most recent first)."""
        if topic in self.recent_topics:
            self.recent_topics.remove(topic)
        self.recent_topics.insert(0, topic)
        del self.recent_topics[config.cold_start.recent_topics_size:]

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON form: sets -> sorted lists, maps -> [key, value] entries."""
        return {
            "phase": self.phase.value,
            "questions_shown": self.questions_shown,
            "topics_shown": sorted(self.topics_shown),
            "shown_question_ids": sorted(self.shown_question_ids),
            "subtopics_shown": [
                [topic, sorted(subs)] for topic, subs in sorted(self.subtopics_shown.items())
            ],
            "recent_topics": list(self.recent_topics),
            "correct_by_topic": _entries(self.correct_by_topic),
            "incorrect_by_topic": _entries(self.incorrect_by_topic),
            "skipped_by_topic": _entries(self.skipped_by_topic),
            "previously_interested_topics": sorted(self.previously_interested_topics),
            "exploration_question_ids": sorted(self.exploration_question_ids),
            "topic_weights": _entries(self.topic_weights),
            "topic_count_in_batch": _entries(self.topic_count_in_batch),
            "last_selected_topics": list(self.last_selected_topics),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> ColdStartState:
        """
        Rebuild state from its serialized form.

        Corrupt or missing fields recover individually to fresh defaults;
        the rest of the state is kept.
        """
        state = cls()
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Discarding corrupt cold-start state of type %s", type(data).__name__)
            return state

        def load(name: str, parse: Callable[[Any], Any]) -> None:
            if name not in data:
                return
            try:
                setattr(state, name, parse(data[name]))
            except (TypeError, ValueError, KeyError) as e:
                logger.warning("Resetting corrupt cold-start field %r: %s", name, e)

        load("questions_shown", _non_negative_int)
        load("topics_shown", _str_set)
        load("shown_question_ids", _str_set)
        load("subtopics_shown", lambda v: {str(k): _str_set(s) for k, s in _pairs(v)})
        load("recent_topics", lambda v: _str_list(v)[: config.cold_start.recent_topics_size])
        load("correct_by_topic", _count_map)
        load("incorrect_by_topic", _count_map)
        load("skipped_by_topic", _count_map)
        load("previously_interested_topics", _str_set)
        load("exploration_question_ids", _str_set)
        load("topic_weights", _weight_map)
        load("topic_count_in_batch", _count_map)
        load("last_selected_topics", _str_list)

        # Phase is derived, a stored value is only a cache
        state.phase = phase_for(state.questions_shown)
        stored = data.get("phase")
        if stored is not None and stored != state.phase.value:
            logger.debug(
                "Stored phase %r disagrees with questions_shown=%d, using %s",
                stored,
                state.questions_shown,
                state.phase.value,
            )
        return state

    # ==================== Reconstruction ====================

    @classmethod
    def reconstruct(
        cls, profile: UserProfile, pool: Iterable[CandidateItem]
    ) -> ColdStartState:
        """
        Rebuild state from the interaction ledger when no serialized state exists.

        Only interactions whose question is in the pool can be attributed to a
        topic. Answered topics count as shown; skipped-only topics do not.
        """
        by_id = {item.id: item for item in pool}
        state = cls(questions_shown=len(profile.interactions))
        state.phase = phase_for(state.questions_shown)

        for question_id, record in profile.interactions.items():
            item = by_id.get(question_id)
            if item is None:
                logger.debug("Interaction %s not in pool, not attributed", question_id)
                continue
            topic = item.topic
            state.shown_question_ids.add(question_id)
            if topic not in state.recent_topics:
                state.remember_topic(topic)

            if record.was_correct is True:
                _bump(state.correct_by_topic, topic)
            elif record.was_correct is False:
                _bump(state.incorrect_by_topic, topic)
            elif record.was_skipped:
                _bump(state.skipped_by_topic, topic)
                continue
            else:
                continue
            state.topics_shown.add(topic)
            state.subtopics_shown.setdefault(topic, set()).add(item.subtopic)

        state.previously_interested_topics = state.answered_topics()
        logger.info(
            "Reconstructed cold-start state: phase=%s shown=%d answered_topics=%d",
            state.phase.value,
            state.questions_shown,
            len(state.previously_interested_topics),
        )
        return state


def _bump(counter: dict[str, int], key: str, by: int = 1) -> None:
    counter[key] = counter.get(key, 0) + by


def _entries(mapping: dict) -> list[list]:
    return [[k, v] for k, v in sorted(mapping.items())]


def _pairs(value: Any) -> list[tuple]:
    """Accept [[k, v], ...] entries or a plain mapping."""
    if isinstance(value, dict):
        return list(value.items())
    if not isinstance(value, list):
        raise TypeError(f"expected entries list, got {type(value).__name__}")
    pairs = []
    for entry in value:
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            raise ValueError(f"malformed entry {entry!r}")
        pairs.append((entry[0], entry[1]))
    return pairs


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"expected list, got {type(value).__name__}")
    return [str(v) for v in value]


def _str_set(value: Any) -> set[str]:
    return set(_str_list(value))


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("expected int, got bool")
    number = int(value)
    if number < 0:
        raise ValueError(f"expected >= 0, got {number}")
    return number


def _count_map(value: Any) -> dict[str, int]:
    return {str(k): _non_negative_int(v) for k, v in _pairs(value)}


def _weight_map(value: Any) -> dict[str, float]:
    return {str(k): clamp_weight(float(v)) for k, v in _pairs(value)}
