"""
Diversity Governor: keeps a batch from repeating or drowning in one topic.

Rules, checked in order (the first failure rejects the topic):
1. No topic may follow itself more than `max_consecutive` times in a row.
2. Branching phase: no topic may reappear while still in the recent window.
3. Normal phase: once enough items are placed, no topic may exceed twice its
   fair share (1 / distinct topics placed so far) of the batch.
"""

from __future__ import annotations

import logging
from typing import Optional

from trivia_feed.config import config
from trivia_feed.models.cold_start_state import ColdStartState, Phase

logger = logging.getLogger(__name__)

# Rule strictness levels
STRICT = "strict"
WITHIN_BATCH = "within_batch"
MINIMAL = "minimal"


class DiversityGovernor:
    """
    Stateless rule checker over a ColdStartState.

    The state carries the ring buffer of recent picks (most recent first,
    2 x max_consecutive long) and the per-batch occurrence counts.
    """

    def __init__(self, max_consecutive: Optional[int] = None):
        if max_consecutive is None:
            max_consecutive = config.diversity.max_consecutive_topic
        self.max_consecutive = max_consecutive
        if self.max_consecutive < 1:
            raise ValueError(f"max_consecutive must be >= 1, got {self.max_consecutive}")
        self.window_size = 2 * self.max_consecutive
        self.share_factor = config.diversity.overrepresentation_factor
        self.share_min_items = config.diversity.overrepresentation_min_items

    def start_batch(self, state: ColdStartState) -> None:
        """Reset per-batch counts (the ring buffer carries over)."""
        state.topic_count_in_batch = {}

    def rejection_reason(
        self, state: ColdStartState, topic: str, level: str = STRICT
    ) -> Optional[str]:
        """
        Why a topic may not be placed next, or None if it may.

        Args:
            state: Cold-start state holding ring buffer and batch counts
            topic: Candidate topic
            level: STRICT applies every rule; WITHIN_BATCH limits the recent
                window to picks of the current batch; MINIMAL only forbids
                consecutive repeats (last-resort fills)
        """
        recent = state.last_selected_topics[: self.max_consecutive]
        if len(recent) == self.max_consecutive and all(t == topic for t in recent):
            return f"{topic} already picked {self.max_consecutive} times in a row"

        if level == MINIMAL:
            return None

        if state.phase == Phase.BRANCHING:
            window = state.last_selected_topics[: self.window_size]
            if level == WITHIN_BATCH:
                window = window[: sum(state.topic_count_in_batch.values())]
            if topic in window:
                return f"{topic} is in the recent window"

        if state.phase == Phase.NORMAL:
            counts = state.topic_count_in_batch
            total = sum(counts.values())
            if total >= self.share_min_items:
                count = counts.get(topic, 0)
                distinct = sum(1 for c in counts.values() if c > 0)
                if count * distinct > self.share_factor * total:
                    return f"{topic} over-represented ({count}/{total} across {distinct} topics)"

        return None

    def is_topic_allowed(
        self, state: ColdStartState, topic: str, level: str = STRICT
    ) -> bool:
        reason = self.rejection_reason(state, topic, level=level)
        if reason:
            logger.debug("Diversity rejected %s", reason)
        return reason is None

    def record_selection(self, state: ColdStartState, topic: str) -> None:
        """Register a placed topic in the ring buffer, batch counts and recent topics."""
        state.last_selected_topics.insert(0, topic)
        del state.last_selected_topics[self.window_size:]
        state.topic_count_in_batch[topic] = state.topic_count_in_batch.get(topic, 0) + 1
        state.remember_topic(topic)
