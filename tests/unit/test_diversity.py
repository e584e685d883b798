"""
Unit tests for the diversity governor.

Tests:
- Consecutive-repeat rule (every strictness level)
- Branching recent-window rule and its within-batch relaxation
- Normal-phase over-representation rule
- Ring buffer bookkeeping
"""

import pytest

from trivia_feed.engine.diversity import MINIMAL, STRICT, WITHIN_BATCH, DiversityGovernor
from trivia_feed.models.cold_start_state import ColdStartState, Phase


@pytest.fixture
def governor():
    return DiversityGovernor()


class TestConsecutiveRule:
    """No topic may follow itself more than twice."""

    @pytest.mark.parametrize("level", [STRICT, WITHIN_BATCH, MINIMAL])
    def test_third_in_a_row_rejected(self, governor, level):
        state = ColdStartState(phase=Phase.NORMAL, last_selected_topics=["Science", "Science"])
        assert not governor.is_topic_allowed(state, "Science", level=level)

    def test_second_in_a_row_allowed(self, governor):
        state = ColdStartState(phase=Phase.NORMAL, last_selected_topics=["Science", "Music"])
        assert governor.is_topic_allowed(state, "Science")

    def test_reason_message(self, governor):
        state = ColdStartState(last_selected_topics=["Arts", "Arts"])
        assert "in a row" in governor.rejection_reason(state, "Arts")


class TestBranchingWindow:
    """Branching phase keeps recent topics out."""

    def test_recent_topic_rejected(self, governor):
        state = ColdStartState(phase=Phase.BRANCHING, last_selected_topics=["Music", "Science"])
        assert not governor.is_topic_allowed(state, "Science")
        assert governor.is_topic_allowed(state, "Arts")

    def test_recent_window_limited_to_governor_size(self, governor):
        state = ColdStartState(phase=Phase.BRANCHING, last_selected_topics=list("ABCDEF"))
        assert not governor.is_topic_allowed(state, "D")
        assert governor.is_topic_allowed(state, "E")

    def test_within_batch_ignores_previous_batches(self, governor):
        state = ColdStartState(phase=Phase.BRANCHING, last_selected_topics=["Music", "Science"])
        governor.start_batch(state)
        assert governor.is_topic_allowed(state, "Science", level=WITHIN_BATCH)

    def test_within_batch_still_blocks_batch_picks(self, governor):
        state = ColdStartState(phase=Phase.BRANCHING, last_selected_topics=["Music", "Science"])
        governor.start_batch(state)
        governor.record_selection(state, "Arts")
        assert not governor.is_topic_allowed(state, "Arts", level=WITHIN_BATCH)
        assert governor.is_topic_allowed(state, "Music", level=WITHIN_BATCH)

    def test_minimal_ignores_window(self, governor):
        state = ColdStartState(phase=Phase.BRANCHING, last_selected_topics=["Music", "Science"])
        assert governor.is_topic_allowed(state, "Science", level=MINIMAL)

    def test_window_not_applied_outside_branching(self, governor):
        state = ColdStartState(phase=Phase.EXPLORATION, last_selected_topics=["Music", "Science"])
        assert governor.is_topic_allowed(state, "Science")


class TestOverrepresentation:
    """Normal phase caps a topic at twice its fair share."""

    def test_below_min_items_allowed(self, governor):
        state = ColdStartState(phase=Phase.NORMAL, topic_count_in_batch={"Science": 3})
        assert governor.is_topic_allowed(state, "Science")

    def test_over_share_rejected(self, governor):
        state = ColdStartState(
            phase=Phase.NORMAL,
            topic_count_in_batch={"Science": 5, "Music": 1, "Arts": 1},
        )
        reason = governor.rejection_reason(state, "Science")
        assert reason is not None
        assert "over-represented" in reason
        assert governor.is_topic_allowed(state, "Music")

    def test_at_share_allowed(self, governor):
        state = ColdStartState(
            phase=Phase.NORMAL,
            topic_count_in_batch={"Science": 4, "Music": 1, "Arts": 1},
        )
        assert governor.is_topic_allowed(state, "Science")

    def test_minimal_skips_share_rule(self, governor):
        state = ColdStartState(
            phase=Phase.NORMAL,
            topic_count_in_batch={"Science": 5, "Music": 1, "Arts": 1},
        )
        assert governor.is_topic_allowed(state, "Science", level=MINIMAL)


class TestRecordSelection:
    """Test ring buffer and batch counts."""

    def test_ring_buffer_bounded(self, governor):
        state = ColdStartState()
        for topic in ["A", "B", "C", "D", "E", "F"]:
            governor.record_selection(state, topic)
        assert state.last_selected_topics == ["F", "E", "D", "C"]
        assert state.recent_topics == ["F", "E", "D", "C", "B"]

    def test_batch_counts_reset(self, governor):
        state = ColdStartState()
        governor.record_selection(state, "Music")
        governor.record_selection(state, "Music")
        assert state.topic_count_in_batch == {"Music": 2}
        governor.start_batch(state)
        assert state.topic_count_in_batch == {}
        assert state.last_selected_topics == ["Music", "Music"]

    def test_oversized_loaded_buffer_trimmed_on_record(self, governor):
        state = ColdStartState(last_selected_topics=list("ABCDEF"))
        governor.record_selection(state, "G")
        assert state.last_selected_topics == ["G", "A", "B", "C"]

    @pytest.mark.parametrize("max_consecutive", [0, -1])
    def test_invalid_max_consecutive(self, max_consecutive):
        with pytest.raises(ValueError):
            DiversityGovernor(max_consecutive=max_consecutive)
