"""
Unit tests for the weight update engine.

Tests:
- Per-level deltas for correct / incorrect / skipped
- Clamping at the weight bounds
- Skipped-then-answered compensation
- Ledger, counters and pending marker bookkeeping
- Input immutability and validation
"""

import pytest
from datetime import timedelta

from trivia_feed.engine.weights import apply_interaction, deltas_for, skip_compensation_for
from trivia_feed.models.interaction import InteractionRecord
from trivia_feed.models.items import CandidateItem
from trivia_feed.models.user_profile import UserProfile

ITEM = CandidateItem("q1", "Science", "Physics", "Quantum")


def weights_of(profile, item=ITEM):
    return profile.item_weights(item)


class TestDeltas:
    """Test delta tables."""

    def test_deltas(self):
        assert deltas_for("correct") == (0.10, 0.15, 0.20)
        assert deltas_for("incorrect") == (0.05, 0.07, 0.10)
        assert deltas_for("skipped") == (-0.05, -0.07, -0.10)
        assert deltas_for(None) == (0.0, 0.0, 0.0)

    def test_skip_compensation(self):
        """Refund of the skip penalty plus half of it, halved again for incorrect."""
        assert skip_compensation_for(True) == pytest.approx((0.075, 0.105, 0.15))
        assert skip_compensation_for(False) == pytest.approx((0.0625, 0.0875, 0.125))


class TestApplyInteraction:
    """Test apply_interaction."""

    def test_correct_answer(self, fresh_profile, fixed_now):
        profile, change = apply_interaction(
            fresh_profile, "q1", {"was_correct": True, "time_spent_ms": 2000}, ITEM, fixed_now
        )
        assert weights_of(profile) == pytest.approx((0.6, 0.65, 0.7))
        assert change.interaction_type == "correct"
        assert change.old_weights.topic == 0.5
        assert change.deltas.branch == pytest.approx(0.2)
        assert change.skip_compensation.applied is False
        assert change.timestamp == fixed_now

    def test_incorrect_answer_still_raises_weight(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(
            fresh_profile, "q1", {"was_correct": False}, ITEM, fixed_now
        )
        assert weights_of(profile) == pytest.approx((0.55, 0.57, 0.6))

    def test_three_consecutive_skips(self, fresh_profile, fixed_now):
        """Skips walk every level down by its own delta."""
        profile = fresh_profile
        topics, subtopics, branches = [], [], []
        for i in range(3):
            item = CandidateItem(f"q{i}", "Science", "Physics", "Quantum")
            profile, _ = apply_interaction(
                profile, item.id, {"was_skipped": True}, item, fixed_now
            )
            t, s, b = weights_of(profile)
            topics.append(t)
            subtopics.append(s)
            branches.append(b)

        assert topics == pytest.approx([0.45, 0.40, 0.35])
        assert subtopics == pytest.approx([0.43, 0.36, 0.29])
        assert branches == pytest.approx([0.40, 0.30, 0.20])

    def test_skip_then_correct_beats_plain_correct(self, fresh_profile, fixed_now):
        """Answering a previously skipped question applies compensation."""
        skipped, _ = apply_interaction(
            fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now
        )
        recovered, change = apply_interaction(
            skipped, "q1", {"was_correct": True}, ITEM, fixed_now + timedelta(hours=1)
        )
        plain, _ = apply_interaction(
            fresh_profile, "q1", {"was_correct": True}, ITEM, fixed_now
        )

        assert change.skip_compensation.applied is True
        assert change.skip_compensation.topic == pytest.approx(0.075)
        assert recovered.topic_weight("Science") == pytest.approx(0.625)
        for after_skip, direct in zip(weights_of(recovered), weights_of(plain)):
            assert after_skip > direct

    def test_skip_then_incorrect_compensation(self, fresh_profile, fixed_now):
        skipped, _ = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        answered, change = apply_interaction(skipped, "q1", {"was_correct": False}, ITEM, fixed_now)
        assert change.skip_compensation.topic == pytest.approx(0.0625)
        assert answered.topic_weight("Science") == pytest.approx(0.5625)

    def test_repeated_skip_has_no_compensation(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        profile, change = apply_interaction(profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        assert change.skip_compensation.applied is False
        assert profile.topic_weight("Science") == pytest.approx(0.4)

    def test_plain_view_between_skip_and_answer_keeps_skip(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        profile, view = apply_interaction(profile, "q1", {"time_spent_ms": 300}, ITEM, fixed_now)
        assert view.deltas.to_dict() == {"topic": 0.0, "subtopic": 0.0, "branch": 0.0}
        assert profile.interactions["q1"].was_skipped is True
        assert profile.interactions["q1"].time_spent_ms == 300

        profile, change = apply_interaction(profile, "q1", {"was_correct": True}, ITEM, fixed_now)
        assert change.skip_compensation.applied is True
        assert profile.topic_weight("Science") == pytest.approx(0.625)

    def test_compensation_granted_once(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        profile, _ = apply_interaction(profile, "q1", {"was_correct": True}, ITEM, fixed_now)
        profile, change = apply_interaction(profile, "q1", {"was_correct": True}, ITEM, fixed_now)
        assert change.skip_compensation.applied is False
        assert profile.topic_weight("Science") == pytest.approx(0.725)

    def test_full_record_replaces_stored_fields(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        record = InteractionRecord("q1", time_spent_ms=2000, was_correct=False)
        profile, change = apply_interaction(profile, "q1", record, ITEM, fixed_now)
        assert change.skip_compensation.applied is True
        assert profile.interactions["q1"].was_skipped is False
        assert profile.interactions["q1"].viewed_at == fixed_now

    def test_weights_clamped_at_max(self, fresh_profile, fixed_now):
        profile = fresh_profile
        for i in range(8):
            item = CandidateItem(f"q{i}", "Science", "Physics", "Quantum")
            profile, _ = apply_interaction(profile, item.id, {"was_correct": True}, item, fixed_now)
        assert weights_of(profile) == (1.0, 1.0, 1.0)

    def test_weights_clamped_at_min(self, fresh_profile, fixed_now):
        profile = fresh_profile
        for i in range(12):
            item = CandidateItem(f"q{i}", "Science", "Physics", "Quantum")
            profile, _ = apply_interaction(profile, item.id, {"was_skipped": True}, item, fixed_now)
        assert weights_of(profile) == (0.1, 0.1, 0.1)

    def test_input_profile_untouched(self, fresh_profile, fixed_now):
        before = fresh_profile.to_dict()
        apply_interaction(fresh_profile, "q1", {"was_correct": True}, ITEM, fixed_now)
        assert fresh_profile.to_dict() == before

    def test_ledger_and_counters(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(
            fresh_profile, "q1", {"was_skipped": True, "time_spent_ms": 800}, ITEM, fixed_now
        )
        assert profile.total_questions_answered == 0
        assert profile.interactions["q1"].was_skipped is True
        assert profile.interactions["q1"].viewed_at == fixed_now
        assert profile.last_question_answered.skipped is True
        assert profile.last_question_answered.correct is None

        profile, _ = apply_interaction(
            profile, "q1", {"was_correct": True, "time_spent_ms": 4000}, ITEM, fixed_now
        )
        record = profile.interactions["q1"]
        assert profile.total_questions_answered == 1
        assert record.was_correct is True
        assert record.was_skipped is True
        assert record.interaction_type == "correct"
        assert record.time_spent_ms == 4000
        assert profile.last_question_answered.correct is True
        assert profile.last_question_answered.topic == "Science"

    def test_last_viewed_stamped_on_path(self, fresh_profile, fixed_now):
        profile, _ = apply_interaction(fresh_profile, "q1", {"was_correct": True}, ITEM, fixed_now)
        topic = profile.topics["Science"]
        assert topic.last_viewed == fixed_now
        assert topic.subtopics["Physics"].last_viewed == fixed_now
        assert topic.subtopics["Physics"].branches["Quantum"].last_viewed == fixed_now

    def test_plain_view_only_records(self, fresh_profile, fixed_now):
        profile, change = apply_interaction(fresh_profile, "q1", {"time_spent_ms": 100}, ITEM, fixed_now)
        assert change.interaction_type is None
        assert weights_of(profile) == (0.5, 0.5, 0.5)
        assert profile.last_question_answered is None
        assert "q1" in profile.interactions

    def test_accepts_dict_item_and_record(self, fresh_profile, fixed_now):
        profile, change = apply_interaction(
            fresh_profile,
            "q9",
            InteractionRecord("q9", was_correct=True),
            {"id": "q9", "category": "Art", "tags": ["Painting", "Cubism"]},
            fixed_now,
        )
        assert change.topic == "Arts"
        assert profile.knows_branch("Arts", "Painting", "Cubism")

    def test_mismatched_item_raises(self, fresh_profile):
        with pytest.raises(ValueError):
            apply_interaction(fresh_profile, "q2", {"was_correct": True}, ITEM)

    def test_mismatched_record_raises(self, fresh_profile):
        with pytest.raises(ValueError):
            apply_interaction(fresh_profile, "q1", InteractionRecord("q2", was_correct=True), ITEM)

    def test_negative_time_raises(self, fresh_profile):
        with pytest.raises(ValueError):
            apply_interaction(fresh_profile, "q1", {"time_spent_ms": -5}, ITEM)

    def test_change_to_dict(self, fresh_profile, fixed_now):
        _, change = apply_interaction(fresh_profile, "q1", {"was_skipped": True}, ITEM, fixed_now)
        data = change.to_dict()
        assert data["interaction_type"] == "skipped"
        assert data["new_weights"]["branch"] == pytest.approx(0.4)
        assert data["timestamp"] == fixed_now.isoformat()

    def test_default_profile_type(self):
        profile, _ = apply_interaction(UserProfile(), "q1", {"was_correct": True}, ITEM)
        assert isinstance(profile, UserProfile)
