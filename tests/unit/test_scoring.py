"""
Unit tests for item scoring and the score cache.

Tests:
- Novelty bonus for unseen items
- Accuracy, time, skip and cooldown components for seen items
- Cooldown cap
- Cache keyed by profile fingerprint
"""

import pytest
from datetime import timedelta

from trivia_feed.engine.scoring import ScoreCache, profile_fingerprint, score_item
from trivia_feed.models.interaction import InteractionRecord
from trivia_feed.models.items import CandidateItem

ITEM = CandidateItem("q1", "Science", "Physics", "Quantum")


class TestScoreItem:
    """Test score_item()."""

    def test_unseen_item(self, fresh_profile, fixed_now):
        score, lines = score_item(ITEM, fresh_profile, fixed_now)
        assert score == pytest.approx(0.5 * 0.30 + 0.15)
        assert any("Novelty" in line for line in lines)

    def test_affinity_uses_all_levels(self, fresh_profile, fixed_now):
        topic, sub, branch = fresh_profile.ensure_path(*ITEM.path)
        topic.set_weight(1.0)
        sub.set_weight(0.7)
        branch.set_weight(0.4)
        score, _ = score_item(ITEM, fresh_profile, fixed_now)
        assert score == pytest.approx(0.7 * 0.30 + 0.15)

    def test_fast_correct_answer(self, fresh_profile, fixed_now):
        fresh_profile.interactions["q1"] = InteractionRecord(
            "q1", time_spent_ms=2000, was_correct=True, viewed_at=fixed_now - timedelta(days=2)
        )
        score, lines = score_item(ITEM, fresh_profile, fixed_now)
        assert score == pytest.approx(0.15 + 0.25 + 0.15 + 0.2)
        assert not any("Novelty" in line for line in lines)

    def test_slow_skip_with_capped_cooldown(self, fresh_profile, fixed_now):
        fresh_profile.interactions["q1"] = InteractionRecord(
            "q1", time_spent_ms=20000, was_skipped=True, viewed_at=fixed_now - timedelta(days=30)
        )
        score, lines = score_item(ITEM, fresh_profile, fixed_now)
        assert score == pytest.approx(0.15 - 0.15 - 0.20 + 0.5)
        assert any("Skip penalty" in line for line in lines)

    def test_incorrect_medium_time(self, fresh_profile, fixed_now):
        fresh_profile.interactions["q1"] = InteractionRecord(
            "q1", time_spent_ms=8000, was_correct=False, viewed_at=fixed_now
        )
        score, _ = score_item(ITEM, fresh_profile, fixed_now)
        assert score == pytest.approx(0.15 - 0.25)

    def test_deterministic(self, fresh_profile, fixed_now):
        assert score_item(ITEM, fresh_profile, fixed_now) == score_item(
            ITEM, fresh_profile, fixed_now
        )


class TestScoreCache:
    """Test ScoreCache."""

    def test_hit_on_same_profile(self, fresh_profile, fixed_now):
        cache = ScoreCache(fixed_now)
        first = cache.score(ITEM, fresh_profile)
        second = cache.score(ITEM, fresh_profile)
        assert first == second
        assert (cache.hits, cache.misses) == (1, 1)
        assert len(cache) == 1

    def test_changed_profile_misses(self, fresh_profile, fixed_now):
        cache = ScoreCache(fixed_now)
        before, _ = cache.score(ITEM, fresh_profile)
        fresh_profile.ensure_path(*ITEM.path)[0].set_weight(1.0)
        after, _ = cache.score(ITEM, fresh_profile)
        assert cache.misses == 2
        assert after > before

    def test_precomputed_fingerprint(self, fresh_profile, fixed_now):
        cache = ScoreCache(fixed_now)
        fingerprint = profile_fingerprint(fresh_profile)
        cache.score(ITEM, fresh_profile, fingerprint)
        cache.score(ITEM, fresh_profile)
        assert cache.hits == 1

    def test_cached_explanations_are_copies(self, fresh_profile, fixed_now):
        cache = ScoreCache(fixed_now)
        _, lines = cache.score(ITEM, fresh_profile)
        lines.append("mutated")
        _, again = cache.score(ITEM, fresh_profile)
        assert "mutated" not in again

    def test_clear(self, fresh_profile, fixed_now):
        cache = ScoreCache(fixed_now)
        cache.score(ITEM, fresh_profile)
        cache.clear()
        assert len(cache) == 0
        assert cache.hits == cache.misses == 0

    def test_fingerprint_stable(self, fresh_profile):
        assert profile_fingerprint(fresh_profile) == profile_fingerprint(fresh_profile.copy())
