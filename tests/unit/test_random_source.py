"""
Unit tests for the injectable random source.
"""

import pytest

from trivia_feed.engine.random_source import RandomSource


class TestRandomSource:
    """Test RandomSource."""

    def test_seed_reproducible(self):
        a, b = RandomSource(seed=5), RandomSource(seed=5)
        values = list(range(10))
        assert a.shuffled(values) == b.shuffled(values)
        assert a.random() == b.random()

    def test_shuffled_is_permutation(self, rng):
        values = ["a", "b", "c", "d"]
        result = rng.shuffled(values)
        assert sorted(result) == values
        assert values == ["a", "b", "c", "d"]

    def test_choice(self, rng):
        assert rng.choice(["only"]) == "only"
        with pytest.raises(ValueError):
            rng.choice([])

    def test_weighted_choice_zero_weight_never_picked(self, rng):
        picks = {rng.weighted_choice(["x", "y"], [1.0, 0.0]) for _ in range(50)}
        assert picks == {"x"}

    def test_weighted_choice_all_zero_is_uniform(self, rng):
        picks = {rng.weighted_choice(["x", "y", "z"], [0.0, 0.0, 0.0]) for _ in range(100)}
        assert picks <= {"x", "y", "z"}
        assert len(picks) > 1

    def test_weighted_choice_errors(self, rng):
        with pytest.raises(ValueError):
            rng.weighted_choice([], [])
        with pytest.raises(ValueError):
            rng.weighted_choice(["x"], [0.5, 0.5])

    def test_random_range(self, rng):
        assert all(0.0 <= rng.random() < 1.0 for _ in range(20))
