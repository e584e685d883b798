"""
Shared pytest fixtures and configuration for trivia feed tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import pytest
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add the repository root to path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent))

from trivia_feed.engine.random_source import RandomSource
from trivia_feed.models.items import CandidateItem
from trivia_feed.models.user_profile import UserProfile
from trivia_feed.topics import INITIAL_EXPLORATION_TOPICS


def build_item(item_id, topic, subtopic="General", branch="General", difficulty="easy"):
    """Shorthand CandidateItem constructor for tests."""
    return CandidateItem(
        id=item_id,
        topic=topic,
        subtopic=subtopic,
        branch=branch,
        difficulty=difficulty,
    )


def build_pool(topic_counts, difficulty="easy"):
    """
    Pool with `count` items per topic, each in its own subtopic.

    Args:
        topic_counts: Dict mapping topic -> number of items
    """
    pool = []
    for topic, count in topic_counts.items():
        slug = topic.lower().replace(" ", "-")
        for i in range(count):
            pool.append(
                build_item(
                    f"{slug}-{i}",
                    topic,
                    subtopic=f"{topic} Sub {i % 3}",
                    branch=f"{topic} Branch {i}",
                    difficulty=difficulty,
                )
            )
    return pool


@pytest.fixture
def fixed_now():
    """A fixed UTC clock value."""
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def rng():
    """Seeded random source for reproducible selection."""
    return RandomSource(seed=1234)


@pytest.fixture
def fresh_profile():
    """Brand new user: no weights, no interactions."""
    return UserProfile()


@pytest.fixture
def exploration_pool():
    """Three items for every initial exploration topic."""
    return build_pool({topic: 3 for topic in INITIAL_EXPLORATION_TOPICS})


@pytest.fixture
def catalog_pool():
    """Initial topics plus a few others, six items each."""
    topics = list(INITIAL_EXPLORATION_TOPICS) + ["History", "Sports", "Food and Drink"]
    return build_pool({topic: 6 for topic in topics})


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark tests in unit/ directory as unit tests
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Mark tests in integration/ directory as integration tests
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
