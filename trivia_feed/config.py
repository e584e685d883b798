"""
Configuration management for the trivia feed engine.

This module centralizes all tunable settings of the selection engine:
- Weight deltas and bounds for the preference tree
- Scoring coefficients and time thresholds
- Cold-start phase boundaries and batch shapes
- Diversity limits
- Logging and reproducibility settings loaded from environment variables
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Load environment variables from .env file
try:
    from dotenv import load_dotenv

    load_dotenv()
except ImportError:
    pass  # dotenv is optional


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@dataclass
class WeightConfig:
    """Preference tree bounds and per-interaction weight deltas."""

    min_weight: float = 0.1
    max_weight: float = 1.0
    default_weight: float = 0.5

    # (topic, subtopic, branch)
    correct_deltas: tuple = (0.10, 0.15, 0.20)
    incorrect_deltas: tuple = (0.05, 0.07, 0.10)
    skip_deltas: tuple = (-0.05, -0.07, -0.10)

    # Skipped-then-answered compensation: refund + bonus * outcome scale
    skip_compensation_bonus: float = 0.5
    correct_outcome_scale: float = 1.0
    incorrect_outcome_scale: float = 0.5

    # Decay (per day) and minimum idle time before a node decays
    decay_per_day: float = 0.05
    decay_idle_days: float = 1.0


@dataclass
class ScoringConfig:
    """Coefficients for the question scoring function."""

    topic_affinity: float = 0.30
    accuracy: float = 0.25
    time_spent: float = 0.15
    skip_penalty: float = -0.20
    novelty: float = 0.15
    cooldown_per_day: float = 0.10
    cooldown_cap: float = 0.5

    # Time thresholds (ms)
    fast_answer_ms: int = 3000
    slow_answer_ms: int = 15000


@dataclass
class ColdStartConfig:
    """Cold-start phase boundaries and per-phase batch shapes."""

    exploration_until: int = 5  # questions shown before branching starts
    branching_until: int = 20  # questions shown before normal starts
    completion_threshold: int = 20

    exploration_batch_size: int = 5
    branching_preferred: int = 2
    branching_exploration: int = 2
    normal_preferred_share: float = 0.7

    preferred_threshold: float = 0.5
    recent_use_penalty: float = 0.3
    exploration_engagement_nudge: float = -0.02

    # First N questions are restricted to these difficulties
    easy_questions_until: int = 10
    easy_difficulties: tuple = ("easy", "medium")

    recent_topics_size: int = 5


@dataclass
class DiversityConfig:
    """Topic diversity limits applied while building a batch."""

    max_consecutive_topic: int = 2
    overrepresentation_factor: int = 2
    overrepresentation_min_items: int = 4


@dataclass
class FeedConfig:
    """Steady-state feed selection settings."""

    batch_size: int = field(
        default_factory=lambda: _env_int("TRIVIA_FEED_BATCH_SIZE") or 20
    )
    known_share: float = 0.7
    topic_cap_share: float = 0.3
    min_topic_cap: int = 2

    # Reproducibility
    random_seed: Optional[int] = field(
        default_factory=lambda: _env_int("TRIVIA_FEED_SEED")
    )


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    package_root: Path = field(default_factory=lambda: Path(__file__).parent)

    schemas_dir: Path = field(init=False)
    user_profile_schema: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.schemas_dir = self.package_root / "schemas"
        self.user_profile_schema = self.schemas_dir / "user_profile.schema.json"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = field(
        default_factory=lambda: os.getenv("TRIVIA_FEED_LOG_LEVEL", "INFO")
    )
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from trivia_feed.config import config

        # Access settings
        delta = config.weights.correct_deltas
        seed = config.feed.random_seed

        # Pin randomness for a reproducible session
        config.feed.random_seed = 42
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.weights = WeightConfig()
            cls._instance.scoring = ScoringConfig()
            cls._instance.cold_start = ColdStartConfig()
            cls._instance.diversity = DiversityConfig()
            cls._instance.feed = FeedConfig()
            cls._instance.logging = LoggingConfig()

        return cls._instance

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        # Weight validation
        w = self.weights
        if not (0 < w.min_weight < w.max_weight <= 1.0):
            errors.append(
                f"weights must satisfy 0 < min_weight < max_weight <= 1, got "
                f"[{w.min_weight}, {w.max_weight}]"
            )

        if not (w.min_weight <= w.default_weight <= w.max_weight):
            errors.append(
                f"default_weight must be in [{w.min_weight}, {w.max_weight}], got {w.default_weight}"
            )

        for name in ("correct_deltas", "incorrect_deltas", "skip_deltas"):
            if len(getattr(w, name)) != 3:
                errors.append(f"{name} must have exactly 3 entries (topic, subtopic, branch)")

        if any(d > 0 for d in w.skip_deltas):
            errors.append(f"skip_deltas must be <= 0, got {w.skip_deltas}")

        if w.decay_per_day < 0:
            errors.append(f"decay_per_day must be >= 0, got {w.decay_per_day}")

        # Scoring validation
        if self.scoring.fast_answer_ms >= self.scoring.slow_answer_ms:
            errors.append(
                f"fast_answer_ms ({self.scoring.fast_answer_ms}) must be < "
                f"slow_answer_ms ({self.scoring.slow_answer_ms})"
            )

        if self.scoring.cooldown_cap < 0:
            errors.append(f"cooldown_cap must be >= 0, got {self.scoring.cooldown_cap}")

        # Cold start validation
        cs = self.cold_start
        if not (0 < cs.exploration_until < cs.branching_until):
            errors.append(
                f"cold start boundaries must satisfy 0 < exploration_until < branching_until, "
                f"got {cs.exploration_until}/{cs.branching_until}"
            )

        if not (0 < cs.normal_preferred_share <= 1):
            errors.append(
                f"normal_preferred_share must be in (0, 1], got {cs.normal_preferred_share}"
            )

        # Diversity validation
        if self.diversity.max_consecutive_topic < 1:
            errors.append(
                f"max_consecutive_topic must be >= 1, got {self.diversity.max_consecutive_topic}"
            )

        # Feed validation
        if self.feed.batch_size < 1:
            errors.append(f"batch_size must be >= 1, got {self.feed.batch_size}")

        if not (0 < self.feed.known_share <= 1):
            errors.append(f"known_share must be in (0, 1], got {self.feed.known_share}")

        if not isinstance(logging.getLevelName(self.logging.log_level.upper()), int):
            errors.append(f"Unknown log level: {self.logging.log_level}")

        # Path validation
        if not self.paths.user_profile_schema.exists():
            errors.append(
                f"User profile schema not found: {self.paths.user_profile_schema}"
            )

        return errors


# Global config instance
config = Config()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LoggingConfig (call once from an entrypoint)."""
    logging.basicConfig(
        level=(level or config.logging.log_level).upper(),
        format=config.logging.log_format,
    )
