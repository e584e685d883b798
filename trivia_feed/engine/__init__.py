"""
Selection engine.

This module contains the personalization pipeline:
- weights: Apply one interaction to the preference tree
- decay: Time-based relaxation of idle weights
- scoring: Per-item score with explanations, plus a score cache
- diversity: Topic repetition and over-representation rules
- cold_start: Exploration / Branching / Normal phase policy
- feed_selector: Batch orchestration
"""

from .cold_start import ColdStartPolicy, ColdStartResult
from .decay import decay
from .diversity import DiversityGovernor
from .feed_selector import FeedBatch, FeedSelector
from .random_source import RandomSource
from .scoring import ScoreCache, profile_fingerprint, score_item
from .weights import apply_interaction

__all__ = [
    "apply_interaction",
    "decay",
    "score_item",
    "ScoreCache",
    "profile_fingerprint",
    "DiversityGovernor",
    "ColdStartPolicy",
    "ColdStartResult",
    "FeedSelector",
    "FeedBatch",
    "RandomSource",
]
