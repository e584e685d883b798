"""
Data models for the trivia feed engine.

This module contains core data models:
- CandidateItem: Immutable catalog item (topic -> subtopic -> branch)
- InteractionRecord / LastAnswered / WeightChange: Interaction ledger and observability
- UserProfile: Preference tree aggregate with serialization
- ColdStartState: Persisted cold-start bookkeeping
"""

from .cold_start_state import ColdStartState, Phase, phase_for
from .interaction import (
    InteractionRecord,
    LastAnswered,
    LevelWeights,
    SkipCompensation,
    WeightChange,
)
from .items import CandidateItem, coerce_items, unique_items
from .user_profile import (
    BranchNode,
    SubtopicNode,
    TopicNode,
    UserProfile,
    clamp_weight,
)

__all__ = [
    "CandidateItem",
    "coerce_items",
    "unique_items",
    "InteractionRecord",
    "LastAnswered",
    "LevelWeights",
    "SkipCompensation",
    "WeightChange",
    "BranchNode",
    "SubtopicNode",
    "TopicNode",
    "UserProfile",
    "clamp_weight",
    "ColdStartState",
    "Phase",
    "phase_for",
]
