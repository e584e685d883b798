"""
Interaction records and weight-change observability records.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Literal, Optional

from trivia_feed.utils.timestamps import from_iso, to_iso

InteractionType = Literal["correct", "incorrect", "skipped"]

# Event fields folded into a stored record
MERGE_FIELDS = ("time_spent_ms", "was_correct", "was_skipped", "viewed_at")


@dataclass
class InteractionRecord:
    """
    Latest interaction of a user with one question.

    Attributes:
        question_id: Question identifier
        time_spent_ms: Time spent on the question in milliseconds
        was_correct: True/False once answered, None when not graded
        was_skipped: Whether the user skipped the question
        viewed_at: When the interaction happened (UTC)
    """

    question_id: str
    time_spent_ms: int = 0
    was_correct: Optional[bool] = None
    was_skipped: bool = False
    viewed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.question_id:
            raise ValueError("InteractionRecord requires a question_id")
        if self.time_spent_ms is None or self.time_spent_ms < 0:
            raise ValueError(
                f"time_spent_ms must be >= 0, got {self.time_spent_ms}"
            )

    @property
    def interaction_type(self) -> Optional[InteractionType]:
        """Classify the record; None for a plain view."""
        if self.was_correct is True:
            return "correct"
        if self.was_correct is False:
            return "incorrect"
        if self.was_skipped:
            return "skipped"
        return None

    @property
    def has_outcome(self) -> bool:
        return self.was_correct is not None

    def merged_with(
        self, newer: InteractionRecord, fields: Optional[Iterable[str]] = None
    ) -> InteractionRecord:
        """
        Latest event wins field by field.

        Args:
            newer: Newer event for the same question
            fields: Fields the event supplied; None takes all of them. Fields
                left out keep their stored values.
        """
        supplied = MERGE_FIELDS if fields is None else set(fields)
        changes = {name: getattr(newer, name) for name in MERGE_FIELDS if name in supplied}
        changes["viewed_at"] = newer.viewed_at or self.viewed_at
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "question_id": self.question_id,
            "time_spent_ms": self.time_spent_ms,
            "was_correct": self.was_correct,
            "was_skipped": self.was_skipped,
            "viewed_at": to_iso(self.viewed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> InteractionRecord:
        return cls(
            question_id=str(data["question_id"]),
            time_spent_ms=int(data.get("time_spent_ms") or 0),
            was_correct=data.get("was_correct"),
            was_skipped=bool(data.get("was_skipped", False)),
            viewed_at=from_iso(data.get("viewed_at")),
        )


@dataclass
class LastAnswered:
    """Pending marker for the most recent interaction, folded by cold start."""

    question_id: str
    topic: str
    correct: Optional[bool] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "topic": self.topic,
            "correct": self.correct,
            "skipped": self.skipped,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LastAnswered:
        return cls(
            question_id=str(data["question_id"]),
            topic=str(data["topic"]),
            correct=data.get("correct"),
            skipped=bool(data.get("skipped", False)),
        )


@dataclass
class LevelWeights:
    """Weights of one item path at all three levels."""

    topic: float
    subtopic: float
    branch: float

    def to_dict(self) -> Dict[str, float]:
        return {"topic": self.topic, "subtopic": self.subtopic, "branch": self.branch}


@dataclass
class SkipCompensation:
    """Bonus granted when a previously skipped question gets answered."""

    applied: bool = False
    topic: float = 0.0
    subtopic: float = 0.0
    branch: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied": self.applied,
            "topic": self.topic,
            "subtopic": self.subtopic,
            "branch": self.branch,
        }


@dataclass
class WeightChange:
    """
    Observability record of one weight update.

    Attributes:
        question_id: Question that triggered the update
        interaction_type: correct / incorrect / skipped
        topic: Topic name
        subtopic: Subtopic name
        branch: Branch name
        old_weights: Weights before the update
        new_weights: Weights after the update
        skip_compensation: Compensation applied on skipped-then-answered
        timestamp: When the update was applied
    """

    question_id: str
    interaction_type: Optional[InteractionType]
    topic: str
    subtopic: str
    branch: str
    old_weights: LevelWeights
    new_weights: LevelWeights
    skip_compensation: SkipCompensation = field(default_factory=SkipCompensation)
    timestamp: Optional[datetime] = None

    @property
    def deltas(self) -> LevelWeights:
        return LevelWeights(
            topic=round(self.new_weights.topic - self.old_weights.topic, 4),
            subtopic=round(self.new_weights.subtopic - self.old_weights.subtopic, 4),
            branch=round(self.new_weights.branch - self.old_weights.branch, 4),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "question_id": self.question_id,
            "interaction_type": self.interaction_type,
            "topic": self.topic,
            "subtopic": self.subtopic,
            "branch": self.branch,
            "old_weights": self.old_weights.to_dict(),
            "new_weights": self.new_weights.to_dict(),
            "skip_compensation": self.skip_compensation.to_dict(),
            "timestamp": to_iso(self.timestamp),
        }
