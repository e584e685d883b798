"""
User Profile: per-user preference tree and interaction ledger.

This module provides the aggregate root the engine reads and rewrites:
- Weighted topic -> subtopic -> branch preference tree
- Latest interaction record per question
- Answer counters and the cold-start bookkeeping fields
- Plain-dict serialization for persistence by the caller

Profiles are treated as values: engine operations copy, modify the copy and
return it.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Optional

from trivia_feed.config import config
from trivia_feed.models.interaction import InteractionRecord, LastAnswered
from trivia_feed.models.items import CandidateItem
from trivia_feed.utils.timestamps import from_iso, to_iso

SCHEMA_VERSION = 1
_EPSILON = 1e-9


def clamp_weight(value: float) -> float:
    """Clamp into [min_weight, max_weight], rounded to 4 decimals."""
    bounds = config.weights
    return round(min(bounds.max_weight, max(bounds.min_weight, float(value))), 4)


@dataclass
class WeightedNode:
    """Common state of every tree level."""

    weight: float = 0.5
    last_viewed: Optional[datetime] = None

    def __post_init__(self):
        self.weight = clamp_weight(self.weight)

    def set_weight(self, value: float) -> None:
        """Assign an already-clamped weight."""
        bounds = config.weights
        assert bounds.min_weight - _EPSILON <= value <= bounds.max_weight + _EPSILON, (
            f"weight {value} outside [{bounds.min_weight}, {bounds.max_weight}]"
        )
        self.weight = clamp_weight(value)

    def _base_dict(self) -> dict[str, Any]:
        return {"weight": self.weight, "last_viewed": to_iso(self.last_viewed)}


@dataclass
class BranchNode(WeightedNode):
    def to_dict(self) -> dict[str, Any]:
        return self._base_dict()

    @classmethod
    def from_dict(cls, data: dict) -> BranchNode:
        return cls(**_node_kwargs(data))


@dataclass
class SubtopicNode(WeightedNode):
    branches: dict[str, BranchNode] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = self._base_dict()
        data["branches"] = {name: b.to_dict() for name, b in self.branches.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SubtopicNode:
        branches = {
            name: BranchNode.from_dict(b or {})
            for name, b in (data.get("branches") or {}).items()
        }
        return cls(branches=branches, **_node_kwargs(data))


@dataclass
class TopicNode(WeightedNode):
    subtopics: dict[str, SubtopicNode] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = self._base_dict()
        data["subtopics"] = {name: s.to_dict() for name, s in self.subtopics.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TopicNode:
        subtopics = {
            name: SubtopicNode.from_dict(s or {})
            for name, s in (data.get("subtopics") or {}).items()
        }
        return cls(subtopics=subtopics, **_node_kwargs(data))


def _node_kwargs(data: dict) -> dict[str, Any]:
    # Missing weights fall back to neutral
    weight = data.get("weight")
    return {
        "weight": config.weights.default_weight if weight is None else weight,
        "last_viewed": from_iso(data.get("last_viewed")),
    }


@dataclass
class UserProfile:
    """
    Aggregate root of one user's personalization state.

    Attributes:
        topics: Preference tree keyed by topic name
        interactions: Latest interaction per question id
        total_questions_answered: Count of interactions carrying an outcome
        cold_start_complete: Sticky flag set once cold start finishes
        cold_start_state: Serialized cold-start state (plain dict) or None
        last_question_answered: Pending marker consumed by cold start
        last_refreshed: Last time decay ran
    """

    topics: dict[str, TopicNode] = field(default_factory=dict)
    interactions: dict[str, InteractionRecord] = field(default_factory=dict)
    total_questions_answered: int = 0
    cold_start_complete: bool = False
    cold_start_state: Optional[dict] = None
    last_question_answered: Optional[LastAnswered] = None
    last_refreshed: Optional[datetime] = None

    # ==================== Weight Access ====================

    def topic_weight(self, topic: str) -> float:
        node = self.topics.get(topic)
        return node.weight if node else config.weights.default_weight

    def subtopic_weight(self, topic: str, subtopic: str) -> float:
        node = self.topics.get(topic)
        if node and subtopic in node.subtopics:
            return node.subtopics[subtopic].weight
        return config.weights.default_weight

    def branch_weight(self, topic: str, subtopic: str, branch: str) -> float:
        node = self.topics.get(topic)
        if node and subtopic in node.subtopics:
            sub = node.subtopics[subtopic]
            if branch in sub.branches:
                return sub.branches[branch].weight
        return config.weights.default_weight

    def item_weights(self, item: CandidateItem) -> tuple[float, float, float]:
        """(topic, subtopic, branch) weights for an item, 0.5 where missing."""
        return (
            self.topic_weight(item.topic),
            self.subtopic_weight(item.topic, item.subtopic),
            self.branch_weight(item.topic, item.subtopic, item.branch),
        )

    def ensure_path(
        self, topic: str, subtopic: str, branch: str
    ) -> tuple[TopicNode, SubtopicNode, BranchNode]:
        """Get the nodes along a path, creating missing ones at the default weight."""
        default = config.weights.default_weight
        topic_node = self.topics.setdefault(topic, TopicNode(weight=default))
        sub_node = topic_node.subtopics.setdefault(subtopic, SubtopicNode(weight=default))
        branch_node = sub_node.branches.setdefault(branch, BranchNode(weight=default))
        return topic_node, sub_node, branch_node

    def iter_nodes(self) -> Iterator[WeightedNode]:
        """Every node of the tree, parents before children."""
        for topic_node in self.topics.values():
            yield topic_node
            for sub_node in topic_node.subtopics.values():
                yield sub_node
                yield from sub_node.branches.values()

    # ==================== Familiarity ====================

    def knows_topic(self, topic: str) -> bool:
        return topic in self.topics

    def knows_subtopic(self, topic: str, subtopic: str) -> bool:
        return self.knows_topic(topic) and subtopic in self.topics[topic].subtopics

    def knows_branch(self, topic: str, subtopic: str, branch: str) -> bool:
        return (
            self.knows_subtopic(topic, subtopic)
            and branch in self.topics[topic].subtopics[subtopic].branches
        )

    # ==================== Persistence ====================

    def copy(self) -> UserProfile:
        """Independent deep copy."""
        return deepcopy(self)

    def to_dict(self) -> dict:
        """Export profile as a JSON-compatible dictionary."""
        return {
            "schema_version": SCHEMA_VERSION,
            "topics": {name: t.to_dict() for name, t in self.topics.items()},
            "interactions": {qid: r.to_dict() for qid, r in self.interactions.items()},
            "total_questions_answered": self.total_questions_answered,
            "cold_start_complete": self.cold_start_complete,
            "cold_start_state": deepcopy(self.cold_start_state),
            "last_question_answered": (
                self.last_question_answered.to_dict()
                if self.last_question_answered
                else None
            ),
            "last_refreshed": to_iso(self.last_refreshed),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> UserProfile:
        """
        Rebuild a profile from its dictionary form.

        Missing sections fall back to defaults (neutral weights, empty ledger).
        """
        data = data or {}
        marker = data.get("last_question_answered")
        return cls(
            topics={
                name: TopicNode.from_dict(t or {})
                for name, t in (data.get("topics") or {}).items()
            },
            interactions={
                str(qid): InteractionRecord.from_dict({"question_id": qid, **(r or {})})
                for qid, r in (data.get("interactions") or {}).items()
            },
            total_questions_answered=int(data.get("total_questions_answered") or 0),
            cold_start_complete=bool(data.get("cold_start_complete", False)),
            cold_start_state=deepcopy(data.get("cold_start_state")),
            last_question_answered=LastAnswered.from_dict(marker) if marker else None,
            last_refreshed=from_iso(data.get("last_refreshed")),
        )

    def __repr__(self) -> str:
        return (
            f"UserProfile(topics={len(self.topics)}, "
            f"interactions={len(self.interactions)}, "
            f"answered={self.total_questions_answered}, "
            f"cold_start_complete={self.cold_start_complete})"
        )
