"""
Candidate items supplied by the content catalog.

Items are immutable. The engine only reads their classification
(topic -> subtopic -> branch) and difficulty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from trivia_feed.topics import DEFAULT_LEVEL_NAME, standardize_topic

Difficulty = str  # "easy" | "medium" | "hard" in the catalog


@dataclass(frozen=True)
class CandidateItem:
    """
    One trivia item from the catalog.

    Attributes:
        id: Question identifier (unique within a pool)
        topic: Canonical topic name
        subtopic: Second classification level ("General" if unknown)
        branch: Third classification level ("General" if unknown)
        difficulty: Catalog difficulty label
        tags: Raw catalog tags
    """

    id: str
    topic: str
    subtopic: str = DEFAULT_LEVEL_NAME
    branch: str = DEFAULT_LEVEL_NAME
    difficulty: Difficulty = "medium"
    tags: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if not self.id:
            raise ValueError("CandidateItem requires a non-empty id")
        if not self.topic:
            raise ValueError(f"CandidateItem {self.id} requires a topic")

    @property
    def path(self) -> tuple[str, str, str]:
        """(topic, subtopic, branch)"""
        return (self.topic, self.subtopic, self.branch)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CandidateItem:
        """
        Build an item from a catalog record.

        Explicit "subtopic"/"branch" keys win; otherwise tags[0] is the
        subtopic and tags[1] the branch. The topic may be given as "topic"
        or "category" and is folded onto its canonical name.

        Raises:
            ValueError: If id or topic is missing
        """
        item_id = data.get("id")
        raw_topic = data.get("topic") or data.get("category")
        if item_id is None or str(item_id) == "":
            raise ValueError(f"Catalog record is missing 'id': {dict(data)!r}")
        if not raw_topic:
            raise ValueError(f"Catalog record {item_id} is missing 'topic'")

        tags = tuple(str(t) for t in (data.get("tags") or []))
        subtopic = data.get("subtopic") or (tags[0] if len(tags) > 0 else None)
        branch = data.get("branch") or (tags[1] if len(tags) > 1 else None)

        return cls(
            id=str(item_id),
            topic=standardize_topic(str(raw_topic)),
            subtopic=subtopic or DEFAULT_LEVEL_NAME,
            branch=branch or DEFAULT_LEVEL_NAME,
            difficulty=str(data.get("difficulty") or "medium").lower(),
            tags=tags,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "topic": self.topic,
            "subtopic": self.subtopic,
            "branch": self.branch,
            "difficulty": self.difficulty,
            "tags": list(self.tags),
        }


def coerce_items(pool: Iterable[Union[CandidateItem, Mapping[str, Any]]]) -> list[CandidateItem]:
    """Accept a mixed pool of CandidateItem objects and catalog dicts."""
    return [
        entry if isinstance(entry, CandidateItem) else CandidateItem.from_dict(entry)
        for entry in pool
    ]


def unique_items(items: Iterable[CandidateItem]) -> list[CandidateItem]:
    """Drop repeated ids, keeping the first occurrence and the order."""
    seen = set()
    unique = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique
