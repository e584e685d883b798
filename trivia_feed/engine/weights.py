"""
Weight Update Engine: folds one interaction into a user's preference tree.

The update is a pure transition. The caller's profile is never mutated; a
new profile and an observability record are returned.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from trivia_feed.config import config
from trivia_feed.models.interaction import (
    MERGE_FIELDS,
    InteractionRecord,
    LastAnswered,
    LevelWeights,
    SkipCompensation,
    WeightChange,
)
from trivia_feed.models.items import CandidateItem
from trivia_feed.models.user_profile import UserProfile, clamp_weight
from trivia_feed.utils.timestamps import ensure_utc, utc_now

logger = logging.getLogger(__name__)

ItemLike = Union[CandidateItem, Mapping[str, Any]]
InteractionLike = Union[InteractionRecord, Mapping[str, Any]]


def deltas_for(interaction_type: Optional[str]) -> tuple[float, float, float]:
    """(topic, subtopic, branch) deltas for an interaction classification."""
    w = config.weights
    if interaction_type == "correct":
        return tuple(w.correct_deltas)
    if interaction_type == "incorrect":
        return tuple(w.incorrect_deltas)
    if interaction_type == "skipped":
        return tuple(w.skip_deltas)
    return (0.0, 0.0, 0.0)


def skip_compensation_for(was_correct: bool) -> tuple[float, float, float]:
    """
    Compensation for a question that was skipped before and is now answered.

    Each level gets the skip penalty back plus a bonus of half the penalty,
    scaled by the outcome (full for correct, half for incorrect).
    """
    w = config.weights
    scale = w.correct_outcome_scale if was_correct else w.incorrect_outcome_scale
    factor = 1.0 + w.skip_compensation_bonus * scale
    return tuple(round(abs(d) * factor, 4) for d in w.skip_deltas)


def apply_interaction(
    profile: UserProfile,
    question_id: str,
    interaction: InteractionLike,
    item: ItemLike,
    now: Optional[datetime] = None,
) -> tuple[UserProfile, WeightChange]:
    """
    Apply one interaction to the preference tree and ledger.

    Args:
        profile: Current profile (left untouched)
        question_id: Question the interaction belongs to
        interaction: InteractionRecord or its dict form
        item: The question's catalog item (classification source)
        now: Clock override (UTC)

    Returns:
        (new_profile, weight_change)

    Raises:
        ValueError: If the interaction or item is invalid or refers to another question

    Example:
        >>> profile, change = apply_interaction(
        ...     UserProfile(), "q1", {"was_skipped": True}, {"id": "q1", "topic": "Science"}
        ... )
        >>> change.new_weights.topic
        0.45
    """
    now = ensure_utc(now) if now else utc_now()
    item = item if isinstance(item, CandidateItem) else CandidateItem.from_dict(item)
    record, supplied = _coerce_interaction(question_id, interaction, now)

    if item.id != question_id:
        raise ValueError(f"Item {item.id} does not match question {question_id}")

    updated = profile.copy()
    previous = updated.interactions.get(question_id)
    interaction_type = record.interaction_type

    deltas = deltas_for(interaction_type)
    compensation = SkipCompensation()
    if previous is not None and _awaiting_outcome(previous) and record.has_outcome:
        comp = skip_compensation_for(bool(record.was_correct))
        compensation = SkipCompensation(
            applied=True, topic=comp[0], subtopic=comp[1], branch=comp[2]
        )
        deltas = tuple(d + c for d, c in zip(deltas, comp))
        logger.debug("Skip compensation for %s: %s", question_id, comp)

    nodes = updated.ensure_path(*item.path)
    old = LevelWeights(*(node.weight for node in nodes))
    for node, delta in zip(nodes, deltas):
        node.set_weight(clamp_weight(node.weight + delta))
        node.last_viewed = now
    new = LevelWeights(*(node.weight for node in nodes))

    updated.interactions[question_id] = (
        previous.merged_with(record, supplied) if previous is not None else record
    )
    if record.has_outcome:
        updated.total_questions_answered += 1
    if interaction_type is not None:
        updated.last_question_answered = LastAnswered(
            question_id=question_id,
            topic=item.topic,
            correct=record.was_correct,
            skipped=record.was_skipped and not record.has_outcome,
        )

    change = WeightChange(
        question_id=question_id,
        interaction_type=interaction_type,
        topic=item.topic,
        subtopic=item.subtopic,
        branch=item.branch,
        old_weights=old,
        new_weights=new,
        skip_compensation=compensation,
        timestamp=now,
    )
    logger.debug(
        "%s on %s (%s/%s/%s): %s -> %s",
        interaction_type or "view",
        question_id,
        item.topic,
        item.subtopic,
        item.branch,
        old.to_dict(),
        new.to_dict(),
    )
    return updated, change


def _awaiting_outcome(record: InteractionRecord) -> bool:
    """Skipped and not graded since."""
    return record.was_skipped and not record.has_outcome


def _coerce_interaction(
    question_id: str, interaction: InteractionLike, now: datetime
) -> tuple[InteractionRecord, Optional[set[str]]]:
    """
    Normalize an event and report which fields it supplied.

    A dict event supplies only its own keys, so merging it leaves the other
    stored fields alone. A full InteractionRecord supplies every field.
    """
    supplied: Optional[set[str]] = None
    if isinstance(interaction, InteractionRecord):
        record = interaction
    else:
        data = dict(interaction)
        supplied = {key for key in data if key in MERGE_FIELDS} | {"viewed_at"}
        data.setdefault("question_id", question_id)
        record = InteractionRecord.from_dict(data)

    if record.question_id != question_id:
        raise ValueError(
            f"Interaction for {record.question_id} applied to question {question_id}"
        )
    if record.viewed_at is None:
        record = replace(record, viewed_at=now)
    return record, supplied
