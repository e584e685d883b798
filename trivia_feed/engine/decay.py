"""
Decay Process: relaxes untouched preference weights toward the floor.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from trivia_feed.config import config
from trivia_feed.models.user_profile import UserProfile, clamp_weight
from trivia_feed.utils.timestamps import days_between, ensure_utc, utc_now

logger = logging.getLogger(__name__)


def decay(profile: UserProfile, now: Optional[datetime] = None) -> UserProfile:
    """
    Apply time-based decay to a copy of the profile.

    Runs only when at least one day passed since the last refresh. Every node
    not viewed for more than a day loses `days_since_refresh * decay_per_day`,
    never going below the minimum weight. The refresh timestamp moves to
    `now`, so calling again with the same `now` changes nothing.

    A profile that was never refreshed is only stamped.

    Args:
        profile: Current profile (left untouched)
        now: Clock override (UTC)

    Returns:
        New profile
    """
    now = ensure_utc(now) if now else utc_now()
    updated = profile.copy()

    if updated.last_refreshed is None:
        updated.last_refreshed = now
        return updated

    days = days_between(updated.last_refreshed, now)
    if days < config.weights.decay_idle_days:
        return updated

    factor = days * config.weights.decay_per_day
    decayed = 0
    for node in updated.iter_nodes():
        idle = node.last_viewed is None or (
            days_between(node.last_viewed, now) > config.weights.decay_idle_days
        )
        if not idle:
            continue
        new_weight = clamp_weight(max(config.weights.min_weight, node.weight - factor))
        if new_weight < node.weight:
            node.set_weight(new_weight)
            decayed += 1

    updated.last_refreshed = now
    logger.debug(
        "Decayed %d nodes by %.3f (%.2f days since refresh)", decayed, factor, days
    )
    return updated
