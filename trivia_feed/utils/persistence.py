"""
Profile serialization boundary with validation.

Callers own durable storage; this module only turns profiles into JSON text
and back, validating against user_profile.schema.json on the way in and out.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from jsonschema import ValidationError

from trivia_feed.models.user_profile import UserProfile
from trivia_feed.utils.validation import UserProfileValidator

logger = logging.getLogger(__name__)

_validator: Optional[UserProfileValidator] = None


def get_validator() -> UserProfileValidator:
    """Get or create the shared profile validator."""
    global _validator
    if _validator is None:
        _validator = UserProfileValidator()
    return _validator


def dump_profile(profile: UserProfile, validate: bool = True, indent: Optional[int] = None) -> str:
    """
    Serialize a profile to JSON text.

    Args:
        profile: Profile to serialize
        validate: Whether to validate before serializing
        indent: json.dumps indent

    Returns:
        JSON text

    Raises:
        ValidationError: If the profile does not satisfy the schema
    """
    data = profile.to_dict()
    if validate:
        result = get_validator().validate(data, auto_repair=False)
        if not result.valid:
            raise ValidationError("\n".join(result.errors))
    return json.dumps(data, indent=indent, ensure_ascii=False)


def load_profile(text: str, auto_repair: bool = False) -> UserProfile:
    """
    Parse and validate JSON text into a profile.

    Args:
        text: JSON produced by dump_profile (or a compatible store)
        auto_repair: Clamp weights, drop unknown keys and fill missing sections
            instead of failing

    Returns:
        UserProfile

    Raises:
        json.JSONDecodeError: If the text is not JSON
        ValidationError: If the document is invalid (and could not be repaired)

    Example:
        >>> text = dump_profile(profile)
        >>> load_profile(text) == profile
        True
    """
    data = json.loads(text)
    result = get_validator().validate(data, auto_repair=auto_repair)
    if not result.valid:
        raise ValidationError("\n".join(result.errors))
    for repair in result.repairs:
        logger.warning("Profile repair: %s", repair)
    return UserProfile.from_dict(result.data)
