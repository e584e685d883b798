"""
Schema validation for persisted user profiles.

Provides JSON Schema validation with clear error messages and automatic
repair of common problems in stored profiles:
- Removal of unknown keys
- Missing sections filled with defaults
- Out-of-range weights clamped into [0.1, 1.0]
- Type coercion (numeric strings to numbers)
- Transparent repair tracking
"""

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker, ValidationError

from trivia_feed.config import config


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data (may be modified if repair was attempted)
        repairs: List of repairs applied (for transparency)
    """

    def __init__(
        self,
        valid: bool,
        errors: list[str],
        data: Any = None,
        repairs: Optional[list[str]] = None,
    ):
        self.valid = valid
        self.errors = errors
        self.data = data
        self.repairs = repairs or []

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            msg = "✓ Validation passed"
            if self.repairs:
                msg += f" (with {len(self.repairs)} repair(s))"
            return msg
        return f"✗ Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator with auto-repair capabilities.

    Usage:
        validator = SchemaValidator("path/to/schema.json")
        result = validator.validate(data, auto_repair=True)
        if result:
            print("Repairs applied:", result.repairs)
        else:
            print(result.errors)
    """

    def __init__(self, schema_path: Path | str):
        """
        Initialize validator with a schema file.

        Args:
            schema_path: Path to JSON Schema file
        """
        self.schema_path = Path(schema_path)
        with open(self.schema_path, "r") as f:
            self.schema = json.load(f)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: dict, auto_repair: bool = False) -> ValidationResult:
        """
        Validate data against schema.

        Args:
            data: Data to validate
            auto_repair: If True, attempt to fix common validation errors

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [self._format_error(e) for e in self.validator.iter_errors(data)]

        if errors:
            if auto_repair:
                repaired_data, repairs = self._attempt_repair(data, errors)
                result = self.validate(repaired_data, auto_repair=False)
                result.repairs = repairs
                return result
            return ValidationResult(valid=False, errors=errors, data=data)

        return ValidationResult(valid=True, errors=[], data=data)

    def _format_error(self, error: ValidationError) -> str:
        """Convert ValidationError to a message with instance and schema paths."""
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        validator_name = getattr(error, "validator", "unknown")
        schema_path = "/".join(str(p) for p in error.schema_path)
        return (
            f"At '{path}': {error.message} "
            f"[validator={validator_name}, schema_path=/{schema_path}]"
        )

    def _attempt_repair(self, data: Any, errors: list[str]) -> tuple[Any, list[str]]:
        """
        Generic repairs: strip keys the schema does not allow.

        Subclasses extend this with document-specific fixes.
        """
        repaired = deepcopy(data)
        repairs: list[str] = []
        self._strip_additional_props(repaired, self.schema, repairs)
        return repaired, repairs

    def _resolve(self, schema: Any) -> Any:
        """Follow local "#/definitions/..." references."""
        while isinstance(schema, dict) and "$ref" in schema:
            ref = schema["$ref"]
            if not ref.startswith("#/"):
                return schema
            target = self.schema
            for part in ref[2:].split("/"):
                target = target[part]
            schema = target
        return schema

    def _strip_additional_props(
        self, obj: Any, schema: Any, repairs: list[str], path: str = "root"
    ) -> None:
        """
        Recursively remove keys not allowed by schema (additionalProperties: false).

        Follows named properties, map values (additionalProperties given as a
        schema) and array items.
        """
        schema = self._resolve(schema)
        if not isinstance(schema, dict):
            return

        if isinstance(obj, dict):
            properties = schema.get("properties", {})
            additional = schema.get("additionalProperties")
            if additional is False:
                for k in [k for k in obj if k not in properties]:
                    obj.pop(k, None)
                    repairs.append(f"Removed unknown key '{k}' at {path}")

            for k, value in obj.items():
                if k in properties:
                    self._strip_additional_props(value, properties[k], repairs, f"{path}.{k}")
                elif isinstance(additional, dict):
                    self._strip_additional_props(value, additional, repairs, f"{path}.{k}")

        if isinstance(obj, list) and "items" in schema:
            for i, item in enumerate(obj):
                self._strip_additional_props(item, schema["items"], repairs, f"{path}[{i}]")


class UserProfileValidator(SchemaValidator):
    """
    Validator for stored user profiles with profile-specific checks.

    Features:
    - JSON Schema validation (tree weights, ledger records, timestamps)
    - Interaction keys must match their record's question_id
    - Pending last-answered marker must refer to a recorded interaction
    - Serialized cold-start state counters must be non-negative
    """

    def __init__(self, schema_path: Optional[Path] = None):
        super().__init__(schema_path or config.paths.user_profile_schema)

    def validate(self, data: dict, auto_repair: bool = False) -> ValidationResult:
        """
        Validate a profile dictionary.

        Args:
            data: Profile data (UserProfile.to_dict() form)
            auto_repair: Whether to attempt automatic repairs

        Returns:
            ValidationResult
        """
        result = super().validate(data, auto_repair=auto_repair)
        if not result.valid or not isinstance(result.data, dict):
            return result

        profile_errors = self._profile_errors(result.data)
        if profile_errors and auto_repair and not result.repairs:
            repaired, repairs = self._attempt_repair(result.data, profile_errors)
            result = self.validate(repaired, auto_repair=False)
            result.repairs = repairs
            return result

        all_errors = result.errors + profile_errors
        return ValidationResult(
            valid=len(all_errors) == 0,
            errors=all_errors,
            data=result.data,
            repairs=result.repairs,
        )

    def _profile_errors(self, checked: dict) -> list[str]:
        errors = []

        # Check 1: ledger keys match record ids
        for key, record in checked.get("interactions", {}).items():
            if record.get("question_id") != key:
                errors.append(
                    f"Interaction key '{key}' holds record for '{record.get('question_id')}'"
                )

        # Check 2: pending marker refers to a known interaction
        marker = checked.get("last_question_answered")
        if marker and marker.get("question_id") not in checked.get("interactions", {}):
            errors.append(
                f"last_question_answered refers to unknown question '{marker.get('question_id')}'"
            )

        # Check 3: cold-start counters
        state = checked.get("cold_start_state")
        if isinstance(state, dict):
            shown = state.get("questions_shown", 0)
            if not isinstance(shown, int) or isinstance(shown, bool) or shown < 0:
                errors.append(
                    f"cold_start_state.questions_shown must be a non-negative integer, got {shown!r}"
                )

        return errors

    def _attempt_repair(self, data: Any, errors: list[str]) -> tuple[Any, list[str]]:
        """Profile repairs on top of unknown-key stripping."""
        if not isinstance(data, dict):
            return data, []
        repaired, repairs = super()._attempt_repair(data, errors)
        default_weight = config.weights.default_weight

        # Missing sections
        defaults = {
            "schema_version": 1,
            "topics": {},
            "interactions": {},
            "total_questions_answered": 0,
            "cold_start_complete": False,
        }
        for key, value in defaults.items():
            if key not in repaired or repaired[key] is None:
                repaired[key] = deepcopy(value)
                repairs.append(f"Added missing '{key}' = {value!r}")

        # Counters
        total = repaired.get("total_questions_answered")
        coerced = _safe_int(total)
        if coerced is None or coerced < 0:
            repaired["total_questions_answered"] = 0
            repairs.append(f"Reset total_questions_answered: {total!r} -> 0")
        elif coerced != total or isinstance(total, bool):
            repaired["total_questions_answered"] = coerced
            repairs.append(f"Coerced total_questions_answered: {total!r} -> {coerced}")

        # Tree weights
        for path, node in _iter_tree(repaired.get("topics")):
            weight = node.get("weight")
            fixed = _repair_weight(weight, default_weight)
            if fixed != weight:
                node["weight"] = fixed
                repairs.append(f"Repaired weight at {path}: {weight!r} -> {fixed}")

        # Ledger records
        interactions = repaired.get("interactions")
        if isinstance(interactions, dict):
            for key, record in list(interactions.items()):
                if not isinstance(record, dict):
                    interactions.pop(key)
                    repairs.append(f"Dropped malformed interaction '{key}'")
                    continue
                if record.get("question_id") != key:
                    record["question_id"] = key
                    repairs.append(f"Set question_id of interaction '{key}'")
                spent = _safe_int(record.get("time_spent_ms", 0))
                if spent is None or spent < 0:
                    record["time_spent_ms"] = 0
                    repairs.append(f"Reset time_spent_ms of interaction '{key}' to 0")
                elif spent != record.get("time_spent_ms", 0):
                    record["time_spent_ms"] = spent
                    repairs.append(f"Coerced time_spent_ms of interaction '{key}' to {spent}")

        # Pending marker that no longer resolves
        marker = repaired.get("last_question_answered")
        if marker is not None and (
            not isinstance(marker, dict)
            or marker.get("question_id") not in (interactions or {})
        ):
            repaired["last_question_answered"] = None
            repairs.append("Dropped dangling last_question_answered marker")

        # Unusable cold-start state is rebuilt by the engine
        state = repaired.get("cold_start_state")
        if state is not None and not isinstance(state, dict):
            repaired["cold_start_state"] = None
            repairs.append("Dropped malformed cold_start_state")
        elif isinstance(state, dict) and "questions_shown" in state:
            shown = state["questions_shown"]
            if not isinstance(shown, int) or isinstance(shown, bool) or shown < 0:
                state.pop("questions_shown")
                repairs.append(f"Dropped invalid cold_start_state.questions_shown {shown!r}")

        return repaired, repairs


def _safe_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def _repair_weight(value: Any, default: float) -> float:
    bounds = config.weights
    try:
        weight = float(value)
    except (ValueError, TypeError):
        return default
    return round(min(bounds.max_weight, max(bounds.min_weight, weight)), 4)


def _iter_tree(topics: Any):
    """(path, node dict) for every node of a serialized preference tree."""
    if not isinstance(topics, dict):
        return
    for t_name, t_node in topics.items():
        if not isinstance(t_node, dict):
            continue
        yield f"topics.{t_name}", t_node
        for s_name, s_node in (t_node.get("subtopics") or {}).items():
            if not isinstance(s_node, dict):
                continue
            yield f"topics.{t_name}.{s_name}", s_node
            for b_name, b_node in (s_node.get("branches") or {}).items():
                if isinstance(b_node, dict):
                    yield f"topics.{t_name}.{s_name}.{b_name}", b_node


def validate_user_profile(data: dict, auto_repair: bool = False) -> ValidationResult:
    """
    Quick validation of user profile data.

    Args:
        data: Profile dictionary to validate
        auto_repair: Whether to attempt automatic repairs

    Returns:
        ValidationResult

    Example:
        result = validate_user_profile(profile.to_dict())
        if not result:
            print("Errors:", result.errors)
    """
    return UserProfileValidator().validate(data, auto_repair=auto_repair)
