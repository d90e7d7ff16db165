"""
Reusable validation utilities for docs-embed-mcp request models.

MCP clients frequently send numbers and booleans as strings, so the coercion
helpers accept both and produce user-friendly error messages.
"""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

ERROR_TEMPLATES = {
    "range": "{field} must be between {min} and {max} (inclusive). Got: {value}. Examples: {examples}",
    "pattern": "{field} must match pattern {pattern}. Got: '{value}'. Examples: {examples}",
    "type": "{field} must be {expected_type}. Got: {actual_type} '{value}'. Examples: {examples}",
    "required": "{field} is required and cannot be None or empty. Examples: {examples}",
    "length": "{field} must be {constraint}. Got {actual} characters: '{value}'. Examples: {examples}",
    "custom": "{message}",
}

CRATE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
VERSION_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(-((0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(\.(0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(\+([0-9a-zA-Z-]+(\.[0-9a-zA-Z-]+)*))?$"
)
FEATURE_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_+./:-]*$")

# Version aliases that resolve to the newest stable release
LATEST_ALIASES = {"latest", "*"}

CRATE_EXAMPLES = ["tokio", "serde_json", "async-trait"]


def format_error_message(template_key: str, **context) -> str:
    """Format error message with context using precompiled templates."""
    template = ERROR_TEMPLATES.get(template_key, ERROR_TEMPLATES["custom"])
    if template_key == "custom" and "message" not in context:
        context["message"] = "Validation failed"
    return template.format(**context)


def format_examples(examples: list[Any], max_examples: int = 3) -> str:
    if not examples:
        return "No examples available"
    display_examples = examples[:max_examples]
    return ", ".join(
        f"'{e}'" if isinstance(e, str) else str(e) for e in display_examples
    )


def validate_crate_name(value: Any, field_name: str = "crate_name") -> str:
    """
    Validate Rust crate naming conventions.

    Raises:
        ValueError: If the crate name is invalid
    """
    if value is None or not str(value).strip():
        raise ValueError(
            format_error_message(
                "required", field=field_name, examples=format_examples(CRATE_EXAMPLES)
            )
        )

    value = str(value).strip()
    if len(value) > 64:
        raise ValueError(
            format_error_message(
                "length",
                field=field_name,
                constraint="64 characters or less",
                actual=len(value),
                value=value[:100],
                examples=format_examples(CRATE_EXAMPLES),
            )
        )

    if not CRATE_NAME_PATTERN.match(value):
        raise ValueError(
            format_error_message(
                "pattern",
                field=field_name,
                pattern="letters, numbers, hyphens, underscores only",
                value=value[:100],
                examples=format_examples(CRATE_EXAMPLES),
            )
        )

    return value


def validate_version_string(value: Any, field_name: str = "version") -> str | None:
    """
    Validate a semantic version string, 'latest' or '*'.

    Returns:
        Validated version string, 'latest', or None
    """
    if value is None:
        return None

    value = str(value).strip()
    if not value:
        return None

    if value.lower() in LATEST_ALIASES:
        return "latest"

    if not VERSION_PATTERN.match(value):
        raise ValueError(
            format_error_message(
                "pattern",
                field=field_name,
                pattern="semantic version (MAJOR.MINOR.PATCH), '*' or 'latest'",
                value=value[:100],
                examples=format_examples(["1.0.0", "0.3.0-beta.1", "latest"]),
            )
        )

    return value


def validate_feature_list(value: Any, field_name: str = "features") -> list[str]:
    """Accept a list or a comma separated string of cargo feature names."""
    if value is None:
        return []

    if isinstance(value, str):
        value = [part for part in value.split(",")]

    if not isinstance(value, (list, tuple, set)):
        raise ValueError(
            format_error_message(
                "type",
                field=field_name,
                expected_type="a list of feature names",
                actual_type=type(value).__name__,
                value=repr(value)[:100],
                examples=format_examples(["derive", "std", "rt-multi-thread"]),
            )
        )

    features = []
    for feature in value:
        feature = str(feature).strip()
        if not feature:
            continue
        if not FEATURE_PATTERN.match(feature):
            raise ValueError(
                format_error_message(
                    "pattern",
                    field=field_name,
                    pattern="cargo feature name",
                    value=feature[:100],
                    examples=format_examples(["derive", "std", "rt-multi-thread"]),
                )
            )
        features.append(feature)
    return features


def coerce_to_int_with_bounds(
    value: Any,
    field_name: str,
    min_val: int,
    max_val: int,
    examples: list[int] | None = None,
) -> int:
    """
    Generic integer coercion with bounds checking.

    Handles MCP client compatibility by accepting string inputs.

    Raises:
        ValueError: If the value cannot be converted or is out of bounds
    """
    if not examples:
        examples = [min_val, (min_val + max_val) // 2, max_val]

    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in ("null", "undefined", "none", "nan"):
            raise ValueError(
                format_error_message(
                    "required", field=field_name, examples=format_examples(examples)
                )
            )

    if value is None:
        raise ValueError(
            format_error_message(
                "required", field=field_name, examples=format_examples(examples)
            )
        )

    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                format_error_message(
                    "type",
                    field=field_name,
                    expected_type="an integer",
                    actual_type=type(value).__name__,
                    value=repr(value)[:100],
                    examples=format_examples(examples),
                )
            ) from e

    if value < min_val or value > max_val:
        raise ValueError(
            format_error_message(
                "range",
                field=field_name,
                min=min_val,
                max=max_val,
                value=value,
                examples=format_examples(examples),
            )
        )

    return value


def coerce_to_bool_with_validation(value: Any, field_name: str = "value") -> bool:
    """
    Coerce value to boolean with MCP client compatibility.

    Examples:
        >>> coerce_to_bool_with_validation("true")
        True
        >>> coerce_to_bool_with_validation("0")
        False
    """
    if value is None:
        return False

    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        value = value.strip().lower()
        if not value:
            return False

        BOOL_MAP = {
            "true": True,
            "false": False,
            "1": True,
            "0": False,
            "yes": True,
            "no": False,
            "on": True,
            "off": False,
        }
        if value in BOOL_MAP:
            return BOOL_MAP[value]
        raise ValueError(
            format_error_message(
                "type",
                field=field_name,
                expected_type="a boolean",
                actual_type="string",
                value=value[:100],
                examples=format_examples(["true", "false"]),
            )
        )

    return bool(value)
