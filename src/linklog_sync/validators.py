"""
Input validation functions for LinkLog records.

Provides validation for profile URLs and normalization of the free-form
date fields a scraper or form hands over, so that bad input is rejected
before it reaches the queue.
"""

from datetime import datetime
from urllib.parse import urlparse

# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Profile URL")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_profile_url(profile_url: str) -> tuple[bool, str]:
    """
    Validate the identity key of a record.

    Args:
        profile_url: The profile URL to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Must use the http or https scheme
        - Must include a hostname
    """
    if not profile_url or not profile_url.strip():
        return (
            False,
            format_validation_error("Profile URL", "cannot be empty"),
        )

    parsed = urlparse(profile_url.strip())
    if parsed.scheme not in ("http", "https"):
        return (
            False,
            format_validation_error(
                "Profile URL", "must start with http:// or https://"
            ),
        )

    if not parsed.hostname:
        return (
            False,
            format_validation_error("Profile URL", "must include a hostname"),
        )

    return (True, "")


def normalize_date_iso(value: str | None) -> str:
    """
    Normalize a date string to ``YYYY-MM-DD``.

    Accepts ISO 8601 dates and datetimes (a trailing ``Z`` is allowed).
    Empty or unparsable input yields an empty string rather than an error,
    because the follow-up date is optional.
    """
    if not value or not value.strip():
        return ""

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        return ""
