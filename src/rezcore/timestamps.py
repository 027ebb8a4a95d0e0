"""
Timestamp parsing and canonicalization
Shared by the PIT comparator and the audit contracts
"""

import re
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

ISO_UTC_SECOND_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")
ISO_UTC_MILLIS_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")
SERVICENOW_DATETIME_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")

ISO_UTC_ERROR = "must be ISO datetime (UTC Z) with second or millisecond precision"


class MalformedTimestampError(ValueError):
    """Raised when a timestamp cannot be read as an absolute instant"""
    pass


def _normalize_iso_utc_input(value: str) -> str:
    if ISO_UTC_SECOND_REGEX.fullmatch(value):
        return f"{value[:-1]}.000Z"
    if ISO_UTC_MILLIS_REGEX.fullmatch(value):
        return value
    return ""


def canonicalize_iso_datetime_utc(value: Any) -> str:
    """
    Canonicalize an ISO UTC timestamp to millisecond precision

    Second-precision input gains a ``.000`` fraction so that lexical and
    chronological ordering of canonical timestamps coincide.

    Args:
        value: Timestamp text such as ``2024-01-01T00:00:00Z``

    Returns:
        Canonical ``YYYY-MM-DDTHH:MM:SS.mmmZ`` text

    Raises:
        MalformedTimestampError: If the value is not a real UTC instant
    """
    if not isinstance(value, str):
        raise MalformedTimestampError(ISO_UTC_ERROR)

    normalized = _normalize_iso_utc_input(value)
    if not normalized:
        raise MalformedTimestampError(ISO_UTC_ERROR)

    try:
        datetime.strptime(normalized, "%Y-%m-%dT%H:%M:%S.%fZ")
    except ValueError as e:
        raise MalformedTimestampError(f"{ISO_UTC_ERROR}: {value!r}") from e

    return normalized


def is_iso_datetime_utc(value: Any) -> bool:
    """Check whether a value is an accepted ISO UTC timestamp"""
    try:
        canonicalize_iso_datetime_utc(value)
    except MalformedTimestampError:
        return False
    return True


def parse_iso_instant(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp carrying ``Z`` or an explicit offset

    Raises:
        MalformedTimestampError: If the value has no offset or does not parse
    """
    if not isinstance(value, str) or not value:
        raise MalformedTimestampError(f"invalid ISO datetime value: {value!r}")

    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedTimestampError(f"invalid ISO datetime value: {value!r}") from e

    if parsed.tzinfo is None:
        raise MalformedTimestampError(f"ISO datetime value has no UTC offset: {value!r}")

    return parsed.astimezone(timezone.utc)


def parse_servicenow_datetime(value: Any) -> datetime:
    """
    Parse a ServiceNow ``YYYY-MM-DD HH:MM:SS`` timestamp as UTC

    Raises:
        MalformedTimestampError: If the value is not a valid ServiceNow timestamp
    """
    if not isinstance(value, str) or not SERVICENOW_DATETIME_REGEX.fullmatch(value):
        raise MalformedTimestampError(f"invalid ServiceNow datetime value: {value!r}")

    try:
        parsed = datetime.strptime(value, "%Y-%m-%d %H:%M:%S")
    except ValueError as e:
        raise MalformedTimestampError(f"invalid ServiceNow datetime value: {value!r}") from e

    return parsed.replace(tzinfo=timezone.utc)


def format_iso_millis(value: datetime) -> str:
    """Render an aware datetime as canonical ``YYYY-MM-DDTHH:MM:SS.mmmZ``"""
    if value.tzinfo is None:
        raise MalformedTimestampError("datetime must be timezone-aware")

    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now_iso_millis() -> str:
    return format_iso_millis(datetime.now(timezone.utc))
