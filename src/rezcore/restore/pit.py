"""
Point-in-time row version ordering
Decides which observed write to a row is authoritative at a restore point
"""

import logging
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, TypeVar

from rezcore.timestamps import parse_iso_instant, parse_servicenow_datetime

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EmptyInputError(ValueError):
    """Raised when a latest version is requested from zero candidates"""
    pass


class PitFields(NamedTuple):
    sys_updated_on: str
    sys_mod_count: Optional[int]
    event_time: str
    event_id: str


def pit_fields(row: Any) -> PitFields:
    """
    Extract the tie-break fields from a PIT tuple

    Accepts RestorePitRowTuple models (or any object exposing the same
    attributes) and mappings keyed the way the wire format is
    (``__time`` for the event time).
    """
    if isinstance(row, Mapping):
        event_time = row["__time"] if "__time" in row else row.get("event_time")
        return PitFields(
            sys_updated_on=row.get("sys_updated_on"),
            sys_mod_count=row.get("sys_mod_count"),
            event_time=event_time,
            event_id=row["event_id"],
        )

    return PitFields(
        sys_updated_on=row.sys_updated_on,
        sys_mod_count=getattr(row, "sys_mod_count", None),
        event_time=row.event_time,
        event_id=row.event_id,
    )


def _compare(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


def _event_instant(value: Any) -> datetime:
    # Event time resolution is the millisecond; finer digits never break a tie
    parsed = parse_iso_instant(value)
    return parsed.replace(microsecond=parsed.microsecond // 1000 * 1000)


def compare_pit_row_tuples(left: Any, right: Any) -> int:
    """
    Compare two PIT tuples

    Tie-break chain, first non-equal step wins:
    1. sys_updated_on as a UTC instant
    2. sys_mod_count, only when both tuples carry it
    3. __time (ingestion time) as an instant, to the millisecond
    4. event_id by code point order

    Returns:
        -1, 0 or 1

    Raises:
        MalformedTimestampError: If either tuple has an unparsable timestamp
    """
    a = pit_fields(left)
    b = pit_fields(right)

    by_sys_updated_on = _compare(
        parse_servicenow_datetime(a.sys_updated_on),
        parse_servicenow_datetime(b.sys_updated_on),
    )
    if by_sys_updated_on != 0:
        return by_sys_updated_on

    # Skipped, not treated as equal, when either side lacks a mod count
    if a.sys_mod_count is not None and b.sys_mod_count is not None:
        by_sys_mod_count = _compare(a.sys_mod_count, b.sys_mod_count)
        if by_sys_mod_count != 0:
            return by_sys_mod_count

    by_event_time = _compare(_event_instant(a.event_time), _event_instant(b.event_time))
    if by_event_time != 0:
        return by_event_time

    return _compare(a.event_id, b.event_id)


def select_latest_pit_row_tuple(rows: Iterable[T]) -> T:
    """
    Select the authoritative row version among concurrent observations

    Scans in input order; a candidate replaces the incumbent only when it
    compares strictly greater, so an exact tie keeps the earlier row.

    Args:
        rows: PIT tuples (or richer rows carrying the tuple fields)

    Returns:
        The winning row object, unchanged

    Raises:
        EmptyInputError: If rows is empty
    """
    iterator = iter(rows)
    try:
        winner = next(iterator)
    except StopIteration:
        raise EmptyInputError("rows must include at least one PIT tuple") from None

    for row in iterator:
        if compare_pit_row_tuples(row, winner) > 0:
            winner = row

    logger.debug(f"Selected PIT winner event_id={pit_fields(winner).event_id}")
    return winner


pit_sort_key = cmp_to_key(compare_pit_row_tuples)


def sorted_pit_row_tuples(rows: Iterable[T]) -> List[T]:
    """
    Return rows in ascending PIT order (stable)

    When only some rows carry sys_mod_count the comparison is not
    transitive; the result is then still deterministic for a given input
    order but should not be treated as a canonical ranking.
    """
    return sorted(rows, key=pit_sort_key)
