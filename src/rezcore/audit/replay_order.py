"""
Cross-service audit replay ordering
One total order so every operator sees the same merged timeline
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from rezcore.contracts.audit_v1 import CrossServiceAuditEvent, CrossServiceAuditReplay

logger = logging.getLogger(__name__)


class ReplayBatchError(ValueError):
    """Raised when a replay batch breaks the replay invariants"""

    def __init__(self, message: str, index: int):
        self.index = index
        super().__init__(message)


class DuplicateAuditEventError(ReplayBatchError):
    """Raised when two events in a batch share (service, event_id)"""

    def __init__(self, index: int, identity: Tuple[str, str]):
        self.identity = identity
        super().__init__(
            f"events must be unique by service:event_id within replay payload "
            f"(duplicate {identity[0]}:{identity[1]} at index {index})",
            index,
        )


class ReplayOrderError(ReplayBatchError):
    """Raised when a replay batch is not sorted"""

    def __init__(self, index: int):
        super().__init__(
            f"events must be sorted by occurred_at, then service, then event_id (index {index})",
            index,
        )


def replay_key(event: Any) -> Tuple[str, str, str]:
    """
    Deterministic ordering key for audit events

    Ordering: (occurred_at, service, event_id), each by code point order.
    Mapping input must carry an already-canonical occurred_at.
    """
    if isinstance(event, Mapping):
        return (event["occurred_at"], event["service"], event["event_id"])
    return (event.occurred_at, event.service, event.event_id)


def event_identity(event: Any) -> Tuple[str, str]:
    if isinstance(event, Mapping):
        return (event["service"], event["event_id"])
    return (event.service, event.event_id)


def compare_audit_events_for_replay(left: Any, right: Any) -> int:
    left_key = replay_key(left)
    right_key = replay_key(right)
    return (left_key > right_key) - (left_key < right_key)


def sort_audit_events_for_replay(events: Iterable[Any]) -> List[Any]:
    """Return a new list of events in replay order (stable)"""
    return sorted(events, key=replay_key)


def find_duplicate_audit_events(events: Sequence[Any]) -> List[Tuple[int, Tuple[str, str]]]:
    """
    List every event whose (service, event_id) was already seen

    Returns:
        (index, identity) pairs for the second and later occurrences
    """
    seen = set()
    duplicates = []

    for index, event in enumerate(events):
        identity = event_identity(event)
        if identity in seen:
            duplicates.append((index, identity))
        seen.add(identity)

    return duplicates


def validate_replay_batch(events: Sequence[Any]) -> None:
    """
    Validate a pre-sorted replay batch

    Raises:
        DuplicateAuditEventError: If two events share (service, event_id)
        ReplayOrderError: If any event sorts before its predecessor
    """
    seen = set()

    for index, event in enumerate(events):
        identity = event_identity(event)
        if identity in seen:
            raise DuplicateAuditEventError(index, identity)
        seen.add(identity)

        if index and compare_audit_events_for_replay(events[index - 1], event) > 0:
            raise ReplayOrderError(index)

    logger.debug(f"Validated replay batch of {len(events)} events")


def build_replay_batch(events: Iterable[Any], generated_at: str) -> CrossServiceAuditReplay:
    """
    Validate, sort and wrap events into a replay batch

    Args:
        events: Audit events as models or plain mappings
        generated_at: ISO UTC timestamp of batch generation

    Returns:
        CrossServiceAuditReplay with events in replay order

    Raises:
        pydantic.ValidationError: If an event is invalid or identities collide
    """
    validated = [
        event if isinstance(event, CrossServiceAuditEvent) else CrossServiceAuditEvent.model_validate(event)
        for event in events
    ]
    ordered = sort_audit_events_for_replay(validated)

    logger.info(f"Built replay batch of {len(ordered)} events")
    return CrossServiceAuditReplay(generated_at=generated_at, events=ordered)


def replay_summary(events: Sequence[Any]) -> Dict[str, Any]:
    """Counts per service plus the first and last replay positions"""
    per_service: Dict[str, int] = {}
    for event in events:
        service = event_identity(event)[0]
        per_service[service] = per_service.get(service, 0) + 1

    return {
        'total_events': len(events),
        'per_service': dict(sorted(per_service.items())),
        'first_occurred_at': replay_key(events[0])[0] if events else None,
        'last_occurred_at': replay_key(events[-1])[0] if events else None,
    }
