"""
Cross-service audit replay ordering and legacy event translation
"""

from .replay_order import (
    DuplicateAuditEventError,
    ReplayBatchError,
    ReplayOrderError,
    build_replay_batch,
    compare_audit_events_for_replay,
    find_duplicate_audit_events,
    replay_key,
    sort_audit_events_for_replay,
    validate_replay_batch,
)
from .legacy import (
    from_legacy_auth_audit_event,
    from_legacy_restore_job_audit_event,
)

__all__ = [
    'DuplicateAuditEventError',
    'ReplayBatchError',
    'ReplayOrderError',
    'build_replay_batch',
    'compare_audit_events_for_replay',
    'find_duplicate_audit_events',
    'replay_key',
    'sort_audit_events_for_replay',
    'validate_replay_batch',
    'from_legacy_auth_audit_event',
    'from_legacy_restore_job_audit_event',
]
