"""
Version tags embedded in persisted restore and audit payloads
Any change to canonicalization or tie-break rules must bump the matching tag
"""

RESTORE_CONTRACT_VERSION = "restore.contracts.v1"
RESTORE_METADATA_ALLOWLIST_VERSION = "rrs.metadata.allowlist.v1"
PIT_ALGORITHM_VERSION = "pit.v1.sys_updated_on-sys_mod_count-__time-event_id"
PLAN_HASH_INPUT_VERSION = "plan-hash-input.v1"
PLAN_HASH_ALGORITHM = "sha256"
EVIDENCE_CANONICALIZATION_VERSION = "evidence.canonical-json.v1"

AUDIT_CONTRACT_VERSION = "audit.contracts.v1"
AUDIT_EVENT_SCHEMA_VERSION = "audit.event.v1"
AUDIT_REPLAY_ORDER_VERSION = "audit.replay.v1.occurred_at-service-event_id"

# PIT tie-break chains, in comparison order
PIT_TIE_BREAKER = ("sys_updated_on", "sys_mod_count", "__time", "event_id")
PIT_TIE_BREAKER_FALLBACK = ("sys_updated_on", "__time", "event_id")
