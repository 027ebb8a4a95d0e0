"""
Legacy audit event adapters
Translate pre-v1 auth and restore-job events into the unified audit event
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

from rezcore.contracts.audit_v1 import (
    CrossServiceAuditEvent,
    LegacyAuthAuditEvent,
    LegacyRestoreAuditContext,
    LegacyRestoreJobAuditEvent,
)

logger = logging.getLogger(__name__)

# Legacy services write "none" instead of omitting the reason
REASON_CODE_NONE = "none"

LEGACY_RESTORE_LIFECYCLE = {
    'job_created': ('plan', 'job_created', 'accepted'),
    'job_queued': ('execute', 'queued_for_lock', 'queued'),
    'job_started': ('execute', 'started', 'started'),
    'job_paused': ('resume', 'paused', 'paused'),
    'job_completed': ('execute', 'completed', 'completed'),
    'job_failed': ('execute', 'failed', 'failed'),
    'job_cancelled': ('execute', 'cancelled', 'cancelled'),
}

RESUMED_JOB_LIFECYCLE = ('resume', 'resumed', 'started')


def infer_actor_type(actor: str) -> str:
    if "@" in actor:
        return "user"
    if actor.startswith(("svc:", "service:")):
        return "service"
    return "system"


def map_legacy_auth_outcome(event_type: str) -> str:
    if event_type.endswith("_denied"):
        return "denied"
    if event_type.endswith("_started"):
        return "started"
    if event_type.endswith("_completed"):
        return "completed"
    return "accepted"


def _parse(model, value):
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def _reason_code(value: Optional[str]) -> Optional[str]:
    if value and value != REASON_CODE_NONE:
        return value
    return None


def map_legacy_restore_lifecycle(event: LegacyRestoreJobAuditEvent) -> tuple:
    """
    Look up (lifecycle, action, outcome) for a legacy restore job event

    ``job_started`` is a resume when the job came back from a pause.
    """
    if event.event_type == "job_started" and event.details.get("resumed_from_pause") is True:
        return RESUMED_JOB_LIFECYCLE
    return LEGACY_RESTORE_LIFECYCLE[event.event_type]


def from_legacy_auth_audit_event(
    legacy_event: Union[LegacyAuthAuditEvent, Mapping[str, Any]]
) -> CrossServiceAuditEvent:
    """
    Convert a legacy auth control-plane event into a unified audit event

    Args:
        legacy_event: Legacy event as a model or plain mapping

    Returns:
        Validated CrossServiceAuditEvent from service ``acp``

    Raises:
        pydantic.ValidationError: If the legacy event or the result is invalid
    """
    parsed = _parse(LegacyAuthAuditEvent, legacy_event)

    reason_code = _reason_code(parsed.deny_reason_code) or _reason_code(parsed.in_flight_reason_code)

    metadata: Dict[str, Any] = dict(parsed.metadata)
    metadata['legacy_event_type'] = parsed.event_type
    if parsed.client_id is not None:
        metadata['client_id'] = parsed.client_id
    if parsed.service_scope is not None:
        metadata['service_scope'] = parsed.service_scope

    fields: Dict[str, Any] = {
        'event_id': parsed.event_id,
        'occurred_at': parsed.occurred_at,
        'service': 'acp',
        'lifecycle': 'auth',
        'action': parsed.event_type,
        'outcome': map_legacy_auth_outcome(parsed.event_type),
        'metadata': metadata,
    }
    if parsed.tenant_id is not None:
        fields['tenant_id'] = parsed.tenant_id
    if parsed.instance_id is not None:
        fields['instance_id'] = parsed.instance_id
    if reason_code is not None:
        fields['reason_code'] = reason_code
    if parsed.actor:
        fields['actor'] = {'type': infer_actor_type(parsed.actor), 'id': parsed.actor}

    logger.debug(f"Mapped legacy auth event {parsed.event_id} ({parsed.event_type})")
    return CrossServiceAuditEvent.model_validate(fields)


def from_legacy_restore_job_audit_event(
    legacy_event: Union[LegacyRestoreJobAuditEvent, Mapping[str, Any]],
    context: Union[LegacyRestoreAuditContext, Mapping[str, Any]],
) -> CrossServiceAuditEvent:
    """
    Convert a legacy restore job lifecycle event into a unified audit event

    Args:
        legacy_event: Legacy restore job event
        context: Tenant, instance, source and plan linkage for the job

    Returns:
        Validated CrossServiceAuditEvent from service ``rrs``

    Raises:
        pydantic.ValidationError: If inputs or the result are invalid
    """
    parsed_event = _parse(LegacyRestoreJobAuditEvent, legacy_event)
    parsed_context = _parse(LegacyRestoreAuditContext, context)
    lifecycle, action, outcome = map_legacy_restore_lifecycle(parsed_event)

    metadata: Dict[str, Any] = dict(parsed_event.details)
    metadata['legacy_event_type'] = parsed_event.event_type

    fields: Dict[str, Any] = {
        'event_id': parsed_event.event_id,
        'occurred_at': parsed_event.created_at,
        'service': 'rrs',
        'lifecycle': lifecycle,
        'action': action,
        'outcome': outcome,
        'tenant_id': parsed_context.tenant_id,
        'instance_id': parsed_context.instance_id,
        'source': parsed_context.source,
        'job_id': parsed_event.job_id,
        'metadata': metadata,
    }
    if parsed_context.plan_id is not None:
        fields['plan_id'] = parsed_context.plan_id
    if parsed_context.plan_hash is not None:
        fields['plan_hash'] = parsed_context.plan_hash
    reason_code = _reason_code(parsed_event.reason_code)
    if reason_code is not None:
        fields['reason_code'] = reason_code

    logger.debug(f"Mapped legacy restore event {parsed_event.event_id} to {lifecycle}/{action}")
    return CrossServiceAuditEvent.model_validate(fields)
