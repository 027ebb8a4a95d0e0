"""
Audit v1 Pydantic Models

Unified cross-service audit event, the replay batch that carries a merged
timeline, and the two legacy event shapes still emitted by older services.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple

from pydantic import AfterValidator, ConfigDict, Field, model_validator

from rezcore.contracts.base import ContractModel
from rezcore.contracts.restore_v1 import IsoDateTime, NonEmptyStr, Sha256Hex
from rezcore.timestamps import canonicalize_iso_datetime_utc
from rezcore.versions import (
    AUDIT_CONTRACT_VERSION,
    AUDIT_EVENT_SCHEMA_VERSION,
    AUDIT_REPLAY_ORDER_VERSION,
)

AUDIT_ACTION_PATTERN = r"^[a-z][a-z0-9_]*$"

AuditService = Literal["acp", "reg", "rrs", "sn"]
AuditLifecycle = Literal["auth", "plan", "execute", "resume", "override", "delete", "ingest"]
AuditOutcome = Literal[
    "attempted",
    "accepted",
    "denied",
    "queued",
    "started",
    "paused",
    "completed",
    "failed",
    "cancelled",
    "skipped",
]
AuditActorType = Literal["user", "service", "system"]

# Millisecond precision so lexical and chronological order coincide
CanonicalIsoDateTime = Annotated[str, AfterValidator(canonicalize_iso_datetime_utc)]
SnakeCaseAction = Annotated[str, Field(pattern=AUDIT_ACTION_PATTERN)]

JOB_BOUND_LIFECYCLES = ("execute", "resume", "override", "delete")


class AuditActor(ContractModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: AuditActorType
    id: NonEmptyStr
    display: Optional[NonEmptyStr] = None


class AuditCorrelation(ContractModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    request_id: Optional[NonEmptyStr] = None
    trace_id: Optional[NonEmptyStr] = None
    parent_event_id: Optional[NonEmptyStr] = None


class CrossServiceAuditEvent(ContractModel):
    """
    Audit event shared by every service in the restore pipeline

    External identity is ``(service, event_id)``; replay position is
    ``(occurred_at, service, event_id)``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    contract_version: Literal[AUDIT_CONTRACT_VERSION] = AUDIT_CONTRACT_VERSION
    schema_version: Literal[AUDIT_EVENT_SCHEMA_VERSION] = AUDIT_EVENT_SCHEMA_VERSION
    event_id: NonEmptyStr
    occurred_at: CanonicalIsoDateTime
    service: AuditService
    lifecycle: AuditLifecycle
    action: SnakeCaseAction
    outcome: AuditOutcome
    tenant_id: Optional[NonEmptyStr] = None
    instance_id: Optional[NonEmptyStr] = None
    source: Optional[NonEmptyStr] = None
    plan_id: Optional[NonEmptyStr] = None
    plan_hash: Optional[Sha256Hex] = None
    job_id: Optional[NonEmptyStr] = None
    reason_code: Optional[NonEmptyStr] = None
    actor: Optional[AuditActor] = None
    correlation: Optional[AuditCorrelation] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_linkage(self) -> "CrossServiceAuditEvent":
        if self.instance_id and not self.tenant_id:
            raise ValueError("instance_id requires tenant_id")

        if self.source and (not self.tenant_id or not self.instance_id):
            raise ValueError("source requires tenant_id and instance_id")

        if self.plan_hash and not self.plan_id:
            raise ValueError("plan_hash requires plan_id")

        if self.lifecycle == "plan" and not self.plan_id:
            raise ValueError("plan lifecycle events require plan_id")

        if self.lifecycle in JOB_BOUND_LIFECYCLES and not self.job_id:
            raise ValueError("execute/resume/override/delete lifecycle events require job_id")

        return self

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.service, self.event_id)

    @property
    def replay_key(self) -> Tuple[str, str, str]:
        return (self.occurred_at, self.service, self.event_id)


class CrossServiceAuditReplay(ContractModel):
    """Merged, deduplicated timeline handed to replay tooling"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    contract_version: Literal[AUDIT_CONTRACT_VERSION] = AUDIT_CONTRACT_VERSION
    replay_order_version: Literal[AUDIT_REPLAY_ORDER_VERSION] = AUDIT_REPLAY_ORDER_VERSION
    generated_at: CanonicalIsoDateTime
    events: List[CrossServiceAuditEvent] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_replay_order(self) -> "CrossServiceAuditReplay":
        from rezcore.audit.replay_order import validate_replay_batch

        validate_replay_batch(self.events)
        return self


class LegacyAuthAuditEvent(ContractModel):
    """Denial and session events from the auth control plane before audit v1"""

    model_config = ConfigDict(extra="forbid")

    event_id: NonEmptyStr
    event_type: SnakeCaseAction
    occurred_at: IsoDateTime
    actor: Optional[NonEmptyStr] = None
    tenant_id: Optional[NonEmptyStr] = None
    instance_id: Optional[NonEmptyStr] = None
    client_id: Optional[NonEmptyStr] = None
    service_scope: Optional[Literal["reg", "rrs"]] = None
    deny_reason_code: Optional[NonEmptyStr] = None
    in_flight_reason_code: Optional[NonEmptyStr] = None
    metadata: Dict[str, Any]


LegacyRestoreJobEventType = Literal[
    "job_created",
    "job_queued",
    "job_started",
    "job_paused",
    "job_completed",
    "job_failed",
    "job_cancelled",
]


class LegacyRestoreJobAuditEvent(ContractModel):
    """Restore job lifecycle event from the restore service before audit v1"""

    model_config = ConfigDict(extra="forbid")

    event_id: NonEmptyStr
    event_type: LegacyRestoreJobEventType
    job_id: NonEmptyStr
    reason_code: NonEmptyStr
    created_at: IsoDateTime
    details: Dict[str, Any]


class LegacyRestoreAuditContext(ContractModel):
    """Scope facts the legacy restore events never carried themselves"""

    model_config = ConfigDict(extra="forbid")

    tenant_id: NonEmptyStr
    instance_id: NonEmptyStr
    source: NonEmptyStr
    plan_id: Optional[NonEmptyStr] = None
    plan_hash: Optional[Sha256Hex] = None

    @model_validator(mode="after")
    def validate_plan_linkage(self) -> "LegacyRestoreAuditContext":
        if self.plan_hash and not self.plan_id:
            raise ValueError("plan_hash requires plan_id in legacy context")
        return self
