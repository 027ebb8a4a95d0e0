"""
Restore v1 Pydantic Models

Contract models for restore plan identity and point-in-time row selection.
All models forbid unknown fields and enforce the cross-field invariants
that the plan hash relies on.
"""

import re
from typing import Annotated, Any, List, Literal, Optional, Tuple

from pydantic import AfterValidator, BeforeValidator, ConfigDict, Field, model_validator

from rezcore.contracts.base import ContractModel
from rezcore.timestamps import canonicalize_iso_datetime_utc, SERVICENOW_DATETIME_REGEX
from rezcore.versions import (
    PIT_ALGORITHM_VERSION,
    PIT_TIE_BREAKER,
    PIT_TIE_BREAKER_FALLBACK,
    PLAN_HASH_ALGORITHM,
    PLAN_HASH_INPUT_VERSION,
    RESTORE_CONTRACT_VERSION,
    RESTORE_METADATA_ALLOWLIST_VERSION,
)

OFFSET_DECIMAL_STRING_ERROR = "must be non-negative integer offset as decimal string"
SHA256_HEX_REGEX = re.compile(r"^[a-fA-F0-9]{64}$")

RRS_METADATA_ALLOWLIST_FIELDS = (
    "tenant_id",
    "instance_id",
    "source",
    "table",
    "record_sys_id",
    "attachment_sys_id",
    "media_id",
    "event_id",
    "event_type",
    "operation",
    "schema_version",
    "sys_updated_on",
    "sys_mod_count",
    "__time",
    "topic",
    "partition",
    "offset",
    "content_type",
    "size_bytes",
    "sha256_plain",
)


def canonicalize_restore_offset_decimal_string(value: Any) -> str:
    """
    Normalize a Kafka offset to its canonical decimal string

    Accepts a non-negative safe integer or a string of ASCII digits;
    leading zeros are dropped (``"007"`` -> ``"7"``).
    """
    if isinstance(value, bool):
        raise ValueError(OFFSET_DECIMAL_STRING_ERROR)

    if isinstance(value, float) and value.is_integer():
        value = int(value)

    if isinstance(value, int):
        if value < 0 or value > 2 ** 53 - 1:
            raise ValueError(OFFSET_DECIMAL_STRING_ERROR)
        return str(value)

    if isinstance(value, str) and re.fullmatch(r"[0-9]+", value):
        return str(int(value))

    raise ValueError(OFFSET_DECIMAL_STRING_ERROR)


def is_restore_offset_decimal_string(value: Any) -> bool:
    try:
        canonicalize_restore_offset_decimal_string(value)
    except ValueError:
        return False
    return True


def normalize_sha256_hex(value: str) -> str:
    if not SHA256_HEX_REGEX.fullmatch(value):
        raise ValueError("must be 64-char SHA-256 hex digest")
    return value.lower()


def _check_iso_datetime(value: str) -> str:
    canonicalize_iso_datetime_utc(value)
    return value


NonEmptyStr = Annotated[str, Field(min_length=1)]
NonEmptyStrList = Annotated[List[NonEmptyStr], Field(min_length=1)]
NonNegativeInt = Annotated[int, Field(strict=True, ge=0)]
PositiveInt = Annotated[int, Field(strict=True, gt=0)]
Sha256Hex = Annotated[str, AfterValidator(normalize_sha256_hex)]
# Restore timestamps are validated but hashed exactly as supplied
IsoDateTime = Annotated[str, AfterValidator(_check_iso_datetime)]
ServiceNowDateTime = Annotated[str, Field(pattern=SERVICENOW_DATETIME_REGEX.pattern)]
RestoreOffsetDecimalString = Annotated[str, BeforeValidator(canonicalize_restore_offset_decimal_string)]

RestorePlanAction = Literal["update", "insert", "delete", "skip"]
RestoreMediaDecision = Literal["include", "exclude"]


class EncryptedPayload(ContractModel):
    """Ciphertext envelope; the core never decrypts it"""

    model_config = ConfigDict(extra="forbid")

    v: Optional[PositiveInt] = None
    alg: NonEmptyStr
    kid: Optional[NonEmptyStr] = None
    module: Optional[NonEmptyStr] = None
    format: Optional[NonEmptyStr] = None
    compression: Optional[Literal["gzip", "none"]] = None
    ciphertext: NonEmptyStr
    sha256: Optional[NonEmptyStr] = None


class RrsOperationalMetadata(ContractModel):
    """Allowlisted operational fields carried next to a restore row"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    tenant_id: Optional[NonEmptyStr] = None
    instance_id: Optional[NonEmptyStr] = None
    source: Optional[NonEmptyStr] = None
    table: Optional[NonEmptyStr] = None
    record_sys_id: Optional[NonEmptyStr] = None
    attachment_sys_id: Optional[NonEmptyStr] = None
    media_id: Optional[NonEmptyStr] = None
    event_id: Optional[NonEmptyStr] = None
    event_type: Optional[NonEmptyStr] = None
    operation: Optional[Literal["I", "U", "D"]] = None
    schema_version: Optional[PositiveInt] = None
    sys_updated_on: Optional[ServiceNowDateTime] = None
    sys_mod_count: Optional[NonNegativeInt] = None
    event_time: Optional[IsoDateTime] = Field(default=None, alias="__time")
    topic: Optional[NonEmptyStr] = None
    partition: Optional[NonNegativeInt] = None
    offset: Optional[RestoreOffsetDecimalString] = None
    content_type: Optional[NonEmptyStr] = None
    size_bytes: Optional[NonNegativeInt] = None
    sha256_plain: Optional[Sha256Hex] = None


class RrsMetadataEnvelope(ContractModel):
    model_config = ConfigDict(extra="forbid")

    allowlist_version: Literal[RESTORE_METADATA_ALLOWLIST_VERSION] = RESTORE_METADATA_ALLOWLIST_VERSION
    metadata: RrsOperationalMetadata


class RestoreScope(ContractModel):
    """What a restore plan is allowed to touch"""

    model_config = ConfigDict(extra="forbid")

    mode: Literal["table", "record", "column"]
    tables: NonEmptyStrList
    encoded_query: Optional[NonEmptyStr] = None
    record_sys_ids: Optional[NonEmptyStrList] = None
    columns: Optional[NonEmptyStrList] = None

    @model_validator(mode="after")
    def validate_mode_filters(self) -> "RestoreScope":
        has_record_filter = self.encoded_query is not None or self.record_sys_ids is not None

        if self.mode == "record" and not has_record_filter:
            raise ValueError("record mode requires encoded_query or record_sys_ids")

        if self.mode == "column":
            if not self.columns:
                raise ValueError("column mode requires at least one column")
            if not has_record_filter:
                raise ValueError("column mode requires encoded_query or record_sys_ids")

        return self


class RestorePitContract(ContractModel):
    """Restore point in time and the tie-break chain used to pick row versions"""

    model_config = ConfigDict(extra="forbid")

    restore_time: IsoDateTime
    restore_timezone: Literal["UTC"] = "UTC"
    pit_algorithm_version: Literal[PIT_ALGORITHM_VERSION] = PIT_ALGORITHM_VERSION
    tie_breaker: Tuple[
        Literal["sys_updated_on"],
        Literal["sys_mod_count"],
        Literal["__time"],
        Literal["event_id"],
    ] = PIT_TIE_BREAKER
    tie_breaker_fallback: Tuple[
        Literal["sys_updated_on"],
        Literal["__time"],
        Literal["event_id"],
    ] = PIT_TIE_BREAKER_FALLBACK


class RestorePitRowTuple(ContractModel):
    """Evidence used to decide which observed write to a row is authoritative"""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    sys_updated_on: ServiceNowDateTime
    sys_mod_count: Optional[NonNegativeInt] = None
    event_time: IsoDateTime = Field(alias="__time")
    event_id: NonEmptyStr


def _check_metadata_identity(metadata: Optional[RrsMetadataEnvelope], table: str, record_sys_id: str) -> None:
    if metadata is None:
        return
    if metadata.metadata.table and metadata.metadata.table != table:
        raise ValueError("metadata.table must match table")
    if metadata.metadata.record_sys_id and metadata.metadata.record_sys_id != record_sys_id:
        raise ValueError("metadata.record_sys_id must match record_sys_id")


class RestoreMediaCandidate(ContractModel):
    """Attachment considered for restore"""

    model_config = ConfigDict(extra="forbid")

    candidate_id: NonEmptyStr
    table: NonEmptyStr
    record_sys_id: NonEmptyStr
    attachment_sys_id: Optional[NonEmptyStr] = None
    media_id: Optional[NonEmptyStr] = None
    content_type: Optional[NonEmptyStr] = None
    size_bytes: NonNegativeInt
    sha256_plain: Sha256Hex
    decision: Optional[RestoreMediaDecision] = None
    parent_record_exists: Optional[bool] = None
    observed_sha256_plain: Optional[Sha256Hex] = None
    retryable_failures: Optional[NonNegativeInt] = None
    max_retry_attempts: Optional[PositiveInt] = None
    metadata: Optional[RrsMetadataEnvelope] = None

    @model_validator(mode="after")
    def validate_identity(self) -> "RestoreMediaCandidate":
        if not self.attachment_sys_id and not self.media_id:
            raise ValueError("media candidate requires attachment_sys_id or media_id")
        _check_metadata_identity(self.metadata, self.table, self.record_sys_id)
        return self


class RestoreEncryptedValueEnvelope(ContractModel):
    """Encrypted row images; plaintext counterparts are rejected"""

    model_config = ConfigDict(extra="forbid")

    diff_enc: Optional[EncryptedPayload] = None
    before_image_enc: Optional[EncryptedPayload] = None
    after_image_enc: Optional[EncryptedPayload] = None
    diff_plain: Optional[Any] = None
    before_image_plain: Optional[Any] = None
    after_image_plain: Optional[Any] = None

    @model_validator(mode="after")
    def reject_plaintext(self) -> "RestoreEncryptedValueEnvelope":
        for name in ("diff_plain", "before_image_plain", "after_image_plain"):
            if name in self.model_fields_set:
                raise ValueError(f"{name} is not allowed in RRS payloads")
        return self

    @property
    def has_encrypted_values(self) -> bool:
        return any(
            payload is not None
            for payload in (self.diff_enc, self.before_image_enc, self.after_image_enc)
        )


class RestorePlanHashRowInput(ContractModel):
    """One row's contribution to a restore plan"""

    model_config = ConfigDict(extra="forbid")

    row_id: NonEmptyStr
    table: NonEmptyStr
    record_sys_id: NonEmptyStr
    action: RestorePlanAction
    precondition_hash: Sha256Hex
    metadata: RrsMetadataEnvelope
    values: Optional[RestoreEncryptedValueEnvelope] = None

    @model_validator(mode="after")
    def validate_row(self) -> "RestorePlanHashRowInput":
        _check_metadata_identity(self.metadata, self.table, self.record_sys_id)

        if self.action != "skip" and (self.values is None or not self.values.has_encrypted_values):
            raise ValueError("non-skip plan rows require encrypted value material")

        return self


class RestoreActionCounts(ContractModel):
    model_config = ConfigDict(extra="forbid")

    update: NonNegativeInt
    insert: NonNegativeInt
    delete: NonNegativeInt
    skip: NonNegativeInt
    conflict: NonNegativeInt
    attachment_apply: NonNegativeInt
    attachment_skip: NonNegativeInt


class RestoreExecutionOptions(ContractModel):
    model_config = ConfigDict(extra="forbid")

    missing_row_mode: Literal["existing_only", "explicit_insert"]
    conflict_policy: Literal["review_required"] = "review_required"
    schema_compatibility_mode: Literal["compatible_only", "manual_override"]
    workflow_mode: Literal["suppressed_default", "allowlist"]


def _check_sorted_unique(identifiers: List[str], collection: str, id_field: str) -> None:
    if len(set(identifiers)) != len(identifiers):
        raise ValueError(f"{collection} must have unique {id_field} values")
    if identifiers != sorted(identifiers):
        raise ValueError(f"{collection} must be sorted by {id_field} for deterministic hash")


class RestorePlanHashInput(ContractModel):
    """
    Complete set of facts that determine a restore plan's identity

    Rows and media candidates arrive already sorted by identifier; the
    hash computer never reorders them.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    contract_version: Literal[RESTORE_CONTRACT_VERSION] = RESTORE_CONTRACT_VERSION
    plan_hash_input_version: Literal[PLAN_HASH_INPUT_VERSION] = PLAN_HASH_INPUT_VERSION
    plan_hash_algorithm: Literal[PLAN_HASH_ALGORITHM] = PLAN_HASH_ALGORITHM
    pit: RestorePitContract
    scope: RestoreScope
    execution_options: RestoreExecutionOptions
    action_counts: RestoreActionCounts
    rows: List[RestorePlanHashRowInput] = Field(min_length=1)
    media_candidates: List[RestoreMediaCandidate] = Field(default_factory=list)
    metadata_allowlist_version: Literal[RESTORE_METADATA_ALLOWLIST_VERSION] = RESTORE_METADATA_ALLOWLIST_VERSION

    @model_validator(mode="after")
    def validate_ordering(self) -> "RestorePlanHashInput":
        _check_sorted_unique([row.row_id for row in self.rows], "rows", "row_id")
        _check_sorted_unique(
            [candidate.candidate_id for candidate in self.media_candidates],
            "media_candidates",
            "candidate_id",
        )
        return self
