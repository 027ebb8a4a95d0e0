"""
Contract models for restore plans and cross-service audit events
"""

from .base import ContractModel
from .restore_v1 import (
    EncryptedPayload,
    RestoreActionCounts,
    RestoreEncryptedValueEnvelope,
    RestoreExecutionOptions,
    RestoreMediaCandidate,
    RestorePitContract,
    RestorePitRowTuple,
    RestorePlanHashInput,
    RestorePlanHashRowInput,
    RestoreScope,
    RrsMetadataEnvelope,
    RrsOperationalMetadata,
    canonicalize_restore_offset_decimal_string,
    is_restore_offset_decimal_string,
    normalize_sha256_hex,
)
from .audit_v1 import (
    AuditActor,
    AuditCorrelation,
    CrossServiceAuditEvent,
    CrossServiceAuditReplay,
    LegacyAuthAuditEvent,
    LegacyRestoreAuditContext,
    LegacyRestoreJobAuditEvent,
)

__all__ = [
    'ContractModel',
    'EncryptedPayload',
    'RestoreActionCounts',
    'RestoreEncryptedValueEnvelope',
    'RestoreExecutionOptions',
    'RestoreMediaCandidate',
    'RestorePitContract',
    'RestorePitRowTuple',
    'RestorePlanHashInput',
    'RestorePlanHashRowInput',
    'RestoreScope',
    'RrsMetadataEnvelope',
    'RrsOperationalMetadata',
    'canonicalize_restore_offset_decimal_string',
    'is_restore_offset_decimal_string',
    'normalize_sha256_hex',
    'AuditActor',
    'AuditCorrelation',
    'CrossServiceAuditEvent',
    'CrossServiceAuditReplay',
    'LegacyAuthAuditEvent',
    'LegacyRestoreAuditContext',
    'LegacyRestoreJobAuditEvent',
]
