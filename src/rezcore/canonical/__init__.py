"""
Canonical value model and serializer
Deterministic JSON text and SHA-256 fingerprints shared across services
"""

from .canonical_utils import (
    ABSENT,
    CanonicalValue,
    CanonicalizationError,
    UnsupportedValueError,
    canonical_bytes,
    canonical_hash,
    canonical_json,
    format_number,
    stable_hash,
    to_canonical_value,
    verify_canonical_hash,
)

__all__ = [
    'ABSENT',
    'CanonicalValue',
    'CanonicalizationError',
    'UnsupportedValueError',
    'canonical_bytes',
    'canonical_hash',
    'canonical_json',
    'format_number',
    'stable_hash',
    'to_canonical_value',
    'verify_canonical_hash',
]
