"""
Restore plan hash computation
Binds a plan's canonical content to the identity that jobs and evidence reference
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from rezcore.canonical.canonical_utils import (
    CanonicalizationError,
    CanonicalValue,
    canonical_json,
    stable_hash,
    to_canonical_value,
)
from rezcore.contracts.restore_v1 import RestorePlanHashInput

logger = logging.getLogger(__name__)

# Reserved names that may only ever appear in encrypted form
PLAINTEXT_FIELDS = frozenset({"diff_plain", "before_image_plain", "after_image_plain", "snapshot"})


class PlaintextLeakError(CanonicalizationError):
    """Raised when a plaintext value field reaches plan hashing"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"plaintext field {path} is not allowed in plan hash input")


@dataclass(frozen=True)
class PlanHashResult:
    """Canonical plan text and its digest, stored together as evidence"""

    canonical_json: str
    plan_hash: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'canonical_json': self.canonical_json,
            'plan_hash': self.plan_hash,
        }


def _reject_plaintext(value: CanonicalValue, path: str = "$") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if key in PLAINTEXT_FIELDS:
                raise PlaintextLeakError(f"{path}.{key}")
            _reject_plaintext(item, f"{path}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _reject_plaintext(item, f"{path}[{index}]")


def compute_restore_plan_hash(plan_input: Union[RestorePlanHashInput, Mapping[str, Any]]) -> PlanHashResult:
    """
    Compute the canonical JSON and SHA-256 plan hash of a plan hash input

    Args:
        plan_input: Validated plan hash input, as a model or a plain mapping
            (for example the parsed ``canonical_json`` of an earlier result)

    Returns:
        PlanHashResult with the canonical text and lowercase hex digest

    Raises:
        UnsupportedValueError: If the input holds values outside the value model
        PlaintextLeakError: If a reserved plaintext field is present
    """
    canonical_value = to_canonical_value(plan_input)
    _reject_plaintext(canonical_value)

    canonical = canonical_json(canonical_value)
    plan_hash = stable_hash(canonical)

    logger.debug(f"Computed plan hash {plan_hash} over {len(canonical)} canonical characters")

    return PlanHashResult(canonical_json=canonical, plan_hash=plan_hash)


def verify_restore_plan_hash(plan_input: Union[RestorePlanHashInput, Mapping[str, Any]], expected_hash: str) -> bool:
    """
    Check that a plan hash input still produces the approved plan hash

    Args:
        plan_input: Validated plan hash input
        expected_hash: Plan hash recorded at approval time (hex, any case)

    Returns:
        True if the recomputed hash matches; False for any other
        expected value, including non-text or non-ASCII input
    """
    computed = compute_restore_plan_hash(plan_input).plan_hash
    if not isinstance(expected_hash, str) or not expected_hash.isascii():
        logger.warning(f"Plan hash mismatch: expected hash {expected_hash!r} is not hex text")
        return False
    matches = hmac.compare_digest(computed, expected_hash.strip().lower())

    if not matches:
        logger.warning(f"Plan hash mismatch: expected {expected_hash}, computed {computed}")

    return matches
