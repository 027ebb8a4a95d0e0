"""
Tests for restore plan hash computation
"""

import json
import re

import pytest

from rezcore.canonical.canonical_utils import CanonicalizationError, stable_hash
from rezcore.contracts.restore_v1 import RestorePlanHashInput
from rezcore.restore.plan_hash import (
    PlaintextLeakError,
    PlanHashResult,
    compute_restore_plan_hash,
    verify_restore_plan_hash,
)
from tests.factories import make_plan_hash_input, make_plan_hash_payload, make_row, make_row_metadata


class TestComputeRestorePlanHash:
    """Test plan hash determinism and sensitivity"""

    def test_result_shape(self, golden_plan_input):
        result = compute_restore_plan_hash(golden_plan_input)

        assert isinstance(result, PlanHashResult)
        assert re.fullmatch(r"[0-9a-f]{64}", result.plan_hash)
        assert result.plan_hash == stable_hash(result.canonical_json)
        assert result.to_dict() == {
            "canonical_json": result.canonical_json,
            "plan_hash": result.plan_hash,
        }

    def test_repeatable(self, golden_plan_input):
        """Same input, same bytes, same hash"""
        first = compute_restore_plan_hash(golden_plan_input)
        second = compute_restore_plan_hash(make_plan_hash_input())
        assert first == second

    def test_key_insertion_order_does_not_matter(self, golden_plan_input):
        payload = make_plan_hash_payload()
        reordered = {key: payload[key] for key in reversed(list(payload))}

        assert (
            compute_restore_plan_hash(RestorePlanHashInput.model_validate(reordered))
            == compute_restore_plan_hash(golden_plan_input)
        )

    def test_reparsed_canonical_json_hashes_identically(self, golden_plan_input):
        result = compute_restore_plan_hash(golden_plan_input)
        again = compute_restore_plan_hash(json.loads(result.canonical_json))
        assert again == result

    def test_version_constants_are_hashed(self, golden_plan_input):
        canonical = compute_restore_plan_hash(golden_plan_input).canonical_json

        assert canonical.startswith('{"action_counts":')
        assert '"contract_version":"restore.contracts.v1"' in canonical
        assert '"plan_hash_algorithm":"sha256"' in canonical
        assert '"plan_hash_input_version":"plan-hash-input.v1"' in canonical
        assert '"pit_algorithm_version":"pit.v1.sys_updated_on-sys_mod_count-__time-event_id"' in canonical
        assert '"media_candidates":[]' in canonical

    def test_event_time_uses_wire_name(self, golden_plan_input):
        canonical = compute_restore_plan_hash(golden_plan_input).canonical_json
        assert '"__time":"2026-02-16T12:00:01.000Z"' in canonical
        assert '"event_time"' not in canonical

    def test_action_count_change_changes_hash(self, golden_plan_input):
        baseline = compute_restore_plan_hash(golden_plan_input).plan_hash
        changed = compute_restore_plan_hash(make_plan_hash_input(update=2)).plan_hash
        assert baseline != changed

    def test_offset_is_canonicalized_before_hashing(self):
        padded = make_row()
        padded["metadata"] = make_row_metadata(offset="00100")
        plain = make_row()
        plain["metadata"] = make_row_metadata(offset=100)

        assert (
            compute_restore_plan_hash(make_plan_hash_input(rows=[padded])).plan_hash
            == compute_restore_plan_hash(make_plan_hash_input(rows=[plain])).plan_hash
        )

    def test_row_order_is_not_normalized(self):
        """Pre-sorted input is hashed as given; reordering changes the hash"""
        rows = [make_row("row-01"), make_row("row-02", action="skip")]
        sorted_payload = make_plan_hash_payload(rows=rows, skip=1)
        reversed_payload = make_plan_hash_payload(rows=list(reversed(rows)), skip=1)

        assert (
            compute_restore_plan_hash(sorted_payload).plan_hash
            != compute_restore_plan_hash(reversed_payload).plan_hash
        )


class TestPlaintextGuard:
    """Test that plaintext row images never reach the hash"""

    def test_plaintext_value_rejected(self):
        row = make_row(values={"diff_plain": {"short_description": "secret"}})
        payload = make_plan_hash_payload(rows=[row])

        with pytest.raises(PlaintextLeakError) as exc_info:
            compute_restore_plan_hash(payload)
        assert exc_info.value.path == "$.rows[0].values.diff_plain"

    def test_snapshot_rejected_anywhere(self):
        payload = make_plan_hash_payload()
        payload["scope"]["snapshot"] = {"number": "INC0001"}

        with pytest.raises(PlaintextLeakError, match="snapshot"):
            compute_restore_plan_hash(payload)

    def test_explicit_null_plaintext_still_rejected(self):
        row = make_row(values={"before_image_plain": None})
        with pytest.raises(PlaintextLeakError):
            compute_restore_plan_hash(make_plan_hash_payload(rows=[row]))

    def test_leak_is_canonicalization_error(self):
        assert issubclass(PlaintextLeakError, CanonicalizationError)


class TestVerifyRestorePlanHash:
    """Test approved plan hash verification"""

    def test_verify_success(self, golden_plan_input):
        plan_hash = compute_restore_plan_hash(golden_plan_input).plan_hash
        assert verify_restore_plan_hash(golden_plan_input, plan_hash)
        assert verify_restore_plan_hash(golden_plan_input, plan_hash.upper())

    def test_verify_failure(self, golden_plan_input):
        assert not verify_restore_plan_hash(golden_plan_input, "0" * 64)

    def test_verify_detects_drift(self, golden_plan_input):
        approved = compute_restore_plan_hash(golden_plan_input).plan_hash
        assert not verify_restore_plan_hash(make_plan_hash_input(conflict=1), approved)

    @pytest.mark.parametrize("expected", [None, 0, "é" * 64, "ａ" * 64])
    def test_verify_malformed_expected_hash(self, golden_plan_input, expected):
        assert verify_restore_plan_hash(golden_plan_input, expected) is False
