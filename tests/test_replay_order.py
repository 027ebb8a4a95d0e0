"""
Tests for cross-service audit replay ordering
"""

import pytest
from pydantic import ValidationError

from rezcore.audit.replay_order import (
    DuplicateAuditEventError,
    ReplayBatchError,
    ReplayOrderError,
    build_replay_batch,
    compare_audit_events_for_replay,
    find_duplicate_audit_events,
    replay_summary,
    sort_audit_events_for_replay,
    validate_replay_batch,
)
from rezcore.contracts.audit_v1 import CrossServiceAuditReplay
from tests.factories import make_audit_event, make_audit_event_payload

SAME_INSTANT = "2026-02-16T12:00:00.000Z"


class TestCompareAuditEventsForReplay:
    """Test (occurred_at, service, event_id) ordering"""

    def test_occurred_at_first(self):
        early = make_audit_event(event_id="z", service="sn", occurred_at="2026-02-16T11:00:00.000Z")
        late = make_audit_event(event_id="a", service="acp", occurred_at="2026-02-16T12:00:00.000Z")

        assert compare_audit_events_for_replay(early, late) == -1
        assert compare_audit_events_for_replay(late, early) == 1

    def test_service_then_event_id(self):
        acp = make_audit_event(event_id="evt-2", service="acp")
        rrs_1 = make_audit_event(event_id="evt-1", service="rrs")
        rrs_2 = make_audit_event(event_id="evt-2", service="rrs")

        assert compare_audit_events_for_replay(acp, rrs_1) == -1
        assert compare_audit_events_for_replay(rrs_1, rrs_2) == -1
        assert compare_audit_events_for_replay(rrs_2, rrs_2) == 0

    def test_second_precision_is_canonicalized(self):
        """12:00:00Z and 12:00:00.000Z are the same instant and the same key"""
        seconds = make_audit_event(occurred_at="2026-02-16T12:00:00Z")
        millis = make_audit_event(occurred_at="2026-02-16T12:00:00.000Z")

        assert seconds.occurred_at == "2026-02-16T12:00:00.000Z"
        assert compare_audit_events_for_replay(seconds, millis) == 0

    def test_mappings_are_accepted(self):
        left = make_audit_event_payload(event_id="a")
        right = make_audit_event_payload(event_id="b")
        assert compare_audit_events_for_replay(left, right) == -1


class TestSortAuditEventsForReplay:

    def test_sorts_same_instant_by_service_then_event_id(self):
        events = [
            make_audit_event(event_id="evt-2", service="rrs"),
            make_audit_event(event_id="evt-9", service="acp"),
            make_audit_event(event_id="evt-1", service="rrs"),
            make_audit_event(event_id="evt-0", service="sn", occurred_at="2026-02-16T11:59:59.999Z"),
        ]

        ordered = sort_audit_events_for_replay(events)

        assert [(e.service, e.event_id) for e in ordered] == [
            ("sn", "evt-0"),
            ("acp", "evt-9"),
            ("rrs", "evt-1"),
            ("rrs", "evt-2"),
        ]

    def test_returns_new_list(self):
        events = [make_audit_event(event_id="b"), make_audit_event(event_id="a")]
        ordered = sort_audit_events_for_replay(events)

        assert ordered is not events
        assert [e.event_id for e in events] == ["b", "a"]

    def test_sorted_output_validates(self):
        events = [make_audit_event(event_id=f"evt-{i}", service=s) for i, s in enumerate(["sn", "acp", "rrs"])]
        validate_replay_batch(sort_audit_events_for_replay(events))


class TestValidateReplayBatch:
    """Test replay batch invariants"""

    def test_valid_batch(self):
        validate_replay_batch([make_audit_event(event_id="a"), make_audit_event(event_id="b")])

    def test_empty_batch_is_trivially_ordered(self):
        validate_replay_batch([])

    def test_unsorted_batch_rejected(self):
        events = [make_audit_event(event_id="b"), make_audit_event(event_id="a")]

        with pytest.raises(ReplayOrderError) as exc_info:
            validate_replay_batch(events)
        assert exc_info.value.index == 1

    def test_duplicate_identity_rejected(self):
        """Same (service, event_id) twice is a duplicate even at different times"""
        events = [
            make_audit_event(event_id="a", occurred_at="2026-02-16T12:00:00.000Z"),
            make_audit_event(event_id="a", occurred_at="2026-02-16T12:00:01.000Z"),
        ]

        with pytest.raises(DuplicateAuditEventError) as exc_info:
            validate_replay_batch(events)
        assert exc_info.value.index == 1
        assert exc_info.value.identity == ("rrs", "a")

    def test_same_event_id_on_different_services_allowed(self):
        validate_replay_batch([
            make_audit_event(event_id="a", service="acp"),
            make_audit_event(event_id="a", service="rrs"),
        ])

    def test_errors_share_base(self):
        assert issubclass(DuplicateAuditEventError, ReplayBatchError)
        assert issubclass(ReplayOrderError, ReplayBatchError)
        assert issubclass(ReplayBatchError, ValueError)


class TestFindDuplicateAuditEvents:

    def test_reports_every_repeat(self):
        events = [
            make_audit_event_payload(event_id="a"),
            make_audit_event_payload(event_id="a"),
            make_audit_event_payload(event_id="b"),
            make_audit_event_payload(event_id="a"),
        ]
        assert find_duplicate_audit_events(events) == [(1, ("rrs", "a")), (3, ("rrs", "a"))]

    def test_no_duplicates(self):
        assert find_duplicate_audit_events([make_audit_event(event_id="a")]) == []


class TestBuildReplayBatch:
    """Test replay batch construction"""

    def test_builds_sorted_batch(self):
        batch = build_replay_batch(
            [make_audit_event_payload(event_id="b"), make_audit_event_payload(event_id="a")],
            generated_at="2026-02-16T13:00:00Z",
        )

        assert isinstance(batch, CrossServiceAuditReplay)
        assert batch.generated_at == "2026-02-16T13:00:00.000Z"
        assert batch.replay_order_version == "audit.replay.v1.occurred_at-service-event_id"
        assert [e.event_id for e in batch.events] == ["a", "b"]

    def test_duplicates_rejected(self):
        with pytest.raises(ValidationError, match="unique by service:event_id"):
            build_replay_batch(
                [make_audit_event_payload(event_id="a"), make_audit_event_payload(event_id="a")],
                generated_at=SAME_INSTANT,
            )

    def test_empty_batch_rejected(self):
        with pytest.raises(ValidationError):
            build_replay_batch([], generated_at=SAME_INSTANT)

    def test_replay_model_rejects_unsorted_events(self):
        with pytest.raises(ValidationError, match="must be sorted"):
            CrossServiceAuditReplay.model_validate({
                "generated_at": SAME_INSTANT,
                "events": [make_audit_event_payload(event_id="b"), make_audit_event_payload(event_id="a")],
            })


class TestReplaySummary:

    def test_summary(self):
        events = sort_audit_events_for_replay([
            make_audit_event(event_id="a", service="rrs", occurred_at="2026-02-16T12:00:01.000Z"),
            make_audit_event(event_id="b", service="acp"),
            make_audit_event(event_id="c", service="rrs"),
        ])

        assert replay_summary(events) == {
            "total_events": 3,
            "per_service": {"acp": 1, "rrs": 2},
            "first_occurred_at": "2026-02-16T12:00:00.000Z",
            "last_occurred_at": "2026-02-16T12:00:01.000Z",
        }
