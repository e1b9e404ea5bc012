"""Tests for the append-only event log."""

import pytest

from labelflow.models.case import CaseStatus
from labelflow.models.event import DecisionMetadata, EventCategory, EventType
from labelflow.services.event_log import EventValidationError


class TestRecordEvent:
    """Test EventLog.record_event() validation and persistence."""

    def test_record_and_read_back(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        recorded = workflow.events.record_event(
            EventType.CASE_APPROVED, "authority-1", case_id=case.id, entity_id=case.entity_id
        )

        latest = workflow.events.get_latest_event(EventType.CASE_APPROVED, case_id=case.id)
        assert latest is not None
        assert latest.id == recorded.id
        assert latest.category == EventCategory.CASE
        assert latest.performed_by == "authority-1"
        assert workflow.events.has_event_occurred(EventType.CASE_APPROVED, case_id=case.id)
        assert workflow.events.get_event_performer(EventType.CASE_APPROVED, case_id=case.id) == "authority-1"

    def test_timestamp_comes_from_clock(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        workflow.events.record_event(EventType.CASE_APPROVED, "a", case_id=case.id, entity_id=case.entity_id)
        assert workflow.events.get_event_timestamp(EventType.CASE_APPROVED, case_id=case.id) == clock()

    def test_missing_required_reference_is_rejected(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        with pytest.raises(EventValidationError, match="requires entity_id"):
            workflow.events.record_event(EventType.CASE_APPROVED, "a", case_id=case.id)
        assert not workflow.events.has_event_occurred(EventType.CASE_APPROVED, case_id=case.id)

    def test_unknown_type_is_rejected(self, workflow, make_case):
        case = make_case()
        with pytest.raises(EventValidationError, match="Unknown event type"):
            workflow.events.record_event("SOMETHING_ELSE", "a", case_id=case.id)

    def test_actor_is_required(self, workflow, make_case):
        case = make_case()
        with pytest.raises(EventValidationError, match="requires an actor"):
            workflow.events.record_event(EventType.PLAN_UPLOADED, "", case_id=case.id)

    def test_metadata_model_is_stored_as_json(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_ACCEPTANCE)
        workflow.events.record_event(
            EventType.EVALUATOR_REFUSED,
            "evaluator-1",
            case_id=case.id,
            entity_id=case.entity_id,
            metadata=DecisionMetadata(reason="conflict of interest"),
        )
        event = workflow.events.get_latest_event(EventType.EVALUATOR_REFUSED, case_id=case.id)
        assert event.metadata == {"reason": "conflict of interest", "comment": None}


class TestEventQueries:
    """Test the read side of the event log."""

    def test_has_event_occurred_is_or_over_types(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_ACCEPTANCE)
        workflow.events.record_event(
            EventType.EVALUATOR_REFUSED, "e", case_id=case.id, entity_id=case.entity_id
        )
        assert workflow.events.has_event_occurred(
            [EventType.EVALUATOR_ACCEPTED, EventType.EVALUATOR_REFUSED], case_id=case.id
        )
        assert not workflow.events.has_event_occurred(EventType.EVALUATOR_ACCEPTED, case_id=case.id)

    def test_events_carry_the_audit_round(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_OPINION)
        first = workflow.events.record_event(EventType.EVALUATOR_OPINION_TRANSMITTED, "e", case_id=case.id)
        workflow.ctx.cases.start_next_audit_round(case.id, "tester")
        entity_event = workflow.events.record_event(
            EventType.ENTITY_DOCUMENTARY_REVIEW_READY, "entity-user", entity_id=case.entity_id
        )

        assert first.audit_round == 1
        assert entity_event.audit_round is None
        assert workflow.events.has_event_occurred(EventType.EVALUATOR_OPINION_TRANSMITTED, case_id=case.id)
        assert not workflow.events.has_event_occurred(
            EventType.EVALUATOR_OPINION_TRANSMITTED, case_id=case.id, audit_round=2
        )

        workflow.events.record_event(EventType.EVALUATOR_OPINION_TRANSMITTED, "e", case_id=case.id)
        assert workflow.events.count_events(EventType.EVALUATOR_OPINION_TRANSMITTED, case.id) == 2
        assert workflow.events.count_events(EventType.EVALUATOR_OPINION_TRANSMITTED, case.id, audit_round=2) == 1

    def test_filters_by_case(self, workflow, make_case):
        first = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        second = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        workflow.events.record_event(EventType.CASE_APPROVED, "a", case_id=first.id, entity_id=first.entity_id)
        assert workflow.events.has_event_occurred(EventType.CASE_APPROVED, case_id=first.id)
        assert not workflow.events.has_event_occurred(EventType.CASE_APPROVED, case_id=second.id)

    def test_latest_event_wins(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PENDING_AUTHORITY_DECISION)
        workflow.events.record_event(
            EventType.AUTHORITY_DECISION_REJECTED, "authority-1", case_id=case.id, entity_id=case.entity_id
        )
        clock.advance(days=3)
        workflow.events.record_event(
            EventType.AUTHORITY_DECISION_ACCEPTED, "authority-2", case_id=case.id, entity_id=case.entity_id
        )

        latest = workflow.events.get_latest_event(
            [EventType.AUTHORITY_DECISION_ACCEPTED, EventType.AUTHORITY_DECISION_REJECTED], case_id=case.id
        )
        assert latest.type == EventType.AUTHORITY_DECISION_ACCEPTED
        assert latest.performed_by == "authority-2"

    def test_case_events_newest_first_and_entity_timeline_oldest_first(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        workflow.events.record_event(EventType.CASE_SUBMITTED, "u", case_id=case.id, entity_id=case.entity_id)
        clock.advance(hours=1)
        workflow.events.record_event(EventType.CASE_APPROVED, "a", case_id=case.id, entity_id=case.entity_id)
        clock.advance(hours=1)
        workflow.events.record_event(EventType.ENTITY_DOCUMENTARY_REVIEW_READY, "u", entity_id=case.entity_id)

        case_events = workflow.events.get_case_events(case.id)
        assert [e.type for e in case_events] == [EventType.CASE_APPROVED, EventType.CASE_SUBMITTED]

        timeline = workflow.events.get_entity_timeline(case.entity_id)
        assert [e.type for e in timeline] == [
            EventType.CASE_SUBMITTED,
            EventType.CASE_APPROVED,
            EventType.ENTITY_DOCUMENTARY_REVIEW_READY,
        ]

    def test_get_case_events_filtered_by_type(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        workflow.events.record_event(EventType.CASE_SUBMITTED, "u", case_id=case.id, entity_id=case.entity_id)
        workflow.events.record_event(EventType.CASE_APPROVED, "a", case_id=case.id, entity_id=case.entity_id)
        events = workflow.events.get_case_events(case.id, EventType.CASE_APPROVED)
        assert [e.type for e in events] == [EventType.CASE_APPROVED]
