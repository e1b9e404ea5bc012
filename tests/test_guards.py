"""Tests for guard predicates."""

import uuid
from datetime import timedelta

import pytest

from labelflow.engine.guards import GUARDS, GuardName
from labelflow.models.case import CaseStatus, CaseType, CorrectivePlanRequirement
from labelflow.models.document import Document, DocumentCategory
from labelflow.models.event import EventType


def _guard(workflow, name, case):
    return GUARDS[name](workflow.ctx, case)


def _add_document(workflow, case, category, storage_key="documents/file.pdf"):
    return workflow.ctx.documents.create(Document(
        id=str(uuid.uuid4()),
        category=category,
        entity_id=case.entity_id,
        case_id=case.id,
        storage_key=storage_key,
        uploaded_by="tester",
        created_at=workflow.ctx.now(),
    ))


class TestReferenceGuards:
    """Evaluator presence, on the case or inherited from the entity."""

    def test_case_evaluator(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_CHOICE)
        assert _guard(workflow, GuardName.HAS_EVALUATOR_ASSIGNED, case)
        assert not _guard(workflow, GuardName.NO_EVALUATOR_ASSIGNED, case)

    def test_evaluator_inherited_from_entity(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_CHOICE, evaluator_id=None)
        assert case.evaluator_id is None
        assert _guard(workflow, GuardName.HAS_EVALUATOR_ASSIGNED, case)

    def test_no_evaluator_anywhere(self, workflow, make_case, entity_without_evaluator):
        case = make_case(
            CaseStatus.PENDING_EVALUATOR_CHOICE, entity_id=entity_without_evaluator.id, evaluator_id=None
        )
        assert not _guard(workflow, GuardName.HAS_EVALUATOR_ASSIGNED, case)
        assert _guard(workflow, GuardName.NO_EVALUATOR_ASSIGNED, case)


class TestCaseTypeGuards:
    """Evaluator acceptance is required for initial and renewal cases only."""

    @pytest.mark.parametrize("case_type,expected", [
        (CaseType.INITIAL, True),
        (CaseType.RENEWAL, True),
        (CaseType.MONITORING, False),
    ])
    def test_requires_evaluator_acceptance(self, workflow, make_case, case_type, expected):
        case = make_case(CaseStatus.PENDING_EVALUATOR_CHOICE, case_type=case_type)
        assert _guard(workflow, GuardName.REQUIRES_EVALUATOR_ACCEPTANCE, case) is expected
        assert _guard(workflow, GuardName.IS_MONITORING_CASE, case) is (not expected)


class TestDocumentGuards:
    """Only finalized documents (with a storage pointer) count."""

    def test_placeholder_does_not_count(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        placeholder = _add_document(workflow, case, DocumentCategory.PLAN, storage_key=None)
        assert not placeholder.is_finalized
        assert not _guard(workflow, GuardName.HAS_PLAN_DOCUMENT, case)

        uploaded = _add_document(workflow, case, DocumentCategory.PLAN)
        assert uploaded.is_finalized
        assert _guard(workflow, GuardName.HAS_PLAN_DOCUMENT, case)

    def test_category_must_match(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_REPORT)
        _add_document(workflow, case, DocumentCategory.PLAN)
        assert not _guard(workflow, GuardName.HAS_REPORT_DOCUMENT, case)

    def test_corrective_plan_presence(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_CORRECTIVE_PLAN)
        assert _guard(workflow, GuardName.NO_CORRECTIVE_PLAN_UPLOADED, case)
        _add_document(workflow, case, DocumentCategory.CORRECTIVE_PLAN)
        assert _guard(workflow, GuardName.HAS_CORRECTIVE_PLAN_DOCUMENT, case)
        assert not _guard(workflow, GuardName.NO_CORRECTIVE_PLAN_UPLOADED, case)


    def test_only_the_current_audit_round_counts(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        _add_document(workflow, case, DocumentCategory.PLAN)
        assert _guard(workflow, GuardName.HAS_PLAN_DOCUMENT, case)

        case = workflow.ctx.cases.start_next_audit_round(case.id, "tester")

        assert case.audit_round == 2
        assert not _guard(workflow, GuardName.HAS_PLAN_DOCUMENT, case)
        assert _guard(workflow, GuardName.NO_CORRECTIVE_PLAN_UPLOADED, case)


class TestDateGuards:
    """Dates are compared with today (time of day ignored)."""

    def test_missing_dates(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        assert not _guard(workflow, GuardName.HAS_ACTUAL_DATES, case)
        assert not _guard(workflow, GuardName.END_DATE_IS_FUTURE, case)
        assert not _guard(workflow, GuardName.END_DATE_PASSED, case)

    def test_end_date_today_counts_as_passed(self, workflow, make_case, clock):
        today = clock().date()
        case = make_case(
            CaseStatus.PLANNING, actual_start_date=today - timedelta(days=2), actual_end_date=today
        )
        assert _guard(workflow, GuardName.HAS_ACTUAL_DATES, case)
        assert _guard(workflow, GuardName.END_DATE_PASSED, case)
        assert not _guard(workflow, GuardName.END_DATE_IS_FUTURE, case)

    def test_end_date_tomorrow_is_future(self, workflow, make_case, clock):
        today = clock().date()
        case = make_case(CaseStatus.PLANNING, actual_start_date=today, actual_end_date=today + timedelta(days=1))
        assert _guard(workflow, GuardName.END_DATE_IS_FUTURE, case)
        assert not _guard(workflow, GuardName.END_DATE_PASSED, case)

    def test_guard_follows_the_clock(self, workflow, make_case, clock):
        today = clock().date()
        case = make_case(CaseStatus.SCHEDULED, actual_start_date=today, actual_end_date=today + timedelta(days=3))
        assert not _guard(workflow, GuardName.END_DATE_PASSED, case)
        clock.advance(days=3)
        assert _guard(workflow, GuardName.END_DATE_PASSED, case)


class TestScalarAndEventGuards:
    """Score, corrective plan requirement and event occurrence."""

    def test_global_score(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_REPORT)
        assert not _guard(workflow, GuardName.HAS_GLOBAL_SCORE, case)
        case = workflow.ctx.cases.update_fields(case.id, "tester", global_score=0.0)
        assert _guard(workflow, GuardName.HAS_GLOBAL_SCORE, case)

    def test_needs_corrective_plan(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_EVALUATOR_OPINION)
        assert not _guard(workflow, GuardName.NEEDS_CORRECTIVE_PLAN, case)
        case = workflow.ctx.cases.update_fields(
            case.id, "tester", corrective_plan_requirement=CorrectivePlanRequirement.REQUIRED
        )
        assert _guard(workflow, GuardName.NEEDS_CORRECTIVE_PLAN, case)

    def test_event_guard(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_CASE_APPROVAL)
        assert not _guard(workflow, GuardName.CASE_APPROVED, case)
        workflow.events.record_event(EventType.CASE_APPROVED, "authority", case_id=case.id, entity_id=case.entity_id)
        assert _guard(workflow, GuardName.CASE_APPROVED, case)

    def test_rejection_is_not_acceptance(self, workflow, make_case):
        case = make_case(CaseStatus.PENDING_AUTHORITY_DECISION)
        workflow.events.record_event(
            EventType.AUTHORITY_DECISION_REJECTED, "authority", case_id=case.id, entity_id=case.entity_id
        )
        assert not _guard(workflow, GuardName.AUTHORITY_DECISION_ACCEPTED, case)
