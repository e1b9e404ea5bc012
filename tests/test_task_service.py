"""Tests for TaskService creation, completion and cancellation."""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from labelflow.models.case import CaseStatus
from labelflow.models.task import Role, TaskStatus, TaskType
from labelflow.models.task_factory import create_task_base
from labelflow.services.workflow import build_workflow


class TestCreateTask:
    """Test deduplicated task creation."""

    def test_same_triple_twice_returns_task_then_none(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        first = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        second = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)

        assert first is not None
        assert first.status == TaskStatus.PENDING
        assert second is None
        assert len(workflow.tasks.list_tasks(case_id=case.id)) == 1

    def test_same_type_on_another_case_is_created(self, workflow, make_case):
        case_a = make_case(CaseStatus.PLANNING)
        case_b = make_case(CaseStatus.PLANNING)
        assert workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case_a.entity_id, case_id=case_a.id)
        assert workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case_b.entity_id, case_id=case_b.id)

    def test_unique_index_race_returns_none(self, workflow, make_case, monkeypatch):
        case = make_case(CaseStatus.PLANNING)
        assert workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id)

        # Simulate a concurrent creator: the existence check misses, the index catches it.
        monkeypatch.setattr(workflow.tasks.repository, "find_pending", lambda *args, **kwargs: None)
        assert workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id) is None

    def test_entity_level_race_returns_none(self, workflow, entity, monkeypatch):
        assert workflow.tasks.create_task(TaskType.ENTITY_SUBMIT_CASE, entity.id)

        monkeypatch.setattr(workflow.tasks.repository, "find_pending", lambda *args, **kwargs: None)
        assert workflow.tasks.create_task(TaskType.ENTITY_SUBMIT_CASE, entity.id) is None

        pending = workflow.tasks.list_tasks(entity_id=entity.id, status=TaskStatus.PENDING)
        assert [t.type for t in pending] == [TaskType.ENTITY_SUBMIT_CASE]

    def test_index_rejects_second_pending_entity_level_row(self, workflow, entity):
        repository = workflow.tasks.repository
        repository.create(create_task_base(TaskType.ENTITY_SUBMIT_CASE, entity.id))

        with pytest.raises(IntegrityError):
            repository.create(create_task_base(TaskType.ENTITY_SUBMIT_CASE, entity.id))

    def test_completed_entity_level_task_does_not_block(self, workflow, entity):
        first = workflow.tasks.create_task(TaskType.ENTITY_SUBMIT_CASE, entity.id)
        workflow.tasks.complete_task(first.id, "entity-user")

        assert workflow.tasks.create_task(TaskType.ENTITY_SUBMIT_CASE, entity.id) is not None

    def test_deadline_is_end_of_day(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)

        assert task.duration_days == 10
        assert task.deadline == datetime(2026, 3, 12, 23, 59, 59, 999999)
        assert task.created_at == clock()

    def test_custom_duration_overrides_default(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(
            TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id, custom_duration_days=2
        )
        assert task.duration_days == 2
        assert task.deadline == datetime(2026, 3, 4, 23, 59, 59, 999999)

    def test_roles_come_from_registry(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id)
        assert task.assigned_roles == [Role.EVALUATOR, Role.AUDITOR]

    def test_unknown_task_type_raises(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        with pytest.raises(ValueError):
            workflow.tasks.create_task("NOT_A_TASK", case.entity_id, case_id=case.id)

    def test_notifies_resolved_recipients(self, workflow, make_case, notifier, entity):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id)

        assert len(notifier.sent) == 1
        sent_task, recipients = notifier.sent[0]
        assert sent_task.id == task.id
        # No auditor assigned: only the evaluator is reachable.
        assert [(r.role, r.actor_id) for r in recipients] == [("EVALUATOR", entity.evaluator_id)]

    def test_failing_notifier_does_not_block_creation(self, db_session, make_case, clock, failing_notifier):
        case = make_case(CaseStatus.PLANNING)
        wf = build_workflow(db_session, notifier=failing_notifier, clock=clock)

        task = wf.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        assert task is not None
        assert wf.tasks.get_task(task.id).status == TaskStatus.PENDING


class TestCompleteTask:
    """Test task completion semantics."""

    def test_complete_sets_fields(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        clock.advance(hours=2)

        completed = workflow.tasks.complete_task(task.id, "evaluator-1")
        assert completed.status == TaskStatus.COMPLETED
        assert completed.completed_by == "evaluator-1"
        assert completed.completed_at == clock()

    def test_complete_is_idempotent(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        first = workflow.tasks.complete_task(task.id, "evaluator-1")
        clock.advance(days=1)
        second = workflow.tasks.complete_task(task.id, "someone-else")

        assert second.status == TaskStatus.COMPLETED
        assert second.completed_at == first.completed_at
        assert second.completed_by == "evaluator-1"

    def test_cancelled_task_stays_cancelled(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        workflow.tasks.cancel_tasks_for_case(case.id, "system")

        result = workflow.tasks.complete_task(task.id, "evaluator-1")
        assert result.status == TaskStatus.CANCELLED
        assert result.completed_at is None

    def test_unknown_task_raises(self, workflow):
        with pytest.raises(ValueError, match="not found"):
            workflow.tasks.complete_task("missing-task", "someone")

    def test_completing_allows_a_new_task_for_the_same_triple(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        workflow.tasks.complete_task(task.id, "evaluator-1")

        again = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        assert again is not None
        assert again.id != task.id


class TestCancelAndOverdue:
    """Test cancellation and the overdue read helper."""

    def test_cancel_tasks_for_case(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        other = make_case(CaseStatus.PLANNING)
        workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id)
        workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, other.entity_id, case_id=other.id)

        assert workflow.tasks.cancel_tasks_for_case(case.id, "system") == 2
        statuses = {t.status for t in workflow.tasks.list_tasks(case_id=case.id)}
        assert statuses == {TaskStatus.CANCELLED}
        assert workflow.tasks.list_tasks(case_id=other.id)[0].status == TaskStatus.PENDING

    def test_overdue_tasks_stay_pending(self, workflow, make_case, clock):
        case = make_case(CaseStatus.PLANNING)
        task = workflow.tasks.create_task(
            TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id, custom_duration_days=1
        )
        assert workflow.tasks.list_overdue_tasks() == []

        clock.advance(days=3)
        overdue = workflow.tasks.list_overdue_tasks()
        assert [t.id for t in overdue] == [task.id]
        assert overdue[0].status == TaskStatus.PENDING
        assert overdue[0].is_overdue(clock())

    def test_list_tasks_by_status(self, workflow, make_case):
        case = make_case(CaseStatus.PLANNING)
        done = workflow.tasks.create_task(TaskType.SET_AUDIT_DATES, case.entity_id, case_id=case.id)
        workflow.tasks.create_task(TaskType.UPLOAD_AUDIT_PLAN, case.entity_id, case_id=case.id)
        workflow.tasks.complete_task(done.id, "evaluator-1")

        pending = workflow.tasks.list_tasks(case_id=case.id, status=TaskStatus.PENDING)
        assert [t.type for t in pending] == [TaskType.UPLOAD_AUDIT_PLAN]
