"""Declarative workflow graph.

Each state lists the tasks spawned on entry, the effects run on entry/exit and
its outgoing transitions. Transition order matters: the auto-transition scan
takes the first candidate whose guards pass.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Tuple

from labelflow.engine.effects import EffectName
from labelflow.engine.guards import GuardName
from labelflow.models.case import CaseStatus
from labelflow.models.task import TaskType


class TriggerKind(str, Enum):
    """How a transition gets fired."""
    MANUAL = "MANUAL"
    AUTO_ON_TASK = "AUTO_ON_TASK"
    AUTO_ON_SCHEDULE = "AUTO_ON_SCHEDULE"

    @property
    def is_automatic(self) -> bool:
        return self != TriggerKind.MANUAL


@dataclass(frozen=True)
class TransitionDefinition:
    target: CaseStatus
    guards: Tuple[GuardName, ...] = ()
    trigger: TriggerKind = TriggerKind.MANUAL
    trigger_on_tasks: Tuple[TaskType, ...] = ()
    effects: Tuple[EffectName, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class StateDefinition:
    status: CaseStatus
    entry_tasks: Tuple[TaskType, ...] = ()
    on_enter: Tuple[EffectName, ...] = ()
    on_exit: Tuple[EffectName, ...] = ()
    transitions: Mapping[str, TransitionDefinition] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return not self.transitions


@dataclass(frozen=True)
class WorkflowConfig:
    states: Mapping[CaseStatus, StateDefinition]
    initial_status: CaseStatus = CaseStatus.PENDING_CASE_APPROVAL

    def state(self, status) -> StateDefinition:
        return self.states[CaseStatus(status)]


G = GuardName
E = EffectName

_PLANNING_TRIGGERS = (TaskType.UPLOAD_AUDIT_PLAN, TaskType.SET_AUDIT_DATES)


def _states(*definitions: StateDefinition) -> Dict[CaseStatus, StateDefinition]:
    return {d.status: d for d in definitions}


WORKFLOW = WorkflowConfig(states=_states(
    StateDefinition(
        status=CaseStatus.PENDING_CASE_APPROVAL,
        entry_tasks=(TaskType.AUTHORITY_VALIDATE_CASE_SUBMISSION,),
        transitions={
            "approve_with_evaluator": TransitionDefinition(
                target=CaseStatus.PENDING_EVALUATOR_ACCEPTANCE,
                guards=(G.CASE_APPROVED, G.HAS_EVALUATOR_ASSIGNED, G.REQUIRES_EVALUATOR_ACCEPTANCE),
                description="Approved; the chosen evaluator must accept the case",
            ),
            "approve_monitoring": TransitionDefinition(
                target=CaseStatus.PLANNING,
                guards=(G.CASE_APPROVED, G.HAS_EVALUATOR_ASSIGNED, G.IS_MONITORING_CASE),
                description="Approved monitoring case goes straight to planning",
            ),
            "approve_without_evaluator": TransitionDefinition(
                target=CaseStatus.PENDING_EVALUATOR_CHOICE,
                guards=(G.CASE_APPROVED, G.NO_EVALUATOR_ASSIGNED),
                description="Approved; the entity still has to choose an evaluator",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_EVALUATOR_CHOICE,
        entry_tasks=(TaskType.ENTITY_CHOOSE_EVALUATOR,),
        transitions={
            "evaluator_chosen": TransitionDefinition(
                target=CaseStatus.PENDING_EVALUATOR_ACCEPTANCE,
                guards=(G.HAS_EVALUATOR_ASSIGNED, G.REQUIRES_EVALUATOR_ACCEPTANCE),
                description="Evaluator chosen, awaiting acceptance",
            ),
            "evaluator_chosen_monitoring": TransitionDefinition(
                target=CaseStatus.PLANNING,
                guards=(G.HAS_EVALUATOR_ASSIGNED, G.IS_MONITORING_CASE),
                description="Evaluator chosen for a monitoring case",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_EVALUATOR_ACCEPTANCE,
        entry_tasks=(TaskType.EVALUATOR_ACCEPT_OR_REFUSE_CASE,),
        transitions={
            "evaluator_accepted": TransitionDefinition(
                target=CaseStatus.PLANNING,
                guards=(G.EVALUATOR_HAS_ACCEPTED,),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=(TaskType.EVALUATOR_ACCEPT_OR_REFUSE_CASE,),
                description="Evaluator accepted the case",
            ),
            "evaluator_refused": TransitionDefinition(
                target=CaseStatus.REFUSED_BY_EVALUATOR,
                guards=(G.EVALUATOR_HAS_REFUSED,),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=(TaskType.EVALUATOR_ACCEPT_OR_REFUSE_CASE,),
                description="Evaluator refused the case",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PLANNING,
        entry_tasks=(TaskType.SET_AUDIT_DATES, TaskType.UPLOAD_AUDIT_PLAN),
        transitions={
            "to_scheduled": TransitionDefinition(
                target=CaseStatus.SCHEDULED,
                guards=(G.HAS_PLAN_DOCUMENT, G.HAS_ACTUAL_DATES, G.END_DATE_IS_FUTURE),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=_PLANNING_TRIGGERS,
                description="Plan uploaded and audit still ahead",
            ),
            "to_pending_report": TransitionDefinition(
                target=CaseStatus.PENDING_REPORT,
                guards=(G.HAS_PLAN_DOCUMENT, G.HAS_ACTUAL_DATES, G.END_DATE_PASSED),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=_PLANNING_TRIGGERS,
                description="Plan uploaded and audit already over",
            ),
            "to_pending_report_on_schedule": TransitionDefinition(
                target=CaseStatus.PENDING_REPORT,
                guards=(G.HAS_ACTUAL_DATES, G.END_DATE_PASSED),
                trigger=TriggerKind.AUTO_ON_SCHEDULE,
                description="Audit end date passed (periodic check)",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.SCHEDULED,
        entry_tasks=(TaskType.ENTITY_MARK_DOCUMENTARY_REVIEW_READY,),
        transitions={
            "to_pending_report": TransitionDefinition(
                target=CaseStatus.PENDING_REPORT,
                guards=(G.END_DATE_PASSED,),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=(TaskType.SET_AUDIT_DATES,),
                description="Audit dates moved into the past",
            ),
            "to_pending_report_on_schedule": TransitionDefinition(
                target=CaseStatus.PENDING_REPORT,
                guards=(G.END_DATE_PASSED,),
                trigger=TriggerKind.AUTO_ON_SCHEDULE,
                description="Audit end date passed (periodic check)",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_REPORT,
        entry_tasks=(TaskType.UPLOAD_AUDIT_REPORT,),
        transitions={
            "to_pending_opinion": TransitionDefinition(
                target=CaseStatus.PENDING_EVALUATOR_OPINION,
                guards=(G.HAS_REPORT_DOCUMENT, G.HAS_GLOBAL_SCORE),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=(TaskType.UPLOAD_AUDIT_REPORT,),
                description="Report and score recorded",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_EVALUATOR_OPINION,
        entry_tasks=(TaskType.UPLOAD_LABELING_OPINION,),
        on_enter=(E.EVALUATE_CORRECTIVE_PLAN_REQUIREMENT,),
        transitions={
            "to_corrective_plan": TransitionDefinition(
                target=CaseStatus.PENDING_CORRECTIVE_PLAN,
                guards=(G.NEEDS_CORRECTIVE_PLAN, G.NO_CORRECTIVE_PLAN_UPLOADED),
                trigger=TriggerKind.AUTO_ON_TASK,
                description="Score requires a corrective plan",
            ),
            "to_authority_decision": TransitionDefinition(
                target=CaseStatus.PENDING_AUTHORITY_DECISION,
                guards=(G.HAS_EVALUATOR_OPINION,),
                trigger=TriggerKind.AUTO_ON_TASK,
                trigger_on_tasks=(TaskType.UPLOAD_LABELING_OPINION,),
                description="Opinion transmitted to the authority",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_CORRECTIVE_PLAN,
        entry_tasks=(TaskType.ENTITY_UPLOAD_CORRECTIVE_PLAN,),
        transitions={
            "to_validation": TransitionDefinition(
                target=CaseStatus.PENDING_CORRECTIVE_PLAN_VALIDATION,
                guards=(G.HAS_CORRECTIVE_PLAN_DOCUMENT,),
                trigger=TriggerKind.AUTO_ON_TASK,
                description="Corrective plan uploaded",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_CORRECTIVE_PLAN_VALIDATION,
        entry_tasks=(TaskType.VALIDATE_CORRECTIVE_PLAN,),
        transitions={
            "plan_validated": TransitionDefinition(
                target=CaseStatus.PENDING_EVALUATOR_OPINION,
                guards=(G.CORRECTIVE_PLAN_VALIDATED,),
                description="Evaluator validated the corrective plan",
            ),
            "plan_refused": TransitionDefinition(
                target=CaseStatus.REFUSED_PLAN,
                guards=(G.CORRECTIVE_PLAN_REFUSED,),
                description="Evaluator refused the corrective plan",
            ),
            "complementary_audit": TransitionDefinition(
                target=CaseStatus.PENDING_COMPLEMENTARY_AUDIT,
                guards=(G.COMPLEMENTARY_AUDIT_REQUESTED,),
                description="Evaluator requested a complementary audit",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_COMPLEMENTARY_AUDIT,
        transitions={
            "schedule_complementary_audit": TransitionDefinition(
                target=CaseStatus.PLANNING,
                effects=(E.RESET_AUDIT_SCHEDULE,),
                description="Plan the complementary audit",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.PENDING_AUTHORITY_DECISION,
        entry_tasks=(TaskType.AUTHORITY_VALIDATE_LABELING_DECISION,),
        transitions={
            "to_completed": TransitionDefinition(
                target=CaseStatus.COMPLETED,
                guards=(G.AUTHORITY_DECISION_ACCEPTED,),
                effects=(E.CALCULATE_LABEL_EXPIRATION, E.RESET_ENTITY_WORKFLOW),
                description="Authority granted the label",
            ),
        },
    ),
    StateDefinition(
        status=CaseStatus.COMPLETED,
        on_enter=(E.GENERATE_ATTESTATION, E.CANCEL_OPEN_TASKS),
    ),
    StateDefinition(
        status=CaseStatus.REFUSED_BY_EVALUATOR,
        on_enter=(E.CANCEL_OPEN_TASKS, E.OPEN_FOLLOW_UP_CASE),
    ),
    StateDefinition(
        status=CaseStatus.REFUSED_PLAN,
        on_enter=(E.CANCEL_OPEN_TASKS,),
    ),
))
