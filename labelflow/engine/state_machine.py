"""Case state machine: guarded transitions and the auto-transition scan."""

import logging
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from labelflow.engine.config import WORKFLOW, StateDefinition, TransitionDefinition, TriggerKind, WorkflowConfig
from labelflow.engine.context import WorkflowContext
from labelflow.engine.deadlines import entry_task_options
from labelflow.engine.effects import EFFECTS, EffectName
from labelflow.engine.errors import (
    GuardFailedError,
    TransitionError,
    TransitionNotPermittedError,
    WorkflowConfigurationError,
)
from labelflow.engine.guards import GUARDS, GuardName
from labelflow.engine.validation import validate_workflow_config
from labelflow.models.case import Case, CaseStatus
from labelflow.models.constants import SYSTEM_ACTOR_ID
from labelflow.models.event import EventType, StatusChangeMetadata
from labelflow.models.task import TaskType

if TYPE_CHECKING:
    from labelflow.services.task_service import TaskService

logger = logging.getLogger(__name__)


class TransitionResult(BaseModel):
    """Outcome of a transition (or of entering the initial state)."""

    case_id: str
    from_status: CaseStatus
    to_status: CaseStatus
    transition_name: Optional[str] = None
    triggered_by: str
    created_task_ids: List[str] = Field(default_factory=list)
    effect_failures: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.from_status != self.to_status

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class CaseStateMachine:
    """Executes transitions of the workflow graph for cases of one session.

    Construct one per unit of work (request, job run) with `build_workflow`;
    the graph and registries are shared read-only.
    """

    def __init__(
        self,
        ctx: WorkflowContext,
        tasks: "TaskService",
        config: WorkflowConfig = WORKFLOW,
        guards: Optional[Mapping] = None,
        effects: Optional[Mapping] = None,
    ):
        self.ctx = ctx
        self.tasks = tasks
        self.config = config
        self.guards = GUARDS if guards is None else guards
        self.effects = EFFECTS if effects is None else effects
        if config is not WORKFLOW or guards is not None or effects is not None:
            validate_workflow_config(config, self.guards, self.effects)

    # Lookups

    def state_of(self, case: Case) -> StateDefinition:
        try:
            return self.config.state(case.status)
        except (KeyError, ValueError):
            raise WorkflowConfigurationError(f"Case {case.id} is in undeclared state {case.status}")

    def _resolve_transition(
        self,
        state: StateDefinition,
        target: CaseStatus,
        transition_name: Optional[str],
    ) -> Tuple[str, TransitionDefinition]:
        if transition_name is not None:
            definition = state.transitions.get(transition_name)
            if definition is not None and CaseStatus(definition.target) == target:
                return transition_name, definition
            raise TransitionNotPermittedError(CaseStatus(state.status).value, target.value)

        for name, definition in state.transitions.items():
            if CaseStatus(definition.target) == target:
                return name, definition
        raise TransitionNotPermittedError(CaseStatus(state.status).value, target.value)

    def first_failing_guard(self, case: Case, definition: TransitionDefinition) -> Optional[GuardName]:
        """Evaluate guards in order; return the first that fails, or None."""
        for guard_name in definition.guards:
            guard_name = GuardName(guard_name)
            guard = self.guards.get(guard_name)
            if guard is None:
                raise WorkflowConfigurationError(f"Guard {guard_name.value} has no implementation")
            if not guard(self.ctx, case):
                return guard_name
        return None

    # Transitions

    def transition(
        self,
        case: Case,
        target,
        actor_id: str,
        transition_name: Optional[str] = None,
    ) -> TransitionResult:
        """Move a case to `target`.

        The persisted status is authoritative; the passed case is re-read first.
        Transitioning to the current status is a successful no-op.

        Raises:
            TransitionNotPermittedError: If no declared transition leads to `target`
            GuardFailedError: If a guard fails (nothing has been written)
        """
        case = self.ctx.cases.get_or_raise(case.id)
        target = CaseStatus(target)
        current = CaseStatus(case.status)

        if target == current:
            return TransitionResult(
                case_id=case.id,
                from_status=current,
                to_status=current,
                triggered_by=actor_id,
            )

        state = self.state_of(case)
        name, definition = self._resolve_transition(state, target, transition_name)

        failing = self.first_failing_guard(case, definition)
        if failing is not None:
            logger.info(f"Transition {name} of case {case.id} blocked by guard {failing.value}")
            raise GuardFailedError(failing.value, current.value, target.value)

        failures = self._run_effects(case.id, state.on_exit, actor_id, "exit")

        self.ctx.cases.update_status(case.id, target, actor_id)
        self.ctx.events.record_event(
            EventType.CASE_STATUS_CHANGED,
            actor_id,
            case_id=case.id,
            entity_id=case.entity_id,
            metadata=StatusChangeMetadata(from_status=current.value, to_status=target.value, transition=name),
        )
        logger.info(f"Case {case.id}: {current.value} -> {target.value} via {name} (actor={actor_id})")

        new_state = self.config.state(target)
        failures += self._run_effects(case.id, definition.effects, actor_id, f"transition {name}")
        failures += self._run_effects(case.id, new_state.on_enter, actor_id, "entry")

        case = self.ctx.cases.get_or_raise(case.id)
        created = self.spawn_entry_tasks(case, actor_id)

        return TransitionResult(
            case_id=case.id,
            from_status=current,
            to_status=target,
            transition_name=name,
            triggered_by=actor_id,
            created_task_ids=created,
            effect_failures=failures,
        )

    def enter_initial_state(self, case: Case, actor_id: str) -> TransitionResult:
        """Run entry effects and spawn entry tasks for a freshly created case."""
        state = self.state_of(case)
        failures = self._run_effects(case.id, state.on_enter, actor_id, "entry")
        case = self.ctx.cases.get_or_raise(case.id)
        created = self.spawn_entry_tasks(case, actor_id)
        return TransitionResult(
            case_id=case.id,
            from_status=case.status,
            to_status=case.status,
            triggered_by=actor_id,
            created_task_ids=created,
            effect_failures=failures,
        )

    def check_auto_transition(
        self,
        case: Case,
        completed_task_type=None,
        actor_id: str = SYSTEM_ACTOR_ID,
        trigger: TriggerKind = TriggerKind.AUTO_ON_TASK,
    ) -> bool:
        """Fire the first automatic transition whose guards pass.

        Transitions of another trigger kind are skipped. When a completed task
        type is given, transitions declaring trigger tasks that do not include
        it are skipped as well. At most one transition is made per call;
        callers loop to cascade.

        Returns:
            True if the case changed status
        """
        case = self.ctx.cases.get_or_raise(case.id)
        state = self.state_of(case)
        if completed_task_type is not None:
            completed_task_type = TaskType(completed_task_type)

        for name, definition in state.transitions.items():
            if definition.trigger != trigger:
                continue
            if (
                completed_task_type is not None
                and definition.trigger_on_tasks
                and completed_task_type not in definition.trigger_on_tasks
            ):
                continue

            failing = self.first_failing_guard(case, definition)
            if failing is not None:
                logger.debug(f"Auto transition {name} of case {case.id} skipped: guard {failing.value}")
                continue

            try:
                self.transition(case, definition.target, actor_id, transition_name=name)
            except TransitionError as e:
                # The case moved underneath us (concurrent writer); try the next candidate.
                logger.warning(f"Auto transition {name} of case {case.id} rejected: {e.message}")
                continue
            return True

        return False

    # Helpers

    def spawn_entry_tasks(self, case: Case, actor_id: str) -> List[str]:
        """Create the entry tasks of the case's current state (deduplicated)."""
        created: List[str] = []
        for task_type in self.state_of(case).entry_tasks:
            options = entry_task_options(self.ctx, case, task_type)
            task = self.tasks.create_task(
                task_type,
                case.entity_id,
                case_id=case.id,
                actor_id=actor_id,
                **options,
            )
            if task is not None:
                created.append(task.id)
        return created

    def _run_effects(self, case_id: str, names: Sequence[EffectName], actor_id: str, stage: str) -> List[str]:
        failures: List[str] = []
        for name in names:
            name = EffectName(name)
            case = self.ctx.cases.get_or_raise(case_id)
            try:
                self.effects[name](self, case, actor_id)
            except Exception as e:
                self.ctx.db.rollback()
                logger.error(
                    f"Effect {name.value} failed for case {case_id} ({stage}): {type(e).__name__}: {str(e)}"
                )
                failures.append(name.value)
        return failures


validate_workflow_config(WORKFLOW)
