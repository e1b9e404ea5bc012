"""Startup validation of the workflow graph and its registries."""

import logging
from typing import Dict, List, Mapping, Optional, Set

from labelflow.engine.completion import COMPLETION_CHECKS
from labelflow.engine.config import StateDefinition, WorkflowConfig
from labelflow.engine.effects import EFFECTS, EffectName
from labelflow.engine.errors import WorkflowConfigurationError
from labelflow.engine.guards import GUARDS, GuardName
from labelflow.models.case import CaseStatus
from labelflow.models.task import TaskType
from labelflow.models.task_types import TASK_TYPES, CompletionKind

logger = logging.getLogger(__name__)


def _resolves(value, enum_class) -> bool:
    try:
        enum_class(value)
        return True
    except ValueError:
        return False


def collect_config_errors(
    config: WorkflowConfig,
    guards: Optional[Mapping] = None,
    effects: Optional[Mapping] = None,
) -> List[str]:
    """Return every consistency problem found in the configuration."""
    guards = GUARDS if guards is None else guards
    effects = EFFECTS if effects is None else effects
    errors: List[str] = []

    for status in CaseStatus:
        if status not in config.states:
            errors.append(f"state {status.value} has no definition")
    if config.initial_status not in config.states:
        errors.append(f"initial status {config.initial_status} has no definition")

    for name in GuardName:
        if name not in guards:
            errors.append(f"guard {name.value} has no implementation")
    for name in EffectName:
        if name not in effects:
            errors.append(f"effect {name.value} has no implementation")

    for task_type in TaskType:
        definition = TASK_TYPES.get(task_type)
        if definition is None:
            errors.append(f"task type {task_type.value} has no definition")
            continue
        criterion = definition.completion
        if criterion.kind == CompletionKind.CUSTOM and criterion.check not in COMPLETION_CHECKS:
            errors.append(f"task type {task_type.value} uses unknown completion check {criterion.check}")
        if criterion.kind == CompletionKind.FIELD and not criterion.field_name:
            errors.append(f"task type {task_type.value} has a field criterion without a field")
        if criterion.kind == CompletionKind.DOCUMENT and criterion.document_category is None:
            errors.append(f"task type {task_type.value} has a document criterion without a category")

    for status, state in config.states.items():
        where = f"state {status.value if hasattr(status, 'value') else status}"
        for task_type in state.entry_tasks:
            if not _resolves(task_type, TaskType):
                errors.append(f"{where}: unknown entry task {task_type}")
        for effect in tuple(state.on_enter) + tuple(state.on_exit):
            if not _resolves(effect, EffectName) or EffectName(effect) not in effects:
                errors.append(f"{where}: unknown effect {effect}")
        for name, transition in state.transitions.items():
            prefix = f"{where}, transition {name}"
            if not _resolves(transition.target, CaseStatus) or CaseStatus(transition.target) not in config.states:
                errors.append(f"{prefix}: unknown target {transition.target}")
            for guard in transition.guards:
                if not _resolves(guard, GuardName) or GuardName(guard) not in guards:
                    errors.append(f"{prefix}: unknown guard {guard}")
            for effect in transition.effects:
                if not _resolves(effect, EffectName) or EffectName(effect) not in effects:
                    errors.append(f"{prefix}: unknown effect {effect}")
            for task_type in transition.trigger_on_tasks:
                if not _resolves(task_type, TaskType):
                    errors.append(f"{prefix}: unknown trigger task {task_type}")
            if transition.trigger_on_tasks and not transition.trigger.is_automatic:
                errors.append(f"{prefix}: trigger tasks declared on a manual transition")

    return errors


def find_automatic_cycle(states: Mapping[CaseStatus, StateDefinition]) -> Optional[List[CaseStatus]]:
    """Find a cycle made only of automatic transitions, if one exists.

    Returns:
        The statuses forming the cycle (first repeated at the end), or None
    """
    graph: Dict[CaseStatus, Set[CaseStatus]] = {}
    for status, state in states.items():
        graph[status] = {
            CaseStatus(t.target)
            for t in state.transitions.values()
            if t.trigger.is_automatic and t.target != status
        }

    visiting: List[CaseStatus] = []
    done: Set[CaseStatus] = set()

    def visit(node: CaseStatus) -> Optional[List[CaseStatus]]:
        if node in visiting:
            return visiting[visiting.index(node):] + [node]
        if node in done:
            return None
        visiting.append(node)
        for target in sorted(graph.get(node, ()), key=lambda s: s.value):
            cycle = visit(target)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return None

    for start in sorted(graph, key=lambda s: s.value):
        cycle = visit(start)
        if cycle:
            return cycle
    return None


def validate_workflow_config(
    config: WorkflowConfig,
    guards: Optional[Mapping] = None,
    effects: Optional[Mapping] = None,
) -> None:
    """Validate the workflow configuration.

    Raises:
        WorkflowConfigurationError: On any unresolved reference or an automatic cycle
    """
    errors = collect_config_errors(config, guards, effects)
    cycle = find_automatic_cycle(config.states)
    if cycle:
        errors.append("automatic transitions form a cycle: " + " -> ".join(s.value for s in cycle))
    if errors:
        for error in errors:
            logger.error(f"Workflow configuration error: {error}")
        raise WorkflowConfigurationError("; ".join(errors))
