"""Workflow engine for labelflow."""

from labelflow.engine.config import WORKFLOW, StateDefinition, TransitionDefinition, TriggerKind, WorkflowConfig
from labelflow.engine.context import WorkflowContext
from labelflow.engine.effects import EFFECTS, EffectName
from labelflow.engine.errors import (
    CaseStateError,
    GuardFailedError,
    TransitionError,
    TransitionNotPermittedError,
    WorkflowConfigurationError,
    WorkflowError,
)
from labelflow.engine.guards import GUARDS, GuardName
from labelflow.engine.state_machine import CaseStateMachine, TransitionResult
from labelflow.engine.validation import validate_workflow_config

__all__ = [
    "WORKFLOW",
    "StateDefinition",
    "TransitionDefinition",
    "TriggerKind",
    "WorkflowConfig",
    "WorkflowContext",
    "EFFECTS",
    "EffectName",
    "CaseStateError",
    "GuardFailedError",
    "TransitionError",
    "TransitionNotPermittedError",
    "WorkflowConfigurationError",
    "WorkflowError",
    "GUARDS",
    "GuardName",
    "CaseStateMachine",
    "TransitionResult",
    "validate_workflow_config",
]
