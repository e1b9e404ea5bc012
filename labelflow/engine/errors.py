"""Workflow engine exceptions."""

from typing import Optional


class WorkflowError(Exception):
    """Base class for workflow errors."""


class WorkflowConfigurationError(WorkflowError):
    """The workflow graph or a registry is inconsistent. Fatal at startup."""


class TransitionError(WorkflowError):
    """A requested transition was rejected."""

    def __init__(self, message: str, from_status: str, to_status: str, guard: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.from_status = from_status
        self.to_status = to_status
        self.guard = guard


class TransitionNotPermittedError(TransitionError):
    """No declared transition leads from the current status to the target."""

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"transition not permitted from {from_status} to {to_status}",
            from_status=from_status,
            to_status=to_status,
        )


class GuardFailedError(TransitionError):
    """A guard of the resolved transition evaluated to False."""

    def __init__(self, guard: str, from_status: str, to_status: str):
        super().__init__(
            f"guard failed: {guard}",
            from_status=from_status,
            to_status=to_status,
            guard=guard,
        )


class CaseStateError(WorkflowError):
    """A command was issued while the case is in a status that does not accept it."""

    def __init__(self, case_id: str, status: str, expected):
        expected_values = ", ".join(sorted(getattr(s, "value", s) for s in expected))
        self.message = f"case {case_id} is {status}; expected one of: {expected_values}"
        super().__init__(self.message)
        self.case_id = case_id
        self.status = status
