"""Workflow execution engine."""

from .actions import ActionRegistry, BUILTIN_ACTIONS
from .conditions import ConditionEvaluator
from .errors import (
    CircularDependencyError,
    ConditionError,
    ExecutionError,
    StepExecutionError,
    UnknownActionError,
    WorkflowInactiveError,
    WorkflowValidationError,
)
from .interpreter import ExecutionResult, StepResult, WorkflowInterpreter
from .scheduler import StepScheduler

__all__ = [
    "ActionRegistry",
    "BUILTIN_ACTIONS",
    "ConditionEvaluator",
    "CircularDependencyError",
    "ConditionError",
    "ExecutionError",
    "StepExecutionError",
    "UnknownActionError",
    "WorkflowInactiveError",
    "WorkflowValidationError",
    "ExecutionResult",
    "StepResult",
    "WorkflowInterpreter",
    "StepScheduler",
]
