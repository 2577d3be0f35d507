"""Execution engine error classes."""

from typing import Any, Dict, List, Optional

from notewright.exceptions import NotewrightException


class ExecutionError(NotewrightException):
    """Base class for all execution errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class StepExecutionError(ExecutionError):
    """Raised when a workflow step fails."""

    def __init__(
        self,
        message: str,
        step_id: Optional[str] = None,
        step_name: Optional[str] = None,
        step_type: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("error_code", "STEP_FAILED")
        super().__init__(message, **kwargs)
        self.step_id = step_id
        self.step_name = step_name
        self.step_type = step_type
        self.details.update({
            "step_id": step_id,
            "step_name": step_name,
            "step_type": step_type,
        })


class UnknownActionError(ExecutionError):
    """Raised when an action step names an unregistered action."""

    def __init__(self, action: str, **kwargs):
        super().__init__(f"Unknown action: {action}", error_code="UNKNOWN_ACTION", **kwargs)
        self.action = action
        self.details["action"] = action


class ConditionError(ExecutionError):
    """Raised when a condition expression cannot be evaluated."""

    def __init__(self, expression: str, reason: str, **kwargs):
        super().__init__(f"Invalid condition: {expression}", error_code="INVALID_CONDITION", **kwargs)
        self.expression = expression
        self.reason = reason
        self.details.update({"expression": expression, "reason": reason})


class WorkflowInactiveError(ExecutionError):
    """Raised when executing a deactivated workflow."""

    def __init__(self, workflow_id: str, **kwargs):
        super().__init__(
            f"Workflow {workflow_id} is not active",
            error_code="WORKFLOW_NOT_ACTIVE",
            **kwargs
        )
        self.workflow_id = workflow_id
        self.details["workflow_id"] = workflow_id


class WorkflowValidationError(ExecutionError):
    """Raised when a workflow's step structure is invalid."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, error_code="WORKFLOW_VALIDATION", **kwargs)
        self.validation_errors = validation_errors or []
        self.details["validation_errors"] = self.validation_errors


class CircularDependencyError(ExecutionError):
    """Raised when circular dependency is detected in workflow."""

    def __init__(
        self,
        message: str,
        cycle_path: list,
        **kwargs
    ):
        super().__init__(message, error_code="CIRCULAR_DEPENDENCY", **kwargs)
        self.cycle_path = cycle_path
        self.details["cycle_path"] = cycle_path
