"""Base exceptions for Notewright."""

from typing import List, Optional


class NotewrightException(Exception):
    """Base exception for all Notewright errors."""
    pass


class ValidationError(NotewrightException):
    """Raised when supplied values or definitions fail validation."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or "; ".join(self.errors) or "Validation failed")


class NotFoundError(NotewrightException):
    """Raised when a resource is not found."""
    pass


class UnknownEntityError(NotFoundError):
    """Raised when a template, workflow or category id is not registered."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} {entity_id} not found")


class ConflictError(NotewrightException):
    """Raised when there's a conflict."""
    pass
