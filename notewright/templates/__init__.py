"""Template module."""

from .models import (
    NoteTemplate,
    TemplateCategory,
    TemplateMetadata,
    TemplateVariable,
    VariableType,
    VariableValidation,
    increment_version,
)
from .renderer import ContentRenderer, format_value
from .validator import ValidationResult, VariableValidator

__all__ = [
    "NoteTemplate",
    "TemplateCategory",
    "TemplateMetadata",
    "TemplateVariable",
    "VariableType",
    "VariableValidation",
    "increment_version",
    "ContentRenderer",
    "format_value",
    "ValidationResult",
    "VariableValidator",
]
