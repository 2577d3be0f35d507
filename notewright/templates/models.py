"""Template data models.

Records serialize with camelCase keys so snapshots stay compatible with the
note application's storage format, and accept either camelCase or snake_case
on input.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SEMVER_PATTERN = re.compile(r'^(\d+)\.(\d+)\.(\d+)(?:-([a-zA-Z0-9\-]+(?:\.[a-zA-Z0-9\-]+)*))?$')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def increment_version(version: str) -> str:
    """Bump the patch component of a semantic version."""
    match = SEMVER_PATTERN.match(version)
    if not match:
        raise ValueError(f"Invalid semantic version: {version}")
    major, minor, patch = (int(part) for part in match.groups()[:3])
    return f"{major}.{minor}.{patch + 1}"


class RecordModel(BaseModel):
    """Base for all persisted records."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class VariableType(str, Enum):
    """Template variable types."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    MULTISELECT = "multiselect"
    BOOLEAN = "boolean"


class VariableValidation(RecordModel):
    """Optional bounds on a variable value."""

    min_length: Optional[int] = Field(None, ge=0, description="Minimum string length")
    max_length: Optional[int] = Field(None, ge=0, description="Maximum string length")
    pattern: Optional[str] = Field(None, description="Regex the whole string must match")
    min: Optional[float] = Field(None, description="Minimum numeric value")
    max: Optional[float] = Field(None, description="Maximum numeric value")

    @field_validator('pattern')
    @classmethod
    def validate_pattern(cls, v):
        """Reject patterns that do not compile."""
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid variable validation pattern: {e}")
        return v


class TemplateVariable(RecordModel):
    """Declared input of a template or workflow step."""

    name: str = Field(..., min_length=1, description="Variable name")
    type: VariableType = Field(default=VariableType.TEXT, description="Variable type")
    label: str = Field(default="", description="Display label")
    description: str = Field(default="", description="Variable description")
    required: bool = Field(default=False, description="Whether the variable is required")
    default_value: Optional[Any] = Field(None, description="Used when an optional variable is omitted")
    options: Optional[List[str]] = Field(None, description="Allowed values for select/multiselect")
    validation: Optional[VariableValidation] = Field(None, description="Value bounds")

    @model_validator(mode='after')
    def check_options(self):
        if self.type in (VariableType.SELECT, VariableType.MULTISELECT) and not self.options:
            raise ValueError(f"Variable {self.name} of type {self.type.value} requires options")
        if self.default_value is not None:
            from .validator import VariableValidator

            errors = VariableValidator().validate_value(self, self.default_value)
            if errors:
                raise ValueError(f"Invalid default value: {'; '.join(errors)}")
        return self


def check_unique_names(variables: List[TemplateVariable], owner: str) -> None:
    seen = set()
    for variable in variables:
        if variable.name in seen:
            raise ValueError(f"Duplicate variable name in {owner}: {variable.name}")
        seen.add(variable.name)


class TemplateMetadata(RecordModel):
    """Bookkeeping fields owned by the registry."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    usage_count: int = Field(default=0, ge=0, description="Successful renders")
    rating: float = Field(default=0.0, description="Average rating")
    is_public: bool = Field(default=False, description="Whether the template is shared")
    author: str = Field(default="user", description="Template author")
    version: str = Field(default="1.0.0", description="Semantic version")
    last_used_at: Optional[datetime] = Field(None, description="Last successful render")

    @field_validator('version')
    @classmethod
    def validate_version(cls, v):
        """Validate semantic version."""
        if not SEMVER_PATTERN.match(v):
            raise ValueError(f"Invalid semantic version: {v}")
        return v


class NoteTemplate(RecordModel):
    """Parameterized note body plus its variable specifications."""

    id: str = Field(..., min_length=1, description="Template ID")
    name: str = Field(..., min_length=1, description="Template name")
    description: str = Field(default="", description="Template description")
    category: str = Field(default="general", description="Category ID")
    tags: List[str] = Field(default_factory=list, description="Template tags")
    content: str = Field(..., description="Body with {{placeholders}}")
    variables: List[TemplateVariable] = Field(default_factory=list, description="Declared variables")
    metadata: TemplateMetadata = Field(default_factory=TemplateMetadata)

    @model_validator(mode='after')
    def check_variables(self):
        check_unique_names(self.variables, f"template {self.name}")
        return self


class TemplateCategory(RecordModel):
    """Grouping of templates shown together in the note application."""

    id: str = Field(..., min_length=1, description="Category ID")
    name: str = Field(..., min_length=1, description="Category name")
    description: str = Field(default="", description="Category description")
    icon: str = Field(default="", description="Display icon")
    color: str = Field(default="", description="Display color")
    templates: List[str] = Field(default_factory=list, description="Member template IDs")
