"""Validation of supplied values against declared template variables."""

import re
from datetime import date, datetime
from numbers import Real
from typing import Any, Dict, List, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .models import TemplateVariable, VariableType


class ValidationResult(BaseModel):
    """Variable validation result."""

    is_valid: bool = Field(..., description="Whether all values are valid")
    errors: List[str] = Field(default_factory=list, description="Validation errors")
    warnings: List[str] = Field(default_factory=list, description="Validation warnings")

    model_config = ConfigDict(from_attributes=True)


def is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if not isinstance(value, str) or not value.strip():
        return False
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def is_absent(values: Mapping[str, Any], name: str) -> bool:
    return values.get(name) is None


class VariableValidator:
    """Checks supplied values against variable specifications.

    Every violation is collected so a single call reports the complete error
    set. The validator never mutates its inputs.
    """

    def validate(
        self,
        variables: Sequence[TemplateVariable],
        values: Mapping[str, Any],
    ) -> ValidationResult:
        """Validate ``values`` against ``variables``."""
        errors: List[str] = []
        warnings: List[str] = []

        for variable in variables:
            if is_absent(values, variable.name):
                if variable.required:
                    errors.append(f"missing required variable: {variable.name}")
                continue
            errors.extend(self.validate_value(variable, values[variable.name]))

        declared = {variable.name for variable in variables}
        for name in values:
            if name not in declared:
                warnings.append(f"Unknown variable: {name}")

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

    def validate_value(self, variable: TemplateVariable, value: Any) -> List[str]:
        """Validate a single present value."""
        type_errors = self._check_type(variable, value)
        if type_errors:
            return type_errors
        return self._check_bounds(variable, value)

    def apply_defaults(
        self,
        variables: Sequence[TemplateVariable],
        values: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Return a copy of ``values`` with defaults for omitted optional variables."""
        resolved = dict(values)
        for variable in variables:
            if variable.required or not is_absent(values, variable.name):
                continue
            if variable.default_value is not None:
                resolved[variable.name] = variable.default_value
        return resolved

    def _check_type(self, variable: TemplateVariable, value: Any) -> List[str]:
        name = variable.name
        options = variable.options or []

        if variable.type == VariableType.NUMBER and not is_number(value):
            return [f"Variable {name} must be a number"]
        if variable.type == VariableType.BOOLEAN and not isinstance(value, bool):
            return [f"Variable {name} must be a boolean"]
        if variable.type == VariableType.DATE and not is_date(value):
            return [f"Variable {name} must be a valid date"]
        if variable.type == VariableType.SELECT and value not in options:
            return [f"Variable {name} must be one of: {', '.join(options)}"]
        if variable.type == VariableType.MULTISELECT:
            if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
                return [f"Variable {name} must be a list of options"]
            invalid = [str(item) for item in value if item not in options]
            if invalid:
                return [f"Variable {name} contains invalid values: {', '.join(invalid)}"]
        return []

    def _check_bounds(self, variable: TemplateVariable, value: Any) -> List[str]:
        rules = variable.validation
        if rules is None:
            return []

        name = variable.name
        errors = []
        if isinstance(value, str):
            if rules.min_length is not None and len(value) < rules.min_length:
                errors.append(f"Variable {name} must be at least {rules.min_length} characters")
            if rules.max_length is not None and len(value) > rules.max_length:
                errors.append(f"Variable {name} must be at most {rules.max_length} characters")
            if rules.pattern is not None:
                try:
                    matched = re.fullmatch(rules.pattern, value) is not None
                except re.error:
                    errors.append(f"Variable {name} has an invalid validation pattern")
                else:
                    if not matched:
                        errors.append(f"Variable {name} does not match required pattern")
        elif is_number(value):
            if rules.min is not None and value < rules.min:
                errors.append(f"Variable {name} must be at least {rules.min:g}")
            if rules.max is not None and value > rules.max:
                errors.append(f"Variable {name} must be at most {rules.max:g}")
        return errors
