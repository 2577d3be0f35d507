"""Placeholder substitution for template bodies and step parameters."""

import json
import re
from datetime import date, datetime
from typing import Any, List, Mapping

PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*(\w+)\s*\}\}')


def format_value(value: Any) -> str:
    """String form of a value as it appears in rendered text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, default=str)
    return str(value)


class ContentRenderer:
    """Substitutes ``{{name}}`` placeholders.

    Names with no entry in ``values`` are left exactly as written so a missing
    value shows up in the output instead of raising.
    """

    def render(self, body: str, values: Mapping[str, Any]) -> str:
        """Render a text body."""
        def replace(match):
            name = match.group(1)
            if name not in values:
                return match.group(0)
            return format_value(values[name])

        return PLACEHOLDER_PATTERN.sub(replace, body)

    def resolve(self, value: Any, values: Mapping[str, Any]) -> Any:
        """Render every string leaf of a nested structure into a new structure."""
        if isinstance(value, str):
            return self.render(value, values)
        if isinstance(value, Mapping):
            return {key: self.resolve(item, values) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve(item, values) for item in value]
        return value

    def placeholders(self, body: str) -> List[str]:
        """Distinct placeholder names in order of first appearance."""
        names: List[str] = []
        for match in PLACEHOLDER_PATTERN.finditer(body):
            if match.group(1) not in names:
                names.append(match.group(1))
        return names
