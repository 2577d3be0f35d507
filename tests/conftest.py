"""Pytest configuration and fixtures."""

import pytest

from notewright.config import Settings
from notewright.registry import build_registry


@pytest.fixture
def test_settings():
    """Settings isolated from the environment, without seeded defaults."""
    return Settings(environment="testing", load_defaults=False, _env_file=None)


@pytest.fixture
def registry(test_settings):
    """Empty registry with the built-in actions."""
    return build_registry(test_settings)


@pytest.fixture
def seeded_registry():
    """Registry with the built-in templates, categories and workflow."""
    return build_registry(Settings(environment="testing", load_defaults=True, _env_file=None))


@pytest.fixture
def sample_template_data():
    """Template definition covering every variable type."""
    return {
        "name": "Weekly Review",
        "description": "Review of the week",
        "category": "personal",
        "tags": ["weekly", "review"],
        "content": "# {{title}}\nScore: {{score}}\nMood: {{mood}}\nTags: {{labels}}",
        "variables": [
            {"name": "title", "type": "text", "label": "Title", "required": True,
             "validation": {"minLength": 3, "maxLength": 40}},
            {"name": "score", "type": "number", "label": "Score", "required": True,
             "validation": {"min": 1, "max": 10}},
            {"name": "mood", "type": "select", "label": "Mood", "options": ["good", "bad"],
             "defaultValue": "good"},
            {"name": "labels", "type": "multiselect", "label": "Labels", "options": ["work", "home"]},
            {"name": "done", "type": "boolean", "label": "Done"},
            {"name": "due", "type": "date", "label": "Due"},
        ],
    }


@pytest.fixture
def simple_template(registry):
    """Template ``# {{title}}\\n{{body}}`` registered in ``registry``."""
    return registry.create_template({
        "name": "Simple",
        "content": "# {{title}}\n{{body}}",
        "variables": [
            {"name": "title", "required": True},
            {"name": "body", "required": True},
        ],
    })


def make_step(step_id, type="action", order=0, optional=False, **fields):
    """Step definition in the stored (camelCase) format."""
    return {
        "id": step_id,
        "name": fields.pop("name", step_id.capitalize()),
        "type": type,
        "metadata": {"order": order, "isOptional": optional},
        **fields,
    }


@pytest.fixture
def step_factory():
    return make_step


@pytest.fixture
def recording_action():
    """Action handler that records every call and echoes its parameters."""
    calls = []

    def handler(parameters, variables):
        calls.append((dict(parameters), dict(variables)))
        return {"recorded": len(calls), **parameters}

    handler.calls = calls
    return handler


@pytest.fixture
def failing_action():
    def handler(parameters, variables):
        raise RuntimeError("boom")

    return handler


@pytest.fixture
def three_step_workflow(registry, recording_action, failing_action):
    """Factory for the step1 / step2 (failing) / step3 workflow."""
    registry.register_action("record", recording_action)
    registry.register_action("fail", failing_action)

    def build(step2_optional: bool):
        return registry.create_workflow({
            "name": f"Three steps ({'optional' if step2_optional else 'required'})",
            "steps": [
                make_step("step1", action="record", order=1, parameters={"n": 1}),
                make_step("step2", action="fail", order=2, optional=step2_optional),
                make_step("step3", action="record", order=3, parameters={"n": 3}),
            ],
        })

    return build
