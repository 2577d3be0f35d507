"""Test the template and workflow registry."""

import json

import pytest

from notewright.config import Settings
from notewright.events import EventType
from notewright.exceptions import ConflictError, UnknownEntityError, ValidationError
from notewright.executor import WorkflowInactiveError
from notewright.registry import build_registry


@pytest.mark.unit
class TestTemplateLifecycle:

    def test_create_template_assigns_metadata(self, registry, sample_template_data):
        template = registry.create_template(sample_template_data)

        assert template.id.startswith("template_")
        assert template.metadata.usage_count == 0
        assert template.metadata.rating == 0
        assert template.metadata.is_public is False
        assert template.metadata.author == "user"
        assert template.metadata.version == "1.0.0"
        assert registry.get_template(template.id) is template

    def test_create_ignores_supplied_id_and_metadata(self, registry):
        template = registry.create_template({
            "id": "mine",
            "name": "N",
            "content": "c",
            "metadata": {"usageCount": 50},
        })

        assert template.id != "mine"
        assert template.metadata.usage_count == 0

    def test_author_and_version_from_settings(self):
        registry = build_registry(Settings(
            load_defaults=False, default_author="kim", initial_version="0.1.0", _env_file=None,
        ))

        template = registry.create_template({"name": "N", "content": "c"})

        assert template.metadata.author == "kim"
        assert template.metadata.version == "0.1.0"

    def test_duplicate_name_rejected(self, registry):
        registry.create_template({"name": "Same", "content": "a"})

        with pytest.raises(ConflictError, match="Template name already exists: Same"):
            registry.create_template({"name": "Same", "content": "b"})

    def test_invalid_definition(self, registry):
        with pytest.raises(ValidationError) as exc_info:
            registry.create_template({
                "name": "Bad",
                "content": "x",
                "variables": [{"name": "code", "validation": {"pattern": "("}}],
            })

        assert any("Invalid variable validation pattern" in error for error in exc_info.value.errors)

    def test_duplicate_variable_names_rejected(self, registry):
        with pytest.raises(ValidationError):
            registry.create_template({
                "name": "Dup",
                "content": "x",
                "variables": [{"name": "a"}, {"name": "a"}],
            })

    def test_update_bumps_version(self, registry, simple_template):
        created_at = simple_template.metadata.created_at

        updated = registry.update_template(simple_template.id, {"content": "new {{title}}"})

        assert updated.content == "new {{title}}"
        assert updated.metadata.version == "1.0.1"
        assert updated.metadata.created_at == created_at
        assert updated.metadata.updated_at >= created_at
        assert registry.update_template(simple_template.id, {"tags": ["x"]}).metadata.version == "1.0.2"

    def test_update_ignores_id_and_metadata(self, registry, simple_template):
        updated = registry.update_template(simple_template.id, {
            "id": "other",
            "metadata": {"usageCount": 99},
            "isPublic": True,
        })

        assert updated.id == simple_template.id
        assert updated.metadata.usage_count == 0
        assert updated.metadata.is_public is True

    def test_update_keeps_usage_count(self, registry, simple_template):
        registry.use_template(simple_template.id, {"title": "T", "body": "B"})

        updated = registry.update_template(simple_template.id, {"description": "d"})

        assert updated.metadata.usage_count == 1

    def test_update_unknown_returns_none(self, registry):
        assert registry.update_template("missing", {"name": "x"}) is None

    def test_update_rename_conflict(self, registry, simple_template):
        registry.create_template({"name": "Other", "content": "x"})

        with pytest.raises(ConflictError):
            registry.update_template(simple_template.id, {"name": "Other"})

    def test_delete_template(self, registry, simple_template):
        assert registry.delete_template(simple_template.id) is True
        assert registry.delete_template(simple_template.id) is False
        assert registry.get_template(simple_template.id) is None

    def test_get_templates_filters(self, seeded_registry):
        assert {t.id for t in seeded_registry.get_templates(category="business")} == {"meeting-notes"}
        assert {t.id for t in seeded_registry.get_templates(tags=["journal", "planning"])} == {
            "daily-journal", "project-plan",
        }
        assert len(seeded_registry.get_templates(is_public=True)) == 3
        assert seeded_registry.get_templates(author="user") == []


@pytest.mark.unit
class TestUseTemplate:

    def test_scenario_render_and_count(self, registry, simple_template):
        content = registry.use_template(simple_template.id, {"title": "T", "body": "B"})

        assert content == "# T\nB"
        assert registry.get_template(simple_template.id).metadata.usage_count == 1

    def test_validation_error_does_not_count(self, registry):
        template = registry.create_template({
            "name": "Numbers",
            "content": "{{count}}",
            "variables": [{"name": "count", "type": "number", "required": True}],
        })

        with pytest.raises(ValidationError) as exc_info:
            registry.use_template(template.id, {"count": "five"})

        assert exc_info.value.errors == ["Variable count must be a number"]
        assert "count" in str(exc_info.value) and "number" in str(exc_info.value)
        assert template.metadata.usage_count == 0

    def test_unknown_template(self, registry):
        with pytest.raises(UnknownEntityError, match="Template nope not found"):
            registry.use_template("nope", {})

    def test_defaults_applied(self, registry):
        template = registry.create_template({
            "name": "Defaults",
            "content": "{{greeting}}, {{name}}",
            "variables": [{"name": "greeting", "defaultValue": "Hi"}, {"name": "name"}],
        })

        assert registry.use_template(template.id, {"name": "Ann"}) == "Hi, Ann"

    def test_validate_template_values(self, registry, simple_template):
        result = registry.validate_template_values(simple_template.id, {"title": "T"})

        assert result.is_valid is False
        assert result.errors == ["missing required variable: body"]


@pytest.mark.unit
class TestCategories:

    def test_create_template_joins_category(self, seeded_registry):
        template = seeded_registry.create_template({"name": "Essay", "content": "x", "category": "academic"})

        assert seeded_registry.get_category("academic").templates == [template.id]

    def test_moving_and_deleting_template_updates_membership(self, seeded_registry):
        template = seeded_registry.create_template({"name": "Essay", "content": "x", "category": "academic"})

        seeded_registry.update_template(template.id, {"category": "creative"})
        assert template.id not in seeded_registry.get_category("academic").templates
        assert template.id in seeded_registry.get_category("creative").templates

        seeded_registry.delete_template(template.id)
        assert template.id not in seeded_registry.get_category("creative").templates

    def test_category_crud(self, registry, simple_template):
        category = registry.create_category({"id": "general", "name": "General"})

        assert category.templates == [simple_template.id]
        assert registry.update_category("general", {"color": "#000"}).color == "#000"
        assert registry.delete_category("general") is True
        assert registry.get_category("general") is None
        assert registry.delete_category("general") is False

    def test_duplicate_category(self, registry):
        registry.create_category({"id": "c", "name": "C"})

        with pytest.raises(ConflictError):
            registry.create_category({"id": "c", "name": "Again"})


@pytest.mark.unit
class TestWorkflowLifecycle:

    def test_create_workflow(self, registry, step_factory):
        workflow = registry.create_workflow({"name": "W", "steps": [step_factory("s")]})

        assert workflow.id.startswith("workflow_")
        assert workflow.metadata.usage_count == 0
        assert workflow.metadata.success_rate == 1.0
        assert workflow.metadata.is_active is True

    def test_duplicate_step_ids_rejected(self, registry, step_factory):
        with pytest.raises(ValidationError):
            registry.create_workflow({"name": "W", "steps": [step_factory("s"), step_factory("s")]})

    def test_update_and_filters(self, registry):
        workflow = registry.create_workflow({"name": "W", "category": "ops"})

        updated = registry.update_workflow(workflow.id, {"isActive": False, "description": "d"})

        assert updated.metadata.is_active is False
        assert updated.description == "d"
        assert registry.get_workflows(is_active=False) == [updated]
        assert registry.get_workflows(category="ops") == [updated]
        assert registry.get_workflows(category="other") == []
        assert registry.update_workflow("missing", {"name": "x"}) is None

    def test_delete_workflow(self, registry):
        workflow = registry.create_workflow({"name": "W"})

        assert registry.delete_workflow(workflow.id) is True
        assert registry.get_workflow(workflow.id) is None
        assert registry.delete_workflow(workflow.id) is False


@pytest.mark.integration
class TestExecuteWorkflow:

    @pytest.mark.asyncio
    async def test_required_failure_halts(self, registry, three_step_workflow):
        workflow = three_step_workflow(step2_optional=False)

        result = await registry.execute_workflow(workflow.id, {})

        assert result.completed_steps == ["step1"]
        assert result.errors == ["Step Step2: boom"]
        assert result.success is False

    @pytest.mark.asyncio
    async def test_optional_failure_continues(self, registry, three_step_workflow):
        workflow = three_step_workflow(step2_optional=True)

        result = await registry.execute_workflow(workflow.id, {})

        assert result.completed_steps == ["step1", "step3"]
        assert any("Step2" in error for error in result.errors)

    @pytest.mark.asyncio
    async def test_statistics_updated(self, registry, three_step_workflow):
        workflow = three_step_workflow(step2_optional=True)

        await registry.execute_workflow(workflow.id, {})
        await registry.execute_workflow(workflow.id, {})

        stored = registry.get_workflow(workflow.id)
        assert stored.metadata.usage_count == 2
        assert stored.metadata.success_rate == 0
        assert stored.metadata.last_run_at is not None

        analytics = registry.get_workflow_analytics(workflow.id)
        assert analytics.usage_count == 2
        assert analytics.step_success_rates == {"step1": 1.0, "step2": 0.0, "step3": 1.0}

    @pytest.mark.asyncio
    async def test_unknown_action_scenario(self, registry, step_factory):
        workflow = registry.create_workflow({
            "name": "W",
            "steps": [step_factory("s", name="Ping", action="ping")],
        })

        result = await registry.execute_workflow(workflow.id, {})

        assert result.errors == ["Step Ping: Unknown action: ping"]

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, registry):
        with pytest.raises(UnknownEntityError):
            await registry.execute_workflow("missing", {})

    @pytest.mark.asyncio
    async def test_inactive_workflow(self, registry):
        workflow = registry.create_workflow({"name": "W", "isActive": False})

        with pytest.raises(WorkflowInactiveError):
            await registry.execute_workflow(workflow.id, {})
        assert registry.get_workflow(workflow.id).metadata.usage_count == 0

    @pytest.mark.asyncio
    async def test_workflow_variables_validated_first(self, registry, step_factory, recording_action):
        registry.register_action("record", recording_action)
        workflow = registry.create_workflow({
            "name": "W",
            "variables": [
                {"name": "project", "required": True},
                {"name": "size", "type": "number", "defaultValue": 3},
            ],
            "steps": [step_factory("s", action="record", parameters={"size": "{{size}}"})],
        })

        with pytest.raises(ValidationError):
            await registry.execute_workflow(workflow.id, {})
        assert recording_action.calls == []

        result = await registry.execute_workflow(workflow.id, {"project": "Apollo"})
        assert result.variables["size"] == "3"

    @pytest.mark.asyncio
    async def test_template_step_records_use(self, registry, simple_template, step_factory):
        workflow = registry.create_workflow({
            "name": "W",
            "steps": [step_factory("s", type="template", templateId=simple_template.id)],
        })

        result = await registry.execute_workflow(workflow.id, {"title": "T", "body": "B"})

        assert result.variables["content"] == "# T\nB"
        analytics = registry.get_template_analytics(simple_template.id)
        assert analytics.usage_count == 1
        assert analytics.recent_usage[0].source.value == "workflow"

    @pytest.mark.asyncio
    async def test_stored_definition_untouched(self, registry, step_factory, recording_action):
        registry.register_action("record", recording_action)
        workflow = registry.create_workflow({
            "name": "W",
            "steps": [step_factory("s", action="record", parameters={"a": "{{x}}"})],
        })

        await registry.execute_workflow(workflow.id, {"x": 1})

        assert registry.get_workflow(workflow.id).steps[0].parameters == {"a": "{{x}}"}

    @pytest.mark.asyncio
    async def test_loop_template_records_use_per_item(self, registry, simple_template, step_factory):
        workflow = registry.create_workflow({
            "name": "W",
            "steps": [step_factory(
                "s", type="loop", templateId=simple_template.id,
                parameters={"items": "{{titles}}", "title": "{{item}}", "body": "B"},
            )],
        })

        result = await registry.execute_workflow(workflow.id, {"titles": ["One", "Two", "Three"]})

        contents = [r["content"] for r in result.variables["loopResults"]]
        assert contents == ["# One\nB", "# Two\nB", "# Three\nB"]
        assert registry.get_template(simple_template.id).metadata.usage_count == 3

    @pytest.mark.asyncio
    async def test_workflow_deleted_during_run_still_returns_result(self, registry, step_factory):
        state = {}

        async def remove_self(parameters, variables):
            registry.delete_workflow(state["id"])
            return {"removed": True}

        registry.register_action("remove_self", remove_self)
        workflow = registry.create_workflow({
            "name": "W",
            "steps": [step_factory("s", action="remove_self")],
        })
        state["id"] = workflow.id

        result = await registry.execute_workflow(workflow.id, {})

        assert result.success is True
        assert result.variables["removed"] is True
        assert registry.get_workflow(workflow.id) is None
        assert registry.get_workflow_analytics(workflow.id) is None

    @pytest.mark.asyncio
    async def test_project_kickoff_default(self, seeded_registry):
        values = {
            "projectName": "Apollo",
            "projectManager": "Kim",
            "startDate": "2024-01-01",
            "endDate": "2024-06-30",
            "status": "Planning",
            "projectOverview": "Moon",
            "objectives": "Land",
            "scope": "All",
            "projectStakeholders": ["Ann", "Bob"],
        }

        result = await seeded_registry.execute_workflow("project-kickoff", values)

        assert result.success is True
        assert result.completed_steps == ["step1", "step2", "step3"]
        assert result.variables["meetingScheduled"] is True
        assert result.variables["attendees"] == "Ann, Bob"
        assert result.variables["name"] == "Apollo Team"


@pytest.mark.unit
class TestAnalytics:

    def test_template_analytics(self, registry, simple_template):
        for index in range(12):
            registry.use_template(simple_template.id, {"title": f"T{index}", "body": "B"})

        analytics = registry.get_template_analytics(simple_template.id)

        assert analytics.usage_count == 12
        assert len(analytics.recent_usage) == 10
        assert analytics.recent_usage[0].variables["title"] == "T11"
        assert analytics.popular_variables == {"title": 12, "body": 12}

    def test_usage_history_is_bounded(self):
        registry = build_registry(Settings(load_defaults=False, usage_history_limit=3, _env_file=None))
        template = registry.create_template({"name": "N", "content": "{{a}}"})

        for _ in range(5):
            registry.use_template(template.id, {"a": 1})

        assert len(registry.usage[template.id]) == 3
        assert registry.get_template_analytics(template.id).usage_count == 5

    def test_unknown_ids(self, registry):
        assert registry.get_template_analytics("missing") is None
        assert registry.get_workflow_analytics("missing") is None


@pytest.mark.unit
class TestEvents:

    def test_lifecycle_events(self, registry):
        seen = []
        for event in (EventType.TEMPLATE_CREATED, EventType.TEMPLATE_UPDATED, EventType.TEMPLATE_DELETED):
            registry.on(event, lambda payload, event=event: seen.append((event, payload.id)))

        template = registry.create_template({"name": "N", "content": "c"})
        registry.update_template(template.id, {"content": "d"})
        registry.delete_template(template.id)

        assert seen == [
            (EventType.TEMPLATE_CREATED, template.id),
            (EventType.TEMPLATE_UPDATED, template.id),
            (EventType.TEMPLATE_DELETED, template.id),
        ]

    def test_listener_failure_does_not_break_operation(self, registry):
        def broken(payload):
            raise RuntimeError("listener broke")

        registry.on(EventType.WORKFLOW_CREATED, broken)

        workflow = registry.create_workflow({"name": "W"})

        assert registry.get_workflow(workflow.id) is workflow

    def test_off(self, registry):
        seen = []
        registry.on(EventType.CATEGORY_CREATED, seen.append)
        registry.off(EventType.CATEGORY_CREATED, seen.append)

        registry.create_category({"name": "C"})

        assert seen == []


@pytest.mark.unit
class TestSnapshots:

    def test_export_uses_camel_case(self, seeded_registry):
        data = json.loads(seeded_registry.export_all())

        assert set(data) == {"templates", "categories", "workflows"}
        template = next(t for t in data["templates"] if t["id"] == "meeting-notes")
        assert "usageCount" in template["metadata"]
        assert data["workflows"][0]["steps"][0]["metadata"]["isOptional"] is False

    def test_round_trip_into_empty_registry(self, seeded_registry, registry):
        assert registry.import_all(seeded_registry.export_all()) is True

        assert {t.id for t in registry.get_templates()} == {t.id for t in seeded_registry.get_templates()}
        assert registry.get_workflow("project-kickoff").steps[2].metadata.is_optional is True
        assert registry.get_category("business").templates == ["meeting-notes"]

    @pytest.mark.parametrize("payload", ["not json", "[1, 2]", "null", ""])
    def test_invalid_payload(self, registry, payload):
        assert registry.import_all(payload) is False

    def test_partially_malformed_payload(self, registry):
        payload = json.dumps({
            "templates": [
                {"id": "good", "name": "Good", "content": "ok"},
                {"id": "bad", "name": "Bad"},
                "garbage",
            ],
            "workflows": [{"id": "w", "name": "W", "steps": [{"id": "s"}]}],
        })

        assert registry.import_all(payload) is True
        assert registry.get_template("good") is not None
        assert registry.get_template("bad") is None
        assert registry.get_workflow("w") is None

    def test_import_report(self, registry):
        payload = json.dumps({
            "templates": [{"id": "good", "name": "Good", "content": "ok"}, {"id": "bad"}],
            "categories": [{"id": "c", "name": "C"}],
        })

        report = registry.import_snapshot(payload)

        assert report.templates == 1
        assert report.categories == 1
        assert report.workflows == 0
        assert len(report.skipped) == 1
        assert report.skipped[0].startswith("templates[1]")

    def test_import_emits_events(self, registry):
        seen = []
        registry.on(EventType.TEMPLATE_CREATED, lambda t: seen.append(("created", t.id)))
        registry.on(EventType.TEMPLATE_UPDATED, lambda t: seen.append(("updated", t.id)))
        payload = json.dumps({"templates": [{"id": "t", "name": "T", "content": "x"}]})

        registry.import_all(payload)
        registry.import_all(payload)

        assert seen == [("created", "t"), ("updated", "t")]

    def test_imported_category_keeps_existing_members(self, registry, simple_template):
        registry.create_category({"id": "work", "name": "Work"})
        registry.update_template(simple_template.id, {"category": "work"})
        payload = json.dumps({"categories": [{"id": "work", "name": "Work v2", "templates": ["ghost"]}]})

        assert registry.import_all(payload) is True

        category = registry.get_category("work")
        assert category.name == "Work v2"
        assert category.templates == [simple_template.id]

    def test_import_invalid_payload_raises_in_report_api(self, registry):
        with pytest.raises(ValidationError):
            registry.import_snapshot("{broken")
