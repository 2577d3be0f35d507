"""Template, category and workflow registry."""

import copy
import json
from collections import Counter, deque
from threading import RLock
from typing import Any, Deque, Dict, List, Mapping, Optional, Type, TypeVar, Union
from uuid import uuid4

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from notewright.config import Settings, get_settings
from notewright.defaults import default_categories, default_templates, default_workflows
from notewright.events import EventBus, EventType, Listener
from notewright.exceptions import ConflictError, UnknownEntityError, ValidationError
from notewright.executor.actions import ActionHandler, ActionRegistry
from notewright.executor.errors import WorkflowInactiveError
from notewright.executor.interpreter import ExecutionResult, WorkflowInterpreter
from notewright.metrics import ExecutionMetricsAggregator
from notewright.schemas import (
    CategoryCreate,
    CategoryUpdate,
    ImportReport,
    TemplateAnalytics,
    TemplateCreate,
    TemplateUpdate,
    TemplateUsage,
    UsageSource,
    WorkflowAnalytics,
    WorkflowCreate,
    WorkflowUpdate,
)
from notewright.templates.models import (
    NoteTemplate,
    TemplateCategory,
    increment_version,
    utc_now,
)
from notewright.templates.renderer import ContentRenderer
from notewright.templates.validator import ValidationResult, VariableValidator
from notewright.workflows.models import NoteWorkflow, WorkflowMetadata

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)
Definition = Union[Mapping[str, Any], BaseModel]

RECENT_USAGE_LIMIT = 10


def format_validation_errors(exc: PydanticValidationError) -> List[str]:
    """Readable ``field: message`` strings for a pydantic error."""
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        errors.append(f"{location}: {error['msg']}" if location else error["msg"])
    return errors


def build_model(model_cls: Type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model_cls``, raising :class:`ValidationError`."""
    if isinstance(data, BaseModel) and not isinstance(data, model_cls):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e))


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


class TemplateRegistry:
    """Owns templates, categories and workflows and runs workflows.

    Records handed out by the registry are the stored instances; callers
    change them through the ``update_*`` methods so that versioning, events
    and category membership stay consistent.
    """

    def __init__(self, settings: Optional[Settings] = None, actions: Optional[ActionRegistry] = None):
        self.settings = settings or get_settings()
        self.templates: Dict[str, NoteTemplate] = {}
        self.categories: Dict[str, TemplateCategory] = {}
        self.workflows: Dict[str, NoteWorkflow] = {}
        self.usage: Dict[str, Deque[TemplateUsage]] = {}
        self._lock = RLock()

        self.events = EventBus()
        self.validator = VariableValidator()
        self.renderer = ContentRenderer()
        self.metrics = ExecutionMetricsAggregator(self.templates, self.workflows)
        self.actions = actions or ActionRegistry.with_builtins()
        self.interpreter = WorkflowInterpreter(
            actions=self.actions,
            template_lookup=self.get_template,
            validator=self.validator,
            renderer=self.renderer,
            on_template_rendered=self._record_workflow_render,
            max_loop_iterations=self.settings.max_loop_iterations,
        )
        self.logger = logger.bind(component="template_registry")

    # Events

    def on(self, event: Union[EventType, str], listener: Listener) -> None:
        """Subscribe to a registry event."""
        self.events.on(event, listener)

    def off(self, event: Union[EventType, str], listener: Listener) -> bool:
        """Unsubscribe from a registry event."""
        return self.events.off(event, listener)

    def register_action(self, name: str, handler: ActionHandler) -> None:
        """Make ``handler`` available to action steps as ``name``."""
        self.actions.register(name, handler)

    # Templates

    def create_template(self, definition: Definition) -> NoteTemplate:
        """Create a template with a generated id and fresh metadata.

        Raises:
            ValidationError: If the definition is invalid
            ConflictError: If another template already has the same name
        """
        payload = build_model(TemplateCreate, definition)
        now = utc_now()

        with self._lock:
            self._ensure_unique_name(payload.name)
            template = build_model(NoteTemplate, {
                "id": new_id("template"),
                "name": payload.name,
                "description": payload.description,
                "category": payload.category,
                "tags": payload.tags,
                "content": payload.content,
                "variables": payload.variables,
                "metadata": {
                    "created_at": now,
                    "updated_at": now,
                    "is_public": payload.is_public,
                    "author": self.settings.default_author,
                    "version": self.settings.initial_version,
                },
            })
            self.templates[template.id] = template
            self._attach(template.category, template.id)

        self.logger.info("Template created", template_id=template.id, name=template.name)
        self.events.emit(EventType.TEMPLATE_CREATED, template)
        return template

    def update_template(self, template_id: str, patch: Definition) -> Optional[NoteTemplate]:
        """Apply a partial update. Returns None for an unknown id.

        ``id`` and ``metadata`` in the patch are ignored; the version is
        patch-incremented on every update.
        """
        changes = build_model(TemplateUpdate, patch).model_dump(exclude_unset=True)

        with self._lock:
            current = self.templates.get(template_id)
            if current is None:
                return None
            if "name" in changes:
                self._ensure_unique_name(changes["name"], exclude_id=template_id)

            with self.metrics.lock_for("template", template_id):
                # Re-read under the entity lock so concurrent counter bumps survive.
                current = self.templates[template_id]
                data = current.model_dump()
                meta_changes = {
                    key: changes.pop(key) for key in ("is_public", "rating") if key in changes
                }
                data.update(changes)
                data["metadata"].update(meta_changes)
                data["metadata"]["updated_at"] = utc_now()
                data["metadata"]["version"] = increment_version(current.metadata.version)
                updated = build_model(NoteTemplate, data)
                self.templates[template_id] = updated

            if updated.category != current.category:
                self._detach(current.category, template_id)
                self._attach(updated.category, template_id)

        self.logger.info("Template updated", template_id=template_id, version=updated.metadata.version)
        self.events.emit(EventType.TEMPLATE_UPDATED, updated)
        return updated

    def delete_template(self, template_id: str) -> bool:
        with self._lock:
            template = self.templates.pop(template_id, None)
            if template is None:
                return False
            self.usage.pop(template_id, None)
            self._detach(template.category, template_id)
            self.metrics.forget("template", template_id)

        self.logger.info("Template deleted", template_id=template_id)
        self.events.emit(EventType.TEMPLATE_DELETED, template)
        return True

    def get_template(self, template_id: str) -> Optional[NoteTemplate]:
        with self._lock:
            return self.templates.get(template_id)

    def get_templates(
        self,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_public: Optional[bool] = None,
        author: Optional[str] = None,
    ) -> List[NoteTemplate]:
        """List templates, optionally filtered. ``tags`` matches any tag."""
        with self._lock:
            templates = list(self.templates.values())

        if category:
            templates = [t for t in templates if t.category == category]
        if tags:
            templates = [t for t in templates if any(tag in t.tags for tag in tags)]
        if is_public is not None:
            templates = [t for t in templates if t.metadata.is_public == is_public]
        if author:
            templates = [t for t in templates if t.metadata.author == author]
        return templates

    def validate_template_values(self, template_id: str, values: Mapping[str, Any]) -> ValidationResult:
        template = self._require_template(template_id)
        return self.validator.validate(template.variables, values)

    def use_template(self, template_id: str, values: Mapping[str, Any]) -> str:
        """Render a template and record the use.

        Raises:
            UnknownEntityError: If the template does not exist
            ValidationError: If ``values`` do not satisfy the template's variables
        """
        template = self._require_template(template_id)
        result = self.validator.validate(template.variables, values)
        if not result.is_valid:
            self.logger.info("Template values rejected", template_id=template_id, errors=result.errors)
            raise ValidationError(result.errors)

        content = self.renderer.render(
            template.content,
            self.validator.apply_defaults(template.variables, values),
        )
        self._record_use(template_id, values, UsageSource.DIRECT)
        return content

    def _record_workflow_render(self, template_id: str, values: Dict[str, Any]) -> None:
        self._record_use(template_id, values, UsageSource.WORKFLOW)

    def _record_use(self, template_id: str, values: Mapping[str, Any], source: UsageSource) -> None:
        self.metrics.record_template_use(template_id)
        usage = TemplateUsage(
            id=new_id("usage"),
            template_id=template_id,
            variables=dict(values),
            source=source,
        )
        with self._lock:
            history = self.usage.setdefault(
                template_id, deque(maxlen=self.settings.usage_history_limit)
            )
            history.append(usage)

    def _ensure_unique_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        for template in self.templates.values():
            if template.name == name and template.id != exclude_id:
                raise ConflictError(f"Template name already exists: {name}")

    def _require_template(self, template_id: str) -> NoteTemplate:
        template = self.get_template(template_id)
        if template is None:
            raise UnknownEntityError("template", template_id)
        return template

    # Categories

    def create_category(self, definition: Definition) -> TemplateCategory:
        """Create a category. Existing templates naming it become members."""
        payload = build_model(CategoryCreate, definition)

        with self._lock:
            category_id = payload.id or new_id("category")
            if category_id in self.categories:
                raise ConflictError(f"Category already exists: {category_id}")
            category = TemplateCategory(
                id=category_id,
                name=payload.name,
                description=payload.description,
                icon=payload.icon,
                color=payload.color,
                templates=[t.id for t in self.templates.values() if t.category == category_id],
            )
            self.categories[category_id] = category

        self.logger.info("Category created", category_id=category_id)
        self.events.emit(EventType.CATEGORY_CREATED, category)
        return category

    def update_category(self, category_id: str, patch: Definition) -> Optional[TemplateCategory]:
        changes = build_model(CategoryUpdate, patch).model_dump(exclude_unset=True)

        with self._lock:
            current = self.categories.get(category_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self.categories[category_id] = updated

        self.events.emit(EventType.CATEGORY_UPDATED, updated)
        return updated

    def delete_category(self, category_id: str) -> bool:
        """Delete a category. Member templates keep their category id."""
        with self._lock:
            category = self.categories.pop(category_id, None)
        if category is None:
            return False

        self.logger.info("Category deleted", category_id=category_id)
        self.events.emit(EventType.CATEGORY_DELETED, category)
        return True

    def get_category(self, category_id: str) -> Optional[TemplateCategory]:
        with self._lock:
            return self.categories.get(category_id)

    def get_categories(self) -> List[TemplateCategory]:
        with self._lock:
            return list(self.categories.values())

    def _attach(self, category_id: str, template_id: str) -> None:
        category = self.categories.get(category_id)
        if category is not None and template_id not in category.templates:
            category.templates.append(template_id)

    def _detach(self, category_id: str, template_id: str) -> None:
        category = self.categories.get(category_id)
        if category is not None and template_id in category.templates:
            category.templates.remove(template_id)

    # Workflows

    def create_workflow(self, definition: Definition) -> NoteWorkflow:
        """Create a workflow with a generated id and fresh statistics."""
        payload = build_model(WorkflowCreate, definition)
        now = utc_now()

        workflow = build_model(NoteWorkflow, {
            "id": new_id("workflow"),
            "name": payload.name,
            "description": payload.description,
            "category": payload.category,
            "steps": payload.steps,
            "triggers": payload.triggers,
            "variables": payload.variables,
            "scheduling": payload.scheduling,
            "metadata": WorkflowMetadata(created_at=now, updated_at=now, is_active=payload.is_active),
        })
        with self._lock:
            self.workflows[workflow.id] = workflow

        self.logger.info("Workflow created", workflow_id=workflow.id, name=workflow.name)
        self.events.emit(EventType.WORKFLOW_CREATED, workflow)
        return workflow

    def update_workflow(self, workflow_id: str, patch: Definition) -> Optional[NoteWorkflow]:
        """Apply a partial update. Returns None for an unknown id."""
        changes = build_model(WorkflowUpdate, patch).model_dump(exclude_unset=True)

        with self._lock:
            if workflow_id not in self.workflows:
                return None
            with self.metrics.lock_for("workflow", workflow_id):
                current = self.workflows[workflow_id]
                data = current.model_dump()
                if "is_active" in changes:
                    data["metadata"]["is_active"] = changes.pop("is_active")
                data.update(changes)
                data["metadata"]["updated_at"] = utc_now()
                updated = build_model(NoteWorkflow, data)
                self.workflows[workflow_id] = updated

        self.logger.info("Workflow updated", workflow_id=workflow_id)
        self.events.emit(EventType.WORKFLOW_UPDATED, updated)
        return updated

    def delete_workflow(self, workflow_id: str) -> bool:
        with self._lock:
            workflow = self.workflows.pop(workflow_id, None)
            if workflow is None:
                return False
            self.metrics.forget("workflow", workflow_id)

        self.logger.info("Workflow deleted", workflow_id=workflow_id)
        self.events.emit(EventType.WORKFLOW_DELETED, workflow)
        return True

    def get_workflow(self, workflow_id: str) -> Optional[NoteWorkflow]:
        with self._lock:
            return self.workflows.get(workflow_id)

    def get_workflows(self, category: Optional[str] = None, is_active: Optional[bool] = None) -> List[NoteWorkflow]:
        with self._lock:
            workflows = list(self.workflows.values())

        if category:
            workflows = [w for w in workflows if w.category == category]
        if is_active is not None:
            workflows = [w for w in workflows if w.metadata.is_active == is_active]
        return workflows

    async def execute_workflow(
        self,
        workflow_id: str,
        initial_values: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """Run a workflow and fold the outcome into its statistics.

        Raises:
            UnknownEntityError: If the workflow does not exist
            WorkflowInactiveError: If the workflow has been deactivated
            ValidationError: If ``initial_values`` fail the workflow's variables
        """
        with self._lock:
            stored = self.workflows.get(workflow_id)
            if stored is None:
                raise UnknownEntityError("workflow", workflow_id)
            workflow = copy.deepcopy(stored)

        if not workflow.metadata.is_active:
            raise WorkflowInactiveError(workflow_id)

        values = dict(initial_values or {})
        if workflow.variables:
            validation = self.validator.validate(workflow.variables, values)
            if not validation.is_valid:
                raise ValidationError(validation.errors)
            values = self.validator.apply_defaults(workflow.variables, values)

        result = await self.interpreter.execute(workflow, values)

        try:
            self.metrics.record_workflow_run(workflow_id, result.duration, result.success)
            for step_id in result.completed_steps:
                self.metrics.record_step_outcome(workflow_id, step_id, True)
            for step_id in result.failed_steps:
                self.metrics.record_step_outcome(workflow_id, step_id, False)
        except UnknownEntityError:
            # deleted while running
            self.logger.warning("Workflow removed during execution, statistics skipped", workflow_id=workflow_id)
        return result

    # Analytics

    def get_template_analytics(self, template_id: str) -> Optional[TemplateAnalytics]:
        """Usage summary, or None for an unknown id."""
        with self._lock:
            template = self.templates.get(template_id)
            if template is None:
                return None
            history = list(self.usage.get(template_id, ()))

        popular: Counter = Counter()
        for usage in history:
            popular.update(usage.variables.keys())

        return TemplateAnalytics(
            template_id=template_id,
            usage_count=template.metadata.usage_count,
            average_rating=template.metadata.rating,
            last_used_at=template.metadata.last_used_at,
            recent_usage=list(reversed(history[-RECENT_USAGE_LIMIT:])),
            popular_variables=dict(popular),
        )

    def get_workflow_analytics(self, workflow_id: str) -> Optional[WorkflowAnalytics]:
        """Execution summary, or None for an unknown id."""
        workflow = self.get_workflow(workflow_id)
        if workflow is None:
            return None
        return WorkflowAnalytics(
            workflow_id=workflow_id,
            usage_count=workflow.metadata.usage_count,
            average_completion_time=workflow.metadata.average_completion_time,
            success_rate=workflow.metadata.success_rate,
            last_run_at=workflow.metadata.last_run_at,
            step_success_rates=self.metrics.step_success_rates(workflow_id),
        )

    # Snapshots

    def export_all(self) -> str:
        """Serialize every template, category and workflow to JSON."""
        with self._lock:
            snapshot = {
                "templates": [t.model_dump(mode="json", by_alias=True) for t in self.templates.values()],
                "categories": [c.model_dump(mode="json", by_alias=True) for c in self.categories.values()],
                "workflows": [w.model_dump(mode="json", by_alias=True) for w in self.workflows.values()],
            }
        return json.dumps(snapshot, indent=self.settings.export_indent, ensure_ascii=False)

    def import_all(self, serialized: str) -> bool:
        """Import a snapshot. False when the payload is not a JSON object."""
        try:
            self.import_snapshot(serialized)
        except ValidationError as e:
            self.logger.warning("Snapshot import failed", error=str(e))
            return False
        return True

    def import_snapshot(self, serialized: str) -> ImportReport:
        """Import a snapshot record by record.

        Records are upserted by id. Malformed records are skipped and listed
        in the report.

        Raises:
            ValidationError: If the payload is not a JSON object
        """
        try:
            payload = json.loads(serialized)
        except (TypeError, ValueError) as e:
            raise ValidationError([f"Invalid snapshot JSON: {e}"])
        if not isinstance(payload, dict):
            raise ValidationError(["Snapshot must be a JSON object"])

        report = ImportReport()
        # Categories first so imported templates land in their categories.
        for section, model_cls in (
            ("categories", TemplateCategory),
            ("templates", NoteTemplate),
            ("workflows", NoteWorkflow),
        ):
            records = payload.get(section) or []
            if not isinstance(records, list):
                report.skipped.append(f"{section}: expected a list")
                continue
            for index, data in enumerate(records):
                try:
                    record = build_model(model_cls, data)
                except ValidationError as e:
                    reason = f"{section}[{index}]: {e}"
                    self.logger.warning("Skipping malformed record", section=section, index=index, error=str(e))
                    report.skipped.append(reason)
                    continue
                self._store_imported(section, record)
                setattr(report, section, getattr(report, section) + 1)

        self.logger.info(
            "Snapshot imported",
            templates=report.templates,
            categories=report.categories,
            workflows=report.workflows,
            skipped=len(report.skipped),
        )
        return report

    def _store_imported(self, section: str, record: Any) -> None:
        if section == "categories":
            with self._lock:
                existed = record.id in self.categories
                # membership follows the stored templates, not the snapshot
                record.templates = [t.id for t in self.templates.values() if t.category == record.id]
                self.categories[record.id] = record
            self.events.emit(EventType.CATEGORY_UPDATED if existed else EventType.CATEGORY_CREATED, record)
        elif section == "templates":
            with self._lock, self.metrics.lock_for("template", record.id):
                previous = self.templates.get(record.id)
                self.templates[record.id] = record
                if previous is not None and previous.category != record.category:
                    self._detach(previous.category, record.id)
                self._attach(record.category, record.id)
            self.events.emit(
                EventType.TEMPLATE_UPDATED if previous is not None else EventType.TEMPLATE_CREATED,
                record,
            )
        else:
            with self._lock, self.metrics.lock_for("workflow", record.id):
                existed = record.id in self.workflows
                self.workflows[record.id] = record
            self.events.emit(EventType.WORKFLOW_UPDATED if existed else EventType.WORKFLOW_CREATED, record)

    # Defaults

    def load_defaults(self) -> None:
        """Seed the built-in templates, categories and workflows."""
        with self._lock:
            for category in default_categories():
                self.categories.setdefault(category.id, category)
            for template in default_templates():
                self.templates.setdefault(template.id, template)
                self._attach(template.category, template.id)
            for workflow in default_workflows():
                self.workflows.setdefault(workflow.id, workflow)

        self.logger.debug(
            "Defaults loaded",
            templates=len(self.templates),
            categories=len(self.categories),
            workflows=len(self.workflows),
        )


def build_registry(
    settings: Optional[Settings] = None,
    actions: Optional[Mapping[str, ActionHandler]] = None,
) -> TemplateRegistry:
    """Create a registry wired from ``settings``.

    Built-in actions are always available; ``actions`` adds or overrides
    handlers by name.
    """
    settings = settings or get_settings()
    registry = TemplateRegistry(settings=settings)
    for name, handler in (actions or {}).items():
        registry.register_action(name, handler)
    if settings.load_defaults:
        registry.load_defaults()
    return registry
