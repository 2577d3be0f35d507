"""Sequential workflow step interpreter."""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog
from pydantic import Field, computed_field

from notewright.templates.models import NoteTemplate, RecordModel
from notewright.templates.renderer import PLACEHOLDER_PATTERN, ContentRenderer
from notewright.templates.validator import VariableValidator
from notewright.workflows.models import NoteWorkflow, StepType, WorkflowStep

from .actions import ActionRegistry
from .conditions import ConditionEvaluator
from .errors import ExecutionError, StepExecutionError
from .scheduler import StepScheduler

logger = structlog.get_logger()

TemplateLookup = Callable[[str], Optional[NoteTemplate]]
TemplateRenderedHook = Callable[[str, Dict[str, Any]], None]


class StepResult(RecordModel):
    """Output of one successfully executed step."""

    step_id: str = Field(..., description="Step ID")
    output: Dict[str, Any] = Field(default_factory=dict, description="Values merged into the environment")


class ExecutionResult(RecordModel):
    """Outcome of one workflow execution."""

    workflow_id: str = Field(..., description="Workflow ID")
    success: bool = Field(..., description="True when no step failed")
    results: List[StepResult] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0, description="Wall-clock duration in ms")
    failed_steps: List[str] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict, description="Final variable environment")

    @computed_field(alias="completedSteps")
    @property
    def completed_steps(self) -> List[str]:
        return [result.step_id for result in self.results]


def describe_error(exc: Exception) -> str:
    message = str(exc)
    return message if message else type(exc).__name__


def error_info(exc: Exception) -> Dict[str, Any]:
    """Structured form of a step failure for logging."""
    if isinstance(exc, ExecutionError):
        return exc.to_dict()
    return {"error": type(exc).__name__, "message": describe_error(exc)}


class WorkflowInterpreter:
    """Runs workflow steps in order over a shared variable environment.

    Step failures never escape :meth:`execute`; they are recorded as
    ``"Step <name>: <error>"``. A failing step halts the run unless its
    metadata marks it optional.
    """

    def __init__(
        self,
        actions: ActionRegistry,
        template_lookup: TemplateLookup,
        validator: Optional[VariableValidator] = None,
        renderer: Optional[ContentRenderer] = None,
        conditions: Optional[ConditionEvaluator] = None,
        scheduler: Optional[StepScheduler] = None,
        on_template_rendered: Optional[TemplateRenderedHook] = None,
        max_loop_iterations: int = 1000,
    ):
        self.actions = actions
        self.template_lookup = template_lookup
        self.validator = validator or VariableValidator()
        self.renderer = renderer or ContentRenderer()
        self.conditions = conditions or ConditionEvaluator()
        self.scheduler = scheduler or StepScheduler()
        self.on_template_rendered = on_template_rendered
        self.max_loop_iterations = max_loop_iterations
        self.logger = logger.bind(component="workflow_interpreter")

    async def execute(
        self,
        workflow: NoteWorkflow,
        initial_values: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionResult:
        """Execute ``workflow`` starting from ``initial_values``.

        Raises:
            WorkflowValidationError: If graph scheduling finds unknown step references
            CircularDependencyError: If graph scheduling finds a cycle
        """
        started = time.perf_counter()
        plan = self.scheduler.plan(workflow)

        env: Dict[str, Any] = dict(initial_values or {})
        results: List[StepResult] = []
        errors: List[str] = []
        failed_steps: List[str] = []

        self.logger.info(
            "Starting workflow execution",
            workflow_id=workflow.id,
            steps=len(plan),
        )

        for step in plan:
            try:
                output = await self.execute_step(step, env)
            except Exception as e:
                errors.append(f"Step {step.name}: {describe_error(e)}")
                failed_steps.append(step.id)
                if step.metadata.is_optional:
                    self.logger.warning(
                        "Optional step failed, continuing",
                        workflow_id=workflow.id,
                        step_id=step.id,
                        error=error_info(e),
                    )
                    continue
                self.logger.error(
                    "Step failed, halting workflow",
                    workflow_id=workflow.id,
                    step_id=step.id,
                    error=error_info(e),
                )
                break

            env.update(output)
            results.append(StepResult(step_id=step.id, output=output))

        duration = (time.perf_counter() - started) * 1000
        result = ExecutionResult(
            workflow_id=workflow.id,
            success=not errors,
            results=results,
            errors=errors,
            duration=duration,
            failed_steps=failed_steps,
            variables=env,
        )

        self.logger.info(
            "Workflow execution finished",
            workflow_id=workflow.id,
            success=result.success,
            completed=len(results),
            failed=len(failed_steps),
            duration_ms=round(duration, 3),
        )
        return result

    async def execute_step(self, step: WorkflowStep, env: Mapping[str, Any]) -> Dict[str, Any]:
        """Execute a single step and return its output."""
        if step.variables:
            scope = {**env, **self.renderer.resolve(step.parameters, env)}
            validation = self.validator.validate(step.variables, scope)
            if not validation.is_valid:
                raise self._step_error(step, "; ".join(validation.errors))

        if step.type == StepType.TEMPLATE.value:
            return self._run_template(step, env)
        if step.type == StepType.ACTION.value:
            return await self._run_action(step, env)
        if step.type == StepType.CONDITION.value:
            return self._run_condition(step, env)
        if step.type == StepType.LOOP.value:
            return await self._run_loop(step, env)
        raise self._step_error(step, f"Unknown step type: {step.type}")

    def _run_template(
        self,
        step: WorkflowStep,
        env: Mapping[str, Any],
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not step.template_id:
            raise self._step_error(step, "Template ID required for template step")

        template = self.template_lookup(step.template_id)
        if template is None:
            raise self._step_error(step, f"Template {step.template_id} not found")

        if parameters is None:
            parameters = self.renderer.resolve(step.parameters, env)
        values = {**env, **parameters}

        validation = self.validator.validate(template.variables, values)
        if not validation.is_valid:
            raise self._step_error(step, "; ".join(validation.errors))

        content = self.renderer.render(
            template.content,
            self.validator.apply_defaults(template.variables, values),
        )
        if self.on_template_rendered is not None:
            self.on_template_rendered(template.id, values)
        return {"content": content, "templateId": template.id}

    async def _run_action(
        self,
        step: WorkflowStep,
        env: Mapping[str, Any],
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not step.action:
            raise self._step_error(step, "Action required for action step")
        if parameters is None:
            parameters = self.renderer.resolve(step.parameters, env)
        return await self.actions.dispatch(step.action, parameters, env)

    def _run_condition(self, step: WorkflowStep, env: Mapping[str, Any]) -> Dict[str, Any]:
        if not step.condition:
            raise self._step_error(step, "Condition required for condition step")
        return {"conditionResult": self.conditions.evaluate(step.condition, env)}

    async def _run_loop(self, step: WorkflowStep, env: Mapping[str, Any]) -> Dict[str, Any]:
        items = self._loop_items(step, env)
        if len(items) > self.max_loop_iterations:
            raise self._step_error(
                step,
                f"Loop has {len(items)} items, limit is {self.max_loop_iterations}",
            )

        body = {key: value for key, value in step.parameters.items() if key != "items"}
        loop_results = []
        for index, item in enumerate(items):
            scope = {**env, "item": item, "index": index}
            parameters = self.renderer.resolve(body, scope)
            if step.action:
                output: Any = await self._run_action(step, scope, parameters)
            elif step.template_id:
                output = self._run_template(step, scope, parameters)
            elif step.condition:
                output = self._run_condition(step, scope)
            else:
                output = parameters
            loop_results.append(output)
        return {"loopResults": loop_results}

    def _loop_items(self, step: WorkflowStep, env: Mapping[str, Any]) -> List[Any]:
        """Resolve the sequence a loop step iterates over.

        ``parameters.items`` may be a literal list, a ``{{name}}`` placeholder
        or a bare variable name. Without it the ``items`` variable is used.
        """
        if "items" in step.parameters:
            source = step.parameters["items"]
            if isinstance(source, str):
                match = PLACEHOLDER_PATTERN.fullmatch(source.strip())
                name = match.group(1) if match else source.strip()
                if name not in env:
                    raise self._step_error(step, f"Loop items variable not found: {name}")
                source = env[name]
            else:
                source = self.renderer.resolve(source, env)
        else:
            source = env.get("items")

        if source is None:
            return []
        if isinstance(source, (str, bytes)) or not isinstance(source, (list, tuple)):
            raise self._step_error(step, "Loop items must be a list")
        return list(source)

    def _step_error(self, step: WorkflowStep, message: str) -> StepExecutionError:
        return StepExecutionError(
            message,
            step_id=step.id,
            step_name=step.name,
            step_type=step.type,
        )
