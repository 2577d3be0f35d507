"""Workflow data models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from notewright.templates.models import RecordModel, TemplateVariable, check_unique_names, utc_now


class StepType(str, Enum):
    """Step kinds understood by the interpreter."""
    TEMPLATE = "template"
    ACTION = "action"
    CONDITION = "condition"
    LOOP = "loop"


class TriggerType(str, Enum):
    """Trigger kinds. Triggers are stored for the host, never fired here."""
    MANUAL = "manual"
    SCHEDULE = "schedule"
    EVENT = "event"
    CONDITION = "condition"


class SchedulingMode(str, Enum):
    """How step execution order is derived."""
    ORDER = "order"
    GRAPH = "graph"


class StepMetadata(RecordModel):
    """Per-step execution settings."""

    order: int = Field(default=0, description="Execution sequence position")
    is_optional: bool = Field(default=False, description="Failure does not halt the workflow")
    estimated_time: float = Field(default=0, ge=0, description="Estimated minutes")


class WorkflowStep(RecordModel):
    """One step of a workflow."""

    id: str = Field(..., min_length=1, description="Step ID")
    name: str = Field(..., min_length=1, description="Step name")
    # Free-form so that unknown kinds fail at execution time, not definition time.
    type: str = Field(..., description="template, action, condition or loop")
    template_id: Optional[str] = Field(None, description="Template rendered by template steps")
    action: Optional[str] = Field(None, description="Action invoked by action steps")
    condition: Optional[str] = Field(None, description="Expression evaluated by condition steps")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Parameters with placeholders")
    next_steps: List[str] = Field(default_factory=list, description="Successor step IDs")
    depends_on: List[str] = Field(default_factory=list, description="Predecessor step IDs")
    variables: List[TemplateVariable] = Field(default_factory=list, description="Step input specs")
    metadata: StepMetadata = Field(default_factory=StepMetadata)

    @model_validator(mode='after')
    def check_variables(self):
        check_unique_names(self.variables, f"step {self.id}")
        return self


class WorkflowTrigger(RecordModel):
    """Trigger descriptor consumed by the host application."""

    type: TriggerType = Field(default=TriggerType.MANUAL, description="Trigger type")
    event: Optional[str] = Field(None, description="Event name")
    schedule: Optional[str] = Field(None, description="Schedule expression")
    condition: Optional[str] = Field(None, description="Condition expression")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Trigger parameters")


class WorkflowMetadata(RecordModel):
    """Running statistics and state owned by the registry."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    usage_count: int = Field(default=0, ge=0, description="Completed executions")
    average_completion_time: float = Field(default=0.0, ge=0, description="Running average in ms")
    success_rate: float = Field(default=1.0, ge=0, le=1, description="Running success rate")
    is_active: bool = Field(default=True, description="Whether the workflow may run")
    last_run_at: Optional[datetime] = Field(None, description="Last execution finish")


class NoteWorkflow(RecordModel):
    """Ordered steps sharing one variable environment."""

    id: str = Field(..., min_length=1, description="Workflow ID")
    name: str = Field(..., min_length=1, description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    category: str = Field(default="general", description="Category ID")
    steps: List[WorkflowStep] = Field(default_factory=list, description="Workflow steps")
    triggers: List[WorkflowTrigger] = Field(default_factory=list, description="Workflow triggers")
    variables: List[TemplateVariable] = Field(default_factory=list, description="Initial value specs")
    scheduling: SchedulingMode = Field(default=SchedulingMode.ORDER, description="Ordering mode")
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    @model_validator(mode='after')
    def check_steps(self):
        seen = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id in workflow {self.name}: {step.id}")
            seen.add(step.id)
        check_unique_names(self.variables, f"workflow {self.name}")
        return self
