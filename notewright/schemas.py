"""Input and reporting schemas for the registry."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from notewright.templates.models import RecordModel, TemplateVariable, utc_now
from notewright.workflows.models import SchedulingMode, WorkflowStep, WorkflowTrigger


class UsageSource(str, Enum):
    """Where a template render came from."""
    DIRECT = "direct"
    WORKFLOW = "workflow"


# Create schemas
class TemplateCreate(RecordModel):
    """Schema for creating a template."""
    name: str = Field(..., min_length=1, description="Template name")
    description: str = Field(default="", description="Template description")
    category: str = Field(default="general", description="Category ID")
    tags: List[str] = Field(default_factory=list, description="Template tags")
    content: str = Field(default="", description="Body with {{name}} placeholders")
    variables: List[TemplateVariable] = Field(default_factory=list, description="Variable specs")
    is_public: bool = Field(default=False, description="Visible to other users")


class WorkflowCreate(RecordModel):
    """Schema for creating a workflow."""
    name: str = Field(..., min_length=1, description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    category: str = Field(default="general", description="Category ID")
    steps: List[WorkflowStep] = Field(default_factory=list, description="Workflow steps")
    triggers: List[WorkflowTrigger] = Field(default_factory=list, description="Workflow triggers")
    variables: List[TemplateVariable] = Field(default_factory=list, description="Initial value specs")
    scheduling: SchedulingMode = Field(default=SchedulingMode.ORDER, description="Ordering mode")
    is_active: bool = Field(default=True, description="Whether the workflow may run")


class CategoryCreate(RecordModel):
    """Schema for creating a category."""
    id: Optional[str] = Field(None, min_length=1, description="Category ID (generated when omitted)")
    name: str = Field(..., min_length=1, description="Category name")
    description: str = Field(default="", description="Category description")
    icon: str = Field(default="", description="Icon name")
    color: str = Field(default="", description="Display color")


# Update schemas
class TemplateUpdate(RecordModel):
    """Schema for updating a template."""
    name: Optional[str] = Field(None, min_length=1, description="Template name")
    description: Optional[str] = Field(None, description="Template description")
    category: Optional[str] = Field(None, description="Category ID")
    tags: Optional[List[str]] = Field(None, description="Template tags")
    content: Optional[str] = Field(None, description="Template body")
    variables: Optional[List[TemplateVariable]] = Field(None, description="Variable specs")
    is_public: Optional[bool] = Field(None, description="Visible to other users")
    rating: Optional[float] = Field(None, ge=0, le=5, description="Template rating")


class WorkflowUpdate(RecordModel):
    """Schema for updating a workflow."""
    name: Optional[str] = Field(None, min_length=1, description="Workflow name")
    description: Optional[str] = Field(None, description="Workflow description")
    category: Optional[str] = Field(None, description="Category ID")
    steps: Optional[List[WorkflowStep]] = Field(None, description="Workflow steps")
    triggers: Optional[List[WorkflowTrigger]] = Field(None, description="Workflow triggers")
    variables: Optional[List[TemplateVariable]] = Field(None, description="Initial value specs")
    scheduling: Optional[SchedulingMode] = Field(None, description="Ordering mode")
    is_active: Optional[bool] = Field(None, description="Whether the workflow may run")


class CategoryUpdate(RecordModel):
    """Schema for updating a category."""
    name: Optional[str] = Field(None, min_length=1, description="Category name")
    description: Optional[str] = Field(None, description="Category description")
    icon: Optional[str] = Field(None, description="Icon name")
    color: Optional[str] = Field(None, description="Display color")


# Reporting schemas
class TemplateUsage(RecordModel):
    """One successful render kept for analytics."""
    id: str = Field(..., description="Usage ID")
    template_id: str = Field(..., description="Template ID")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Values used")
    timestamp: datetime = Field(default_factory=utc_now)
    source: UsageSource = Field(default=UsageSource.DIRECT)


class TemplateAnalytics(RecordModel):
    """Template usage summary."""
    template_id: str
    usage_count: int = 0
    average_rating: float = 0
    last_used_at: Optional[datetime] = None
    recent_usage: List[TemplateUsage] = Field(default_factory=list, description="Newest first")
    popular_variables: Dict[str, int] = Field(default_factory=dict)


class WorkflowAnalytics(RecordModel):
    """Workflow execution summary."""
    workflow_id: str
    usage_count: int = 0
    average_completion_time: float = 0.0
    success_rate: float = 1.0
    last_run_at: Optional[datetime] = None
    step_success_rates: Dict[str, float] = Field(default_factory=dict)


class ImportReport(RecordModel):
    """Per-record outcome of a snapshot import."""
    templates: int = Field(default=0, description="Templates imported")
    categories: int = Field(default=0, description="Categories imported")
    workflows: int = Field(default=0, description="Workflows imported")
    skipped: List[str] = Field(default_factory=list, description="Reasons for skipped records")

    @property
    def imported(self) -> int:
        return self.templates + self.categories + self.workflows
