"""Workflow module."""

from .models import (
    NoteWorkflow,
    SchedulingMode,
    StepMetadata,
    StepType,
    TriggerType,
    WorkflowMetadata,
    WorkflowStep,
    WorkflowTrigger,
)

__all__ = [
    "NoteWorkflow",
    "SchedulingMode",
    "StepMetadata",
    "StepType",
    "TriggerType",
    "WorkflowMetadata",
    "WorkflowStep",
    "WorkflowTrigger",
]
