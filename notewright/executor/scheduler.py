"""Derives the order in which a workflow's steps run."""

from typing import Dict, List

import networkx as nx
import structlog

from notewright.workflows.models import NoteWorkflow, SchedulingMode, WorkflowStep

from .errors import CircularDependencyError, WorkflowValidationError

logger = structlog.get_logger()


class StepScheduler:
    """Plans step execution order.

    ``order`` scheduling sorts steps by ``metadata.order`` keeping declaration
    order for ties. ``graph`` scheduling honours ``next_steps`` and
    ``depends_on`` edges and falls back to the same tie-break among steps
    that are ready at the same time.
    """

    def __init__(self):
        self.logger = logger.bind(component="step_scheduler")

    def plan(self, workflow: NoteWorkflow) -> List[WorkflowStep]:
        if workflow.scheduling == SchedulingMode.GRAPH:
            return self.plan_graph(workflow)
        return sorted(workflow.steps, key=lambda step: step.metadata.order)

    def build_graph(self, workflow: NoteWorkflow) -> nx.DiGraph:
        """Build the step dependency graph.

        Raises:
            WorkflowValidationError: If an edge names a step that does not exist
        """
        graph = nx.DiGraph()
        for index, step in enumerate(workflow.steps):
            graph.add_node(step.id, order=step.metadata.order, index=index)

        errors = []
        for step in workflow.steps:
            for next_id in step.next_steps:
                if next_id not in graph:
                    errors.append(f"Step {step.id} has unknown next step: {next_id}")
                else:
                    graph.add_edge(step.id, next_id)
            for dep_id in step.depends_on:
                if dep_id not in graph:
                    errors.append(f"Step {step.id} depends on unknown step: {dep_id}")
                else:
                    graph.add_edge(dep_id, step.id)

        if errors:
            raise WorkflowValidationError(
                f"Workflow {workflow.name} has invalid step references",
                validation_errors=errors,
            )
        return graph

    def plan_graph(self, workflow: NoteWorkflow) -> List[WorkflowStep]:
        """Topological order with ``(order, declaration index)`` tie-break."""
        graph = self.build_graph(workflow)

        try:
            cycle = nx.find_cycle(graph)
        except nx.NetworkXNoCycle:
            cycle = None
        if cycle:
            path = [edge[0] for edge in cycle] + [cycle[-1][1]]
            raise CircularDependencyError(
                f"Circular dependency detected in workflow {workflow.name}",
                cycle_path=path,
            )

        steps: Dict[str, WorkflowStep] = {step.id: step for step in workflow.steps}
        ordered = nx.lexicographical_topological_sort(
            graph,
            key=lambda node: (graph.nodes[node]["order"], graph.nodes[node]["index"]),
        )
        plan = [steps[step_id] for step_id in ordered]
        self.logger.debug("Graph plan built", workflow=workflow.name, steps=[s.id for s in plan])
        return plan
