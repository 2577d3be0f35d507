"""Running usage and execution statistics for templates and workflows."""

from collections import defaultdict
from threading import Lock, RLock
from typing import Dict, MutableMapping, Tuple

import structlog

from notewright.exceptions import UnknownEntityError
from notewright.templates.models import NoteTemplate, utc_now
from notewright.workflows.models import NoteWorkflow

logger = structlog.get_logger()


def running_average(previous: float, count: int, sample: float) -> float:
    """Fold ``sample`` into an average of ``count - 1`` earlier samples."""
    return (previous * (count - 1) + sample) / count


class ExecutionMetricsAggregator:
    """Maintains counters on the metadata of registry-owned records.

    All read-modify-write cycles for one entity happen under that entity's
    lock. The registry takes the same lock when it replaces a record, so an
    update and a counter bump never interleave.
    """

    def __init__(
        self,
        templates: MutableMapping[str, NoteTemplate],
        workflows: MutableMapping[str, NoteWorkflow],
    ):
        self.templates = templates
        self.workflows = workflows
        self._locks: Dict[Tuple[str, str], Lock] = {}
        self._locks_guard = RLock()
        # workflow id -> step id -> (outcomes, success rate)
        self._step_stats: Dict[str, Dict[str, Tuple[int, float]]] = defaultdict(dict)
        self.logger = logger.bind(component="metrics_aggregator")

    def lock_for(self, kind: str, entity_id: str) -> Lock:
        """Per-entity lock shared with the registry."""
        with self._locks_guard:
            key = (kind, entity_id)
            if key not in self._locks:
                self._locks[key] = Lock()
            return self._locks[key]

    def forget(self, kind: str, entity_id: str) -> None:
        """Drop the lock and step statistics of a deleted entity."""
        with self._locks_guard:
            self._locks.pop((kind, entity_id), None)
            if kind == "workflow":
                self._step_stats.pop(entity_id, None)

    def record_template_use(self, template_id: str) -> NoteTemplate:
        """Count one successful render of a template."""
        with self.lock_for("template", template_id):
            template = self.templates.get(template_id)
            if template is None:
                raise UnknownEntityError("template", template_id)
            template.metadata.usage_count += 1
            template.metadata.last_used_at = utc_now()

        self.logger.debug(
            "Template use recorded",
            template_id=template_id,
            usage_count=template.metadata.usage_count,
        )
        return template

    def record_workflow_run(self, workflow_id: str, duration_ms: float, succeeded: bool) -> NoteWorkflow:
        """Fold one finished execution into the workflow's running statistics."""
        with self.lock_for("workflow", workflow_id):
            workflow = self.workflows.get(workflow_id)
            if workflow is None:
                raise UnknownEntityError("workflow", workflow_id)

            meta = workflow.metadata
            n = meta.usage_count + 1
            meta.average_completion_time = running_average(meta.average_completion_time, n, duration_ms)
            meta.success_rate = running_average(meta.success_rate, n, 1.0 if succeeded else 0.0)
            meta.usage_count = n
            meta.last_run_at = utc_now()

        self.logger.info(
            "Workflow run recorded",
            workflow_id=workflow_id,
            usage_count=meta.usage_count,
            average_completion_time=meta.average_completion_time,
            success_rate=meta.success_rate,
        )
        return workflow

    def record_step_outcome(self, workflow_id: str, step_id: str, succeeded: bool) -> float:
        """Fold one step outcome into its success rate and return the new rate."""
        with self.lock_for("workflow", workflow_id):
            if workflow_id not in self.workflows:
                raise UnknownEntityError("workflow", workflow_id)
            count, rate = self._step_stats[workflow_id].get(step_id, (0, 1.0))
            count += 1
            rate = running_average(rate, count, 1.0 if succeeded else 0.0)
            self._step_stats[workflow_id][step_id] = (count, rate)
        return rate

    def step_success_rates(self, workflow_id: str) -> Dict[str, float]:
        with self.lock_for("workflow", workflow_id):
            return {
                step_id: rate
                for step_id, (_, rate) in self._step_stats.get(workflow_id, {}).items()
            }
