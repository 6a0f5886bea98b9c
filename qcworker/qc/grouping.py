from collections.abc import Sequence

from qcworker.logging.logger import Log
from qcworker.qc.models import CaptureNode, EnrichedData, EnrichedStep, Step

StepNodes = list[tuple[Step, list[CaptureNode]]]


def _group_by_task_def_key(nodes: Sequence[CaptureNode]) -> dict[str, list[CaptureNode]]:
    grouped: dict[str, list[CaptureNode]] = {}
    for node in nodes:
        grouped.setdefault(node.task_def_key, []).append(node)
    return grouped


class StepGrouper:
    """Groups resolved nodes into steps and splits repeated executions into reworks.

    A task key with more nodes than distinct sections ran more than once.
    Its first task_id keeps the original step; each later task_id becomes
    ``rework_<n>_<task_def_key>`` with n counting from 1.
    """

    def group(self, nodes: Sequence[CaptureNode]) -> StepNodes:
        # Keyed by rendered step key: a real task named like a synthetic rework shares its step.
        steps: dict[str, tuple[Step, list[CaptureNode]]] = {}

        def add(step: Step, execution: list[CaptureNode]) -> None:
            if step.key in steps:
                Log.warning(f"Step key {step.key} produced twice, merging their nodes")
                steps[step.key][1].extend(execution)
            else:
                steps[step.key] = (step, list(execution))

        for task_def_key, task_nodes in _group_by_task_def_key(nodes).items():
            sections = {node.section for node in task_nodes}
            if len(task_nodes) <= len(sections):
                add(Step.original(task_def_key), task_nodes)
                continue

            by_task_id: dict[str, list[CaptureNode]] = {}
            for node in task_nodes:
                by_task_id.setdefault(node.task_id, []).append(node)
            for index, execution in enumerate(by_task_id.values()):
                add(Step.original(task_def_key) if index == 0 else Step.rework(task_def_key, index), execution)
        return list(steps.values())


class RecordGrouper:
    """Indexes each step's nodes by record id, then by section (last node wins)."""

    def group(self, steps: StepNodes) -> EnrichedData:
        enriched = EnrichedData()
        for step, nodes in steps:
            records: dict[str, dict[str, CaptureNode]] = {}
            for node in nodes:
                records.setdefault(node.record_key, {})[node.section] = node
            enriched.steps.append(EnrichedStep(step=step, records=records))
        return enriched
