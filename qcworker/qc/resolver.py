import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any

from qcworker.logging.logger import Log
from qcworker.qc.models import (
    CaptureNode,
    HistoryEntry,
    ResolutionStats,
    ResolvedCapture,
    line_id_field,
)

BucketKey = tuple[str, str, str]

# Only keys of the form "<task_id>|<task_def_key>|..." describe task executions.
_TASK_KEY_PATTERN = re.compile(r"^[^|]+\|[^|]+")


def _line_id_of(item: Any, section: str) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        value = item.get(line_id_field(section))
        if isinstance(value, Mapping):
            value = value.get("text")
        if value is not None:
            return str(value)
    return ""


def build_history_index(
    history: Sequence[Mapping[str, Any]] | None,
) -> dict[BucketKey, list[HistoryEntry]]:
    """Index the first history document by (task_id, task_def_key, section).

    Entries keep the order in which they appear in ``keyed_data``, which is
    the only correlation available with the capture nodes.
    """
    index: dict[BucketKey, list[HistoryEntry]] = {}
    if not history:
        return index
    keyed_data = history[0].get("keyed_data") if isinstance(history[0], Mapping) else None
    if not isinstance(keyed_data, Mapping):
        return index

    for key, entries in keyed_data.items():
        if not _TASK_KEY_PATTERN.match(key) or not isinstance(entries, list):
            continue
        task_id, task_def_key = key.split("|")[:2]
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            for section_obj in entry.get("section") or []:
                if not isinstance(section_obj, Mapping):
                    continue
                section = str(section_obj.get("section", ""))
                data = section_obj.get("data")
                line_ids = (
                    tuple(_line_id_of(item, section) for item in data)
                    if isinstance(data, list)
                    else ()
                )
                index.setdefault((task_id, task_def_key, section), []).append(
                    HistoryEntry(
                        system_record_id=entry.get("system_record_id"),
                        line_ids=line_ids,
                    )
                )
    return index


def _backfill_line_ids(
    rows: tuple[dict[str, Any], ...],
    section: str,
    line_ids: tuple[str, ...],
) -> tuple[dict[str, Any], ...]:
    id_field = line_id_field(section)
    filled: list[dict[str, Any]] = []
    for i, row in enumerate(rows):
        current = row.get(id_field)
        if isinstance(current, Mapping) and not current.get("text"):
            row = {**row, id_field: {**current, "text": line_ids[i] if i < len(line_ids) else ""}}
        filled.append(row)
    return tuple(filled)


class IdentifierResolver:
    """Assigns each capture node the system_record_id recorded in history.

    Nodes and history entries sharing a (task_id, task_def_key, section)
    bucket are paired by occurrence order. When a bucket runs out, the last
    entry is reused; when no bucket exists the identifier stays None. Both
    cases are counted in ResolutionStats rather than raised.
    """

    def resolve(
        self,
        history: Sequence[Mapping[str, Any]] | None,
        nodes: Sequence[CaptureNode],
    ) -> ResolvedCapture:
        index = build_history_index(history)
        occurrences: dict[BucketKey, int] = {}
        stats = ResolutionStats()
        resolved: list[CaptureNode] = []

        for node in nodes:
            key = (node.task_id, node.task_def_key, node.section)
            bucket = index.get(key)
            if bucket is None:
                stats.unresolved += 1
                resolved.append(replace(node, system_record_id=None))
                continue

            position = occurrences.get(key, 0)
            occurrences[key] = position + 1
            if position >= len(bucket):
                stats.fallback += 1
                last = bucket[-1] if bucket else None
                resolved.append(
                    replace(node, system_record_id=last.system_record_id if last else None)
                )
                continue

            entry = bucket[position]
            data = node.data
            if entry.line_ids:
                data = _backfill_line_ids(node.data, node.section, entry.line_ids)
            stats.resolved += 1
            resolved.append(replace(node, system_record_id=entry.system_record_id, data=data))

        if stats.fallback or stats.unresolved:
            Log.warning(
                f"Identifier resolution degraded: {stats.fallback} fallback, "
                f"{stats.unresolved} unresolved of {stats.total} nodes"
            )
        return ResolvedCapture(nodes=resolved, stats=stats)
