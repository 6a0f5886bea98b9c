"""Turns raw document records into the capture nodes the engine works on.

A document's ``records`` column holds one entry per record, each carrying a
``keyed_data`` list written by the capture system. Only nodes produced by a
human keying task are kept: system sections, rejected nodes (a ``reason``
with a comment) and service accounts are dropped.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from qcworker.qc.models import CaptureNode

DEFAULT_CAPTURE_SOURCE = "queue_transform"


def build_node(raw: Mapping[str, Any]) -> CaptureNode | None:
    """Build a CaptureNode from one raw ``keyed_data`` item.

    Returns None for items without a section or task key.
    """
    section = raw.get("section")
    task_def_key = raw.get("task_def_key")
    if not isinstance(section, str) or not section or task_def_key is None:
        return None
    data = raw.get("data")
    rows = tuple(dict(row) for row in data if isinstance(row, Mapping)) if isinstance(data, list) else ()
    return CaptureNode(
        task_id=str(raw.get("task_id") or ""),
        task_def_key=str(task_def_key),
        section=section,
        data=rows,
        keyer=raw.get("keyer"),
        createdtime=raw.get("createdtime"),
        source=raw.get("source"),
    )


def _is_accepted(raw: Mapping[str, Any]) -> bool:
    # A missing reason key means the node never went through review.
    if "reason" not in raw:
        return False
    reason = raw["reason"]
    if reason is None:
        return True
    if isinstance(reason, Mapping):
        return reason.get("comment") in (None, "")
    return False


def is_keying_node(
    raw: Mapping[str, Any],
    source: str = DEFAULT_CAPTURE_SOURCE,
    excluded_keyers: Iterable[str] = (),
) -> bool:
    """True when a raw node represents human keying work worth reconciling."""
    section = raw.get("section")
    if not isinstance(section, str) or "system" in section.lower():
        return False
    if raw.get("source") != source:
        return False
    if raw.get("keyer") in set(excluded_keyers):
        return False
    return _is_accepted(raw)


def prepare_capture_nodes(
    records: Iterable[Any],
    source: str = DEFAULT_CAPTURE_SOURCE,
    excluded_keyers: Iterable[str] = (),
) -> list[CaptureNode]:
    """Flatten every record's keyed_data into filtered CaptureNodes, in order."""
    excluded = frozenset(excluded_keyers)
    nodes: list[CaptureNode] = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        keyed_data = record.get("keyed_data")
        if not isinstance(keyed_data, list):
            continue
        for raw in keyed_data:
            if not isinstance(raw, Mapping):
                continue
            if not is_keying_node(raw, source=source, excluded_keyers=excluded):
                continue
            node = build_node(raw)
            if node is not None:
                nodes.append(node)
    return nodes
