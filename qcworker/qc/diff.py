from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from qcworker.logging.logger import Log
from qcworker.qc.models import (
    CaptureNode,
    DocumentMeta,
    EnrichedData,
    EnrichedStep,
    Mistake,
    Row,
    field_text,
    line_id_field,
)

DEFAULT_MULTI_ROW_SECTIONS = ("Line",)


@dataclass(frozen=True)
class _Side:
    """One side of a comparison: the row compared plus who captured it and when."""

    row: Row
    keyer: str
    captured_at: Any


def _ordered_union(*groups: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return list(seen)


def _rows(node: CaptureNode | None) -> tuple[dict[str, Any], ...]:
    return node.data if node is not None else ()


def _owner(node: CaptureNode | None) -> tuple[str, Any]:
    if node is None:
        return "", None
    return node.keyer or "", node.createdtime


class DiffEngine:
    """Compares every non-terminal step against the terminal step, field by field."""

    def compare(
        self,
        enriched: EnrichedData,
        document: DocumentMeta,
        project_id: str,
        batch_id: str,
        multi_row_sections: Collection[str] = DEFAULT_MULTI_ROW_SECTIONS,
        fields_not_counted: Collection[str] = (),
    ) -> list[Mistake]:
        terminal = enriched.terminal
        if terminal is None:
            return []

        record_ids = enriched.record_ids
        mistakes: list[Mistake] = []
        for step in enriched.predecessors:
            context = _Comparison(
                step=step,
                terminal=terminal,
                document=document,
                project_id=project_id,
                batch_id=batch_id,
                fields_not_counted=frozenset(fields_not_counted),
            )
            for record_id in record_ids:
                current = step.records.get(record_id, {})
                final = terminal.records.get(record_id, {})
                for section in _ordered_union(current, final):
                    if section in multi_row_sections:
                        context.compare_lines(record_id, section, current.get(section), final.get(section))
                    else:
                        context.compare_single(record_id, section, current.get(section), final.get(section))
            mistakes.extend(context.mistakes)
            Log.debug(
                f"Compared step {step.key} against {terminal.key}: "
                f"{len(context.mistakes)} mistakes"
            )
        return mistakes


class _Comparison:
    """Mistake collection for one (step, terminal step) pair."""

    def __init__(
        self,
        step: EnrichedStep,
        terminal: EnrichedStep,
        document: DocumentMeta,
        project_id: str,
        batch_id: str,
        fields_not_counted: frozenset[str],
    ) -> None:
        self._step = step
        self._terminal = terminal
        self._document = document
        self._project_id = project_id
        self._batch_id = batch_id
        self._fields_not_counted = fields_not_counted
        # Stand-ins for a side whose row is missing altogether.
        self._step_fallback = _owner(step.first_node())
        self._terminal_fallback = _owner(terminal.first_node())
        self.mistakes: list[Mistake] = []

    def compare_lines(
        self,
        record_id: str,
        section: str,
        current: CaptureNode | None,
        final: CaptureNode | None,
    ) -> None:
        id_field = line_id_field(section)
        current_rows = _rows(current)
        final_rows = _rows(final)
        line_ids = _ordered_union(
            (field_text(row, id_field) for row in current_rows if field_text(row, id_field)),
            (field_text(row, id_field) for row in final_rows if field_text(row, id_field)),
        )
        for line_id in line_ids:
            current_row = next((r for r in current_rows if field_text(r, id_field) == line_id), {})
            final_row = next((r for r in final_rows if field_text(r, id_field) == line_id), {})
            self._compare_rows(
                record_id, section, line_id, current, final, current_row, final_row, {id_field}
            )

    def compare_single(
        self,
        record_id: str,
        section: str,
        current: CaptureNode | None,
        final: CaptureNode | None,
    ) -> None:
        current_rows = _rows(current)
        final_rows = _rows(final)
        current_row = current_rows[0] if current_rows else {}
        final_row = final_rows[0] if final_rows else {}
        self._compare_rows(record_id, section, "", current, final, current_row, final_row, set())

    def _compare_rows(
        self,
        record_id: str,
        section: str,
        line_id: str,
        current: CaptureNode | None,
        final: CaptureNode | None,
        current_row: Row,
        final_row: Row,
        skipped: set[str],
    ) -> None:
        current_keyer, current_at = _owner(current)
        final_keyer, final_at = _owner(final)

        if not current_row and final_row:
            step_side = _Side({}, *self._step_fallback)
            final_side = _Side(final_row, final_keyer, final_at)
            fields: Iterable[str] = final_row.keys()
            only_differences = False
        elif not final_row and current_row:
            step_side = _Side(current_row, current_keyer, current_at)
            final_side = _Side({}, *self._terminal_fallback)
            fields = current_row.keys()
            only_differences = False
        else:
            step_side = _Side(current_row, current_keyer, current_at)
            final_side = _Side(final_row, final_keyer, final_at)
            fields = _ordered_union(current_row.keys(), final_row.keys())
            only_differences = True

        for field_name in fields:
            if field_name in skipped or field_name in self._fields_not_counted:
                continue
            value = field_text(step_side.row, field_name)
            final_value = field_text(final_side.row, field_name)
            if only_differences and value == final_value:
                continue
            self.mistakes.append(
                self._build(record_id, section, line_id, field_name, value, final_value, step_side, final_side)
            )

    def _build(
        self,
        record_id: str,
        section: str,
        line_id: str,
        field_name: str,
        value: str,
        final_value: str,
        step_side: _Side,
        final_side: _Side,
    ) -> Mistake:
        return Mistake(
            project_id=self._project_id,
            batch_id=self._batch_id,
            doc_id=self._document.id,
            step_key=self._step.key,
            terminal_step_key=self._terminal.key,
            system_record_id=record_id,
            section=section,
            line_id=line_id,
            field_name=field_name,
            value_at_step=value,
            value_at_terminal=final_value,
            keyer_at_step=step_side.keyer,
            keyer_at_terminal=final_side.keyer,
            captured_at_step=step_side.captured_at,
            captured_at_terminal=final_side.captured_at,
            layout_name=self._document.layout_name,
        )
