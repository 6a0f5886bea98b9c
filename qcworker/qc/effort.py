from collections.abc import Callable, Collection, Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from qcworker.qc.diff import DEFAULT_MULTI_ROW_SECTIONS
from qcworker.qc.models import (
    DocumentMeta,
    DocumentTotals,
    EffortRecord,
    EnrichedData,
    EnrichedStep,
    Row,
    field_text,
)
from qcworker.qc.patterns import StepPredicate, default_qc_predicate

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EffortCounter:
    """Counts fields, characters, records and lines keyed in each step."""

    def __init__(
        self,
        is_qc_step: StepPredicate = default_qc_predicate,
        clock: Clock = utcnow,
    ) -> None:
        self._is_qc_step = is_qc_step
        self._clock = clock

    def count(
        self,
        document: DocumentMeta,
        enriched: EnrichedData,
        project_id: str,
        batch_id: str,
        multi_row_sections: Collection[str] = DEFAULT_MULTI_ROW_SECTIONS,
        fields_not_counted: Collection[str] = (),
    ) -> list[EffortRecord]:
        terminal = enriched.terminal
        if terminal is None:
            return []

        excluded = frozenset(fields_not_counted)
        terminal_is_qc = self._is_qc_step(terminal.key)
        compared_at = self._clock()
        records: list[EffortRecord] = []
        for step in enriched.steps:
            effort = EffortRecord(
                project_id=project_id,
                batch_id=batch_id,
                doc_id=document.id,
                task_keyer_name=step.key,
                layout_name=document.layout_name,
                total_records=len(step.records),
                # Only keying steps that feed a QC terminal step count as QC effort.
                is_qc=terminal_is_qc and not self._is_qc_step(step.key),
                compared_at=compared_at,
                imported_date=document.created_date,
                exported_date=document.exported_date,
                uploaded_date=document.delivery_date,
            )
            self._accumulate(effort, step, multi_row_sections, excluded)
            records.append(effort)
        return records

    def _accumulate(
        self,
        effort: EffortRecord,
        step: EnrichedStep,
        multi_row_sections: Collection[str],
        excluded: frozenset[str],
    ) -> None:
        for sections in step.records.values():
            for section, node in sections.items():
                if effort.user_name_keyer is None and node.keyer:
                    effort.user_name_keyer = node.keyer
                if effort.captured_keyer_at is None and node.createdtime:
                    effort.captured_keyer_at = node.createdtime

                if section in multi_row_sections:
                    effort.total_lines += len(node.data)
                    rows: Iterable[Row] = node.data
                else:
                    rows = node.data[:1]
                for row in rows:
                    for field_name in row:
                        if field_name in excluded:
                            continue
                        effort.total_field += 1
                        effort.total_character += len(field_text(row, field_name))


def count_document_totals(
    records: Iterable[Any],
    fields_not_counted: Collection[str] = (),
) -> DocumentTotals:
    """Totals over the last delivered version (``final_data``) of each record.

    A backtick inside a value separates the values of several lines keyed in
    one field: ``n`` backticks stand for ``n + 1`` fields, and every distinct
    backtick count contributes ``n + 1`` lines.
    """
    totals = DocumentTotals()
    for record in records:
        if not isinstance(record, Mapping):
            continue
        final_data = record.get("final_data")
        if not isinstance(final_data, list):
            continue
        totals.total_record_document += 1
        if not final_data or not isinstance(final_data[-1], Mapping):
            continue
        rows = final_data[-1].get("data")
        if not isinstance(rows, list):
            continue

        line_groups: set[int] = set()
        for row in rows:
            if not isinstance(row, Mapping):
                continue
            for field_name, value in row.items():
                if field_name in fields_not_counted or not isinstance(value, Mapping):
                    continue
                if value.get("text") is None:
                    continue
                text = str(value["text"])
                backticks = text.count("`")
                if backticks == 0:
                    totals.total_field_document += 1
                    totals.total_character_document += len(text)
                else:
                    totals.total_field_document += backticks + 1
                    totals.total_character_document += len(text.replace("`", ""))
                    line_groups.add(backticks)
        totals.total_line_document += sum(n + 1 for n in line_groups)
    return totals
