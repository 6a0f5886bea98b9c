from collections.abc import Collection, Mapping, Sequence
from typing import Any

from qcworker.logging.logger import Log
from qcworker.qc.diff import DEFAULT_MULTI_ROW_SECTIONS, DiffEngine
from qcworker.qc.effort import Clock, EffortCounter, count_document_totals, utcnow
from qcworker.qc.grouping import RecordGrouper, StepGrouper
from qcworker.qc.models import (
    CaptureNode,
    DocumentMeta,
    EnrichedData,
    KeyingAmount,
    Mistake,
)
from qcworker.qc.patterns import QcPatterns
from qcworker.qc.resolver import IdentifierResolver


class QcEngine:
    """Reconciles the capture history of one document.

    history + capture nodes -> resolve -> group steps -> group records
    -> EnrichedData, which then feeds both the diff and the effort count.
    The engine keeps no state between documents.
    """

    def __init__(
        self,
        patterns: QcPatterns | None = None,
        multi_row_sections: Collection[str] = DEFAULT_MULTI_ROW_SECTIONS,
        fields_not_counted: Collection[str] = (),
        clock: Clock = utcnow,
    ) -> None:
        self._patterns = patterns or QcPatterns()
        self._multi_row_sections = tuple(multi_row_sections)
        self._fields_not_counted = tuple(fields_not_counted)
        self._resolver = IdentifierResolver()
        self._step_grouper = StepGrouper()
        self._record_grouper = RecordGrouper()
        self._diff = DiffEngine()
        self._counter = EffortCounter(is_qc_step=self._patterns.is_qc_step, clock=clock)

    def enrich(
        self,
        history: Sequence[Mapping[str, Any]] | None,
        nodes: Sequence[CaptureNode],
    ) -> EnrichedData:
        resolved = self._resolver.resolve(history, nodes)
        enriched = self._record_grouper.group(self._step_grouper.group(resolved.nodes))
        enriched.resolution = resolved.stats
        Log.debug(f"Enriched {len(nodes)} nodes into steps {enriched.step_keys}")
        return enriched

    def find_mistakes(self, enriched: EnrichedData, document: DocumentMeta) -> list[Mistake]:
        mistakes = self._diff.compare(
            enriched,
            document,
            project_id=document.project_id,
            batch_id=document.batch_id,
            multi_row_sections=self._multi_row_sections,
            fields_not_counted=self._fields_not_counted,
        )
        for mistake in mistakes:
            mistake.error_found_at = (
                "qc" if self._patterns.is_approval_step(mistake.terminal_step_key) else "verify"
            )
        return mistakes

    def count_effort(
        self,
        enriched: EnrichedData,
        document: DocumentMeta,
        records: Sequence[Any] = (),
    ) -> KeyingAmount:
        details = self._counter.count(
            document,
            enriched,
            project_id=document.project_id,
            batch_id=document.batch_id,
            multi_row_sections=self._multi_row_sections,
            fields_not_counted=self._fields_not_counted,
        )
        return KeyingAmount(
            project_id=document.project_id,
            batch_id=document.batch_id,
            batch_name=document.batch_name,
            doc_id=document.id,
            layout_name=document.layout_name,
            totals=count_document_totals(records, self._fields_not_counted),
            keying_details=details,
            imported_date=document.created_date,
            exported_date=document.exported_date,
            uploaded_date=document.delivery_date,
        )
