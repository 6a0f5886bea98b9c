import re
from collections.abc import Sequence
from dataclasses import replace

from qcworker.database.repositories.document_repository import DocumentRepository
from qcworker.database.repositories.job_repository import JobRepository
from qcworker.database.repositories.project_config_repository import ProjectConfigRepository
from qcworker.database.repositories.report_repository import ReportRepository
from qcworker.logging.logger import Log
from qcworker.processor.exceptions import PipelineStateError
from qcworker.processor.pipeline import PipelineContext, PipelineStep
from qcworker.processor.report_serializer import ReportSerializer
from qcworker.qc.capture import prepare_capture_nodes
from qcworker.qc.effort import Clock, utcnow
from qcworker.qc.engine import QcEngine
from qcworker.qc.patterns import QcPatterns


class MarkProcessingStep(PipelineStep):
    def __init__(self, job_repo: JobRepository) -> None:
        self._job_repo = job_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        self._job_repo.mark_processing(context.job_id)
        Log.info(f"Job {context.job_id} marked as processing")
        return context


class MarkFailedStep(PipelineStep):
    def __init__(self, job_repo: JobRepository) -> None:
        self._job_repo = job_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        self._job_repo.mark_failed(context.job_id, context.error_message)
        Log.error(f"Job {context.job_id} marked as failed: {context.error_message}")
        return context


class LoadDocumentStep(PipelineStep):
    """Loads the document; documents with an excluded layout end the pipeline."""

    def __init__(self, doc_repo: DocumentRepository, excluded_layout: re.Pattern[str]) -> None:
        self._doc_repo = doc_repo
        self._excluded_layout = excluded_layout

    def run(self, context: PipelineContext) -> PipelineContext:
        document = self._doc_repo.find_by_id(context.document_id)
        context.document = document
        if self._excluded_layout.search(document.meta.layout_name):
            context.skipped = True
            Log.info(
                f"Document {context.document_id} skipped: layout "
                f"'{document.meta.layout_name}' is excluded from QC"
            )
            return context
        Log.info(f"Loaded document {context.document_id} with {len(document.records)} records")
        return context


class LoadHistoryStep(PipelineStep):
    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        context.history = self._doc_repo.find_history(context.document_id)
        if not context.history:
            Log.warning(
                f"Document {context.document_id} has no history, record ids will be unresolved"
            )
        return context


class LoadProjectConfigStep(PipelineStep):
    def __init__(
        self,
        config_repo: ProjectConfigRepository,
        default_multi_row_sections: Sequence[str],
    ) -> None:
        self._config_repo = config_repo
        self._default_multi_row_sections = list(default_multi_row_sections)

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.document is None:
            raise PipelineStateError("PipelineContext.document must be set before loading config")
        config = self._config_repo.find(context.document.project_id)
        if not config.multi_row_sections:
            config = replace(config, multi_row_sections=self._default_multi_row_sections)
        context.project_config = config
        Log.debug(
            f"Project {config.project_id}: multi-row sections {config.multi_row_sections}, "
            f"{len(config.fields_not_counted)} fields not counted"
        )
        return context


class PrepareCaptureStep(PipelineStep):
    def __init__(self, source: str, excluded_keyers: Sequence[str]) -> None:
        self._source = source
        self._excluded_keyers = tuple(excluded_keyers)

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.document is None:
            raise PipelineStateError("PipelineContext.document must be set before capture filtering")
        context.nodes = prepare_capture_nodes(
            context.document.records,
            source=self._source,
            excluded_keyers=self._excluded_keyers,
        )
        Log.info(f"Document {context.document_id}: {len(context.nodes)} keying nodes")
        return context


class EnrichStep(PipelineStep):
    """Builds the engine for the document's project and enriches its capture."""

    def __init__(self, patterns: QcPatterns, clock: Clock = utcnow) -> None:
        self._patterns = patterns
        self._clock = clock

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.project_config is None:
            raise PipelineStateError("PipelineContext.project_config must be set before enrichment")
        context.engine = QcEngine(
            patterns=self._patterns,
            multi_row_sections=context.project_config.multi_row_sections,
            fields_not_counted=context.project_config.fields_not_counted,
            clock=self._clock,
        )
        context.enriched = context.engine.enrich(context.history, context.nodes)
        stats = context.enriched.resolution
        Log.info(
            f"Document {context.document_id}: steps {context.enriched.step_keys}, "
            f"resolved {stats.resolved}, fallback {stats.fallback}, unresolved {stats.unresolved}"
        )
        return context


class FindMistakesStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if context.engine is None or context.enriched is None or context.document is None:
            raise PipelineStateError("PipelineContext.enriched must be set before comparison")
        context.mistakes = context.engine.find_mistakes(context.enriched, context.document.meta)
        Log.info(f"Document {context.document_id}: {len(context.mistakes)} mistakes found")
        return context


class CountEffortStep(PipelineStep):
    def run(self, context: PipelineContext) -> PipelineContext:
        if context.engine is None or context.enriched is None or context.document is None:
            raise PipelineStateError("PipelineContext.enriched must be set before counting")
        context.keying_amount = context.engine.count_effort(
            context.enriched,
            context.document.meta,
            context.document.records,
        )
        Log.info(
            f"Document {context.document_id}: effort counted for "
            f"{len(context.keying_amount.keying_details)} steps"
        )
        return context


class PersistMistakesStep(PipelineStep):
    def __init__(self, report_repo: ReportRepository, serializer: ReportSerializer) -> None:
        self._report_repo = report_repo
        self._serializer = serializer

    def run(self, context: PipelineContext) -> PipelineContext:
        self._report_repo.replace_mistakes(
            context.document_id,
            self._serializer.mistake_rows(context.mistakes),
        )
        return context


class PersistKeyingAmountStep(PipelineStep):
    def __init__(self, report_repo: ReportRepository, serializer: ReportSerializer) -> None:
        self._report_repo = report_repo
        self._serializer = serializer

    def run(self, context: PipelineContext) -> PipelineContext:
        if context.keying_amount is None:
            raise PipelineStateError("PipelineContext.keying_amount must be set before persist")
        self._report_repo.upsert_keying_amount(self._serializer.keying_amount(context.keying_amount))
        return context
