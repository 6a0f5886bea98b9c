from collections.abc import Sequence

from qcworker.config.settings import Settings
from qcworker.database.repositories.document_repository import DocumentRepository
from qcworker.database.repositories.job_repository import JobRepository
from qcworker.database.repositories.project_config_repository import ProjectConfigRepository
from qcworker.database.repositories.report_repository import ReportRepository
from qcworker.logging.logger import Log
from qcworker.processor.pipeline import PipelineContext, PipelineStep
from qcworker.processor.report_serializer import ReportSerializer
from qcworker.processor.steps import (
    CountEffortStep,
    EnrichStep,
    FindMistakesStep,
    LoadDocumentStep,
    LoadHistoryStep,
    LoadProjectConfigStep,
    MarkFailedStep,
    MarkProcessingStep,
    PersistKeyingAmountStep,
    PersistMistakesStep,
    PrepareCaptureStep,
)
from qcworker.qc.patterns import QcPatterns, compile_step_pattern


class Processor:
    """Runs the QC reconciliation pipeline for one document.

    Pipeline: mark processing -> load document, history and project config
    -> filter capture -> enrich -> mistakes -> effort -> persist.
    A step may end the run early by setting ``context.skipped``.
    """

    def __init__(self, steps: Sequence[PipelineStep], failed_step: PipelineStep) -> None:
        self._steps = list(steps)
        self._failed_step = failed_step

    def process(self, document_id: str, job_id: int) -> PipelineContext:
        Log.info(f"Processing document {document_id} for job {job_id}")
        context = PipelineContext(document_id=document_id, job_id=job_id)
        try:
            for step in self._steps:
                context = step.run(context)
                if context.skipped:
                    break
        except Exception as exc:
            context.error_message = str(exc)
            self._failed_step.run(context)
            raise
        return context


def build_processor(settings: Settings, job_repo: JobRepository) -> Processor:
    """Build a Processor with all required repositories and steps."""
    doc_repo = DocumentRepository()
    config_repo = ProjectConfigRepository()
    report_repo = ReportRepository()
    serializer = ReportSerializer()
    patterns = QcPatterns(
        qc_step_pattern=settings.qc_step_pattern,
        approval_step_pattern=settings.approval_step_pattern,
    )
    steps: list[PipelineStep] = [
        MarkProcessingStep(job_repo),
        LoadDocumentStep(doc_repo, compile_step_pattern(settings.excluded_layout_pattern)),
        LoadHistoryStep(doc_repo),
        LoadProjectConfigStep(config_repo, settings.multi_row_sections),
        PrepareCaptureStep(settings.capture_source, settings.excluded_keyers),
        EnrichStep(patterns),
        FindMistakesStep(),
        CountEffortStep(),
        PersistMistakesStep(report_repo, serializer),
        PersistKeyingAmountStep(report_repo, serializer),
    ]
    return Processor(steps=steps, failed_step=MarkFailedStep(job_repo))
