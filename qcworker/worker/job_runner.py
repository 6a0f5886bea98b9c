from qcworker.config.settings import Settings
from qcworker.database.models import JobRecord
from qcworker.database.repositories.job_repository import JobRepository
from qcworker.logging.logger import Log
from qcworker.processor.processor import Processor


class JobRunner:
    """Run one QC job, catch exceptions, and apply retry logic."""

    def __init__(
        self,
        processor: Processor,
        job_repo: JobRepository,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._job_repo = job_repo
        self._settings = settings

    def run(self, job: JobRecord) -> None:
        Log.info(f"Running QC job {job.id} for document {job.document_id} (attempt {job.attempts + 1})")
        try:
            context = self._processor.process(job.document_id, job.id)
            self._job_repo.mark_done(job.id)
            if context.skipped:
                Log.info(f"Job {job.id} completed without reconciliation")
            else:
                Log.info(
                    f"Job {job.id} completed: {len(context.mistakes)} mistakes recorded"
                )
        except Exception as exc:
            self._handle_failure(job, exc)

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Increment attempts; mark failed if at max, otherwise back to pending."""
        Log.exception(f"Job {job.id} failed: {exc}")
        if job.attempts + 1 >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id)
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 2})")
