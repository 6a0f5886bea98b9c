import time

from qcworker.config.settings import Settings
from qcworker.database.connection import get_connection
from qcworker.database.models import JobRecord
from qcworker.database.repositories.job_repository import JobRepository
from qcworker.logging.logger import Log
from qcworker.worker.job_runner import JobRunner


class Worker:
    """Poll loop: claim a QC job -> dispatch -> sleep when the queue is empty."""

    def __init__(
        self,
        job_repo: JobRepository,
        job_runner: JobRunner,
        settings: Settings,
    ) -> None:
        self._job_repo = job_repo
        self._job_runner = job_runner
        self._settings = settings

    def run(self, max_jobs: int | None = None) -> int:
        """Poll until interrupted, or until ``max_jobs`` jobs were dispatched.

        Returns the number of jobs dispatched.
        """
        Log.info("QC worker started, polling for jobs")
        jobs_done = 0
        try:
            while max_jobs is None or jobs_done < max_jobs:
                job = self._try_claim_job()
                if job is None:
                    Log.debug("No QC jobs available, sleeping")
                    time.sleep(self._settings.job_poll_interval_seconds)
                    continue
                self._job_runner.run(job)
                jobs_done += 1
        except KeyboardInterrupt:
            Log.info("QC worker shutting down gracefully")
        Log.info(f"QC worker stopped after {jobs_done} jobs")
        return jobs_done

    def _try_claim_job(self) -> JobRecord | None:
        """Attempt to claim the next pending job. Database errors are retried later."""
        try:
            with get_connection() as conn:
                return self._job_repo.claim_next_job(conn)
        except Exception as exc:
            Log.warning(f"Database error while claiming job, will retry: {exc}")
            return None
