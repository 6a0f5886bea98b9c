from qcworker.config.settings import Settings
from qcworker.database.connection import close_pool, init_pool
from qcworker.database.repositories.job_repository import JobRepository
from qcworker.logging.logger import Log
from qcworker.processor.processor import build_processor
from qcworker.worker.job_runner import JobRunner
from qcworker.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        job_repo = JobRepository(settings.max_job_attempts)
        processor = build_processor(settings, job_repo)
        job_runner = JobRunner(processor, job_repo, settings)
        worker = Worker(job_repo, job_runner, settings)
        worker.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
