from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from qcworker.qc.patterns import (
    DEFAULT_APPROVAL_STEP_PATTERN,
    DEFAULT_QC_STEP_PATTERN,
    compile_step_pattern,
)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "qc_report"
    db_username: str = "qc_report"
    db_password: str = "secret"

    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5

    # Fallback when a project defines no multi-row sections of its own.
    multi_row_sections: list[str] = ["Line"]
    qc_step_pattern: str = DEFAULT_QC_STEP_PATTERN
    approval_step_pattern: str = DEFAULT_APPROVAL_STEP_PATTERN
    excluded_layout_pattern: str = r"_none_|^other$|^others$|^bad$"

    capture_source: str = "queue_transform"
    excluded_keyers: list[str] = ["auto service"]

    @field_validator("qc_step_pattern", "approval_step_pattern", "excluded_layout_pattern")
    @classmethod
    def _must_compile(cls, value: str) -> str:
        compile_step_pattern(value)
        return value
