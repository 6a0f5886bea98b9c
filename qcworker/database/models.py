from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class JobRecord:
    """Represents a row from the qc_jobs table."""

    id: int
    document_id: str
    status: str
    attempts: int
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ProjectConfig:
    """Per-project reconciliation settings stored alongside field definitions."""

    project_id: str
    fields_not_counted: list[str] = field(default_factory=list)
    multi_row_sections: list[str] = field(default_factory=list)
