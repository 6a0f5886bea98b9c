from dataclasses import dataclass, field
from typing import Any

from qcworker.qc.models import DocumentMeta


@dataclass(frozen=True)
class QcDocument:
    """A captured document: its metadata plus the raw per-record capture data."""

    meta: DocumentMeta
    records: list[dict[str, Any]] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def project_id(self) -> str:
        return self.meta.project_id
