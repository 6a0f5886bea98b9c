from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from qcworker.database.models import ProjectConfig
from qcworker.processor.models import QcDocument
from qcworker.qc.engine import QcEngine
from qcworker.qc.models import CaptureNode, EnrichedData, KeyingAmount, Mistake


@dataclass(slots=True)
class PipelineContext:
    document_id: str
    job_id: int
    document: QcDocument | None = None
    history: list[dict[str, Any]] = field(default_factory=list)
    project_config: ProjectConfig | None = None
    nodes: list[CaptureNode] = field(default_factory=list)
    engine: QcEngine | None = None
    enriched: EnrichedData | None = None
    mistakes: list[Mistake] = field(default_factory=list)
    keying_amount: KeyingAmount | None = None
    skipped: bool = False
    error_message: str = ""


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
