from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

Row = Mapping[str, Any]

NULL_RECORD_ID = "null"


def field_text(row: Row, field_name: str) -> str:
    """Return the text of a captured field, or "" when it is absent."""
    value = row.get(field_name)
    if not isinstance(value, Mapping):
        return ""
    text = value.get("text")
    if text is None:
        return ""
    return str(text)


def line_id_field(section: str) -> str:
    """Name of the row field carrying the line identifier, e.g. "line_line_id"."""
    return f"{section.lower()}_line_id"


@dataclass(frozen=True)
class CaptureNode:
    """One task's touch on one section of one record in one step."""

    task_id: str
    task_def_key: str
    section: str
    data: tuple[dict[str, Any], ...] = ()
    keyer: str | None = None
    createdtime: Any = None
    system_record_id: str | None = None
    source: str | None = None

    @property
    def record_key(self) -> str:
        if self.system_record_id is None:
            return NULL_RECORD_ID
        return str(self.system_record_id)


@dataclass(frozen=True)
class HistoryEntry:
    """Ground-truth identifiers for one section of one history entry."""

    system_record_id: str | None
    line_ids: tuple[str, ...] = ()


@dataclass
class ResolutionStats:
    """Counters describing how capture nodes were matched to history."""

    resolved: int = 0
    fallback: int = 0  # history bucket exhausted, last entry reused
    unresolved: int = 0  # no history bucket at all

    @property
    def total(self) -> int:
        return self.resolved + self.fallback + self.unresolved


@dataclass(frozen=True)
class ResolvedCapture:
    nodes: list[CaptureNode]
    stats: ResolutionStats


class StepKind(str, Enum):
    ORIGINAL = "original"
    REWORK = "rework"


@dataclass(frozen=True)
class Step:
    """A logical processing stage: an original task or one of its reworks."""

    name: str
    kind: StepKind = StepKind.ORIGINAL
    rework_index: int = 0

    @classmethod
    def original(cls, name: str) -> "Step":
        return cls(name=name)

    @classmethod
    def rework(cls, name: str, index: int) -> "Step":
        if index < 1:
            raise ValueError(f"rework index must be >= 1, got {index}")
        return cls(name=name, kind=StepKind.REWORK, rework_index=index)

    @property
    def key(self) -> str:
        if self.kind is StepKind.REWORK:
            return f"rework_{self.rework_index}_{self.name}"
        return self.name


@dataclass
class EnrichedStep:
    """Nodes of one step indexed as record id -> section -> node."""

    step: Step
    records: dict[str, dict[str, CaptureNode]] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.step.key

    def first_node(self) -> CaptureNode | None:
        for sections in self.records.values():
            for node in sections.values():
                return node
        return None


@dataclass
class EnrichedData:
    """All steps of one document, in processing order."""

    steps: list[EnrichedStep] = field(default_factory=list)
    resolution: ResolutionStats = field(default_factory=ResolutionStats)

    @property
    def step_keys(self) -> list[str]:
        return [s.key for s in self.steps]

    @property
    def terminal(self) -> EnrichedStep | None:
        """The authoritative step every other step is compared against."""
        return self.steps[-1] if self.steps else None

    @property
    def predecessors(self) -> list[EnrichedStep]:
        return self.steps[:-1]

    @property
    def record_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for step in self.steps:
            for record_id in step.records:
                seen.setdefault(record_id, None)
        return list(seen)


@dataclass(frozen=True)
class DocumentMeta:
    """Read-only document metadata stamped onto engine output."""

    id: str
    project_id: str = ""
    batch_id: str = ""
    batch_name: str = ""
    layout_name: str = ""
    created_date: datetime | None = None
    exported_date: datetime | None = None
    delivery_date: datetime | None = None


@dataclass
class Mistake:
    """One field-level discrepancy between a step and the terminal step."""

    project_id: str
    batch_id: str
    doc_id: str
    step_key: str
    terminal_step_key: str
    system_record_id: str
    section: str
    line_id: str
    field_name: str
    value_at_step: str
    value_at_terminal: str
    keyer_at_step: str
    keyer_at_terminal: str
    captured_at_step: Any
    captured_at_terminal: Any
    layout_name: str
    error_type: str | None = None
    error_found_at: str = "verify"


@dataclass
class EffortRecord:
    """Keying effort attributed to one step of one document."""

    project_id: str
    batch_id: str
    doc_id: str
    task_keyer_name: str
    layout_name: str
    user_name_keyer: str | None = None
    total_field: int = 0
    total_character: int = 0
    total_records: int = 0
    total_lines: int = 0
    is_qc: bool = False
    captured_keyer_at: Any = None
    compared_at: datetime | None = None
    imported_date: datetime | None = None
    exported_date: datetime | None = None
    uploaded_date: datetime | None = None


@dataclass
class DocumentTotals:
    """Totals computed from the delivered (final) data of a document."""

    total_field_document: int = 0
    total_character_document: int = 0
    total_line_document: int = 0
    total_record_document: int = 0


@dataclass
class KeyingAmount:
    """Effort summary of one document: document totals plus per-step details."""

    project_id: str
    batch_id: str
    batch_name: str
    doc_id: str
    layout_name: str
    totals: DocumentTotals = field(default_factory=DocumentTotals)
    keying_details: list[EffortRecord] = field(default_factory=list)
    imported_date: datetime | None = None
    exported_date: datetime | None = None
    uploaded_date: datetime | None = None
