from qcworker.qc.capture import prepare_capture_nodes
from qcworker.qc.diff import DiffEngine
from qcworker.qc.effort import EffortCounter, count_document_totals
from qcworker.qc.engine import QcEngine
from qcworker.qc.grouping import RecordGrouper, StepGrouper
from qcworker.qc.patterns import QcPatterns
from qcworker.qc.resolver import IdentifierResolver

__all__ = [
    "DiffEngine",
    "EffortCounter",
    "IdentifierResolver",
    "QcEngine",
    "QcPatterns",
    "RecordGrouper",
    "StepGrouper",
    "count_document_totals",
    "prepare_capture_nodes",
]
