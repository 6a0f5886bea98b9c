from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from qcworker.logging.logger import Log
from qcworker.qc.models import EffortRecord, KeyingAmount, Mistake

# Non-ISO layouts the capture system has been seen to emit.
_FALLBACK_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
)


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a captured timestamp to datetime.

    Numbers are epoch milliseconds. Strings are ISO-8601 or one of the
    fallback layouts. Anything else becomes None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, timezone.utc)
        except (OverflowError, OSError, ValueError):
            Log.debug(f"Epoch timestamp out of range, stored as NULL: {value!r}")
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for layout in _FALLBACK_FORMATS:
            try:
                return datetime.strptime(text, layout)
            except ValueError:
                continue
    Log.debug(f"Unparseable capture timestamp, stored as NULL: {value!r}")
    return None


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class ReportSerializer:
    """Converts engine output into rows and JSONB-ready structures."""

    def mistake_rows(self, mistakes: list[Mistake]) -> list[dict[str, Any]]:
        return [self._mistake_row(m) for m in mistakes]

    def keying_amount(self, amount: KeyingAmount) -> dict[str, Any]:
        """Flatten a KeyingAmount into keying_amounts columns.

        ``keying_details`` is a list of plain dicts with ISO-8601 dates so it
        can be stored as JSONB.
        """
        return {
            "project_id": amount.project_id,
            "batch_id": amount.batch_id,
            "batch_name": amount.batch_name,
            "doc_id": amount.doc_id,
            "layout_name": amount.layout_name,
            **asdict(amount.totals),
            "keying_details": [self._effort_detail(e) for e in amount.keying_details],
            "imported_date": amount.imported_date,
            "exported_date": amount.exported_date,
            "uploaded_date": amount.uploaded_date,
        }

    def _mistake_row(self, mistake: Mistake) -> dict[str, Any]:
        row = asdict(mistake)
        row["captured_at_step"] = parse_timestamp(mistake.captured_at_step)
        row["captured_at_terminal"] = parse_timestamp(mistake.captured_at_terminal)
        return row

    def _effort_detail(self, effort: EffortRecord) -> dict[str, Any]:
        captured = parse_timestamp(effort.captured_keyer_at)
        return {
            "task_keyer_name": effort.task_keyer_name,
            "user_name_keyer": effort.user_name_keyer,
            "total_field": effort.total_field,
            "total_character": effort.total_character,
            "total_records": effort.total_records,
            "total_lines": effort.total_lines,
            "is_qc": effort.is_qc,
            "captured_keyer_at": _isoformat(captured),
            "compared_at": _isoformat(effort.compared_at),
        }
