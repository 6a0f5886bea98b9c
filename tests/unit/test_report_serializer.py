from datetime import datetime, timezone
from unittest.mock import patch

from qcworker.processor.report_serializer import ReportSerializer, parse_timestamp
from qcworker.qc.models import DocumentTotals, EffortRecord, KeyingAmount, Mistake


def _mistake(**overrides) -> Mistake:
    values = dict(
        project_id="P1",
        batch_id="B1",
        doc_id="D1",
        step_key="data_entry",
        terminal_step_key="final_qc_review",
        system_record_id="R1",
        section="Meta",
        line_id="",
        field_name="name",
        value_at_step="Alice",
        value_at_terminal="Alicia",
        keyer_at_step="anna",
        keyer_at_terminal="quinn",
        captured_at_step="2024-05-01T08:00:00+00:00",
        captured_at_terminal="not a date",
        layout_name="invoice",
    )
    values.update(overrides)
    return Mistake(**values)


class TestParseTimestamp:
    def test_datetime_passes_through(self) -> None:
        value = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(value) is value

    def test_iso_string(self) -> None:
        assert parse_timestamp("2024-05-01T08:00:00+00:00") == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self) -> None:
        assert parse_timestamp(1714550400000) == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)
        assert parse_timestamp(1714550400000.0) == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)

    def test_us_style_date_string(self) -> None:
        assert parse_timestamp("05/01/2024 08:00:00") == datetime(2024, 5, 1, 8)
        assert parse_timestamp("05/01/2024") == datetime(2024, 5, 1)

    def test_unparseable_value_is_logged_and_dropped(self) -> None:
        with patch("qcworker.processor.report_serializer.Log") as mock_log:
            assert parse_timestamp("yesterday") is None
            assert parse_timestamp(["2024"]) is None

        assert mock_log.debug.call_count == 2
        assert "'yesterday'" in mock_log.debug.call_args_list[0].args[0]

    def test_empty_values_become_none_without_logging(self) -> None:
        with patch("qcworker.processor.report_serializer.Log") as mock_log:
            assert parse_timestamp("") is None
            assert parse_timestamp(None) is None

        mock_log.debug.assert_not_called()

    def test_booleans_are_not_epochs(self) -> None:
        assert parse_timestamp(True) is None


class TestMistakeRows:
    def test_row_carries_every_column_with_parsed_timestamps(self) -> None:
        [row] = ReportSerializer().mistake_rows([_mistake()])

        assert row["doc_id"] == "D1"
        assert row["value_at_step"] == "Alice"
        assert row["error_found_at"] == "verify"
        assert row["captured_at_step"] == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)
        assert row["captured_at_terminal"] is None


class TestKeyingAmount:
    def test_flattens_totals_and_details(self) -> None:
        compared_at = datetime(2024, 6, 1, tzinfo=timezone.utc)
        amount = KeyingAmount(
            project_id="P1",
            batch_id="B1",
            batch_name="batch-7",
            doc_id="D1",
            layout_name="invoice",
            totals=DocumentTotals(total_field_document=3, total_character_document=10),
            keying_details=[
                EffortRecord(
                    project_id="P1",
                    batch_id="B1",
                    doc_id="D1",
                    task_keyer_name="data_entry",
                    layout_name="invoice",
                    user_name_keyer="anna",
                    total_field=6,
                    is_qc=True,
                    captured_keyer_at="2024-05-01T08:00:00+00:00",
                    compared_at=compared_at,
                )
            ],
        )

        payload = ReportSerializer().keying_amount(amount)

        assert payload["doc_id"] == "D1"
        assert payload["total_field_document"] == 3
        assert payload["total_character_document"] == 10
        assert payload["total_line_document"] == 0
        assert payload["imported_date"] is None
        assert payload["keying_details"] == [
            {
                "task_keyer_name": "data_entry",
                "user_name_keyer": "anna",
                "total_field": 6,
                "total_character": 0,
                "total_records": 0,
                "total_lines": 0,
                "is_qc": True,
                "captured_keyer_at": "2024-05-01T08:00:00+00:00",
                "compared_at": "2024-06-01T00:00:00+00:00",
            }
        ]
