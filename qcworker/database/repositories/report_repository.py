from typing import Any

from psycopg.types.json import Jsonb

from qcworker.database.connection import get_connection

_MISTAKE_COLUMNS = (
    "project_id",
    "batch_id",
    "doc_id",
    "step_key",
    "terminal_step_key",
    "system_record_id",
    "section",
    "line_id",
    "field_name",
    "value_at_step",
    "value_at_terminal",
    "keyer_at_step",
    "keyer_at_terminal",
    "captured_at_step",
    "captured_at_terminal",
    "layout_name",
    "error_type",
    "error_found_at",
)


class ReportRepository:
    """Writes reconciliation output to mistake_details and keying_amounts."""

    def replace_mistakes(self, document_id: str, rows: list[dict[str, Any]]) -> int:
        """Replace every mistake stored for a document in one transaction.

        Returns the number of rows inserted.
        """
        columns = ", ".join(_MISTAKE_COLUMNS)
        placeholders = ", ".join(["%s"] * len(_MISTAKE_COLUMNS))
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM mistake_details WHERE doc_id = %s", (document_id,))
                if rows:
                    cur.executemany(
                        f"INSERT INTO mistake_details ({columns}) VALUES ({placeholders})",
                        [tuple(row[c] for c in _MISTAKE_COLUMNS) for row in rows],
                    )
            conn.commit()
        return len(rows)

    def upsert_keying_amount(self, payload: dict[str, Any]) -> None:
        """Insert or replace the keying amount row of a document."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO keying_amounts (
                        doc_id, project_id, batch_id, batch_name, layout_name,
                        total_field_document, total_character_document,
                        total_line_document, total_record_document,
                        keying_details, imported_date, exported_date, uploaded_date
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (doc_id) DO UPDATE SET
                        project_id = EXCLUDED.project_id,
                        batch_id = EXCLUDED.batch_id,
                        batch_name = EXCLUDED.batch_name,
                        layout_name = EXCLUDED.layout_name,
                        total_field_document = EXCLUDED.total_field_document,
                        total_character_document = EXCLUDED.total_character_document,
                        total_line_document = EXCLUDED.total_line_document,
                        total_record_document = EXCLUDED.total_record_document,
                        keying_details = EXCLUDED.keying_details,
                        imported_date = EXCLUDED.imported_date,
                        exported_date = EXCLUDED.exported_date,
                        uploaded_date = EXCLUDED.uploaded_date
                    """,
                    (
                        payload["doc_id"],
                        payload["project_id"],
                        payload["batch_id"],
                        payload["batch_name"],
                        payload["layout_name"],
                        payload["total_field_document"],
                        payload["total_character_document"],
                        payload["total_line_document"],
                        payload["total_record_document"],
                        Jsonb(payload["keying_details"]),
                        payload["imported_date"],
                        payload["exported_date"],
                        payload["uploaded_date"],
                    ),
                )
            conn.commit()
