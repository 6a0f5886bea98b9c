from typing import Any

from psycopg.rows import dict_row

from qcworker.database.connection import get_connection
from qcworker.processor.exceptions import DocumentNotFoundError
from qcworker.processor.models import QcDocument
from qcworker.qc.models import DocumentMeta


class DocumentRepository:
    """Read access to captured documents and their capture history."""

    def find_by_id(self, document_id: str) -> QcDocument:
        """Load a document with its capture records.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, project_id, batch_id, batch_name, layout_name,
                           records, created_date, exported_date, delivery_date
                    FROM documents
                    WHERE id = %s
                    """,
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        meta = DocumentMeta(
            id=str(row["id"]),
            project_id=str(row["project_id"] or ""),
            batch_id=str(row["batch_id"] or ""),
            batch_name=row["batch_name"] or "",
            layout_name=row["layout_name"] or "",
            created_date=row["created_date"],
            exported_date=row["exported_date"],
            delivery_date=row["delivery_date"],
        )
        records = row["records"] if isinstance(row["records"], list) else []
        return QcDocument(meta=meta, records=records)

    def find_history(self, document_id: str) -> list[dict[str, Any]]:
        """Return the document's history entries, oldest first.

        Empty list if the capture system never wrote history for it.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT doc_id, keyed_data
                    FROM document_histories
                    WHERE doc_id = %s
                    ORDER BY created_at
                    """,
                    (document_id,),
                )
                rows = cur.fetchall()

        return [
            {"doc_id": str(row["doc_id"]), "keyed_data": row["keyed_data"] or {}}
            for row in rows
        ]
