import os
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from qcworker.config.settings import Settings
from qcworker.database.connection import close_pool, get_connection, init_pool
from qcworker.database.models import JobRecord

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
PROJECT_ID = "it-project"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "qc_report_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text())
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run integration tests")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[tuple[str, Any]], None, None]:
    cleanup: list[tuple[str, Any]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table, row_id in cleanup:
                if table == "qc_jobs":
                    cur.execute("DELETE FROM qc_jobs WHERE id = %s", (row_id,))
            for table, row_id in cleanup:
                if table == "documents":
                    cur.execute("DELETE FROM mistake_details WHERE doc_id = %s", (row_id,))
                    cur.execute("DELETE FROM keying_amounts WHERE doc_id = %s", (row_id,))
                    cur.execute("DELETE FROM document_histories WHERE doc_id = %s", (row_id,))
                    cur.execute("DELETE FROM documents WHERE id = %s", (row_id,))
            for table, row_id in cleanup:
                if table == "projects":
                    cur.execute("DELETE FROM field_configurations WHERE project_id = %s", (row_id,))
                    cur.execute("DELETE FROM section_definitions WHERE project_id = %s", (row_id,))
        conn.commit()


def _insert_document(
    db_conn: psycopg.Connection[Any],
    records: list[dict[str, Any]],
    layout_name: str = "invoice",
) -> str:
    document_id = f"it-{uuid.uuid4()}"
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO documents (id, project_id, batch_id, batch_name, layout_name, records, created_date)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            """,
            (document_id, PROJECT_ID, "it-batch", "batch-7", layout_name, Jsonb(records)),
        )
    db_conn.commit()
    return document_id


@pytest.fixture
def seed_project(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
) -> str:
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO section_definitions (project_id, name, is_multiple)
            VALUES (%s, 'Line', TRUE), (%s, 'Meta', FALSE)
            """,
            (PROJECT_ID, PROJECT_ID),
        )
        cur.execute(
            """
            INSERT INTO field_configurations (project_id, field_name, is_report_count)
            VALUES (%s, 'date', FALSE), (%s, 'name', TRUE)
            """,
            (PROJECT_ID, PROJECT_ID),
        )
    db_conn.commit()
    integration_cleanup.append(("projects", PROJECT_ID))
    return PROJECT_ID


@pytest.fixture
def seed_document(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    sample_records: list[dict[str, Any]],
    sample_history: list[dict[str, Any]],
) -> str:
    document_id = _insert_document(db_conn, sample_records)
    integration_cleanup.append(("documents", document_id))
    with db_conn.cursor() as cur:
        for entry in sample_history:
            cur.execute(
                "INSERT INTO document_histories (doc_id, keyed_data) VALUES (%s, %s)",
                (document_id, Jsonb(entry["keyed_data"])),
            )
    db_conn.commit()
    return document_id


@pytest.fixture
def seed_excluded_document(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    sample_records: list[dict[str, Any]],
) -> str:
    document_id = _insert_document(db_conn, sample_records, layout_name="bad")
    integration_cleanup.append(("documents", document_id))
    return document_id


def _insert_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    document_id: str,
    attempts: int = 0,
) -> JobRecord:
    with db_conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO qc_jobs (document_id, status, attempts)
            VALUES (%s, 'pending', %s)
            RETURNING id, document_id, status, attempts
            """,
            (document_id, attempts),
        )
        row = cur.fetchone()
        assert row is not None
    db_conn.commit()
    integration_cleanup.append(("qc_jobs", row["id"]))
    return JobRecord(
        id=row["id"],
        document_id=row["document_id"],
        status=row["status"],
        attempts=row["attempts"],
    )


@pytest.fixture
def seed_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    seed_document: str,
) -> JobRecord:
    return _insert_job(db_conn, integration_cleanup, seed_document)


@pytest.fixture
def make_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
):
    def _make(document_id: str, attempts: int = 0) -> JobRecord:
        return _insert_job(db_conn, integration_cleanup, document_id, attempts)

    return _make
