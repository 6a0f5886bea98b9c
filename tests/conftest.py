from typing import Any

import pytest

KEYING_TASK = "6f1c2a9e-1b2c-4d3e-8f90-0a1b2c3d4e5f"
QC_TASK = "9a8b7c6d-5e4f-4a3b-9c2d-1e0f9a8b7c6d"


def _raw_node(
    task_id: str,
    task_def_key: str,
    section: str,
    data: list[dict[str, Any]],
    keyer: str,
    createdtime: str,
    **extra: Any,
) -> dict[str, Any]:
    node: dict[str, Any] = {
        "task_id": task_id,
        "task_def_key": task_def_key,
        "section": section,
        "data": data,
        "keyer": keyer,
        "createdtime": createdtime,
        "source": "queue_transform",
        "reason": None,
    }
    node.update(extra)
    return node


@pytest.fixture()
def sample_records() -> list[dict[str, Any]]:
    """One invoice record keyed by data_entry, then corrected by final_qc_review."""
    return [
        {
            "keyed_data": [
                _raw_node(
                    KEYING_TASK,
                    "data_entry",
                    "Meta",
                    [{"name": {"text": "Alice"}, "date": {"text": "2024-01-01"}}],
                    "anna",
                    "2024-05-01T08:00:00+00:00",
                ),
                _raw_node(
                    KEYING_TASK,
                    "data_entry",
                    "Line",
                    [
                        {"line_line_id": {"text": ""}, "amount": {"text": "10"}},
                        {"line_line_id": {"text": ""}, "amount": {"text": "20"}},
                    ],
                    "anna",
                    "2024-05-01T08:05:00+00:00",
                ),
                _raw_node(
                    KEYING_TASK,
                    "data_entry",
                    "System",
                    [{"checksum": {"text": "abc"}}],
                    "anna",
                    "2024-05-01T08:06:00+00:00",
                ),
                _raw_node(
                    QC_TASK,
                    "final_qc_review",
                    "Meta",
                    [{"name": {"text": "Alicia"}, "date": {"text": "2024-01-01"}}],
                    "quinn",
                    "2024-05-01T09:00:00+00:00",
                ),
                _raw_node(
                    QC_TASK,
                    "final_qc_review",
                    "Line",
                    [
                        {"line_line_id": {"text": "L1"}, "amount": {"text": "10"}},
                        {"line_line_id": {"text": "L2"}, "amount": {"text": "25"}},
                    ],
                    "quinn",
                    "2024-05-01T09:05:00+00:00",
                ),
                _raw_node(
                    QC_TASK,
                    "final_qc_review",
                    "Meta",
                    [{"name": {"text": "REJECTED"}}],
                    "quinn",
                    "2024-05-01T09:10:00+00:00",
                    reason={"comment": "image unreadable"},
                ),
            ],
            "final_data": [
                {"data": [{"name": {"text": "Alicia"}, "amount": {"text": "10`25"}}]},
            ],
        }
    ]


@pytest.fixture()
def sample_history() -> list[dict[str, Any]]:
    return [
        {
            "keyed_data": {
                f"{KEYING_TASK}|data_entry|batch-7": [
                    {
                        "system_record_id": "R1",
                        "section": [
                            {"section": "Meta", "data": []},
                            {"section": "Line", "data": ["L1", "L2"]},
                        ],
                    }
                ],
                f"{QC_TASK}|final_qc_review|batch-7": [
                    {
                        "system_record_id": "R1",
                        "section": [
                            {"section": "Meta", "data": []},
                            {"section": "Line", "data": ["L1", "L2"]},
                        ],
                    }
                ],
                "summary": {"records": 1},
            }
        }
    ]
