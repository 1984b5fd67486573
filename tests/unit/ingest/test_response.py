from __future__ import annotations

import pytest

from population_import.ingest.errors import (
    EmptyInput,
    MalformedInputError,
    NoFileProvided,
    UnsupportedFormat,
    UploadTooLarge,
)
from population_import.ingest.response import failure_response, handle_upload


def test_completed_import_is_200_even_when_every_row_failed(fake_persistence, make_upload, csv_text) -> None:
    res = handle_upload(make_upload(csv_text([("", 1950, 1), ("X", "abc", 2)])), fake_persistence)

    assert res.status_code == 200
    assert res.body["message"] == "Upload completed"
    assert res.body["summary"] == {"total": 2, "success": 0, "failed": 2}
    assert res.body["data"]["successData"] == []
    assert [f["reason"] for f in res.body["data"]["failedData"]] == ["missing_field", "not_numeric"]


def test_success_document_shape(fake_persistence, make_upload, csv_text) -> None:
    res = handle_upload(make_upload(csv_text([("China", 1950, 554419210)])), fake_persistence)

    assert res.body == {
        "message": "Upload completed",
        "summary": {"total": 1, "success": 1, "failed": 0},
        "data": {
            "successData": [{"row": 1, "country": "China", "year": 1950, "population": 554419210}],
            "failedData": [],
        },
    }


def test_no_file(fake_persistence) -> None:
    res = handle_upload(None, fake_persistence)
    assert res.status_code == 400
    assert res.body == {"message": "No file uploaded"}


def test_header_only_file_is_empty(fake_persistence, make_upload) -> None:
    res = handle_upload(make_upload("Country name,Year,Population\n"), fake_persistence)
    assert res.status_code == 400
    assert res.body == {"message": "CSV file is empty"}


def test_fatal_storage_fault_is_500_with_all_rows_aborted(make_upload, csv_text, make_persistence) -> None:
    res = handle_upload(make_upload(csv_text([("China", 1950, 1), ("", 1950, 2)])), make_persistence(fail_on=0))

    assert res.status_code == 500
    assert res.body["message"] == "Server Error"
    assert "server closed the connection" in res.body["error"]
    assert res.body["summary"] == {"total": 2, "success": 0, "failed": 2}
    assert {f["reason"] for f in res.body["data"]["failedData"]} == {"transaction_aborted"}


@pytest.mark.parametrize(
    "exc,status",
    [
        (NoFileProvided("x"), 400),
        (UnsupportedFormat("image/png", "a.png"), 400),
        (MalformedInputError("x"), 400),
        (EmptyInput("x"), 400),
        (UploadTooLarge(10), 413),
    ],
)
def test_failure_status_codes(exc, status: int) -> None:
    res = failure_response(exc)
    assert res.status_code == status
    assert res.body["message"] == exc.message
    assert "error" not in res.body


def test_cancellation_is_not_converted(make_upload, csv_text, make_persistence) -> None:
    """Only import failures become documents."""
    persistence = make_persistence(fail_on=0, fail_with=KeyboardInterrupt())
    with pytest.raises(KeyboardInterrupt):
        handle_upload(make_upload(csv_text([("China", 1950, 1)])), persistence)
    assert persistence.calls[-1] == "rollback"
