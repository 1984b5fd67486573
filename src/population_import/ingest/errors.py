from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from population_import.ingest.summary import ImportOutcome


class ImportFailure(Exception):
    """
    Structural or fatal condition that stops an import.

    Row-level problems are never raised; they are `Rejection` values in the ledger.
    `status_code` is the HTTP-equivalent status the caller should report.
    """
    status_code = 500
    message = "Server Error"


class NoFileProvided(ImportFailure):
    """No upload was given. No pipeline is invoked."""
    status_code = 400
    message = "No file uploaded"


class UnsupportedFormat(ImportFailure):
    """Declared media type/filename is not delimited text. Rejected before parsing."""
    status_code = 400
    message = "Invalid file type. Please upload CSV file (.csv)"

    def __init__(self, media_type: str | None, filename: str | None = None) -> None:
        super().__init__(f"unsupported upload: media_type={media_type!r} filename={filename!r}")
        self.media_type = media_type
        self.filename = filename


class UploadTooLarge(ImportFailure):
    """Upload exceeded the configured byte limit while being staged."""
    status_code = 413
    message = "File too large"

    def __init__(self, limit: int) -> None:
        super().__init__(f"upload exceeds {limit} bytes")
        self.limit = limit


class MalformedInputError(ImportFailure):
    """The stream cannot be read as delimited UTF-8 text at all."""
    status_code = 400
    message = "File could not be read as CSV text"


class EmptyInput(ImportFailure):
    """Zero data rows after parsing. No transaction is opened."""
    status_code = 400
    message = "CSV file is empty"


class TransactionAborted(ImportFailure):
    """
    Fatal, non-row-scoped storage failure. The transaction was rolled back and
    every row of the batch is reported as `transaction_aborted` in `outcome`.
    """
    status_code = 500
    message = "Server Error"

    def __init__(self, cause: BaseException, outcome: ImportOutcome) -> None:
        super().__init__(str(cause) or type(cause).__name__)
        self.cause = cause
        self.outcome = outcome
