from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from population_import.db.persistence import PersistenceProto
from population_import.ingest.coordinator import run_import
from population_import.ingest.errors import ImportFailure, TransactionAborted, UnsupportedFormat
from population_import.ingest.summary import ImportOutcome
from population_import.ingest.upload import Upload
from population_import.parsing.profiles.population import ValidationPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResponse:
    """Structured document handed back to the transport, with its HTTP-equivalent status."""
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


def outcome_response(outcome: ImportOutcome) -> ImportResponse:
    """200 on pipeline completion, even when some or all rows failed."""
    return ImportResponse(
        status_code=200,
        body={
            "message": "Upload completed",
            "summary": dict(outcome.summary_mapping()),
            "data": dict(outcome.data_mapping()),
        },
    )


def failure_response(exc: ImportFailure) -> ImportResponse:
    """Map a structural/fatal import failure to its caller-visible document."""
    body: dict[str, Any] = {"message": exc.message}

    if isinstance(exc, UnsupportedFormat):
        body["received"] = exc.media_type
    elif isinstance(exc, TransactionAborted):
        body["error"] = str(exc)
        body["summary"] = dict(exc.outcome.summary_mapping())
        body["data"] = dict(exc.outcome.data_mapping())
    elif exc.status_code >= 500:
        body["error"] = str(exc)

    return ImportResponse(status_code=exc.status_code, body=body)


def handle_upload(
    upload: Optional[Upload],
    persistence: PersistenceProto,
    *,
    policy: Optional[ValidationPolicy] = None,
) -> ImportResponse:
    """
    Run an import and always answer with an `ImportResponse`.

    Only `ImportFailure`s are converted; programming errors and cancellation propagate.
    """
    try:
        outcome = run_import(upload, persistence, policy=policy)
    except ImportFailure as e:
        logger.info("Import failed with status %d: %s", e.status_code, e)
        return failure_response(e)
    return outcome_response(outcome)
