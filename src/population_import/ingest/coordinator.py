from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO, Optional, Sequence

from population_import.db.persistence import PersistenceProto, Transaction
from population_import.ingest.errors import EmptyInput, NoFileProvided, TransactionAborted
from population_import.ingest.readers import stream_csv_dict_rows
from population_import.ingest.summary import ImportOutcome, build_outcome
from population_import.ingest.upload import StagedUpload, Upload, check_upload
from population_import.parsing.profiles.population import ValidationPolicy
from population_import.parsing.registry import TableSpec, get_table_spec
from population_import.parsing.types import AcceptedRow, RawRow, RejectCode, Rejection, ValidatedRecord

logger = logging.getLogger(__name__)

TABLE_NAME = "population_and_demography"


@dataclass(frozen=True, slots=True)
class PendingRecord:
    """A validated record waiting for storage, with the row it came from."""
    row_index: int
    raw_row: RawRow
    record: ValidatedRecord


@dataclass(frozen=True)
class ClassifiedRows:
    """Every parsed row, partitioned before storage is touched."""
    total: int
    pending: list[PendingRecord]
    rejections: list[Rejection]


def classify_rows(stream: BinaryIO, spec: TableSpec) -> ClassifiedRows:
    """
    Stream rows from `stream` and validate each one.

    Every row lands in exactly one of `pending` / `rejections`, in input order.
    Raises `MalformedInputError` only if the stream is not readable text.
    """
    total = 0
    pending: list[PendingRecord] = []
    rejections: list[Rejection] = []

    for row_index, raw in stream_csv_dict_rows(stream, expected_header=spec.expected_header):
        total += 1
        res = spec.parser.parse(raw, row_index=row_index)
        if isinstance(res, Rejection):
            rejections.append(res)
        else:
            pending.append(PendingRecord(row_index=row_index, raw_row=raw, record=res))

    logger.info("Parsed %d rows: %d valid, %d rejected", total, len(pending), len(rejections))
    return ClassifiedRows(total=total, pending=pending, rejections=rejections)


def _rollback_quietly(persistence: PersistenceProto, tx: Transaction | None) -> None:
    """Roll back `tx` if one was opened. A failing rollback must not mask the original error."""
    if tx is None:
        return
    try:
        persistence.rollback(tx)
    except Exception:
        logger.exception("Rollback of transaction %s failed", tx.txn_id)


def _aborted_ledger(rows: ClassifiedRows, cause: BaseException) -> list[Rejection]:
    """Every row of the batch, valid or not, as `transaction_aborted`."""
    detail = str(cause) or type(cause).__name__
    raw_by_index: dict[int, RawRow | None] = {r.row_index: r.raw_data for r in rows.rejections}
    raw_by_index.update({p.row_index: p.raw_row for p in rows.pending})
    return [
        Rejection(
            row_index=i,
            raw_data=raw_by_index[i],
            reason_code=RejectCode.transaction_aborted,
            detail=detail,
        )
        for i in sorted(raw_by_index)
    ]


def persist_rows(
    rows: ClassifiedRows,
    persistence: PersistenceProto,
) -> tuple[list[AcceptedRow], list[Rejection]]:
    """
    Submit every pending record inside one transaction, then commit.

    Returns `(accepted, storage_rejections)`. Row-scoped storage failures do not
    abort the batch. On a fatal failure the transaction is rolled back and
    `TransactionAborted` is raised with an all-failed outcome. Cancellation
    (`KeyboardInterrupt`, `asyncio.CancelledError`, ...) rolls back and
    propagates unchanged.
    """
    if not rows.pending:
        # nothing valid: storage is never invoked.
        return [], []

    tx: Transaction | None = None
    try:
        tx = persistence.begin()
        outcomes = persistence.insert_batch(tx, [p.record for p in rows.pending])
        if len(outcomes) != len(rows.pending):
            raise RuntimeError(
                f"storage returned {len(outcomes)} outcomes for {len(rows.pending)} records"
            )
        persistence.commit(tx)
    except Exception as e:
        logger.error("Import transaction aborted, rolling back: %s", e, exc_info=True)
        _rollback_quietly(persistence, tx)
        aborted = _aborted_ledger(rows, e)
        raise TransactionAborted(e, build_outcome(rows.total, [], aborted)) from e
    except BaseException:
        logger.warning("Import cancelled, rolling back")
        _rollback_quietly(persistence, tx)
        raise

    accepted: list[AcceptedRow] = []
    storage_rejections: list[Rejection] = []
    for p, outcome in zip(rows.pending, outcomes):
        if outcome.accepted:
            accepted.append(AcceptedRow(row_index=p.row_index, record=p.record))
            continue
        logger.warning("Row %d rejected by storage: %s", p.row_index, outcome.detail)
        storage_rejections.append(
            Rejection(
                row_index=p.row_index,
                raw_data=p.raw_row,
                reason_code=RejectCode.storage_rejected,
                detail=outcome.detail,
            )
        )
    return accepted, storage_rejections


def _merge_ledgers(*ledgers: Sequence[Rejection]) -> list[Rejection]:
    """Merge rejection ledgers back into input order (row indexes are unique)."""
    merged = [r for ledger in ledgers for r in ledger]
    return sorted(merged, key=lambda r: r.row_index)


def run_import(
    upload: Optional[Upload],
    persistence: PersistenceProto,
    *,
    table_name: str = TABLE_NAME,
    policy: Optional[ValidationPolicy] = None,
) -> ImportOutcome:
    """
    End-to-end import orchestrator:
      - Reject a missing upload or a non-text declared type before parsing,
      - Stream and validate every row,
            - invalid rows -> rejection ledger (storage untouched),
            - valid rows -> pending batch,
      - Insert the batch record by record in one transaction and commit,
      - Build the bounded outcome.

    The staged upload is released exactly once on every exit path.

    Raises only on structural/fatal conditions (`ImportFailure` subclasses) and
    on cancellation. Will not raise on invalid rows.
    """
    if upload is None:
        raise NoFileProvided("no upload provided")

    with StagedUpload(upload) as staged:
        # collect appropriate table information.
        spec = get_table_spec(table_name, policy=policy)
        check_upload(upload)
        logger.info("Importing %r (%s) into %s", upload.filename, upload.media_type, spec.table_name)

        with staged.open() as stream:
            rows = classify_rows(stream, spec)

        if rows.total == 0:
            raise EmptyInput(f"{upload.filename}: no data rows")

        accepted, storage_rejections = persist_rows(rows, persistence)

    outcome = build_outcome(rows.total, accepted, _merge_ledgers(rows.rejections, storage_rejections))
    logger.info(
        "Import completed: %d success, %d failed",
        outcome.success_count, outcome.failure_count,
    )
    return outcome
