from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import psycopg
from psycopg import Connection, sql

from population_import.db.persistence import ACCEPTED, InsertOutcome, Transaction
from population_import.parsing.types import ValidatedRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableWriteSpec:
    """Whitelisted table contract used for safe SQL generation.

    `columns` match the keys of `ValidatedRecord.to_mapping()`.
    """
    table_name: str
    columns: tuple[str, ...]


POPULATION_TABLE = TableWriteSpec(
    table_name="population_and_demography",
    columns=("Country_name", "Year", "Population"),
)

# Errors attributable to the one record being inserted. Anything else
# (connection loss, deadlock, admin shutdown, ...) is fatal for the batch.
_ROW_SCOPED_ERRORS = (psycopg.IntegrityError, psycopg.DataError)

_SAVEPOINT = sql.Identifier("import_row")


class PopulationWriter:
    """
    psycopg-backed persistence collaborator for population imports.

    Needs a connection in autocommit mode: transaction boundaries are issued
    explicitly (`BEGIN` / `COMMIT` / `ROLLBACK`) so every record can run
    under its own `SAVEPOINT` and a constraint violation only undoes that record.

    One writer holds at most one open transaction. Concurrent imports each use
    their own connection and writer.
    """

    def __init__(self, conn: Connection, *, spec: TableWriteSpec = POPULATION_TABLE) -> None:
        if not conn.autocommit:
            raise ValueError("PopulationWriter needs a connection with autocommit=True")
        self._conn = conn
        self._spec = spec
        self._active: Transaction | None = None

        # identifiers are interpolated ONLY from the whitelisted `spec`.
        self._insert = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({vals})").format(
            tbl=sql.Identifier(spec.table_name),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in spec.columns),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in spec.columns),
        )

    def _require_active(self, tx: Transaction) -> None:
        if self._active is None or tx != self._active:
            raise RuntimeError(f"transaction {tx.txn_id} is not the open transaction")

    def _params(self, record: ValidatedRecord) -> tuple[Any, ...]:
        m = record.to_mapping()
        return tuple(m[c] for c in self._spec.columns)

    def begin(self) -> Transaction:
        if self._active is not None:
            raise RuntimeError(f"transaction {self._active.txn_id} is already open")
        self._conn.execute("BEGIN")
        self._active = Transaction()
        return self._active

    def insert_batch(self, tx: Transaction, records: Sequence[ValidatedRecord]) -> list[InsertOutcome]:
        """
        Insert `records` one statement at a time, each under a savepoint.

        Returns one `InsertOutcome` per record. Raises on fatal errors, leaving
        the transaction for the caller to roll back.
        """
        self._require_active(tx)
        outcomes: list[InsertOutcome] = []

        with self._conn.cursor() as cur:
            for record in records:
                cur.execute(sql.SQL("SAVEPOINT {}").format(_SAVEPOINT))
                try:
                    cur.execute(self._insert, self._params(record))
                except _ROW_SCOPED_ERRORS as e:
                    cur.execute(sql.SQL("ROLLBACK TO SAVEPOINT {}").format(_SAVEPOINT))
                    outcomes.append(InsertOutcome(accepted=False, detail=str(e).strip()))
                    continue

                inserted = cur.rowcount
                cur.execute(sql.SQL("RELEASE SAVEPOINT {}").format(_SAVEPOINT))
                if inserted > 0:
                    outcomes.append(ACCEPTED)
                else:
                    outcomes.append(InsertOutcome(accepted=False, detail="Failed to insert to database"))

        return outcomes

    def commit(self, tx: Transaction) -> None:
        self._require_active(tx)
        self._conn.execute("COMMIT")
        self._active = None

    def rollback(self, tx: Transaction) -> None:
        self._require_active(tx)
        try:
            self._conn.execute("ROLLBACK")
        finally:
            self._active = None
