from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence
from uuid import UUID, uuid4

from population_import.parsing.types import ValidatedRecord


@dataclass(frozen=True)
class Transaction:
    """Handle for one open import transaction."""
    txn_id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class InsertOutcome:
    """Storage verdict for one submitted record."""
    accepted: bool
    detail: str = ""        # storage error message when not accepted


ACCEPTED = InsertOutcome(accepted=True)


class PersistenceProto(Protocol):
    """
    Storage collaborator used by the import coordinator.

    `insert_batch` returns exactly one `InsertOutcome` per record, in order.
    Row-scoped storage failures (constraint, bad value) are returned as
    `InsertOutcome(accepted=False)`; anything raised is treated as fatal.
    """
    def begin(self) -> Transaction: ...

    def insert_batch(self, tx: Transaction, records: Sequence[ValidatedRecord]) -> list[InsertOutcome]: ...

    def commit(self, tx: Transaction) -> None: ...

    def rollback(self, tx: Transaction) -> None: ...
