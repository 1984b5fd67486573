from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

import pytest

from population_import.db.persistence import ACCEPTED, InsertOutcome, Transaction
from population_import.ingest.upload import Upload
from population_import.parsing.types import ValidatedRecord

HEADER = "Country name,Year,Population\n"


@dataclass
class FakePersistence:
    """
    In-memory persistence collaborator. Records every call in `calls`.

    `reject` marks records as storage-rejected; `fail_on` raises the given
    exception when that record (0-based position in the batch) is reached.
    """
    reject: Callable[[ValidatedRecord], str | None] = lambda r: None
    fail_on: int | None = None
    fail_with: BaseException = field(default_factory=lambda: ConnectionError("server closed the connection unexpectedly"))
    fail_commit: BaseException | None = None
    fail_rollback: BaseException | None = None

    calls: list[str] = field(default_factory=list)
    staged: list[ValidatedRecord] = field(default_factory=list)
    committed: list[ValidatedRecord] = field(default_factory=list)
    _open: Transaction | None = None

    def begin(self) -> Transaction:
        self.calls.append("begin")
        assert self._open is None, "transaction already open"
        self._open = Transaction()
        return self._open

    def insert_batch(self, tx: Transaction, records: Sequence[ValidatedRecord]) -> list[InsertOutcome]:
        self.calls.append("insert_batch")
        assert tx == self._open
        outcomes: list[InsertOutcome] = []
        for i, r in enumerate(records):
            if self.fail_on is not None and i == self.fail_on:
                raise self.fail_with
            reason = self.reject(r)
            if reason is not None:
                outcomes.append(InsertOutcome(accepted=False, detail=reason))
                continue
            self.staged.append(r)
            outcomes.append(ACCEPTED)
        return outcomes

    def commit(self, tx: Transaction) -> None:
        self.calls.append("commit")
        assert tx == self._open
        if self.fail_commit is not None:
            raise self.fail_commit
        self.committed.extend(self.staged)
        self.staged.clear()
        self._open = None

    def rollback(self, tx: Transaction) -> None:
        self.calls.append("rollback")
        assert tx == self._open
        self.staged.clear()
        self._open = None
        if self.fail_rollback is not None:
            raise self.fail_rollback


@pytest.fixture()
def fake_persistence() -> FakePersistence:
    return FakePersistence()


@pytest.fixture()
def make_persistence() -> Callable[..., FakePersistence]:
    """Build a `FakePersistence` with failure knobs set."""
    return FakePersistence


@pytest.fixture()
def make_upload(tmp_path: Path) -> Callable[..., Upload]:
    """Write `content` to a scratch file and wrap it as an `Upload`."""
    counter = {"n": 0}

    def _make(
        content: str | bytes,
        *,
        filename: str = "population.csv",
        media_type: str | None = "text/csv",
    ) -> Upload:
        counter["n"] += 1
        path = tmp_path / f"upload-{counter['n']}.tmp"
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_bytes(content)
        return Upload(filename=filename, media_type=media_type, path=path)

    return _make


def _render_csv(rows: Sequence[Sequence[object]], *, header: str = HEADER) -> str:
    return header + "".join(",".join(str(v) for v in r) + "\n" for r in rows)


@pytest.fixture()
def csv_text() -> Callable[..., str]:
    """Render `rows` under the population header."""
    return _render_csv
