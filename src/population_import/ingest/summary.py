from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from population_import.parsing.types import AcceptedRow, Rejection

logger = logging.getLogger(__name__)

# bounds the response size for files with thousands of rows.
SAMPLE_LIMIT = 10


@dataclass(frozen=True)
class ImportOutcome:
    """Schema for the summary returned to the caller. Built once, never mutated."""
    total_rows: int
    success_count: int
    failure_count: int
    success_sample: tuple[AcceptedRow, ...]
    failure_sample: tuple[Rejection, ...]

    def summary_mapping(self) -> Mapping[str, Any]:
        return {
            "total": self.total_rows,
            "success": self.success_count,
            "failed": self.failure_count,
        }

    def data_mapping(self) -> Mapping[str, Any]:
        return {
            "successData": [a.to_mapping() for a in self.success_sample],
            "failedData": [r.to_mapping() for r in self.failure_sample],
        }


def build_outcome(
    total: int,
    accepted: Sequence[AcceptedRow],
    rejections: Sequence[Rejection],
) -> ImportOutcome:
    """
    Build the bounded summary. Samples are the first `SAMPLE_LIMIT` items in
    encounter order.

    Never raises: counts come from the partition itself, so
    `success_count + failure_count == total_rows` always holds. A `total` that
    disagrees with the partition is logged and replaced.
    """
    success = len(accepted)
    failed = len(rejections)
    if total != success + failed:
        logger.warning(
            "Row total %d disagrees with ledger (success=%d failed=%d); using %d",
            total, success, failed, success + failed,
        )

    return ImportOutcome(
        total_rows=success + failed,
        success_count=success,
        failure_count=failed,
        success_sample=tuple(accepted[:SAMPLE_LIMIT]),
        failure_sample=tuple(rejections[:SAMPLE_LIMIT]),
    )
