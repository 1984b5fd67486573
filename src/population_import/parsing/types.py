from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


# Normalized field name -> trimmed string value, one per input line.
RawRow = Mapping[str, str]


class RejectCode(str, Enum):
    """Typed rejection classifications."""
    missing_field = "missing_field"
    not_numeric = "not_numeric"
    out_of_range = "out_of_range"
    storage_rejected = "storage_rejected"           # row-scoped DB error (constraint, bad value)
    transaction_aborted = "transaction_aborted"     # fatal, applied to every row of the batch


@dataclass(frozen=True, slots=True)
class ValidatedRecord:
    """Accepted row's expected schema."""
    country_name: str
    year: int
    population: int

    def to_mapping(self) -> Mapping[str, Any]:
        """
        Values ready for insert. Keys match the `population_and_demography`
        column names.
        """
        return {
            "Country_name": self.country_name,
            "Year": self.year,
            "Population": self.population,
        }


@dataclass(frozen=True, slots=True)
class Rejection:
    """Rejected row's contents."""
    row_index: int                  # 1-based ordinal of the data row, header not counted
    raw_data: RawRow | None         # `None` only when the failure is structural
    reason_code: RejectCode
    detail: str

    def to_mapping(self) -> Mapping[str, Any]:
        return {
            "row": self.row_index,
            "data": dict(self.raw_data) if self.raw_data is not None else None,
            "reason": self.reason_code.value,
            "detail": self.detail,
        }


@dataclass(frozen=True, slots=True)
class AcceptedRow:
    """A record the storage layer accepted, with its place in the input."""
    row_index: int
    record: ValidatedRecord

    def to_mapping(self) -> Mapping[str, Any]:
        return {
            "row": self.row_index,
            "country": self.record.country_name,
            "year": self.record.year,
            "population": self.record.population,
        }


ValidationResult = ValidatedRecord | Rejection
