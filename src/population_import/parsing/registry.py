from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .types import RawRow, ValidationResult

if TYPE_CHECKING:
    from .profiles.population import ValidationPolicy


class RowValidatorProto(Protocol):
    """Protocol to validate one raw row. Returns `ValidationResult`."""
    def parse(self, raw_row: RawRow, *, row_index: int) -> ValidationResult: ...


@dataclass(frozen=True)
class TableSpec:
    """Contains a DB table's import expectations."""
    table_name: str
    expected_header: tuple[str, ...]
    parser: RowValidatorProto       # which parser this table expects


def get_table_spec(table_name: str, *, policy: ValidationPolicy | None = None) -> TableSpec:
    """
    A registry that assigns a DB table its expected header and parser.
    `FieldSpec` defines parsing rules inside the profile modules.
    """
    if table_name == "population_and_demography":
        from .profiles.population import EXPECTED_HEADER, POPULATION_PARSER, build_population_parser

        parser = POPULATION_PARSER
        if policy is not None:
            parser = build_population_parser(policy)
        return TableSpec(
            table_name="population_and_demography",
            expected_header=EXPECTED_HEADER,
            parser=parser,
        )

    raise ValueError(f"Unknown table_name: {table_name}")
