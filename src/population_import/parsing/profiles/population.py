from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from population_import.parsing.primitives import parse_int, parse_required_text, require_non_negative
from population_import.parsing.schema import FieldSpec, RowParser
from population_import.parsing.types import RawRow, ValidatedRecord, ValidationResult


# Header names agreed with the external data source. Case-sensitive.
COUNTRY_NAME = "Country name"
YEAR = "Year"
POPULATION = "Population"

EXPECTED_HEADER: tuple[str, ...] = (COUNTRY_NAME, YEAR, POPULATION)


@dataclass(frozen=True, slots=True)
class ValidationPolicy:
    """
    Operator-tunable validation rules.

    `allow_fractional`: accept `"12.9"` for year/population and truncate it toward zero.
    `reject_negative_population`: reject negative population as `out_of_range`.
    """
    allow_fractional: bool = False
    reject_negative_population: bool = True


DEFAULT_POLICY = ValidationPolicy()


def _build_record(values: dict[str, Any]) -> ValidatedRecord:
    return ValidatedRecord(
        country_name=values["country_name"],
        year=values["year"],
        population=values["population"],
    )


def build_population_parser(policy: ValidationPolicy = DEFAULT_POLICY) -> RowParser:
    """Row parser for `Country name, Year, Population` rows under `policy`."""

    def _population(v: Any) -> int:
        n = parse_int(v, field="population", allow_fractional=policy.allow_fractional)
        if policy.reject_negative_population:
            return require_non_negative(n, field="population")
        return n

    return RowParser(
        build=_build_record,
        fields=[
            FieldSpec(
                out_name="country_name",
                getter=lambda r: r.get(COUNTRY_NAME),
                parser=lambda v: parse_required_text(v, field="country_name"),
            ),
            FieldSpec(
                out_name="year",
                getter=lambda r: r.get(YEAR),
                parser=lambda v: parse_int(v, field="year", allow_fractional=policy.allow_fractional),
            ),
            FieldSpec(
                out_name="population",
                getter=lambda r: r.get(POPULATION),
                parser=_population,
            ),
        ],
    )


POPULATION_PARSER = build_population_parser()


def validate_population_row(
    row: RawRow,
    row_index: int,
    *,
    parser: RowParser = POPULATION_PARSER,
) -> ValidationResult:
    """Validate a single population row into a `ValidatedRecord` or a `Rejection`."""
    return parser.parse(row, row_index=row_index)
