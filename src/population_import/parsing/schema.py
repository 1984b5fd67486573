from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .primitives import ParseError, normalize_cell
from .types import RawRow, RejectCode, Rejection

# Typing:
# Getter pulls one field's value out of a row mapping.
# Parser turns that value into its typed form, or raises `ParseError`.
Getter = Callable[[Mapping[str, Any]], Any]
Parser = Callable[[Any], Any]
Builder = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Any given field's configurable expectations."""
    out_name: str               # internally mapped name of this field.
    getter: Getter              # how to fetch this field's value.
    parser: Parser              # how to parse this field's value.
    required: bool = True       # whether or not this field's value must exist.


@dataclass(frozen=True, slots=True)
class RowParser:
    """
    Parse a single row of fields.

    Either:
    - return the record built from the parsed values,
    - or return a `Rejection`.

    Rejection order is always in:
    - 1st: first `missing_field` in `FieldSpec` index order, across ALL fields
    - 2nd: first type/format/range error in `FieldSpec` index order

    Only one reason is ever reported per row.
    """
    fields: Sequence[FieldSpec]         # every field in this row to pull from.
    build: Builder                      # turns `{out_name: value}` into the record type.

    def parse(self, raw_row: RawRow, *, row_index: int) -> Any:
        """
        Normalize then parse one row. Pure: no I/O, no shared state.
        Returns the built record, or a `Rejection` (upon any early return).
        """
        values: dict[str, Any] = {}
        for f in self.fields:
            values[f.out_name] = normalize_cell(f.getter(raw_row))

        # 1st rejection reason: a required field is empty or absent.
        for f in self.fields:
            if f.required and values[f.out_name] is None:
                return Rejection(
                    row_index=row_index,
                    raw_data=raw_row,
                    reason_code=RejectCode.missing_field,
                    detail=f"{f.out_name}: missing required value",
                )

        ## -- Parsing loop
        out: dict[str, Any] = {}
        for f in self.fields:
            raw_v = values[f.out_name]
            if raw_v is None:
                # optional and genuinely absent.
                out[f.out_name] = None
                continue
            try:
                out[f.out_name] = f.parser(raw_v)
            # 2nd rejection reason: typing / formatting / range error.
            except ParseError as e:
                return Rejection(
                    row_index=row_index,
                    raw_data=raw_row,
                    reason_code=e.code,
                    detail=e.detail,
                )

        return self.build(out)
