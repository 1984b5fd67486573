from __future__ import annotations

import csv
import io
import logging
from typing import BinaryIO, Iterable, Iterator, Sequence

from population_import.ingest.errors import MalformedInputError
from population_import.parsing.types import RawRow

logger = logging.getLogger(__name__)

_BOM = "\ufeff"


def normalize_field_name(name: str) -> str:
    """Strip a leading byte-order mark and surrounding whitespace from a field name."""
    return name.strip().lstrip(_BOM).strip()


def _decoded_lines(stream: BinaryIO) -> Iterator[str]:
    """
    Decode `stream` as strict UTF-8, line by line.

    Raises `MalformedInputError` on undecodable bytes or NUL characters
    (binary content declared as text).
    """
    text = io.TextIOWrapper(stream, encoding="utf-8", errors="strict", newline="")
    try:
        for line_no, line in enumerate(text, start=1):
            if "\x00" in line:
                raise MalformedInputError(f"line {line_no}: NUL byte in text input")
            yield line
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"input is not valid UTF-8 text: {e}") from e
    finally:
        # the caller owns `stream`; don't let the wrapper close it.
        try:
            text.detach()
        except ValueError:
            pass


def _check_header(fieldnames: Sequence[str], expected_header: Iterable[str]) -> None:
    missing = [h for h in expected_header if h not in fieldnames]
    if missing:
        logger.warning("CSV header is missing expected columns %s (found %s)", missing, list(fieldnames))


def stream_csv_dict_rows(
    stream: BinaryIO,
    *,
    expected_header: Sequence[str] = (),
) -> Iterator[tuple[int, RawRow]]:
    """
    Yields `(row_index, RawRow)` for CSV data rows.

    `row_index` is 1-based for the first data row encountered, header is not counted.
    Empty lines are skipped without consuming an index. A line of only
    delimiters or whitespace is a row of empty values.

    - Field names lose any leading BOM and surrounding whitespace.
    - Values are trimmed. Missing trailing values on a short line become `""`,
      surplus values beyond the header are dropped.

    Lazy and non-restartable: the stream is read as rows are consumed.
    """
    reader = csv.reader(_decoded_lines(stream))
    try:
        header = next(reader, None)
        if header is None:
            return
        fieldnames = [normalize_field_name(h) for h in header]
        _check_header(fieldnames, expected_header)

        row_index = 0
        for values in reader:
            if not values:
                # empty line; a line of bare delimiters is still a row.
                continue
            row_index += 1
            row: dict[str, str] = {}
            for i, name in enumerate(fieldnames):
                row[name] = values[i].strip() if i < len(values) else ""
            yield row_index, row
    except csv.Error as e:
        raise MalformedInputError(f"invalid CSV at line {reader.line_num}: {e}") from e

