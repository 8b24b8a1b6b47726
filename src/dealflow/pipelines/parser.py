"""Delimited-text parser for bulk import files.

Company and contact free-text fields routinely contain commas and quoted
substrings, so lines are split with a small quote-aware state machine
rather than ``str.split``.  The first non-blank line is the header row;
every following non-blank line becomes one raw row keyed by the
lower-cased, trimmed header.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from dealflow.errors import StructuralError

logger = structlog.get_logger(__name__)

_QUOTE = '"'


@dataclass(frozen=True)
class ParsedFile:
    headers: list[str]
    rows: list[dict[str, str]]
    empty_rows_skipped: int = 0

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one physical line into trimmed field values.

    A quote toggles in-quotes mode, a doubled quote inside quoted text
    yields a literal quote, and a delimiter inside quotes is kept as text.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch == _QUOTE:
            if in_quotes and i + 1 < n and line[i + 1] == _QUOTE:
                current.append(_QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1

    fields.append("".join(current).strip())
    return fields


def normalize_header(header: str) -> str:
    return header.strip().lower()


def decode(data: bytes) -> str:
    """Decode file bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("import_file_not_utf8", fallback="latin-1")
        return data.decode("latin-1")


def parse(data: bytes | str, *, max_bytes: int | None = None) -> ParsedFile:
    """Parse a delimited text file into headers and raw rows.

    Raises
    ------
    StructuralError
        If the file exceeds *max_bytes*, has fewer than two non-blank
        lines, has no usable header, or contains no data rows.
    """
    if isinstance(data, bytes):
        if max_bytes is not None and len(data) > max_bytes:
            msg = f"File is {len(data)} bytes, larger than the {max_bytes} byte limit"
            raise StructuralError(msg)
        text = decode(data)
    else:
        text = data

    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        msg = "File must contain a header row and at least one data row"
        raise StructuralError(msg)

    # Keep the original column index of every non-empty header
    header_index: list[tuple[str, int]] = []
    for index, raw_header in enumerate(split_line(lines[0])):
        header = normalize_header(raw_header)
        if header and header not in (h for h, _ in header_index):
            header_index.append((header, index))

    if not header_index:
        msg = "No usable column headers found in the first row"
        raise StructuralError(msg)

    rows: list[dict[str, str]] = []
    empty_rows_skipped = 0
    for line in lines[1:]:
        values = split_line(line)
        if not any(values):
            empty_rows_skipped += 1
            continue
        rows.append({
            header: values[index] if index < len(values) else ""
            for header, index in header_index
        })

    if not rows:
        msg = "No data rows found after the header row"
        raise StructuralError(msg)

    headers = [h for h, _ in header_index]
    logger.info(
        "import_file_parsed",
        headers=len(headers),
        rows=len(rows),
        empty_rows_skipped=empty_rows_skipped,
    )
    return ParsedFile(headers=headers, rows=rows, empty_rows_skipped=empty_rows_skipped)
