from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from .errors import EmptyInputError

_TITLE_MARKERS = ("overview", "analytics", "summary")
_WHITESPACE_RE = re.compile(r"\s+")
_NEWLINE_RE = re.compile(r"\r?\n")


@dataclass(frozen=True)
class DecodedTable:
    """Rows of one delimited export, keyed by normalized column name."""

    columns: tuple[str, ...]
    records: tuple[dict[str, str], ...]
    title: str | None = None


def normalize_column_name(value: str) -> str:
    """
    Normalize a header cell: "Watch Time (ms)" -> "watch_time_ms".
    """
    name = (value or "").strip().lower()
    name = name.replace("(", "").replace(")", "")
    return _WHITESPACE_RE.sub("_", name.strip())


def split_line(line: str, *, delimiter: str = ",") -> list[str]:
    """
    Split one line into trimmed cells.

    A double quote toggles quoted mode; inside quotes the delimiter is literal text.
    Quote characters themselves are not kept.
    """
    cells: list[str] = []
    current: list[str] = []
    in_quotes = False

    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)

    cells.append("".join(current).strip())
    return cells


def _is_title_row(cells: Sequence[str]) -> bool:
    non_empty = sum(1 for c in cells if c)
    if len(cells) > 3 and non_empty <= 2:
        return True

    first = (cells[0] if cells else "").lower()
    return any(marker in first for marker in _TITLE_MARKERS)


def _header_columns(cells: Sequence[str]) -> list[str]:
    return [normalize_column_name(c) for c in cells]


def decode_table(text: str) -> DecodedTable:
    """
    Decode the full text of one export file.

    Raises EmptyInputError when the text holds fewer than two lines.
    """
    body = (text or "").lstrip("\ufeff").strip()
    lines = _NEWLINE_RE.split(body) if body else []
    if len(lines) < 2:
        raise EmptyInputError("File is empty or has no data rows")

    first = split_line(lines[0])
    title: str | None = None
    header_index = 0
    if _is_title_row(first):
        title = next((c for c in first if c), None)
        header_index = 1

    header = _header_columns(split_line(lines[header_index]))

    # Keep the first occurrence of a column name; unnamed columns are ignored.
    positions: list[tuple[int, str]] = []
    seen: set[str] = set()
    for idx, name in enumerate(header):
        if not name or name in seen:
            continue
        seen.add(name)
        positions.append((idx, name))

    records: list[dict[str, str]] = []
    for line in lines[header_index + 1 :]:
        cells = split_line(line)
        if not any(cells):
            continue

        row: dict[str, str] = {}
        for idx, name in positions:
            row[name] = cells[idx] if idx < len(cells) else ""
        records.append(row)

    return DecodedTable(
        columns=tuple(name for _, name in positions),
        records=tuple(records),
        title=title,
    )
