"""
app/parsing/csv_source.py

Decoding, normalisation, fingerprinting and row iteration for uploaded CSV text.
"""

from __future__ import annotations

import csv
import hashlib
import io
from collections.abc import Iterator
from dataclasses import dataclass

from app.errors import ParseError


@dataclass(frozen=True)
class CSVSource:
    """
    Decoded file text plus the hash of its normalised form.
    """

    text: str
    content_hash: str
    size_bytes: int


def decode_upload(content: bytes) -> str:
    """
    Decode uploaded bytes as UTF-8 (a leading BOM is accepted).
    """

    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError("CSV must be UTF-8 encoded.") from exc


def normalize_csv_text(text: str) -> str:
    """
    Strip a BOM, unify line endings and drop whitespace-only lines.

    The content hash is computed over this form, so the same data saved
    with CRLF endings or trailing blank lines is recognised as a duplicate.
    """

    text = text.lstrip("\ufeff")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return "\n".join(line for line in text.split("\n") if line.strip())


def compute_content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def load_csv_source(content: bytes) -> CSVSource:
    """
    Decode an upload; ``text`` is kept as decoded so row numbers match file lines.
    """

    text = decode_upload(content)
    normalized = normalize_csv_text(text)
    if not normalized:
        raise ParseError("CSV file is empty.")
    return CSVSource(
        text=text,
        content_hash=compute_content_hash(normalized),
        size_bytes=len(content),
    )


def _line_breaks(value: str | list[str] | None) -> int:
    if value is None:
        return 0
    if isinstance(value, list):
        return sum(_line_breaks(item) for item in value)
    return value.count("\n") + value.count("\r") - value.count("\r\n")


class CSVRowReader:
    """
    Thin wrapper over csv.DictReader that reports 1-based file line numbers.

    Each row is numbered by the line it starts on, so blank lines and quoted
    multi-line cells are counted the way a text editor shows them. Lines
    holding only whitespace are skipped.
    """

    def __init__(self, text: str) -> None:
        self._reader = csv.DictReader(io.StringIO(text, newline=""))
        try:
            header: list[str] = []
            for record in self._reader.reader:
                if any(cell.strip() for cell in record):
                    header = record
                    break
        except csv.Error as exc:
            raise ParseError(f"Invalid CSV format: {exc}") from exc
        if not header:
            raise ParseError("CSV header row is missing.")
        self._reader.fieldnames = header
        self.headers: list[str] = list(header)

    @staticmethod
    def _is_blank_line(raw_row: dict[str | None, str | list[str] | None]) -> bool:
        first, *rest = raw_row.values()
        return all(value is None for value in rest) and not str(first or "").strip()

    def __iter__(self) -> Iterator[tuple[int, dict[str | None, str | list[str] | None]]]:
        try:
            for raw_row in self._reader:
                if self._is_blank_line(raw_row):
                    continue
                embedded = sum(_line_breaks(value) for value in raw_row.values())
                yield self._reader.line_num - embedded, raw_row
        except csv.Error as exc:
            raise ParseError(f"Invalid CSV format near line {self._reader.line_num}: {exc}") from exc
