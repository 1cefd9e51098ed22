"""
app/parsing package marker.
"""

from app.parsing.csv_source import (
    CSVRowReader,
    CSVSource,
    compute_content_hash,
    decode_upload,
    load_csv_source,
    normalize_csv_text,
)

__all__ = [
    "CSVRowReader",
    "CSVSource",
    "compute_content_hash",
    "decode_upload",
    "load_csv_source",
    "normalize_csv_text",
]
