"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


@dataclass(frozen=True)
class ImportSettings:
    """
    Runtime settings for the CSV import pipeline.

    ``year_min``/``year_max`` bound the plausible data year (inclusive).
    ``large_value_threshold`` and ``jump_ratio_warning`` only produce
    validation warnings; they never fail a row.
    """

    year_min: int = 1900
    year_max: int = 2030
    staging_batch_size: int = 1000
    max_file_bytes: int = 10 * 1024 * 1024
    log_row_failures: bool = True
    large_value_threshold: float = 1_000_000_000.0
    jump_ratio_warning: float = 10.0
    max_reported_warnings: int = 200


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import settings from environment variables.
    """

    year_min = _get_int_env("IMPORT_YEAR_MIN", 1900)
    year_max = _get_int_env("IMPORT_YEAR_MAX", 2030)
    if year_max < year_min:
        raise RuntimeError(
            f"IMPORT_YEAR_MAX ({year_max}) must not be lower than IMPORT_YEAR_MIN ({year_min})."
        )

    return ImportSettings(
        year_min=year_min,
        year_max=year_max,
        staging_batch_size=max(1, _get_int_env("IMPORT_STAGING_BATCH_SIZE", 1000)),
        max_file_bytes=max(1024, _get_int_env("IMPORT_MAX_FILE_BYTES", 10 * 1024 * 1024)),
        log_row_failures=_get_bool_env("IMPORT_LOG_ROW_FAILURES", True),
        large_value_threshold=max(0.0, _get_float_env("IMPORT_LARGE_VALUE_THRESHOLD", 1_000_000_000.0)),
        jump_ratio_warning=max(1.0, _get_float_env("IMPORT_JUMP_RATIO_WARNING", 10.0)),
        max_reported_warnings=max(1, _get_int_env("IMPORT_MAX_REPORTED_WARNINGS", 200)),
    )
