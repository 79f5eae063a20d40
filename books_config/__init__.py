"""
books_config -- single public entrypoint for operating settings.

Responsibility:
    Provides the one way to obtain settings at runtime through
    ``get_active_config()``.  Services take an optional ``settings``
    argument and fall back to this function, so tests inject their own
    ``BooksSettings`` and production reads the YAML set.

Architecture position:
    Configuration -- sits above ``books_engines`` and below
    ``books_modules``.  The kernel MUST NEVER import from ``books_config``;
    module services pass the relevant values (balance tolerance, journal
    prefix, compliance markers) into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- unknown key or malformed number in the YAML.

Audit relevance:
    Each load emits a ``BOOKS_CONFIG_TRACE`` log record naming the file,
    so every run can be tied to the settings that governed it.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from books_config.loader import load_settings, parse_settings
from books_config.schema import (
    BooksSettings,
    CostingSettings,
    DepreciationSettings,
    LedgerSettings,
    NumberingSettings,
    RevaluationSettings,
    SafetyStockSettings,
)

_logger = logging.getLogger("books_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


@lru_cache(maxsize=8)
def _load_cached(path: Path) -> BooksSettings:
    settings = load_settings(path)
    _logger.info(
        "BOOKS_CONFIG_TRACE",
        extra={
            "trace_type": "BOOKS_CONFIG_TRACE",
            "config_path": str(path),
            "config_name": settings.name,
            "balance_tolerance": str(settings.ledger.balance_tolerance),
            "jurisdiction_count": len(settings.depreciation.jurisdictions),
        },
    )
    return settings


def get_active_config(path: Path | str | None = None) -> BooksSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override the settings file.  Defaults to
            ``books_config/sets/default.yaml``.

    Returns:
        Frozen ``BooksSettings``; parsed once per path and cached.
    """
    resolved = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    return _load_cached(resolved.resolve())


def clear_config_cache() -> None:
    """Forget cached settings. FOR TESTING ONLY."""
    _load_cached.cache_clear()


__all__ = [
    "BooksSettings",
    "CostingSettings",
    "DEFAULT_CONFIG_PATH",
    "DepreciationSettings",
    "LedgerSettings",
    "NumberingSettings",
    "RevaluationSettings",
    "SafetyStockSettings",
    "clear_config_cache",
    "get_active_config",
    "parse_settings",
]
