"""
Utility functions and helpers.

This module intentionally uses lazy attribute loading to avoid importing heavier
submodules (e.g., pandas) unless they are needed.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "Progress",
    "RateLimiter",
    "RunPaths",
    "clean_cell",
    "column_index",
    "column_letter",
    "is_steam_id64",
    "load_credentials",
    "load_json_cache",
    "read_csv_grid",
    "save_json_cache",
    "with_retries",
    "write_csv_grid",
]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "Progress":
        from .progress import Progress

        return Progress

    if name in __all__:
        from . import utilities as _u

        return getattr(_u, name)

    raise AttributeError(name)
