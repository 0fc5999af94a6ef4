from __future__ import annotations

import csv
import json
import logging
import os
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import yaml

from ..config import RETRY

# ----------------------------
# Paths / Folder structure
# ----------------------------


@dataclass(frozen=True)
class RunPaths:
    run_dir: Path
    state_dir: Path
    logs_dir: Path

    @staticmethod
    def from_run_dir(run_dir: str | Path) -> RunPaths:
        root = Path(run_dir).resolve()
        return RunPaths(
            run_dir=root,
            state_dir=root / "state",
            logs_dir=root / "logs",
        )

    @property
    def progress_path(self) -> Path:
        return self.state_dir / "progress.json"

    @property
    def credentials_path(self) -> Path:
        return self.run_dir / "credentials.yaml"

    def ensure(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


# ----------------------------
# CSV Helpers
# ----------------------------


def read_csv_grid(path: str | Path) -> pd.DataFrame:
    """
    Read a CSV as a raw grid: header row included as row 0, integer column labels.

    Everything stays a string so IDs like 76561197960287930 are never coerced to floats.
    """
    # Rows may be ragged (unlabelled trailing cells); size the grid to the widest one.
    with open(path, newline="", encoding="utf-8") as f:
        width = max((len(r) for r in csv.reader(f)), default=0)
    if width == 0:
        raise pd.errors.EmptyDataError(f"No columns to parse from file: {path}")
    # Blank lines are kept: row identity is the ordinal position.
    return pd.read_csv(
        path,
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,
        encoding="utf-8",
    )


def write_csv_grid(df: pd.DataFrame, path: str | Path) -> None:
    """Write a raw grid back (no index, no generated header), replacing the file atomically."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    df.fillna("").to_csv(tmp, index=False, header=False)
    os.replace(tmp, p)


# ----------------------------
# Identifiers / column letters
# ----------------------------

_STEAM_ID64_RE = re.compile(r"^\d{17}$")


def clean_cell(value: object) -> str:
    # Pandas may store empty cells as NaN floats; avoid propagating "nan".
    if value is None:
        return ""
    try:
        if bool(pd.isna(value)):
            return ""
    except (TypeError, ValueError):
        pass
    s = str(value).strip()
    return "" if s.casefold() == "nan" else s


def is_steam_id64(value: str) -> bool:
    return bool(_STEAM_ID64_RE.match(str(value or "").strip()))


def column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError("column index must be >= 0")
    n = index + 1
    out = ""
    while n:
        n, rem = divmod(n - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def column_index(letter: str) -> int:
    """A -> 0, Z -> 25, AA -> 26. Raises ValueError on anything else."""
    s = str(letter or "").strip().upper()
    if not s or not s.isalpha() or not s.isascii():
        raise ValueError(f"Not a column letter: {letter!r}")
    n = 0
    for ch in s:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


# ----------------------------
# JSON state files
# ----------------------------


def load_json_cache(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logging.warning(f"[STATE] Ignoring unreadable JSON file: {p}")
        return {}
    return raw if isinstance(raw, dict) else {}


def save_json_cache(cache: dict[str, Any], path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(cache, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, p)


# ----------------------------
# Rate limiting + retries
# ----------------------------


class RateLimiter:
    """
    Simple rate limiter: enforces minimum interval between requests.
    """

    def __init__(self, min_interval_s: float = 1.0):
        self.min_interval_s = float(min_interval_s)
        self._last = 0.0

    def wait(self) -> None:
        # Use monotonic time to avoid issues if the system clock changes.
        now = time.monotonic()
        delta = now - self._last
        if delta < self.min_interval_s:
            time.sleep(self.min_interval_s - delta)
        self._last = time.monotonic()


def _is_retryable(exc: BaseException) -> bool:
    import requests

    if isinstance(exc, requests.exceptions.HTTPError):
        status = getattr(getattr(exc, "response", None), "status_code", None)
        # Client errors other than throttling will not change on retry.
        if status is not None and 400 <= int(status) < 500 and int(status) != 429:
            return False
    return True


def with_retries(
    fn: Callable[[], Any],
    *,
    retries: int = RETRY.retries,
    base_sleep_s: float = RETRY.base_sleep_s,
    jitter_s: float = RETRY.jitter_s,
    retry_on: tuple[type, ...] = (Exception,),
    on_fail_return: Any = None,
    context: str | None = None,
    retry_stats: dict[str, Any] | None = None,
) -> Any:
    """
    Execute fn with retries and exponential backoff.

    On final failure returns `on_fail_return` and records the error text under
    `retry_stats["last_error"]` so callers can surface it.
    """
    import requests

    net_types = (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        requests.exceptions.SSLError,
    )
    for attempt in range(retries):
        try:
            return fn()
        except retry_on as e:
            retry_after_s: float | None = None
            is_http = isinstance(e, requests.exceptions.HTTPError)
            is_network = isinstance(e, net_types)
            is_429 = False
            if is_http:
                resp = getattr(e, "response", None)
                if getattr(resp, "status_code", None) == 429:
                    is_429 = True
                    headers = getattr(resp, "headers", {}) or {}
                    ra = str(headers.get("Retry-After", "") or "").strip()
                    try:
                        retry_after_s = float(ra) if ra else None
                    except ValueError:
                        retry_after_s = None
                    if retry_after_s is None:
                        retry_after_s = RETRY.http_429_default_retry_after_s

            if retry_stats is not None:
                if is_429:
                    retry_stats["http_429"] = int(retry_stats.get("http_429", 0)) + 1
                if is_network:
                    retry_stats["network_errors"] = int(retry_stats.get("network_errors", 0)) + 1
                if is_http:
                    retry_stats["http_errors"] = int(retry_stats.get("http_errors", 0)) + 1

            if attempt == retries - 1 or not _is_retryable(e):
                if context:
                    # Make network-offline situations obvious in logs, and distinct from
                    # provider "not found" cases.
                    if is_network:
                        tag = "NETWORK"
                    elif is_http:
                        tag = "HTTP"
                    else:
                        tag = "REQUEST"
                    logging.error(f"[{tag}] {context}: {type(e).__name__}: {e}")
                if retry_stats is not None:
                    retry_stats["last_error"] = f"{type(e).__name__}: {e}"
                    if is_network:
                        retry_stats["network_failures"] = int(
                            retry_stats.get("network_failures", 0)
                        ) + 1
                    if is_http:
                        retry_stats["http_failures"] = int(retry_stats.get("http_failures", 0)) + 1
                return on_fail_return
            sleep = base_sleep_s * (2**attempt) + random.uniform(0, jitter_s)
            if retry_after_s is not None and retry_after_s > 0:
                sleep = max(sleep, retry_after_s)
            if retry_stats is not None:
                retry_stats["retry_attempts"] = int(retry_stats.get("retry_attempts", 0)) + 1
                if is_429:
                    retry_stats["http_429_retries"] = int(retry_stats.get("http_429_retries", 0)) + 1
                    retry_stats["http_429_backoff_ms"] = int(
                        retry_stats.get("http_429_backoff_ms", 0)
                    ) + int(round(sleep * 1000.0))
            time.sleep(sleep)
    return on_fail_return


# ----------------------------
# Credentials loading
# ----------------------------


def load_credentials(credentials_path: str | Path | None = None) -> dict[str, Any]:
    """
    Load credentials from a YAML file.

    Args:
        credentials_path: Path to credentials.yaml file. If None, looks for
                         data/credentials.yaml in the current directory.

    Returns:
        Dictionary with credentials (e.g., {'steam': {...}, 'reputation': {...}})
    """
    if credentials_path is None:
        credentials_path = Path.cwd() / "data" / "credentials.yaml"
    else:
        credentials_path = Path(credentials_path)

    if not credentials_path.exists():
        raise FileNotFoundError(
            f"Credentials file not found: {credentials_path}\n"
            "Please create data/credentials.yaml with your API keys."
        )

    with open(credentials_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
