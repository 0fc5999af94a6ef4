from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from ..errors import ProviderError, SetupError, ValidationError
from ..schema import ERROR_PREFIX, PROFILE_LINK, BatchKind, FieldSpec
from ..storage.table_store import TableStore
from ..utils.utilities import clean_cell, is_steam_id64
from .columns import ColumnMap


@dataclass(frozen=True)
class Row:
    """One data row. `index` is 0-based below the header."""

    index: int
    identifier: str

    @property
    def grid_row(self) -> int:
        return self.index + 1


class RowStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RowOutcome:
    status: RowStatus
    reason: str = ""

    @staticmethod
    def success() -> RowOutcome:
        return RowOutcome(RowStatus.SUCCESS)

    @staticmethod
    def skipped(reason: str) -> RowOutcome:
        return RowOutcome(RowStatus.SKIPPED, reason)

    @staticmethod
    def failed(reason: str) -> RowOutcome:
        return RowOutcome(RowStatus.FAILED, reason)


class RowProcessor(Protocol):
    kind: BatchKind
    fields: tuple[FieldSpec, ...]

    def process_row(self, row: Row, columns: ColumnMap) -> RowOutcome: ...


def minutes_to_hours(minutes: int) -> float:
    """Minutes -> hours with one decimal, rounding halves up (119 -> 2.0, 15 -> 0.3)."""
    return math.floor(int(minutes) / 6 + 0.5) / 10


def validate_identifier(raw: object, *, strict: bool = False) -> str:
    s = clean_cell(raw)
    if not s:
        raise ValidationError("blank identifier")
    if strict and not is_steam_id64(s):
        raise ValidationError(f"not a 17-digit Steam ID: {s!r}")
    return s


def rows_from_grid(grid: list[list[Any]], id_col: int) -> list[Row]:
    """Data rows (header excluded) with their identifier cell."""
    out: list[Row] = []
    for i, cells in enumerate(grid[1:]):
        raw = cells[id_col] if id_col < len(cells) else ""
        out.append(Row(index=i, identifier=clean_cell(raw)))
    return out


def check_url_template(template: str, name: str) -> str:
    """Raise SetupError when a link template uses anything other than `{steam_id}`."""
    try:
        template.format(steam_id="0")
    except (KeyError, IndexError, ValueError) as e:
        raise SetupError(
            f"Invalid {name} link template {template!r}: only {{steam_id}} is available ({e!r})"
        ) from e
    return template


class BaseRowProcessor:
    """
    Shared per-row state machine: validate -> links -> fetch+write, with failures written into
    the row instead of propagating.

    Subclasses implement `enrich_row` (fetch and write results) and `write_failure`.
    """

    kind: BatchKind
    fields: tuple[FieldSpec, ...]
    label: str = "ROW"

    def __init__(self, table: TableStore, *, profile_url_template: str, strict_ids: bool = False):
        self.table = table
        self.profile_url_template = check_url_template(profile_url_template, "profile")
        self.strict_ids = strict_ids

    def write(self, row: Row, columns: ColumnMap, field: str, value: Any) -> None:
        col = columns.get(field)
        if col is None:
            return
        self.table.write_cell(row.grid_row, col, value)

    def write_error(self, row: Row, columns: ColumnMap, field: str, reason: str) -> None:
        self.write(row, columns, field, f"{ERROR_PREFIX}{reason}")

    def write_links(self, row: Row, columns: ColumnMap, steam_id: str) -> None:
        self.write(row, columns, PROFILE_LINK, self.profile_url_template.format(steam_id=steam_id))

    def enrich_row(self, row: Row, columns: ColumnMap, steam_id: str) -> None:
        raise NotImplementedError

    def write_failure(self, row: Row, columns: ColumnMap, reason: str) -> None:
        raise NotImplementedError

    def process_row(self, row: Row, columns: ColumnMap) -> RowOutcome:
        try:
            steam_id = validate_identifier(row.identifier, strict=self.strict_ids)
        except ValidationError as e:
            logging.debug(f"[{self.label}] Row {row.index}: skipped ({e})")
            return RowOutcome.skipped(str(e))

        try:
            # Links do not depend on the provider, so they land even if the fetch fails.
            self.write_links(row, columns, steam_id)
            self.enrich_row(row, columns, steam_id)
        except ProviderError as e:
            logging.warning(f"[{self.label}] Row {row.index} ({steam_id}): {e}")
            self.write_failure(row, columns, str(e))
            return RowOutcome.failed(str(e))
        except Exception as e:
            logging.exception(f"[{self.label}] Row {row.index} ({steam_id}): unexpected error")
            reason = f"{type(e).__name__}: {e}"
            self.write_failure(row, columns, reason)
            return RowOutcome.failed(reason)
        return RowOutcome.success()
