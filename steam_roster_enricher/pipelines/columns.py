from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator

from ..errors import SetupError
from ..schema import FieldSpec
from ..storage.table_store import TableStore, header_row
from ..utils.utilities import clean_cell, column_letter

# Called when an input column cannot be found: (field, header) -> column index, or None to abort.
PickColumn = Callable[[FieldSpec, Sequence[str]], "int | None"]


@dataclass(frozen=True)
class ColumnMap(Mapping[str, int]):
    """Logical field name -> physical column index, fixed for the duration of a run."""

    _by_name: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", MappingProxyType(dict(self._by_name)))

    def __getitem__(self, name: str) -> int:
        return self._by_name[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def describe(self) -> str:
        return ", ".join(f"{k}={column_letter(v)}" for k, v in self._by_name.items())


@dataclass(frozen=True)
class ColumnResolution:
    columns: ColumnMap
    # (column index, header label) pairs that must be created, in allocation order.
    appended: list[tuple[int, str]]


def resolve_columns(
    header: Sequence[object],
    fields: Sequence[FieldSpec],
    *,
    pick_column: PickColumn | None = None,
) -> ColumnResolution:
    """
    Map each field to a header cell, or allocate a new column after all resolved indices.

    A cell already claimed by an earlier field is not offered to later fields. Optional fields
    are skipped when absent; input fields fall back to `pick_column`.
    """
    cells = [clean_cell(h) for h in header]
    claimed: set[int] = set()
    by_name: dict[str, int] = {}
    appended: list[tuple[int, str]] = []
    next_free = len(cells)

    for spec in fields:
        idx = next(
            (i for i, h in enumerate(cells) if i not in claimed and spec.matches(h)),
            None,
        )
        if idx is None and spec.is_input:
            picked = pick_column(spec, cells) if pick_column is not None else None
            if picked is None:
                raise SetupError(f"No column found for '{spec.default_label}'")
            if picked < 0 or picked >= len(cells) or picked in claimed:
                raise SetupError(f"Column {picked} cannot be used for '{spec.default_label}'")
            idx = int(picked)
        if idx is None:
            if spec.optional:
                continue
            idx = next_free
            appended.append((idx, spec.default_label))
        claimed.add(idx)
        by_name[spec.name] = idx
        next_free = max(next_free, idx + 1)

    return ColumnResolution(columns=ColumnMap(by_name), appended=appended)


def ensure_columns(
    table: TableStore,
    fields: Sequence[FieldSpec],
    *,
    pick_column: PickColumn | None = None,
) -> ColumnMap:
    """Resolve against the table's header row and write labels for any newly allocated columns."""
    res = resolve_columns(header_row(table.read_all_rows()), fields, pick_column=pick_column)
    for idx, label in res.appended:
        got = table.append_column_header(label)
        if got != idx:
            raise SetupError(
                f"Expected new column '{label}' at {column_letter(idx)}, table placed it at "
                f"{column_letter(got)}"
            )
        logging.info(f"[COLUMNS] Added column {column_letter(idx)}: {label}")
    logging.info(f"[COLUMNS] {res.columns.describe()}")
    return res.columns
