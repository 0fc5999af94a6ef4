from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Protocol

import pandas as pd

from ..errors import SetupError
from ..utils.utilities import clean_cell, read_csv_grid, write_csv_grid


class TableStore(Protocol):
    """
    A semi-structured table addressed by grid coordinates: row 0 is the header row.
    """

    def table_identity(self) -> str: ...

    def read_all_rows(self) -> list[list[Any]]: ...

    def read_cell(self, row: int, col: int) -> Any: ...

    def write_cell(self, row: int, col: int, value: Any) -> None: ...

    def append_column_header(self, label: str) -> int: ...

    def save(self) -> None: ...


class DataFrameTableStore:
    """
    In-memory table kept as a raw pandas grid (integer column labels, header as row 0).
    """

    def __init__(self, grid: pd.DataFrame, identity: str):
        # object dtype so numeric results (hours, counts) can sit next to text cells.
        self._grid = grid.astype(object).fillna("").reset_index(drop=True)
        self._grid.columns = list(range(self._grid.shape[1]))
        self._identity = identity

    @classmethod
    def from_rows(cls, rows: list[list[Any]], identity: str = "memory") -> DataFrameTableStore:
        if not rows:
            rows = [[]]
        return cls(pd.DataFrame(rows, dtype=object), identity)

    def table_identity(self) -> str:
        return self._identity

    @property
    def width(self) -> int:
        return int(self._grid.shape[1])

    def read_all_rows(self) -> list[list[Any]]:
        return [list(r) for r in self._grid.itertuples(index=False, name=None)]

    def read_cell(self, row: int, col: int) -> Any:
        if row >= len(self._grid) or col >= self.width:
            return ""
        return self._grid.iat[row, col]

    def write_cell(self, row: int, col: int, value: Any) -> None:
        if row < 0 or row >= len(self._grid):
            raise IndexError(f"row {row} outside table (rows={len(self._grid)})")
        while col >= self.width:
            self._grid[self.width] = ""
        self._grid.iat[row, col] = "" if value is None else value

    def append_column_header(self, label: str) -> int:
        col = self.width
        self._grid[col] = ""
        self._grid.iat[0, col] = label
        return col

    def save(self) -> None:
        return None


class CsvTableStore(DataFrameTableStore):
    """
    A CSV file on disk. `save()` rewrites the whole file atomically.
    """

    def __init__(self, path: str | Path):
        p = Path(path)
        if not p.exists():
            raise SetupError(f"Table not found: {p}")
        self.path = p.resolve()
        try:
            grid = read_csv_grid(self.path)
        except pd.errors.EmptyDataError:
            grid = pd.DataFrame()
        except (pd.errors.ParserError, csv.Error, UnicodeDecodeError) as e:
            raise SetupError(f"Table is not a readable CSV: {p} ({e})") from e
        if grid.empty:
            raise SetupError(f"Table has no header row: {p}")
        super().__init__(grid, identity=str(self.path))

    def save(self) -> None:
        write_csv_grid(self._grid, self.path)


def header_row(rows: list[list[Any]]) -> list[str]:
    return [clean_cell(v) for v in (rows[0] if rows else [])]
