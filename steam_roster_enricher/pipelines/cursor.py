from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import ResumeNotFoundError
from ..schema import BatchKind
from ..storage.kv_store import KeyValueStore


def row_key(kind: BatchKind | str) -> str:
    return f"lastProcessedRow:{kind}"


def sheet_key(kind: BatchKind | str) -> str:
    return f"currentSheetId:{kind}"


@dataclass(frozen=True)
class CursorState:
    batch_kind: BatchKind
    table_identity: str
    last_completed_row: int

    @property
    def next_row(self) -> int:
        return self.last_completed_row + 1


class ProgressCursor:
    """
    Durable "last completed row" per batch kind, bound to one table.

    Commits are monotonic for a given table: a lower row index never overwrites a higher one.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def start(self, kind: BatchKind, table_identity: str) -> None:
        self.clear(kind)
        logging.info(f"[CURSOR] Started fresh {kind} progress for {table_identity}")

    def commit(self, kind: BatchKind, table_identity: str, row_index: int) -> None:
        current = self.load(kind)
        if (
            current is not None
            and current.table_identity == table_identity
            and row_index < current.last_completed_row
        ):
            logging.debug(
                f"[CURSOR] Ignoring out-of-order commit {row_index} < "
                f"{current.last_completed_row} ({kind})"
            )
            return
        self.store.update(
            {sheet_key(kind): table_identity, row_key(kind): str(int(row_index))}
        )

    def load(self, kind: BatchKind) -> CursorState | None:
        raw_row = self.store.get(row_key(kind))
        table = self.store.get(sheet_key(kind))
        if raw_row is None or table is None:
            return None
        try:
            row = int(raw_row)
        except ValueError:
            logging.warning(f"[CURSOR] Discarding corrupt {kind} cursor value {raw_row!r}")
            return None
        return CursorState(batch_kind=BatchKind(kind), table_identity=table, last_completed_row=row)

    def require(self, kind: BatchKind) -> CursorState:
        state = self.load(kind)
        if state is None:
            raise ResumeNotFoundError(f"No saved {kind} progress to resume")
        return state

    def rebind(self, kind: BatchKind, table_identity: str) -> CursorState:
        """Point an existing cursor at another table, keeping its row position."""
        state = self.require(kind)
        self.store.update({sheet_key(kind): table_identity})
        logging.info(
            f"[CURSOR] Rebound {kind} progress from {state.table_identity} to {table_identity} "
            f"(last row {state.last_completed_row})"
        )
        return CursorState(
            batch_kind=state.batch_kind,
            table_identity=table_identity,
            last_completed_row=state.last_completed_row,
        )

    def clear(self, kind: BatchKind) -> None:
        self.store.delete(row_key(kind))
        self.store.delete(sheet_key(kind))
