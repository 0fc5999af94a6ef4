from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import ResumeNotFoundError, SetupError, StateMismatchError
from ..schema import STEAM_ID, BatchKind
from ..storage.table_store import TableStore
from .batch_driver import BatchDriver, BatchOutcome, BatchStatus, ThrottleGuard
from .columns import ColumnMap, ensure_columns
from .common import Row, RowProcessor, rows_from_grid
from .cursor import ProgressCursor
from .decisions import UserDecision


class RunStatus(str, Enum):
    COMPLETED = "completed"
    PAUSED = "paused"
    ABORTED = "aborted"
    NOTHING_TO_RESUME = "nothing_to_resume"


@dataclass(frozen=True)
class BatchReport:
    kind: BatchKind
    status: RunStatus
    message: str
    outcome: BatchOutcome | None = None


def prepare_rows(
    table: TableStore, processor: RowProcessor, decision: UserDecision
) -> tuple[ColumnMap, list[Row]]:
    """Resolve (or create) the output columns and snapshot the rows for this run."""
    columns = ensure_columns(table, processor.fields, pick_column=decision.pick_column)
    table.save()
    rows = rows_from_grid(table.read_all_rows(), columns[STEAM_ID])
    return columns, rows


def _report_outcome(kind: BatchKind, identity: str, outcome: BatchOutcome) -> BatchReport:
    if outcome.status == BatchStatus.PAUSED:
        row = int(outcome.last_completed_row or 0)
        return BatchReport(
            kind,
            RunStatus.PAUSED,
            (
                f"⏸ {kind} batch paused after data row {row} (table row {row + 2}); "
                f"{outcome.format_counts()}. Run `steam-roster-enricher resume {kind} "
                f"<table>` to continue from row {row + 1}."
            ),
            outcome,
        )
    return BatchReport(
        kind,
        RunStatus.COMPLETED,
        (
            f"✔ {kind} batch completed on {identity}: {outcome.format_counts()} "
            f"({outcome.elapsed_s:.0f}s)"
        ),
        outcome,
    )


def run_batch(
    *,
    table: TableStore,
    processor: RowProcessor,
    cursor: ProgressCursor,
    decision: UserDecision,
    throttle: ThrottleGuard,
    start_row: int = 0,
    end_row: int | None = None,
) -> BatchReport:
    """
    Start a fresh batch: any saved progress of the same kind is discarded.

    Ends with exactly one `decision.notify` call.
    """
    kind = processor.kind
    try:
        identity = table.table_identity()
        columns, rows = prepare_rows(table, processor, decision)
        cursor.start(kind, identity)
        driver = BatchDriver(table=table, cursor=cursor, throttle=throttle, decision=decision)
        outcome = driver.run(rows, processor, columns, start=start_row, end=end_row)
        report = _report_outcome(kind, identity, outcome)
    except SetupError as e:
        logging.error(f"[BATCH] {kind}: setup failed: {e}")
        report = BatchReport(kind, RunStatus.ABORTED, f"✖ {kind} batch aborted: {e}")
    decision.notify(report.message)
    return report


def resume_batch(
    *,
    table: TableStore,
    processor: RowProcessor,
    cursor: ProgressCursor,
    decision: UserDecision,
    throttle: ThrottleGuard,
    end_row: int | None = None,
) -> BatchReport:
    """
    Continue from the row after the saved cursor.

    If the cursor was saved against another table, the switch must be confirmed; the row
    position is kept. Ends with exactly one `decision.notify` call.
    """
    kind = processor.kind
    try:
        state = cursor.require(kind)
        identity = table.table_identity()
        if state.table_identity != identity:
            if not decision.confirm_table_switch(
                kind=kind, saved_table=state.table_identity, active_table=identity
            ):
                raise StateMismatchError(state.table_identity, identity)
            state = cursor.rebind(kind, identity)
        columns, rows = prepare_rows(table, processor, decision)
        logging.info(f"[BATCH] {kind}: resuming at data row {state.next_row}")
        driver = BatchDriver(table=table, cursor=cursor, throttle=throttle, decision=decision)
        outcome = driver.run(rows, processor, columns, start=state.next_row, end=end_row)
        report = _report_outcome(kind, identity, outcome)
    except ResumeNotFoundError:
        report = BatchReport(kind, RunStatus.NOTHING_TO_RESUME, f"Nothing to resume for {kind}.")
    except (SetupError, StateMismatchError) as e:
        logging.error(f"[BATCH] {kind}: resume aborted: {e}")
        report = BatchReport(kind, RunStatus.ABORTED, f"✖ {kind} resume aborted: {e}")
    decision.notify(report.message)
    return report


def reset_batch(kind: BatchKind, cursor: ProgressCursor) -> str:
    had = cursor.load(kind) is not None
    cursor.clear(kind)
    return f"Cleared saved {kind} progress." if had else f"No saved {kind} progress."


def describe_progress(cursor: ProgressCursor) -> list[str]:
    lines: list[str] = []
    for kind in BatchKind:
        state = cursor.load(kind)
        if state is None:
            lines.append(f"{kind}: no saved progress")
        else:
            lines.append(
                f"{kind}: last completed data row {state.last_completed_row} "
                f"on {state.table_identity}"
            )
    return lines
