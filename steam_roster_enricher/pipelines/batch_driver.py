from __future__ import annotations

import logging
import time
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..config import ThrottleConfig
from ..schema import BatchKind
from ..storage.table_store import TableStore
from ..utils.progress import Progress
from .columns import ColumnMap
from .common import Row, RowProcessor, RowStatus
from .cursor import ProgressCursor
from .decisions import UserDecision


class ThrottleGuard:
    """
    Fixed delay between rows plus a soft wall-clock budget checked every N rows.

    Elapsed time is measured from `start()` (or the last `restart_window()`), not estimated from
    row counts.
    """

    def __init__(
        self,
        *,
        row_delay_s: float,
        time_budget_s: float,
        check_every_n: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
    ):
        self.row_delay_s = float(row_delay_s)
        self.time_budget_s = float(time_budget_s)
        self.check_every_n = int(check_every_n)
        self._clock = clock
        self._sleep = sleep
        self._window_start = clock()

    @classmethod
    def for_kind(cls, cfg: ThrottleConfig, kind: BatchKind, **kwargs) -> ThrottleGuard:
        return cls(
            row_delay_s=cfg.row_delay_s,
            time_budget_s=cfg.time_budget_s,
            check_every_n=cfg.check_every_n(kind),
            **kwargs,
        )

    def start(self) -> None:
        self._window_start = self._clock()

    restart_window = start

    def elapsed(self) -> float:
        return self._clock() - self._window_start

    def checkpoint_due(self, rows_done: int) -> bool:
        return self.check_every_n > 0 and rows_done > 0 and rows_done % self.check_every_n == 0

    def over_budget(self) -> bool:
        return self.time_budget_s > 0 and self.elapsed() > self.time_budget_s

    def pause_between_rows(self) -> None:
        if self.row_delay_s <= 0:
            return
        # Resolved at call time so tests can monkeypatch time.sleep.
        (self._sleep or time.sleep)(self.row_delay_s)


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    PAUSED = "paused"


@dataclass(frozen=True)
class BatchOutcome:
    status: BatchStatus
    # Last row whose cursor commit happened; None if the range was empty.
    last_completed_row: int | None
    counts: dict[str, int] = field(default_factory=dict)
    elapsed_s: float = 0.0

    @property
    def paused_at(self) -> int | None:
        return self.last_completed_row if self.status == BatchStatus.PAUSED else None

    def format_counts(self) -> str:
        return ", ".join(f"{s.value}={int(self.counts.get(s.value, 0))}" for s in RowStatus)


class BatchDriver:
    """
    Walks a row range strictly in order, delegating each row to a RowProcessor.

    After every row (whatever its outcome) the table is saved and the cursor committed, so a
    resume always starts right after the last row touched.
    """

    def __init__(
        self,
        *,
        table: TableStore,
        cursor: ProgressCursor,
        throttle: ThrottleGuard,
        decision: UserDecision,
    ):
        self.table = table
        self.cursor = cursor
        self.throttle = throttle
        self.decision = decision

    def run(
        self,
        rows: Sequence[Row],
        processor: RowProcessor,
        columns: ColumnMap,
        *,
        start: int,
        end: int | None = None,
    ) -> BatchOutcome:
        kind = processor.kind
        identity = self.table.table_identity()
        stop = len(rows) if end is None else min(int(end), len(rows))
        start = max(0, int(start))
        counts: Counter[str] = Counter()
        last: int | None = None
        t0 = time.monotonic()
        progress = Progress(kind.value.upper(), total=max(0, stop - start))
        self.throttle.start()
        logging.info(f"[BATCH] {kind}: rows {start}..{stop - 1} of {identity}")

        for done, i in enumerate(range(start, stop), start=1):
            outcome = processor.process_row(rows[i], columns)
            counts[outcome.status.value] += 1
            self.table.save()
            self.cursor.commit(kind, identity, i)
            last = i
            progress.maybe_log(done)

            if i + 1 >= stop:
                break
            if self.throttle.checkpoint_due(done) and self.throttle.over_budget():
                elapsed = self.throttle.elapsed()
                if not self.decision.should_continue(kind=kind, rows_done=done, elapsed_s=elapsed):
                    logging.info(f"[BATCH] {kind}: paused after row {i}")
                    return BatchOutcome(
                        BatchStatus.PAUSED, i, dict(counts), time.monotonic() - t0
                    )
                self.throttle.restart_window()
            self.throttle.pause_between_rows()

        self.cursor.clear(kind)
        logging.info(f"[BATCH] {kind}: completed ({sum(counts.values())} rows)")
        return BatchOutcome(BatchStatus.COMPLETED, last, dict(counts), time.monotonic() - t0)
