from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from ..schema import BatchKind, FieldSpec
from ..utils.utilities import column_index, column_letter


class UserDecision(Protocol):
    """
    Synchronous checkpoints where a batch run needs a human (or a script) to decide.
    """

    def should_continue(self, *, kind: BatchKind, rows_done: int, elapsed_s: float) -> bool: ...

    def confirm_table_switch(
        self, *, kind: BatchKind, saved_table: str, active_table: str
    ) -> bool: ...

    def pick_column(self, spec: FieldSpec, header: Sequence[str]) -> int | None: ...

    def notify(self, message: str) -> None: ...


class AutoDecision:
    """Non-interactive answers fixed up front (CLI flags, cron jobs)."""

    def __init__(
        self,
        *,
        continue_on_budget: bool = True,
        confirm_switch: bool = False,
        id_column: int | None = None,
    ):
        self.continue_on_budget = continue_on_budget
        self.confirm_switch = confirm_switch
        self.id_column = id_column

    def should_continue(self, *, kind: BatchKind, rows_done: int, elapsed_s: float) -> bool:
        logging.info(
            f"[BATCH] {kind}: time budget reached after {rows_done} rows ({elapsed_s:.0f}s); "
            f"{'continuing' if self.continue_on_budget else 'pausing'}"
        )
        return self.continue_on_budget

    def confirm_table_switch(self, *, kind: BatchKind, saved_table: str, active_table: str) -> bool:
        return self.confirm_switch

    def pick_column(self, spec: FieldSpec, header: Sequence[str]) -> int | None:
        return self.id_column

    def notify(self, message: str) -> None:
        logging.info(message)


def _yes(answer: str, *, default: bool) -> bool:
    a = answer.strip().casefold()
    if not a:
        return default
    return a in {"y", "yes"}


class ConsoleDecision(AutoDecision):
    """Ask on stdin unless an answer was preset (identifier column, table switch)."""

    def __init__(
        self,
        *,
        prompt: Callable[[str], str] = input,
        id_column: int | None = None,
        confirm_switch: bool = False,
    ):
        super().__init__(id_column=id_column, confirm_switch=confirm_switch)
        self.prompt = prompt

    def should_continue(self, *, kind: BatchKind, rows_done: int, elapsed_s: float) -> bool:
        answer = self.prompt(
            f"{kind}: {rows_done} rows processed in {elapsed_s:.0f}s. Continue? [Y/n] "
        )
        return _yes(answer, default=True)

    def confirm_table_switch(self, *, kind: BatchKind, saved_table: str, active_table: str) -> bool:
        if self.confirm_switch:
            return True
        answer = self.prompt(
            f"Saved {kind} progress belongs to {saved_table}.\n"
            f"Continue it on {active_table} instead? [y/N] "
        )
        return _yes(answer, default=False)

    def pick_column(self, spec: FieldSpec, header: Sequence[str]) -> int | None:
        if self.id_column is not None:
            return self.id_column
        listing = ", ".join(f"{column_letter(i)}={h!r}" for i, h in enumerate(header))
        while True:
            answer = self.prompt(
                f"No '{spec.default_label}' column found ({listing}).\n"
                "Column letter (blank to cancel): "
            ).strip()
            if not answer:
                return None
            try:
                return column_index(answer)
            except ValueError:
                print(f"Not a column letter: {answer}")
