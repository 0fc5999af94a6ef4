from __future__ import annotations

from collections.abc import Mapping

from fakes import (
    TARGET_APP,
    FakeClock,
    FakeOwnership,
    ScriptedDecision,
    owned,
    provider_error,
)

from steam_roster_enricher.pipelines.batch_driver import BatchStatus, ThrottleGuard
from steam_roster_enricher.pipelines.batch_pipeline import RunStatus, resume_batch, run_batch
from steam_roster_enricher.pipelines.cursor import ProgressCursor, row_key
from steam_roster_enricher.pipelines.ownership import OwnershipRowProcessor
from steam_roster_enricher.schema import BatchKind
from steam_roster_enricher.storage.table_store import DataFrameTableStore


class RecordingStore:
    """In-memory KeyValueStore that keeps every write."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.updates: list[dict[str, str]] = []

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def update(self, values: Mapping[str, str]) -> None:
        self.updates.append(dict(values))
        self.data.update(values)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def committed_rows(self) -> list[int]:
        key = row_key(BatchKind.OWNERSHIP)
        return [int(u[key]) for u in self.updates if key in u]


def _ids(n: int) -> list[str]:
    return [f"7656119800000{i:04d}" for i in range(n)]


def _table(ids: list[str]) -> DataFrameTableStore:
    return DataFrameTableStore.from_rows([["SteamID"]] + [[i] for i in ids], identity="sheet-1")


def _throttle(clock: FakeClock, *, budget: float, every: int, sleeps: list | None = None):
    return ThrottleGuard(
        row_delay_s=0.0 if sleeps is None else 0.5,
        time_budget_s=budget,
        check_every_n=every,
        clock=clock,
        sleep=(sleeps.append if sleeps is not None else None),
    )


def test_failing_row_does_not_stop_the_batch(config) -> None:
    ids = _ids(3)
    provider = FakeOwnership(
        owned={
            ids[0]: owned((TARGET_APP, 60, 6)),
            ids[1]: provider_error("Steam: 502 Bad Gateway"),
            ids[2]: owned((1, 60, 6)),
        }
    )
    table = _table(ids)
    store = RecordingStore()
    decision = ScriptedDecision()

    report = run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=ProgressCursor(store),
        decision=decision,
        throttle=_throttle(FakeClock(), budget=0, every=5),
    )

    assert report.status == RunStatus.COMPLETED
    assert report.outcome.counts == {"success": 2, "failed": 1}
    assert provider.owned_calls == ids
    rows = table.read_all_rows()
    assert rows[1][1:] == ["Yes", 0.1, 1.0]
    assert rows[2][1] == "Error: Steam: 502 Bad Gateway"
    assert rows[3][1:] == ["No", "", ""]
    assert store.committed_rows() == [0, 1, 2]
    # Completion clears the saved position.
    assert store.data == {}
    assert decision.notifications == [report.message]


def test_pause_then_resume_processes_every_row_exactly_once(config) -> None:
    ids = _ids(10)
    clock = FakeClock()
    provider = FakeOwnership(on_call=lambda _: clock.advance(3))
    table = _table(ids)
    store = RecordingStore()
    cursor = ProgressCursor(store)

    first = ScriptedDecision(continue_answers=[False])
    report = run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=cursor,
        decision=first,
        throttle=_throttle(clock, budget=10, every=5),
    )

    assert report.status == RunStatus.PAUSED
    assert report.outcome.paused_at == 4
    assert first.continue_calls == [5]
    assert cursor.require(BatchKind.OWNERSHIP).last_completed_row == 4
    assert provider.owned_calls == ids[:5]
    assert "table row 6" in report.message

    second = ScriptedDecision(continue_answers=[False])
    resumed = resume_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=cursor,
        decision=second,
        throttle=_throttle(clock, budget=10, every=5),
    )

    assert resumed.status == RunStatus.COMPLETED
    assert provider.owned_calls == ids
    # The 5th resumed row is the last one, so no checkpoint question is asked.
    assert second.continue_calls == []
    assert store.committed_rows() == list(range(10))
    assert cursor.load(BatchKind.OWNERSHIP) is None


def test_pause_on_a_blank_row_resumes_after_it(config) -> None:
    ids = _ids(10)
    ids[4] = ""
    clock = FakeClock()
    provider = FakeOwnership(on_call=lambda _: clock.advance(3))
    table = _table(ids)
    store = RecordingStore()
    cursor = ProgressCursor(store)

    first = ScriptedDecision(continue_answers=[False])
    report = run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=cursor,
        decision=first,
        throttle=_throttle(clock, budget=10, every=5),
    )

    # Rows 0-3 cost 12s; the checkpoint lands on the blank row 4.
    assert report.status == RunStatus.PAUSED
    assert report.outcome.paused_at == 4
    assert report.outcome.counts == {"success": 4, "skipped": 1}
    assert cursor.require(BatchKind.OWNERSHIP).next_row == 5

    resumed = resume_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=cursor,
        decision=ScriptedDecision(),
        throttle=_throttle(clock, budget=10, every=5),
    )

    assert resumed.status == RunStatus.COMPLETED
    assert resumed.outcome.counts == {"success": 5}
    assert provider.owned_calls == ids[:4] + ids[5:]
    assert store.committed_rows() == list(range(10))
    assert table.read_all_rows()[5] == ["", "", "", ""]


def test_continuing_restarts_the_budget_window(config) -> None:
    ids = _ids(12)
    clock = FakeClock()
    provider = FakeOwnership(on_call=lambda _: clock.advance(3))
    table = _table(ids)
    decision = ScriptedDecision(continue_answers=[True, True])

    report = run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=ProgressCursor(RecordingStore()),
        decision=decision,
        throttle=_throttle(clock, budget=10, every=4),
    )

    assert report.status == RunStatus.COMPLETED
    # After 4 rows: 12s > 10s. Window restarts, so after 8 rows only 12s again.
    assert decision.continue_calls == [4, 8]


def test_under_budget_never_asks(config) -> None:
    ids = _ids(6)
    clock = FakeClock()
    provider = FakeOwnership(on_call=lambda _: clock.advance(1))
    table = _table(ids)
    decision = ScriptedDecision()

    run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=ProgressCursor(RecordingStore()),
        decision=decision,
        throttle=_throttle(clock, budget=100, every=2),
    )

    assert decision.continue_calls == []


def test_delay_between_rows_but_not_after_the_last(config) -> None:
    ids = _ids(3)
    table = _table(ids)
    sleeps: list[float] = []

    run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, FakeOwnership(), config),
        cursor=ProgressCursor(RecordingStore()),
        decision=ScriptedDecision(),
        throttle=_throttle(FakeClock(), budget=0, every=5, sleeps=sleeps),
    )

    assert sleeps == [0.5, 0.5]


def test_start_and_end_rows_bound_the_range(config) -> None:
    ids = _ids(6)
    provider = FakeOwnership()
    table = _table(ids)
    report = run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=ProgressCursor(RecordingStore()),
        decision=ScriptedDecision(),
        throttle=_throttle(FakeClock(), budget=0, every=5),
        start_row=2,
        end_row=4,
    )
    assert report.outcome.status == BatchStatus.COMPLETED
    assert report.outcome.last_completed_row == 3
    assert provider.owned_calls == ids[2:4]


def test_fresh_run_discards_previous_progress(config) -> None:
    ids = _ids(2)
    provider = FakeOwnership()
    table = _table(ids)
    store = RecordingStore()
    cursor = ProgressCursor(store)
    cursor.commit(BatchKind.OWNERSHIP, "sheet-1", 1)

    run_batch(
        table=table,
        processor=OwnershipRowProcessor(table, provider, config),
        cursor=cursor,
        decision=ScriptedDecision(),
        throttle=_throttle(FakeClock(), budget=0, every=5),
    )

    assert provider.owned_calls == ids


def test_throttle_guard_checkpoints() -> None:
    clock = FakeClock()
    guard = ThrottleGuard(row_delay_s=0, time_budget_s=5, check_every_n=3, clock=clock)
    guard.start()
    assert [n for n in range(1, 10) if guard.checkpoint_due(n)] == [3, 6, 9]
    clock.advance(5)
    assert guard.over_budget() is False
    clock.advance(0.1)
    assert guard.over_budget() is True
    guard.restart_window()
    assert guard.elapsed() == 0
