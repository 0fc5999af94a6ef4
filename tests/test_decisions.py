from __future__ import annotations

from steam_roster_enricher.pipelines.decisions import AutoDecision, ConsoleDecision
from steam_roster_enricher.schema import STEAM_ID_FIELD, BatchKind


def _scripted(*answers: str):
    queue = list(answers)
    asked: list[str] = []

    def prompt(text: str) -> str:
        asked.append(text)
        return queue.pop(0)

    return prompt, asked


def test_console_continue_defaults_to_yes() -> None:
    prompt, _ = _scripted("", "n", "YES")
    d = ConsoleDecision(prompt=prompt)
    kw = {"kind": BatchKind.OWNERSHIP, "rows_done": 20, "elapsed_s": 300.0}
    assert d.should_continue(**kw) is True
    assert d.should_continue(**kw) is False
    assert d.should_continue(**kw) is True


def test_console_table_switch_defaults_to_no() -> None:
    prompt, asked = _scripted("", "y")
    d = ConsoleDecision(prompt=prompt)
    kw = {"kind": BatchKind.REPUTATION, "saved_table": "a.csv", "active_table": "b.csv"}
    assert d.confirm_table_switch(**kw) is False
    assert d.confirm_table_switch(**kw) is True
    assert "a.csv" in asked[0]


def test_preconfirmed_switch_does_not_prompt() -> None:
    prompt, asked = _scripted()
    d = ConsoleDecision(prompt=prompt, confirm_switch=True)
    assert d.confirm_table_switch(
        kind=BatchKind.OWNERSHIP, saved_table="a", active_table="b"
    ) is True
    assert asked == []


def test_console_pick_column_retries_until_letter_or_blank(capsys) -> None:
    prompt, asked = _scripted("3", "b")
    d = ConsoleDecision(prompt=prompt)
    assert d.pick_column(STEAM_ID_FIELD, ["Name", "Account"]) == 1
    assert len(asked) == 2
    assert "Not a column letter" in capsys.readouterr().out

    prompt, _ = _scripted("")
    assert ConsoleDecision(prompt=prompt).pick_column(STEAM_ID_FIELD, ["Name"]) is None


def test_auto_decision_answers() -> None:
    d = AutoDecision(continue_on_budget=False, id_column=4)
    assert d.should_continue(kind=BatchKind.OWNERSHIP, rows_done=1, elapsed_s=1) is False
    assert d.pick_column(STEAM_ID_FIELD, []) == 4
    switch = d.confirm_table_switch(kind=BatchKind.OWNERSHIP, saved_table="a", active_table="b")
    assert switch is False
