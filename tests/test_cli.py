from __future__ import annotations

import csv
import json
import logging
from pathlib import Path

import pytest
from fakes import TARGET_APP, FakeOwnership, owned

from steam_roster_enricher import cli

SID = "76561197960287930"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)


def _run_dir(tmp_path: Path, credentials: str | None = None) -> Path:
    run_dir = tmp_path / "run"
    run_dir.mkdir()
    if credentials is not None:
        (run_dir / "credentials.yaml").write_text(credentials, encoding="utf-8")
    return run_dir


def test_missing_command_exits() -> None:
    with pytest.raises(SystemExit):
        cli.main([])


def test_ownership_command_enriches_csv(tmp_path: Path, monkeypatch) -> None:
    run_dir = _run_dir(tmp_path, f"steam:\n  api_key: KEY\n  target_app_id: {TARGET_APP}\n")
    table = tmp_path / "roster.csv"
    table.write_text(f"Name,SteamID\nalice,{SID}\n", encoding="utf-8")
    provider = FakeOwnership(owned={SID: owned((TARGET_APP, 120, 60))})
    monkeypatch.setattr(
        "steam_roster_enricher.pipelines.context.build_ownership_client", lambda cfg: provider
    )

    cli.main(
        ["ownership", str(table), "--run-dir", str(run_dir), "--delay", "0", "--auto-continue"]
    )

    with open(table, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[1] == ["alice", SID, "Yes", "1.0", "2.0"]
    progress = json.loads((run_dir / "state" / "progress.json").read_text(encoding="utf-8"))
    assert progress == {}
    assert list((run_dir / "logs").glob("log-*-ownership.log"))


def test_missing_credentials_abort_with_exit_code(tmp_path: Path) -> None:
    run_dir = _run_dir(tmp_path)
    table = tmp_path / "roster.csv"
    table.write_text(f"SteamID\n{SID}\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        cli.main(["ownership", str(table), "--run-dir", str(run_dir), "--auto-pause"])
    assert exc.value.code == 1


def test_bad_link_template_aborts_before_any_row(tmp_path: Path, monkeypatch) -> None:
    run_dir = _run_dir(
        tmp_path,
        "steam:\n  api_key: KEY\n  target_app_id: 440\n"
        "  profile_url_template: https://steamcommunity.com/profiles/{steamid}\n",
    )
    table = tmp_path / "roster.csv"
    table.write_text(f"SteamID,Profile Link\n{SID},\n", encoding="utf-8")
    provider = FakeOwnership()
    monkeypatch.setattr(
        "steam_roster_enricher.pipelines.context.build_ownership_client", lambda cfg: provider
    )

    with pytest.raises(SystemExit) as exc:
        cli.main(["ownership", str(table), "--run-dir", str(run_dir), "--auto-pause"])

    assert exc.value.code == 1
    assert provider.owned_calls == []
    assert table.read_text(encoding="utf-8") == f"SteamID,Profile Link\n{SID},\n"


def test_missing_table_aborts(tmp_path: Path) -> None:
    run_dir = _run_dir(tmp_path, "steam:\n  api_key: KEY\n  target_app_id: 440\n")
    with pytest.raises(SystemExit) as exc:
        cli.main(
            ["ownership", str(tmp_path / "nope.csv"), "--run-dir", str(run_dir), "--auto-pause"]
        )
    assert exc.value.code == 1


def test_status_and_reset(tmp_path: Path, caplog) -> None:
    run_dir = _run_dir(tmp_path)
    state = run_dir / "state"
    state.mkdir()
    (state / "progress.json").write_text(
        json.dumps({"lastProcessedRow:ownership": "3", "currentSheetId:ownership": "t.csv"}),
        encoding="utf-8",
    )

    with caplog.at_level(logging.INFO):
        cli.main(["status", "--run-dir", str(run_dir)])
    assert "ownership: last completed data row 3 on t.csv" in caplog.text

    cli.main(["reset", "ownership", "--run-dir", str(run_dir)])
    assert json.loads((state / "progress.json").read_text(encoding="utf-8")) == {}


def test_resume_without_saved_progress_is_not_an_error(tmp_path: Path) -> None:
    run_dir = _run_dir(tmp_path, "reputation:\n  endpoint: https://rep.example/graphql\n")
    table = tmp_path / "roster.csv"
    table.write_text(f"SteamID\n{SID}\n", encoding="utf-8")

    cli.main(["resume", "reputation", str(table), "--run-dir", str(run_dir), "--auto-pause"])

    assert table.read_text(encoding="utf-8") == f"SteamID\n{SID}\n"
