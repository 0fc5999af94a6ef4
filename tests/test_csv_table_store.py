from __future__ import annotations

from pathlib import Path

import pytest

from steam_roster_enricher.errors import SetupError
from steam_roster_enricher.storage.table_store import CsvTableStore, DataFrameTableStore
from steam_roster_enricher.utils.utilities import column_index, column_letter


def test_ids_stay_text_and_blank_lines_keep_their_row(tmp_path: Path) -> None:
    p = tmp_path / "t.csv"
    p.write_text('SteamID,Note\n76561197960287930,\n"",x\n00042,\n', encoding="utf-8")

    store = CsvTableStore(p)
    rows = store.read_all_rows()

    assert rows[1] == ["76561197960287930", ""]
    assert rows[2] == ["", "x"]
    assert rows[3][0] == "00042"
    assert store.table_identity() == str(p.resolve())


def test_save_writes_back_without_nan(tmp_path: Path) -> None:
    p = tmp_path / "t.csv"
    p.write_text("SteamID\n1\n2\n", encoding="utf-8")
    store = CsvTableStore(p)
    col = store.append_column_header("Owns Game")
    store.write_cell(1, col, "Yes")
    store.write_cell(2, col + 1, 2.5)
    store.save()

    assert p.read_text(encoding="utf-8").splitlines() == [
        "SteamID,Owns Game,",
        "1,Yes,",
        "2,,2.5",
    ]
    assert not (tmp_path / "t.csv.tmp").exists()


def test_ragged_rows_are_padded_to_the_widest_row(tmp_path: Path) -> None:
    p = tmp_path / "t.csv"
    p.write_text("SteamID\n76561197960287930,note\n2\n", encoding="utf-8")

    store = CsvTableStore(p)

    assert store.read_all_rows() == [["SteamID", ""], ["76561197960287930", "note"], ["2", ""]]
    store.save()
    assert p.read_text(encoding="utf-8").splitlines() == [
        "SteamID,",
        "76561197960287930,note",
        "2,",
    ]


def test_missing_or_empty_table(tmp_path: Path) -> None:
    with pytest.raises(SetupError):
        CsvTableStore(tmp_path / "missing.csv")
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(SetupError):
        CsvTableStore(empty)


def test_write_outside_rows_raises() -> None:
    store = DataFrameTableStore.from_rows([["SteamID"], ["1"]])
    with pytest.raises(IndexError):
        store.write_cell(5, 0, "x")
    assert store.read_cell(5, 0) == ""


def test_column_letters() -> None:
    assert [column_letter(i) for i in (0, 25, 26, 51, 702)] == ["A", "Z", "AA", "AZ", "AAA"]
    assert column_index("aa") == 26
    with pytest.raises(ValueError):
        column_index("1")
