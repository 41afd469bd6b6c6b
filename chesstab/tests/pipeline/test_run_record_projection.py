# ==============================================================================
# test_run_record_projection.py  –  Game records → raw/derived sheet columns
#   In-memory sheet; records shaped like a monthly archive export.
# ==============================================================================

import json
from unittest.mock import MagicMock

import pytest

from chesstab.db.game_sheet import MemoryGameSheet
from chesstab.enrichment.headers import CALLBACK, DERIVED, RAW, Header, HeaderSelection
from chesstab.pipeline.run_callback_enrichment import ConfigurationError
from chesstab.pipeline.run_record_projection import load_game_records, run_record_projection

HEADERS = HeaderSelection(
    [
        Header(RAW, "url"),
        Header(RAW, "white.username"),
        Header(CALLBACK, "white.country"),
        Header(DERIVED, "result_numeric"),
        Header(DERIVED, "moves_count"),
    ]
)

URL_111 = "https://www.chess.com/game/live/111"
URL_222 = "https://www.chess.com/game/live/222"

PGN = '[Event "Live Chess"]\n[Result "1-0"]\n\n1. e4 e5 2. Nf3 Nc6 3. Bb5 1-0\n'


def _record(url, username="alice", pgn=PGN):
    return {"url": url, "white": {"username": username}, "pgn": pgn}


def test_end_to_end_update_and_append():
    sheet = MemoryGameSheet(HEADERS.labels, [[URL_111, "", "US", "", ""]])

    result = run_record_projection(
        [_record(URL_111), _record(URL_222, "bob")], sheet, HEADERS, timezone="UTC"
    )

    assert sheet.rows == [
        [URL_111, "alice", "US", 1, 3],
        [URL_222, "bob", "", 1, 3],
    ]
    assert (result.total, result.updated, result.added) == (2, 1, 1)
    assert result.summary == "Projected 2 games. Updated: 1, Added: 1"
    # one block write for updates + one append
    assert sheet.writes == 2


def test_filled_cells_kept_without_update_flag():
    sheet = MemoryGameSheet(HEADERS.labels, [[URL_111, "manual", "", "", ""]])

    result = run_record_projection([_record(URL_111)], sheet, HEADERS, timezone="UTC")

    assert sheet.rows[0][:2] == [URL_111, "manual"]
    assert sheet.rows[0][3:] == [1, 3]
    assert result.updated == 1


def test_update_flag_overwrites_filled_cells_but_not_callback_cells():
    sheet = MemoryGameSheet(HEADERS.labels, [[URL_111, "manual", "US", 0, 9]])

    result = run_record_projection(
        [_record(URL_111)], sheet, HEADERS, timezone="UTC", update_existing=True
    )

    assert sheet.rows == [[URL_111, "alice", "US", 1, 3]]
    assert result.updated == 1


def test_unchanged_rows_are_not_written():
    sheet = MemoryGameSheet(HEADERS.labels, [[URL_111, "alice", "", "1", "3"]])

    result = run_record_projection(
        [_record(URL_111)], sheet, HEADERS, timezone="UTC", update_existing=True
    )

    assert (result.updated, result.added) == (0, 0)
    assert sheet.writes == 0


def test_semicolon_comment_in_record_keeps_move_count():
    pgn = '[Result "1-0"]\n\n1. e4 ; king pawn\ne5 2. Nf3 Nc6 3. Bb5 1-0\n'
    sheet = MemoryGameSheet(HEADERS.labels)

    run_record_projection([_record(URL_111, pgn=pgn)], sheet, HEADERS, timezone="UTC")

    assert sheet.rows[0][4] == 3


def test_records_without_url_are_appended():
    sheet = MemoryGameSheet(HEADERS.labels, [[URL_111, "", "", "", ""]])

    result = run_record_projection([{"pgn": PGN}], sheet, HEADERS, timezone="UTC")

    assert sheet.rows[1] == ["", "", "", 1, 3]
    assert result.added == 1


def test_callback_only_selection_is_rejected():
    sheet = MagicMock()
    headers = HeaderSelection([Header(CALLBACK, "game_id")])

    with pytest.raises(ConfigurationError, match="raw or derived"):
        run_record_projection([_record(URL_111)], sheet, headers)

    sheet.read_rows.assert_not_called()


def test_load_game_records_accepts_list_and_archive(tmp_path):
    as_list = tmp_path / "games.json"
    as_list.write_text(json.dumps([_record(URL_111)]))
    archive = tmp_path / "archive.json"
    archive.write_text(json.dumps({"games": [_record(URL_111), "junk", _record(URL_222)]}))

    assert [r["url"] for r in load_game_records(as_list)] == [URL_111]
    assert [r["url"] for r in load_game_records(archive)] == [URL_111, URL_222]


@pytest.mark.parametrize("content", ["not json", '"a string"', '{"games": 3}'])
def test_load_game_records_rejects_bad_files(tmp_path, content):
    path = tmp_path / "games.json"
    path.write_text(content)

    with pytest.raises(ValueError):
        load_game_records(path)


def test_load_game_records_missing_file(tmp_path):
    with pytest.raises(ValueError, match="Cannot read"):
        load_game_records(tmp_path / "missing.json")
