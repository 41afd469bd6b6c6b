# ==============================================================================
# test_pgn_parser.py  –  PGN tags, move-text cleanup and clocks
# ==============================================================================

import pytest

from chesstab.utils.pgn_parser import (
    clean_movetext,
    count_full_moves,
    extract_clocks,
    numbered_moves,
    parse_clock,
    parse_pgn_tags,
    san_moves,
    split_pgn,
)

PGN = """[Event "Live Chess"]
[Site "Chess.com"]
[Result "1-0"]
[TimeControl "180+2"]
[StartTime "23:59:00"]
[EndTime "00:01:30"]

1. e4 {[%clk 0:03:01.9]} 1... e5 {[%clk 0:03:01]} 2. Nf3 {[%clk 0:02:59.5]} 2... Nc6 {[%clk 0:02:58]} 1-0
"""


def test_parse_pgn_tags_keeps_case():
    tags = parse_pgn_tags(PGN)

    assert tags["Event"] == "Live Chess"
    assert tags["TimeControl"] == "180+2"
    assert "event" not in tags


def test_parse_pgn_tags_unescapes_quotes():
    tags = parse_pgn_tags('[White "The \\"Kid\\""]')
    assert tags == {"White": 'The "Kid"'}


def test_parse_pgn_tags_empty_input():
    assert parse_pgn_tags(None) == {}
    assert parse_pgn_tags("1. e4 e5") == {}


def test_split_pgn():
    tags, movetext = split_pgn(PGN)

    assert tags["Result"] == "1-0"
    assert movetext.startswith("1. e4 {[%clk 0:03:01.9]}")
    assert "[Event" not in movetext


def test_semicolon_comment_ends_at_line_break():
    pgn = '[Result "1-0"]\n\n1. e4 ; best by test\n1... e5 2. Nf3 Nc6 1-0\n'
    _, movetext = split_pgn(pgn)

    assert san_moves(movetext) == ["e4", "e5", "Nf3", "Nc6"]
    assert numbered_moves(movetext) == "1. e4 1. e5 2. Nf3 Nc6"
    assert count_full_moves(movetext) == 2


def test_san_moves_basic():
    assert san_moves("1. e4 e5 2. Nf3 {comment} Nc6 1-0") == ["e4", "e5", "Nf3", "Nc6"]


def test_san_moves_drops_annotations_and_black_numbers():
    _, movetext = split_pgn(PGN)
    assert san_moves(movetext) == ["e4", "e5", "Nf3", "Nc6"]
    assert san_moves("1. e4 $1 e5 ; line comment\n2. Qh5?! (2. Nf3 Nc6) Nc6 *") == [
        "e4",
        "e5",
        "Qh5?!",
        "Nc6",
    ]


def test_numbered_moves_normalizes_black_numbers():
    _, movetext = split_pgn(PGN)
    assert numbered_moves(movetext) == "1. e4 1. e5 2. Nf3 2. Nc6"


def test_clean_movetext_removes_result_and_tags():
    assert clean_movetext("1. e4 [%clk 0:01:00] e5 1/2-1/2") == "1. e4 e5"


@pytest.mark.parametrize(
    "movetext,expected",
    [
        ("1. e4 e5 2. Nf3 Nc6 3. Bb5", 3),
        ("1. e4 {[%clk 0:02:59.9]} 1... e5 {[%clk 0:02:58.1]}", 1),
        ("", None),
        (None, None),
    ],
)
def test_count_full_moves(movetext, expected):
    assert count_full_moves(movetext) == expected


def test_extract_clocks():
    _, movetext = split_pgn(PGN)
    assert extract_clocks(movetext) == ["0:03:01.9", "0:03:01", "0:02:59.5", "0:02:58"]
    assert extract_clocks(None) == []


@pytest.mark.parametrize(
    "value,expected",
    [
        ("0:03:01.9", 181.9),
        ("1:00:00", 3600.0),
        ("5:00", 300.0),
        ("23:59:00", 86340.0),
        ("12", None),
        ("a:b:c", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_clock(value, expected):
    result = parse_clock(value)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)
