# ==============================================================================
# test_run_callback_enrichment.py  –  Batch reconciliation into the sheet
#   Uses a stub client (no HTTP) and the in-memory sheet.
# ==============================================================================

from unittest.mock import MagicMock

import pytest

from chesstab.db.game_sheet import MemoryGameSheet
from chesstab.enrichment.headers import CALLBACK, DERIVED, RAW, Header, HeaderSelection
from chesstab.pipeline.run_callback_enrichment import (
    ConfigurationError,
    run_callback_enrichment,
    validate_batch_size,
)
from chesstab.utils.identifiers import GameReference

HEADERS = HeaderSelection(
    [
        Header(RAW, "url"),
        Header(CALLBACK, "game_id"),
        Header(CALLBACK, "white.country"),
        Header(DERIVED, "plies"),
    ]
)

URL_111 = "https://www.chess.com/game/live/111"
URL_222 = "https://www.chess.com/game/live/222"


class StubClient:
    def __init__(self, records):
        self.records = records
        self.calls = []

    def fetch_many(self, identifiers, batch_size=5):
        self.calls.append((list(identifiers), batch_size))
        return {i: self.records[i] for i in identifiers if i in self.records}


def _sheet(rows=None):
    return MemoryGameSheet(HEADERS.labels, rows)


def test_end_to_end_update_and_append():
    sheet = _sheet([[URL_111, "", "", 80]])
    client = StubClient({"111": {"white": {"country": "US"}}, "222": {"white": {"country": "NO"}}})

    result = run_callback_enrichment(
        f"{URL_111}\n222", sheet, HEADERS, client=client, batch_size=5, update_existing=True
    )

    assert client.calls == [(["111", "222"], 5)]
    assert sheet.rows == [
        [URL_111, "111", "US", 80],
        [URL_222, "222", "NO", ""],
    ]
    assert (result.updated, result.added) == (1, 1)
    assert result.summary == "Successfully processed 2 games. Updated: 1, Added: 1"
    # one block write for updates + one append
    assert sheet.writes == 2


def test_without_update_flag_only_empty_cells_are_filled():
    sheet = _sheet([[URL_111, "111", "", ""]])
    client = StubClient({"111": {"white": {"country": "US"}}})

    first = run_callback_enrichment([URL_111], sheet, HEADERS, client=client)
    assert sheet.rows == [[URL_111, "111", "US", ""]]
    assert (first.updated, first.added) == (1, 0)

    sheet.rows[0][2] = "CA"  # manual edit survives
    second = run_callback_enrichment([URL_111], sheet, HEADERS, client=client)

    assert sheet.rows == [[URL_111, "111", "CA", ""]]
    assert (second.updated, second.added) == (0, 0)
    assert sheet.writes == 1


def test_update_flag_overwrites_filled_cells():
    sheet = _sheet([[URL_111, "111", "CA", ""]])
    client = StubClient({"111": {"white": {"country": "US"}}})

    result = run_callback_enrichment([URL_111], sheet, HEADERS, client=client, update_existing=True)

    assert sheet.rows[0][2] == "US"
    assert result.updated == 1


def test_unchanged_rows_are_not_counted_or_written():
    sheet = _sheet([[URL_111, "111", "US", ""]])
    client = StubClient({"111": {"white": {"country": "US"}}})

    result = run_callback_enrichment([URL_111], sheet, HEADERS, client=client, update_existing=True)

    assert result.updated == 0
    assert sheet.writes == 0


def test_missing_fetch_leaves_sheet_untouched():
    sheet = _sheet([[URL_111, "", "", ""]])
    client = StubClient({})

    result = run_callback_enrichment(["111", "222"], sheet, HEADERS, client=client)

    assert sheet.rows == [[URL_111, "", "", ""]]
    assert result.summary == "Successfully processed 0 games. Updated: 0, Added: 0"


def test_duplicate_rows_for_same_game_are_all_updated():
    sheet = _sheet([[URL_111, "", "", ""], [URL_111 + "?ref=x", "", "", ""], ["", "", "", ""]])
    client = StubClient({"111": {"white": {"country": "US"}}})

    result = run_callback_enrichment([GameReference("111", URL_111)], sheet, HEADERS, client=client)

    assert [row[2] for row in sheet.rows] == ["US", "US", ""]
    assert (result.updated, result.added) == (2, 0)


@pytest.mark.parametrize(
    "headers,message",
    [
        (HeaderSelection([Header(RAW, "url"), Header(DERIVED, "plies")]), "callback"),
        (HeaderSelection([Header(CALLBACK, "game_id"), Header(RAW, "link")]), "url"),
    ],
)
def test_configuration_errors_abort_before_fetch(headers, message):
    client = MagicMock()
    sheet = MagicMock()

    with pytest.raises(ConfigurationError, match=message):
        run_callback_enrichment(["111"], sheet, headers, client=client)

    client.fetch_many.assert_not_called()
    sheet.read_rows.assert_not_called()


def test_no_valid_references_skips_fetch():
    client = MagicMock()
    result = run_callback_enrichment("nothing here", _sheet(), HEADERS, client=client)

    assert (result.fetched, result.updated, result.added) == (0, 0, 0)
    client.fetch_many.assert_not_called()


@pytest.mark.parametrize("value,expected", [(None, 5), ("", 5), ("1", 1), (20, 20)])
def test_validate_batch_size(value, expected):
    assert validate_batch_size(value) == expected


@pytest.mark.parametrize("value", [0, 21, "abc", "-3"])
def test_validate_batch_size_rejects(value):
    with pytest.raises(ValueError):
        validate_batch_size(value)
