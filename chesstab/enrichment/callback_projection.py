# ==============================================================================
# callback_projection.py  –  Callback record → row values
# ------------------------------------------------------------------------------
# Resolution order for a callback-sourced header:
#   1. game_id                      → the identifier itself
#   2. pgn_headers                  → PGN tag block re-serialised as JSON text
#   3. time_control_initial / _inc  → parsed time-control components
#   4. anything else                → dotted path lookup on the record
# Non-callback headers project to "".
# ==============================================================================

from __future__ import annotations

import json
from typing import Any, List, Mapping, Optional

from chesstab.enrichment.headers import CALLBACK, HeaderSelection, lookup_path, to_cell
from chesstab.utils.logging_utils import setup_logger
from chesstab.utils.pgn_parser import parse_pgn_tags
from chesstab.utils.time_control import parse_time_control

LOGGER = setup_logger("callback_projection")

# Callback payloads either carry these at top level or under "game".
_PGN_PATHS = ("pgn", "game.pgn")
_TIME_CONTROL_PATHS = ("time_control", "timeControl", "game.timeControl")


def _first_present(record: Mapping[str, Any], paths) -> Any:
    for path in paths:
        value = lookup_path(record, path)
        if value not in (None, ""):
            return value
    return None


def _pgn_headers(record: Mapping[str, Any]) -> str:
    pgn = _first_present(record, _PGN_PATHS)
    if not isinstance(pgn, str):
        return ""
    try:
        tags = parse_pgn_tags(pgn)
    except Exception as exc:  # malformed PGN only empties this cell
        LOGGER.debug("PGN tag parse failed: %s", exc)
        return ""
    return json.dumps(tags, ensure_ascii=False) if tags else ""


def callback_value(record: Optional[Mapping[str, Any]], identifier: str, field: str) -> Any:
    """Resolve one callback field to a cell value."""
    if field == "game_id":
        return identifier
    if not record:
        return ""
    if field == "pgn_headers":
        return _pgn_headers(record)
    if field in ("time_control_initial", "time_control_increment"):
        initial, increment = parse_time_control(_first_present(record, _TIME_CONTROL_PATHS))
        return to_cell(initial if field == "time_control_initial" else increment)
    return to_cell(lookup_path(record, field))


def project_callback_row(
    record: Optional[Mapping[str, Any]],
    identifier: str,
    headers: HeaderSelection,
) -> List[Any]:
    """One value per header; only callback headers are filled."""
    return [
        callback_value(record, identifier, h.field) if h.source == CALLBACK else ""
        for h in headers
    ]
