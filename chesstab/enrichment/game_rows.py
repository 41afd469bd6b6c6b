# ==============================================================================
# game_rows.py  –  Primary game record → row values (raw + derived columns)
# ==============================================================================

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from chesstab.enrichment.derived_fields import GameInput, compute_derived
from chesstab.enrichment.headers import DERIVED, RAW, HeaderSelection, lookup_path, to_cell
from chesstab.utils.config import load_settings


def build_game_row(
    record: Mapping[str, Any], headers: HeaderSelection, timezone: Optional[str] = None
) -> List[Any]:
    """Raw and derived headers are filled; callback headers are left empty.

    `timezone` defaults to CHESSTAB_TIMEZONE.
    """
    game = GameInput.from_record(record, timezone or load_settings().timezone)
    row: List[Any] = []
    for header in headers:
        if header.source == RAW:
            row.append(to_cell(lookup_path(record, header.field)))
        elif header.source == DERIVED:
            row.append(to_cell(compute_derived(header.field, game)))
        else:
            row.append("")
    return row


def build_game_rows(
    records: Iterable[Mapping[str, Any]], headers: HeaderSelection, timezone: Optional[str] = None
) -> List[List[Any]]:
    return [build_game_row(record, headers, timezone) for record in records]
