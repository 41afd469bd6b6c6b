#!/usr/bin/env python3
# ==============================================================================
# run_record_projection.py
# ------------------------------------------------------------------------------
# Writes raw and derived columns of the game sheet from primary game records
# (e.g. a monthly archive export: {"games": [...]}).
#
# Workflow:
#   1. Check the header selection (≥1 raw or derived header)
#   2. Project every record with `build_game_row`
#   3. Rows whose url id matches a record → overwrite raw/derived cells
#      (all of them with update_existing, else only the empty ones)
#   4. Records that matched no row → append new rows
# Sheet I/O is one block write for updates and one append for new rows.
# ==============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from chesstab.db.game_sheet import GameSheet
from chesstab.enrichment.game_rows import build_game_row
from chesstab.enrichment.headers import DERIVED, RAW, HeaderSelection, lookup_path
from chesstab.pipeline.run_callback_enrichment import ConfigurationError, merge_cells
from chesstab.utils.identifiers import extract_identifier
from chesstab.utils.logging_utils import setup_logger

LOGGER = setup_logger("run_record_projection")

SUMMARY = "Projected {total} games. Updated: {updated}, Added: {added}"


@dataclass
class ProjectionResult:
    total: int
    updated: int
    added: int

    @property
    def summary(self) -> str:
        return SUMMARY.format(total=self.total, updated=self.updated, added=self.added)


def load_game_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Read game records from a JSON file.

    Accepts a list of records or an archive object with a ``games`` list.
    Entries that are not objects are skipped.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValueError(f"Cannot read game records from {path}") from exc

    if isinstance(data, Mapping):
        data = data.get("games", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} holds neither a list of games nor a 'games' list")

    records = [entry for entry in data if isinstance(entry, Mapping)]
    if len(records) != len(data):
        LOGGER.warning("Skipped %d non-object entries in %s", len(data) - len(records), path)
    return records


def run_record_projection(
    records: Sequence[Mapping[str, Any]],
    sheet: GameSheet,
    headers: HeaderSelection,
    timezone: Optional[str] = None,
    update_existing: bool = False,
) -> ProjectionResult:
    """Project `records` into the raw/derived columns of `sheet`."""
    columns = [i for i, h in enumerate(headers) if h.source in (RAW, DERIVED)]
    if not columns:
        raise ConfigurationError(
            "No raw or derived fields are enabled. Enable at least one such header."
        )
    url_col = headers.index_of(RAW, "url")
    width = len(headers)

    rows = [list(r) + [""] * (width - len(r)) for r in sheet.read_rows()]
    rows_by_id: Dict[str, List[int]] = {}
    if url_col is not None:
        for n, row in enumerate(rows):
            identifier = extract_identifier(str(row[url_col] or ""))
            if identifier:
                rows_by_id.setdefault(identifier, []).append(n)

    changed_rows = set()
    new_rows = []
    for record in records:
        projected = build_game_row(record, headers, timezone)
        identifier = extract_identifier(lookup_path(record, "url"))
        matches = rows_by_id.get(identifier, []) if identifier else []
        if not matches:
            new_rows.append(projected)
            continue
        for n in matches:
            if merge_cells(rows[n], projected, columns, update_existing):
                changed_rows.add(n)

    if changed_rows:
        sheet.write_rows(0, 0, rows)
        LOGGER.info("Updated %d existing rows", len(changed_rows))
    if new_rows:
        sheet.append_rows(new_rows)
        LOGGER.info("Appended %d new rows", len(new_rows))

    result = ProjectionResult(len(records), len(changed_rows), len(new_rows))
    LOGGER.info(result.summary)
    return result
