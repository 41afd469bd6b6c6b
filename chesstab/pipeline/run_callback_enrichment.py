#!/usr/bin/env python3
# ==============================================================================
# run_callback_enrichment.py
# ------------------------------------------------------------------------------
# Fills callback columns of the game sheet for a list of requested games.
#
# Workflow:
#   1. Check the header selection (≥1 callback header, raw `url` header)
#   2. Fetch callback records for every requested id (batched)
#   3. Existing rows whose url id was fetched → overwrite callback cells
#      (all of them with update_existing, else only the empty ones)
#   4. Requested ids that matched no row → append new rows
#   5. Report "Updated" / "Added" counts
# Sheet I/O is one block write for updates and one append for new rows.
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from chesstab.db.game_sheet import GameSheet
from chesstab.enrichment.callback_projection import project_callback_row
from chesstab.enrichment.headers import CALLBACK, RAW, HeaderSelection
from chesstab.ingestion.callback_client import CallbackClient
from chesstab.utils.config import DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from chesstab.utils.identifiers import (
    GAME_URL_TEMPLATE,
    GameReference,
    extract_identifier,
    parse_input_lines,
)
from chesstab.utils.logging_utils import setup_logger

LOGGER = setup_logger("run_callback_enrichment")

SUMMARY = "Successfully processed {total} games. Updated: {updated}, Added: {added}"


class ConfigurationError(RuntimeError):
    """The header selection cannot support a callback enrichment run."""


@dataclass
class EnrichmentResult:
    fetched: int
    updated: int
    added: int

    @property
    def summary(self) -> str:
        return SUMMARY.format(total=self.fetched, updated=self.updated, added=self.added)


# ==============================================================================
# Helpers
# ==============================================================================


def validate_batch_size(value: Any = None) -> int:
    """Batch size from operator input: 1..20, blank → default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_BATCH_SIZE
    try:
        size = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Batch size must be a number, got {value!r}") from exc
    if not 1 <= size <= MAX_BATCH_SIZE:
        raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {size}")
    return size


def _check_headers(headers: HeaderSelection) -> int:
    """Return the url column index or raise ConfigurationError."""
    if not headers.by_source(CALLBACK):
        raise ConfigurationError(
            "No callback fields are enabled. Enable at least one callback header."
        )
    url_col = headers.index_of(RAW, "url")
    if url_col is None:
        raise ConfigurationError(
            "The raw 'url' header must be enabled to match games to rows."
        )
    return url_col


def _normalize_references(
    references: Union[str, Sequence[Union[str, GameReference]]],
) -> List[GameReference]:
    if isinstance(references, str):
        return parse_input_lines(references)
    parsed: List[GameReference] = []
    seen = set()
    for ref in references:
        if not isinstance(ref, GameReference):
            found = parse_input_lines(str(ref))
            if not found:
                continue
            ref = found[0]
        if ref.identifier not in seen:
            seen.add(ref.identifier)
            parsed.append(ref)
    return parsed


def merge_cells(
    row: List[Any], projected: Sequence[Any], columns: Sequence[int], update_existing: bool
) -> bool:
    """
    Copy `projected` values into `row` at `columns`, in place.

    Filled cells are kept unless `update_existing`. Returns True if any
    cell changed.
    """
    changed = False
    for col in columns:
        current = row[col]
        if not update_existing and current not in (None, ""):
            continue
        if str(current) != str(projected[col]):
            row[col] = projected[col]
            changed = True
    return changed


def _merge_existing(
    rows: List[List[Any]],
    fetched: Mapping[str, Mapping[str, Any]],
    headers: HeaderSelection,
    url_col: int,
    update_existing: bool,
) -> Tuple[List[List[Any]], int, Set[str]]:
    """
    Overwrite callback cells of matching rows.

    Returns ``(new_grid, updated_rows, matched_ids)``.
    """
    callback_cols = [i for i, _ in headers.by_source(CALLBACK)]
    width = len(headers)
    grid: List[List[Any]] = []
    updated = 0
    matched = set()

    for row in rows:
        row = list(row) + [""] * (width - len(row))
        identifier = extract_identifier(str(row[url_col] or ""))
        record = fetched.get(identifier) if identifier else None

        if record is not None:
            matched.add(identifier)
            projected = project_callback_row(record, identifier, headers)
            if merge_cells(row, projected, callback_cols, update_existing):
                updated += 1
        grid.append(row)

    return grid, updated, matched


# ==============================================================================
# Main entry
# ==============================================================================


def run_callback_enrichment(
    references: Union[str, Sequence[Union[str, GameReference]]],
    sheet: GameSheet,
    headers: HeaderSelection,
    client: Optional[CallbackClient] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    update_existing: bool = False,
) -> EnrichmentResult:
    """Fetch callback data for `references` and reconcile it into `sheet`."""
    url_col = _check_headers(headers)

    requested = _normalize_references(references)
    if not requested:
        LOGGER.info("No valid game references supplied.")
        return EnrichmentResult(0, 0, 0)

    client = client or CallbackClient()
    LOGGER.info("Fetching callback data for %d games (batch size %d)", len(requested), batch_size)
    fetched: Dict[str, Mapping[str, Any]] = client.fetch_many(
        [ref.identifier for ref in requested], batch_size
    )

    rows = sheet.read_rows()
    grid, updated, matched = _merge_existing(rows, fetched, headers, url_col, update_existing)
    if updated:
        sheet.write_rows(0, 0, grid)
        LOGGER.info("Updated %d existing rows", updated)

    new_rows = []
    for ref in requested:
        if ref.identifier not in fetched or ref.identifier in matched:
            continue
        row = project_callback_row(fetched[ref.identifier], ref.identifier, headers)
        row[url_col] = ref.url or GAME_URL_TEMPLATE.format(ref.identifier)
        new_rows.append(row)

    if new_rows:
        sheet.append_rows(new_rows)
        LOGGER.info("Appended %d new rows", len(new_rows))

    result = EnrichmentResult(len(fetched), updated, len(new_rows))
    LOGGER.info(result.summary)
    return result
