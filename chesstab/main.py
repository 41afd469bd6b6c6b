#!/usr/bin/env python3
# ==============================================================================
#  chesstab - main.py
#  Purpose: command-line runner for the game sheet
#           (record projection → callback enrichment)
#
#  Example:
#    python -m chesstab.main --records archive.json --input games.txt \
#        --batch-size 10 --update-existing
# ==============================================================================

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from chesstab.db.game_sheet import SheetSchemaError, SqlGameSheet
from chesstab.enrichment.headers import HeaderSelectionError, load_header_selection
from chesstab.ingestion.callback_client import CallbackClient
from chesstab.pipeline.run_callback_enrichment import (
    ConfigurationError,
    run_callback_enrichment,
    validate_batch_size,
)
from chesstab.pipeline.run_record_projection import load_game_records, run_record_projection
from chesstab.utils.config import get_database_url, load_settings
from chesstab.utils.logging_utils import setup_logger

logger = setup_logger("main", level=logging.INFO)

_REPORTED_ERRORS = (ConfigurationError, HeaderSelectionError, SheetSchemaError, ValueError)


def _stage(title, fn):
    """
    Run a pipeline stage with start → finish logging and full stacktrace on error.
    """
    logger.info("%s – started", title)
    try:
        result = fn()
        logger.info("%s – finished", title)
        return result
    except _REPORTED_ERRORS:
        raise
    except Exception:  # pragma: no cover
        logger.exception("%s – failed", title)
        raise


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chesstab",
        description=(
            "Write game records and callback data for chess games into the game sheet."
        ),
    )
    parser.add_argument(
        "--records",
        default=None,
        help="JSON file of game records (a list, or an archive with a 'games' list)",
    )
    parser.add_argument(
        "--input",
        default=None,
        help=(
            "File with one game URL or numeric id per line ('-' for stdin); "
            "read from stdin when --records is not given"
        ),
    )
    parser.add_argument("--batch-size", default=None, help="Games per request batch (1-20, default 5)")
    parser.add_argument(
        "--update-existing",
        action="store_true",
        help="Overwrite non-empty cells of existing rows",
    )
    parser.add_argument("--headers", default=None, help="JSON header selection file")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL of the game sheet")
    return parser


def _read_input(path: Optional[str]) -> str:
    if path in (None, "-"):
        return sys.stdin.read()
    with open(path, encoding="utf-8") as fh:
        return fh.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()

    try:
        batch_size = validate_batch_size(args.batch_size)
        headers = load_header_selection(args.headers or settings.headers_file)
        records = load_game_records(args.records) if args.records else None
        sheet = SqlGameSheet(
            headers.labels, database_url=args.database_url or get_database_url()
        )

        if records is not None:
            projected = _stage(
                "Game Record Projection",
                lambda: run_record_projection(
                    records,
                    sheet,
                    headers,
                    timezone=settings.timezone,
                    update_existing=args.update_existing,
                ),
            )
            print(projected.summary)

        if args.input is not None or records is None:
            text = _read_input(args.input)
            result = _stage(
                "Callback Enrichment",
                lambda: run_callback_enrichment(
                    text,
                    sheet,
                    headers,
                    client=CallbackClient(settings),
                    batch_size=batch_size,
                    update_existing=args.update_existing,
                ),
            )
            print(result.summary)
    except _REPORTED_ERRORS as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
