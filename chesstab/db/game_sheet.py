# ==============================================================================
# game_sheet.py  –  Tabular store for enriched game rows
# ------------------------------------------------------------------------------
# A "sheet" is a grid of cells whose columns follow the HeaderSelection:
#   • read_rows()                          – all data rows (no header row)
#   • write_rows(start_row, start_col, g)  – overwrite a block in place
#   • append_rows(g)                       – add rows after the last one
# Row/column offsets are 0-based and relative to the first data row.
#
# Implementations:
#   • MemoryGameSheet – in-process grid
#   • SqlGameSheet    – SQLAlchemy table, one text column per header
# ==============================================================================

from __future__ import annotations

import re
from typing import Any, List, Optional, Protocol, Sequence

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    func,
    inspect,
    select,
    update,
)
from sqlalchemy.engine import Engine

from chesstab.utils.logging_utils import setup_logger

LOGGER = setup_logger("game_sheet")

Grid = List[List[Any]]


class SheetSchemaError(RuntimeError):
    """The stored table does not match the selected headers."""


class GameSheet(Protocol):
    header_labels: List[str]

    def read_rows(self) -> Grid: ...

    def write_rows(self, start_row: int, start_col: int, grid: Sequence[Sequence[Any]]) -> None: ...

    def append_rows(self, grid: Sequence[Sequence[Any]]) -> None: ...


# ------------------------------------------------------------------------------
# In-memory grid
# ------------------------------------------------------------------------------


class MemoryGameSheet:
    """List-of-lists sheet; short rows are padded with "" on write."""

    def __init__(self, header_labels: Sequence[str], rows: Optional[Grid] = None):
        self.header_labels = list(header_labels)
        self.rows: Grid = [list(r) for r in rows or []]
        self.writes = 0

    def read_rows(self) -> Grid:
        return [list(r) for r in self.rows]

    def write_rows(self, start_row: int, start_col: int, grid: Sequence[Sequence[Any]]) -> None:
        self.writes += 1
        for r, values in enumerate(grid, start=start_row):
            while len(self.rows) <= r:
                self.rows.append([""] * len(self.header_labels))
            row = self.rows[r]
            end = start_col + len(values)
            if len(row) < end:
                row.extend([""] * (end - len(row)))
            row[start_col:end] = list(values)

    def append_rows(self, grid: Sequence[Sequence[Any]]) -> None:
        if grid:
            self.write_rows(len(self.rows), 0, grid)


# ------------------------------------------------------------------------------
# SQLAlchemy-backed table
# ------------------------------------------------------------------------------


def _column_name(index: int, label: str) -> str:
    slug = re.sub(r"[^0-9a-z]+", "_", label.lower()).strip("_")
    return f"c{index:02d}_{slug}" if slug else f"c{index:02d}"


def _to_text(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


class SqlGameSheet:
    """
    Sheet stored in a relational table.

    Columns: ``row_no`` (0-based, primary key) plus one TEXT column per
    header label. Cells round-trip as strings; NULL reads back as "".
    """

    def __init__(
        self,
        header_labels: Sequence[str],
        engine: Optional[Engine] = None,
        database_url: Optional[str] = None,
        table_name: str = "game_sheet",
    ):
        self.header_labels = list(header_labels)
        self.engine = engine or create_engine(database_url or "sqlite:///chesstab.db")
        self.metadata = MetaData()
        self.columns = [_column_name(i, lbl) for i, lbl in enumerate(self.header_labels)]
        self.table = Table(
            table_name,
            self.metadata,
            Column("row_no", Integer, primary_key=True, autoincrement=False),
            *(Column(name, Text, nullable=True) for name in self.columns),
        )
        self.metadata.create_all(self.engine)
        self._check_columns(table_name)

    def _check_columns(self, table_name: str) -> None:
        """An existing table must have exactly the columns of the current headers."""
        stored = [c["name"] for c in inspect(self.engine).get_columns(table_name)]
        expected = ["row_no", *self.columns]
        if stored != expected:
            LOGGER.error(
                "Table %s has columns %s but the header selection needs %s",
                table_name,
                stored,
                expected,
            )
            raise SheetSchemaError(
                f"Table `{table_name}` was created for different headers; "
                "use a new table or database for this header selection"
            )

    def read_rows(self) -> Grid:
        query = select(*(self.table.c[name] for name in self.columns)).order_by(
            self.table.c.row_no
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [["" if v is None else v for v in row] for row in rows]

    def write_rows(self, start_row: int, start_col: int, grid: Sequence[Sequence[Any]]) -> None:
        with self.engine.begin() as conn:
            existing = {
                r[0] for r in conn.execute(select(self.table.c.row_no)).fetchall()
            }
            for row_no, values in enumerate(grid, start=start_row):
                cells = {
                    self.columns[start_col + i]: _to_text(v) for i, v in enumerate(values)
                }
                if row_no in existing:
                    conn.execute(
                        update(self.table).where(self.table.c.row_no == row_no).values(**cells)
                    )
                else:
                    conn.execute(self.table.insert().values(row_no=row_no, **cells))
        LOGGER.debug("Wrote %d rows at (%d, %d)", len(grid), start_row, start_col)

    def append_rows(self, grid: Sequence[Sequence[Any]]) -> None:
        if not grid:
            return
        with self.engine.connect() as conn:
            last = conn.execute(select(func.max(self.table.c.row_no))).scalar()
        self.write_rows(0 if last is None else last + 1, 0, grid)
