# ==============================================================================
# headers.py  –  Output column selection
# ------------------------------------------------------------------------------
# A HeaderSelection is the ordered list of output columns. Each Header names
# where its value comes from:
#   • raw       – nested lookup on the primary game record
#   • callback  – supplemental data fetched by game identifier
#   • derived   – computed from the record + its PGN (see derived_fields)
# ==============================================================================

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

RAW = "raw"
CALLBACK = "callback"
DERIVED = "derived"
SOURCES = (RAW, CALLBACK, DERIVED)


class HeaderSelectionError(ValueError):
    """Raised for malformed header configuration."""


@dataclass(frozen=True)
class Header:
    source: str
    field: str
    label: Optional[str] = None

    @property
    def title(self) -> str:
        return self.label or self.field


class HeaderSelection:
    """Ordered, duplicate-free sequence of headers (column order = list order)."""

    def __init__(self, headers: Iterable[Header]):
        self._headers: Tuple[Header, ...] = tuple(headers)
        seen = set()
        for header in self._headers:
            if header.source not in SOURCES:
                raise HeaderSelectionError(f"Unknown header source: {header.source!r}")
            if not header.field:
                raise HeaderSelectionError(f"Header without field (source={header.source})")
            key = (header.source, header.field)
            if key in seen:
                raise HeaderSelectionError(f"Duplicate header: {header.source}:{header.field}")
            seen.add(key)

    def __iter__(self) -> Iterator[Header]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __getitem__(self, index: int) -> Header:
        return self._headers[index]

    def index_of(self, source: str, field: str) -> Optional[int]:
        """Column index of ``source:field`` or None if not selected."""
        for i, header in enumerate(self._headers):
            if header.source == source and header.field == field:
                return i
        return None

    def by_source(self, source: str) -> List[Tuple[int, Header]]:
        return [(i, h) for i, h in enumerate(self._headers) if h.source == source]

    @property
    def labels(self) -> List[str]:
        return [h.title for h in self._headers]


DEFAULT_HEADERS = HeaderSelection(
    [
        Header(RAW, "url", "URL"),
        Header(CALLBACK, "game_id", "Game ID"),
        Header(RAW, "white.username", "White"),
        Header(RAW, "black.username", "Black"),
        Header(DERIVED, "result_numeric", "Result"),
        Header(DERIVED, "format", "Format"),
        Header(DERIVED, "speed_class", "Speed"),
        Header(CALLBACK, "time_control_initial", "Initial (s)"),
        Header(CALLBACK, "time_control_increment", "Increment (s)"),
        Header(CALLBACK, "white.country", "White Country"),
        Header(CALLBACK, "black.country", "Black Country"),
        Header(CALLBACK, "pgn_headers", "PGN Headers"),
        Header(DERIVED, "moves_count", "Moves"),
        Header(DERIVED, "end_time_formatted", "Ended"),
        Header(DERIVED, "rating_difference", "Rating Diff"),
    ]
)


def load_header_selection(path: Union[str, Path, None]) -> HeaderSelection:
    """
    Read a header selection from a JSON list of objects.

    Example
    -------
    [{"source": "raw", "field": "url"}, {"source": "callback", "field": "game_id"}]

    Falls back to `DEFAULT_HEADERS` when ``path`` is None.
    """
    if path is None:
        return DEFAULT_HEADERS

    try:
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise HeaderSelectionError(f"Cannot read header selection from {path}") from exc

    if not isinstance(entries, list):
        raise HeaderSelectionError("Header selection must be a JSON list")

    headers = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise HeaderSelectionError(f"Bad header entry: {entry!r}")
        if entry.get("enabled", True) is False:
            continue
        headers.append(
            Header(str(entry.get("source", "")), str(entry.get("field", "")), entry.get("label"))
        )
    return HeaderSelection(headers)


def lookup_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted path (``"white.country"``) against nested mappings.

    Missing segments, or a non-mapping in the middle, yield None.
    """
    current = data
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return None
        current = current[segment]
    return current


def to_cell(value: Any) -> Any:
    """
    Render a projected value for a table cell.

    None → ``""``; lists → compact JSON list (absent items as ``""``);
    mappings → JSON text; numbers and strings unchanged.
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        items = ["" if item is None else item for item in value]
        return json.dumps(items, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, Mapping):
        return json.dumps(dict(value), ensure_ascii=False)
    return value
