# ==============================================================================
# derived_fields.py  –  Catalog of fields computed from a game record + PGN
# ------------------------------------------------------------------------------
# Every entry is a pure function over a `GameInput` (record, PGN tags,
# move-text, local time zone). Values are plain Python (int/float/str/list);
# None means "absent" and renders as an empty cell. A failing compute never
# breaks the row: `compute_derived` logs and returns None.
# ==============================================================================

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chesstab.enrichment.headers import lookup_path
from chesstab.utils.logging_utils import setup_logger
from chesstab.utils.pgn_parser import (
    count_full_moves,
    extract_clocks,
    numbered_moves,
    parse_clock,
    san_moves,
    split_pgn,
)
from chesstab.utils.time_control import parse_time_control

LOGGER = setup_logger("derived_fields")

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
ENDBOARD_URL = "https://www.chess.com/dynboard?fen={fen}&board=green&piece=neo&size=3"
MOVES_PER_GAME_ESTIMATE = 40
SECONDS_PER_DAY = 24 * 3600

RESULT_VALUES = {"1-0": 1, "0-1": 0, "1/2-1/2": 0.5}
SPEED_LIMITS = ((180, "bullet"), (480, "blitz"), (1500, "rapid"))


@dataclass(frozen=True)
class GameInput:
    record: Mapping[str, Any]
    tags: Mapping[str, str] = field(default_factory=dict)
    movetext: str = ""
    timezone: str = "UTC"

    @classmethod
    def from_record(cls, record: Mapping[str, Any], timezone: str = "UTC") -> "GameInput":
        """Split the record's ``pgn`` into tags + move-text."""
        tags, movetext = split_pgn(record.get("pgn") if record else None)
        return cls(record or {}, tags, movetext, timezone)


@dataclass(frozen=True)
class DerivedField:
    name: str
    display_name: str
    description: str
    example: Any
    compute: Callable[[GameInput], Any]


# ------------------------------------------------------------------------------
# Shared helpers
# ------------------------------------------------------------------------------


def _number(value: Any) -> Optional[float]:
    """Finite float from a number or numeric string, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _tidy(number: float) -> Any:
    """Drop a redundant ``.0`` so whole numbers stay ints."""
    return int(number) if float(number).is_integer() else number


def _time_control(game: GameInput):
    raw = game.record.get("time_control")
    if raw is None or raw == "":
        raw = game.tags.get("TimeControl")
    return parse_time_control(raw)


def _zone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("Unknown time zone %r – using UTC", name)
        return ZoneInfo("UTC")


def _end_datetime(game: GameInput) -> Optional[datetime]:
    end_time = _number(game.record.get("end_time"))
    if end_time is None:
        return None
    return datetime.fromtimestamp(end_time, tz=_zone(game.timezone))


def _end_part(attribute: str) -> Callable[[GameInput], Optional[int]]:
    def compute(game: GameInput) -> Optional[int]:
        end = _end_datetime(game)
        if end is None:
            return None
        if attribute == "millisecond":
            return end.microsecond // 1000
        return getattr(end, attribute)

    return compute


def _clock_seconds(game: GameInput) -> List[Optional[float]]:
    return [parse_clock(value) for value in extract_clocks(game.movetext)]


# ------------------------------------------------------------------------------
# Compute functions
# ------------------------------------------------------------------------------


def result_numeric(game: GameInput) -> Optional[float]:
    return RESULT_VALUES.get(game.tags.get("Result", ""))


def moves_count(game: GameInput) -> Optional[int]:
    return count_full_moves(game.movetext)


def plies(game: GameInput) -> Optional[int]:
    # Doubles the full-move count, so an unfinished last move counts as two.
    moves = moves_count(game)
    return moves * 2 if moves else None


def initial_seconds(game: GameInput) -> Optional[int]:
    return _time_control(game)[0]


def increment_seconds(game: GameInput) -> Optional[int]:
    return _time_control(game)[1]


def base_seconds(game: GameInput) -> Optional[int]:
    """Estimated game duration: initial + increment × 40 moves."""
    initial, increment = _time_control(game)
    if initial is None:
        return None
    return initial + (increment or 0) * MOVES_PER_GAME_ESTIMATE


def speed_class(game: GameInput) -> Optional[str]:
    base = base_seconds(game)
    if base is None:
        return None
    for limit, name in SPEED_LIMITS:
        if base < limit:
            return name
    return "classical"


def accuracy_diff(game: GameInput) -> Optional[float]:
    white = _number(game.tags.get("WhiteAccuracy"))
    black = _number(game.tags.get("BlackAccuracy"))
    if white is None or black is None:
        return None
    # half-up rounding to one decimal
    return math.floor((white - black) * 10 + 0.5) / 10


def end_time_formatted(game: GameInput) -> Optional[str]:
    end = _end_datetime(game)
    return end.strftime(DATETIME_FORMAT) if end else None


def game_length_seconds(game: GameInput) -> Optional[float]:
    start = parse_clock(game.tags.get("StartTime"))
    end = parse_clock(game.tags.get("EndTime"))
    if start is None or end is None:
        return None
    length = end - start
    if length < 0:
        length += SECONDS_PER_DAY
    return _tidy(round(length, 3))


def start_time_derived_local(game: GameInput) -> Optional[str]:
    end = _end_datetime(game)
    length = game_length_seconds(game)
    if end is None or length is None:
        return None
    return (end - timedelta(seconds=length)).strftime(DATETIME_FORMAT)


def moves_san_list(game: GameInput) -> List[str]:
    return san_moves(game.movetext)


def moves_list_numbered(game: GameInput) -> Optional[str]:
    return numbered_moves(game.movetext) or None


def clocks_list(game: GameInput) -> List[str]:
    return extract_clocks(game.movetext)


def clock_seconds_list(game: GameInput) -> List[Optional[float]]:
    return [None if s is None else _tidy(s) for s in _clock_seconds(game)]


def _side_durations(
    clocks: List[Optional[float]], base: int, increment: int
) -> List[Optional[float]]:
    durations: List[Optional[float]] = []
    previous: Optional[float] = base
    for clock in clocks:
        if clock is None or previous is None:
            durations.append(None)
        else:
            durations.append(_tidy(round(max(0.0, previous - clock + increment), 2)))
        previous = clock
    return durations


def move_times_seconds(game: GameInput) -> List[Optional[float]]:
    """
    Seconds spent on each ply, rebuilt from remaining-clock samples.

    Samples are assumed to alternate strictly, first mover first. Each
    side's first ply is measured against the initial time; later plies
    against that side's previous sample; the increment is added back.
    """
    initial, increment = _time_control(game)
    clocks = _clock_seconds(game)
    if initial is None or increment is None or not clocks:
        return []

    first = _side_durations(clocks[0::2], initial, increment)
    second = _side_durations(clocks[1::2], initial, increment)
    return [(first if ply % 2 == 0 else second)[ply // 2] for ply in range(len(clocks))]


def reason(game: GameInput) -> Optional[str]:
    return game.tags.get("Termination") or None


def game_format(game: GameInput) -> Optional[str]:
    rules = game.record.get("rules")
    time_class = game.record.get("time_class")
    if rules == "chess":
        return time_class or None
    if rules == "chess960":
        return "daily 960" if time_class == "daily" else "live960"
    return rules or None


def opening_url(game: GameInput) -> Optional[str]:
    return (
        game.tags.get("ECOUrl")
        or game.tags.get("OpeningUrl")
        or game.record.get("opening_url")
        or None
    )


def endboard_url(game: GameInput) -> Optional[str]:
    fen = game.record.get("fen")
    if not fen:
        return None
    return ENDBOARD_URL.format(fen=quote(str(fen), safe=""))


def rating_difference(game: GameInput) -> Optional[float]:
    white = _number(lookup_path(game.record, "white.rating"))
    black = _number(lookup_path(game.record, "black.rating"))
    if white is None or black is None:
        return None
    return _tidy(black - white)


# ------------------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------------------

_CATALOG = [
    DerivedField(
        "result_numeric",
        "Result (numeric)",
        "1 white win, 0 black win, 0.5 draw",
        1,
        result_numeric,
    ),
    DerivedField("moves_count", "Moves", "Full moves in the move-text", 42, moves_count),
    DerivedField("plies", "Plies", "Moves × 2 (may overcount by one)", 84, plies),
    DerivedField(
        "initial_seconds", "Initial Time (s)", "Starting clock in seconds", 180, initial_seconds
    ),
    DerivedField(
        "increment_seconds", "Increment (s)", "Per-move increment in seconds", 2, increment_seconds
    ),
    DerivedField("base_seconds", "Base Time (s)", "Initial + increment × 40", 260, base_seconds),
    DerivedField("speed_class", "Speed", "bullet / blitz / rapid / classical", "blitz", speed_class),
    DerivedField(
        "accuracy_diff", "Accuracy Diff", "White minus black accuracy", 4.3, accuracy_diff
    ),
    DerivedField(
        "end_time_formatted",
        "End Time",
        "Local end time",
        "2024-03-01 18:04:05",
        end_time_formatted,
    ),
    DerivedField("end_year", "End Year", "Local end year", 2024, _end_part("year")),
    DerivedField("end_month", "End Month", "Local end month", 3, _end_part("month")),
    DerivedField("end_day", "End Day", "Local end day of month", 1, _end_part("day")),
    DerivedField("end_hour", "End Hour", "Local end hour", 18, _end_part("hour")),
    DerivedField("end_minute", "End Minute", "Local end minute", 4, _end_part("minute")),
    DerivedField("end_second", "End Second", "Local end second", 5, _end_part("second")),
    DerivedField(
        "end_millisecond",
        "End Millisecond",
        "Local end millisecond",
        0,
        _end_part("millisecond"),
    ),
    DerivedField(
        "game_length_seconds",
        "Game Length (s)",
        "EndTime − StartTime tags",
        412,
        game_length_seconds,
    ),
    DerivedField(
        "start_time_derived_local",
        "Start Time",
        "End time − game length",
        "2024-03-01 17:57:13",
        start_time_derived_local,
    ),
    DerivedField("moves_san_list", "Moves (SAN)", "Plies as a list", '["e4","e5"]', moves_san_list),
    DerivedField(
        "moves_list_numbered",
        "Moves (numbered)",
        "Clean numbered move-text",
        "1. e4 e5 2. Nf3",
        moves_list_numbered,
    ),
    DerivedField(
        "clocks_list",
        "Clocks",
        "[%clk] values as written",
        '["0:03:00","0:02:59.1"]',
        clocks_list,
    ),
    DerivedField(
        "clock_seconds_list",
        "Clocks (s)",
        "[%clk] values in seconds",
        "[180,179.1]",
        clock_seconds_list,
    ),
    DerivedField(
        "move_times_seconds",
        "Move Times (s)",
        "Seconds spent per ply",
        "[0,0.9,1.5]",
        move_times_seconds,
    ),
    DerivedField(
        "reason", "Termination", "PGN Termination tag", "Hikaru won by resignation", reason
    ),
    DerivedField("format", "Format", "Time class, live960 or daily 960", "blitz", game_format),
    DerivedField(
        "opening_url",
        "Opening URL",
        "ECOUrl / OpeningUrl tag or record field",
        "https://www.chess.com/openings/Sicilian-Defense",
        opening_url,
    ),
    DerivedField(
        "endboard_url",
        "Final Position",
        "Image of the final position",
        "https://www.chess.com/dynboard?fen=...",
        endboard_url,
    ),
    DerivedField(
        "rating_difference",
        "Rating Diff",
        "Black rating − white rating",
        -37,
        rating_difference,
    ),
]

DERIVED_FIELDS: Dict[str, DerivedField] = {entry.name: entry for entry in _CATALOG}


def list_derived_fields() -> List[DerivedField]:
    """The catalog, in display order."""
    return list(_CATALOG)


def compute_derived(name: str, game: GameInput) -> Any:
    """
    Compute one derived field; unknown names and failures give None.
    """
    entry = DERIVED_FIELDS.get(name)
    if entry is None:
        LOGGER.debug("Unknown derived field '%s'", name)
        return None
    try:
        return entry.compute(game)
    except Exception as exc:  # failure → empty cell
        LOGGER.debug("Derived field '%s' failed: %s", name, exc)
        return None
