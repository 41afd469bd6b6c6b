# ==============================================================================
# pgn_parser.py  –  PGN tag parsing and move-text utilities
#
# Tags are returned with their literal, case-sensitive names ("TimeControl").
# Move-text helpers strip comments / annotations and pull `[%clk …]` samples.
# ==============================================================================

from __future__ import annotations

import math
import re
from typing import Dict, List, Optional, Tuple

_TAG_LINE = re.compile(r'^\s*\[([A-Za-z0-9_]+)\s+"((?:[^"\\]|\\.)*)"\s*\]\s*$')
_CLOCK = re.compile(r"\[%clk\s+([^\]\s]+)\s*\]")

_BRACE_COMMENT = re.compile(r"\{[^}]*\}")
_LINE_COMMENT = re.compile(r";[^\n]*")
_NAG = re.compile(r"\$\d+")
_BRACKETED = re.compile(r"\[[^\]]*\]")
_VARIATION = re.compile(r"\([^()]*\)")
_RESULT = re.compile(r"(?<!\S)(?:1-0|0-1|1/2-1/2|\*)(?!\S)")
_MOVE_NUMBER = re.compile(r"\b\d+\.+")
_BLACK_MOVE_NUMBER = re.compile(r"\b(\d+)\.{3}")
_FULL_MOVE_MARKER = re.compile(r"(?<![\d.])\d+\.(?!\.)")
_ELLIPSIS_ONLY = re.compile(r"^\.+$")


# ------------------------------------------------------------------------------
# Tags
# ------------------------------------------------------------------------------


def parse_pgn_tags(pgn_text: Optional[str]) -> Dict[str, str]:
    """
    Parse all ``[Key "Value"]`` lines of a PGN document.

    Escaped quotes/backslashes inside values are unescaped; later duplicates
    win. Non-tag lines are ignored.
    """
    tags: Dict[str, str] = {}
    for line in (pgn_text or "").splitlines():
        match = _TAG_LINE.match(line)
        if match:
            key, value = match.groups()
            tags[key] = re.sub(r"\\(.)", r"\1", value)
    return tags


def split_pgn(pgn_text: Optional[str]) -> Tuple[Dict[str, str], str]:
    """Return ``(tags, movetext)``; move-text keeps its line breaks for ``;`` comments."""
    tags = parse_pgn_tags(pgn_text)
    moves = [
        line.strip()
        for line in (pgn_text or "").splitlines()
        if line.strip() and not _TAG_LINE.match(line)
    ]
    return tags, "\n".join(moves)


# ------------------------------------------------------------------------------
# Move-text cleanup
# ------------------------------------------------------------------------------


def strip_comments(movetext: str) -> str:
    """Drop ``{…}`` and ``; …`` comments, keeping everything else."""
    return _LINE_COMMENT.sub(" ", _BRACE_COMMENT.sub(" ", movetext or ""))


def _strip_variations(movetext: str) -> str:
    previous = None
    while previous != movetext:
        previous, movetext = movetext, _VARIATION.sub(" ", movetext)
    return movetext


def _normalize_space(text: str) -> str:
    return " ".join(text.split())


def clean_movetext(movetext: Optional[str]) -> str:
    """Comments, NAGs, bracketed tags, variations and results removed."""
    text = strip_comments(movetext or "")
    text = _BRACKETED.sub(" ", text)
    text = _strip_variations(text)
    text = _NAG.sub(" ", text)
    text = _RESULT.sub(" ", text)
    return _normalize_space(text)


def san_moves(movetext: Optional[str]) -> List[str]:
    """Plain SAN plies in order: ``"1. e4 e5 2. Nf3"`` → ``["e4", "e5", "Nf3"]``."""
    text = _normalize_space(_MOVE_NUMBER.sub(" ", clean_movetext(movetext)))
    return [token for token in text.split(" ") if token and not _ELLIPSIS_ONLY.match(token)]


def numbered_moves(movetext: Optional[str]) -> str:
    """Cleaned move-text with move numbers kept and ``N...`` rewritten to ``N.``."""
    return _normalize_space(_BLACK_MOVE_NUMBER.sub(r"\1.", clean_movetext(movetext)))


def count_full_moves(movetext: Optional[str]) -> Optional[int]:
    """Number of ``<int>.`` markers outside comments; None when there are none."""
    count = len(_FULL_MOVE_MARKER.findall(clean_movetext(movetext)))
    return count or None


# ------------------------------------------------------------------------------
# Clocks
# ------------------------------------------------------------------------------


def extract_clocks(movetext: Optional[str]) -> List[str]:
    """Every ``[%clk <value>]`` value in order of appearance, as written."""
    return _CLOCK.findall(movetext or "")


def parse_clock(value: Optional[str]) -> Optional[float]:
    """
    Parse ``[h:]m:s[.fraction]`` into seconds.

    ``"0:04:59.9"`` → 299.9, ``"5:00"`` → 300.0; anything else → None.
    """
    if not value:
        return None
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        return None
    try:
        seconds = float(parts[-1])
        minutes = int(parts[-2])
        hours = int(parts[0]) if len(parts) == 3 else 0
    except ValueError:
        return None
    total = hours * 3600 + minutes * 60 + seconds
    return total if math.isfinite(total) else None
