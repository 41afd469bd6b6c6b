# ==============================================================================
# identifiers.py  –  Game reference → numeric game identifier
#
#   extract_identifier  : ".../game/<digits>[?query]" → "<digits>"
#   parse_input_lines   : free-text operator input → ordered GameReference list
# ==============================================================================

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List

_GAME_PATH = re.compile(r"/game/(?:[a-z]+/)?(\d+)(?:[/?#]|$)")
_BARE_ID = re.compile(r"^\d+$")

GAME_URL_TEMPLATE = "https://www.chess.com/game/live/{}"


@dataclass(frozen=True)
class GameReference:
    """One requested game: its identifier and the url to store for it."""

    identifier: str
    url: str


def extract_identifier(reference: Any) -> str:
    """
    Return the digits following ``/game/`` in a game URL, else ``""``.

    Bare numbers are *not* accepted here; callers that allow them must
    check for digits first (see `parse_input_lines`).
    """
    if not reference or not isinstance(reference, str):
        return ""
    match = _GAME_PATH.search(reference.strip())
    return match.group(1) if match else ""


def parse_input_lines(text: str) -> List[GameReference]:
    """Parse operator input (one URL or bare id per line), de-duplicated in order."""
    references: List[GameReference] = []
    seen = set()

    for line in (text or "").splitlines():
        candidate = line.strip()
        if not candidate:
            continue

        if _BARE_ID.match(candidate):
            identifier, url = candidate, GAME_URL_TEMPLATE.format(candidate)
        else:
            identifier, url = extract_identifier(candidate), candidate

        if identifier and identifier not in seen:
            seen.add(identifier)
            references.append(GameReference(identifier, url))

    return references
