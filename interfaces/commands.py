from __future__ import annotations

import re
from typing import Sequence, Tuple

from domain.models import GameType

# Optional currency symbol, digits (plain or grouped by thousands), up to two decimals.
_AMOUNT_RE = re.compile(r"[$¥]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{1,2})?|[$¥]?\.\d{1,2}")


def parse_amount(text: str) -> float:
    """
    Parse a user-typed amount such as `50`, `12.5` or `$1,000`.

    Raises `ValueError` with a message fit to show the user for anything
    else, including negative amounts, `1_000`, `nan` and `inf`.
    """

    cleaned = text.strip()
    if cleaned.startswith("-"):
        raise ValueError("Amount must be greater than zero.")
    if not _AMOUNT_RE.fullmatch(cleaned):
        raise ValueError("Amount must be a number like 50, 12.5 or $1,000.")
    return float(cleaned.lstrip("$¥").replace(",", ""))


def parse_new_session_args(args: Sequence[str]) -> Tuple[GameType, str]:
    """
    Split `[type] <name...>` into a game type and a session name.

    The type is optional and defaults to poker, so `Friday night` and
    `mahjong Friday night` are both accepted.
    """

    if args:
        try:
            game_type = GameType(args[0].upper())
        except ValueError:
            pass
        else:
            return game_type, " ".join(args[1:]).strip()
    return GameType.POKER, " ".join(args).strip()
