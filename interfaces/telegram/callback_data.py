from __future__ import annotations

from domain.models import TransactionKind

CONFIRMABLE_ACTIONS = ("round", "end", "delete")


def encode_player_choice(
    session_id: str,
    kind: TransactionKind,
    player_id: str,
    amount: float,
) -> str:
    """
    Encode a "which player?" callback for a pending buy-in/cash-out.

    Format: tx:{kind}:{session_id}:{player_id}:{amount}
    """

    return f"tx:{kind.value}:{session_id}:{player_id}:{amount}"


def parse_player_choice(data: str) -> tuple[str, TransactionKind, str, float]:
    parts = data.split(":")
    if len(parts) != 5 or parts[0] != "tx":
        raise ValueError(f"Invalid player choice callback data: {data}")

    try:
        kind = TransactionKind(parts[1])
        amount = float(parts[4])
    except ValueError:
        raise ValueError(f"Invalid player choice callback data: {data}") from None

    session_id = parts[2]
    player_id = parts[3]
    return session_id, kind, player_id, amount


def encode_confirmation(session_id: str, action: str, accepted: bool) -> str:
    """
    Encode a confirm/cancel callback for a destructive session action.

    Format:
      yes:{action}:{session_id}
      no:{action}:{session_id}
    """

    if action not in CONFIRMABLE_ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    prefix = "yes" if accepted else "no"
    return f"{prefix}:{action}:{session_id}"


def parse_confirmation(data: str) -> tuple[bool, str, str]:
    parts = data.split(":")
    if (
        len(parts) != 3
        or parts[0] not in ("yes", "no")
        or parts[1] not in CONFIRMABLE_ACTIONS
    ):
        raise ValueError(f"Invalid confirmation callback data: {data}")

    accepted = parts[0] == "yes"
    action = parts[1]
    session_id = parts[2]
    return accepted, action, session_id
