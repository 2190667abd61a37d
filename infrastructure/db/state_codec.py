from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Optional

from domain.models import (
    AppState,
    GameType,
    Player,
    Session,
    SessionStatus,
    Transaction,
    TransactionKind,
)


def _dt_to_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dt_from_str(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _player_to_dict(player: Player) -> Dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "avatar": player.avatar,
        "is_guest": player.is_guest,
    }


def _player_from_dict(row: Dict[str, Any]) -> Player:
    return Player(
        id=str(row["id"]),
        name=row["name"],
        avatar=row.get("avatar"),
        is_guest=bool(row.get("is_guest", True)),
    )


def _session_to_dict(session: Session) -> Dict[str, Any]:
    return {
        "id": session.id,
        "name": session.name,
        "game_type": session.game_type.value,
        "created_at": _dt_to_str(session.created_at),
        "ended_at": _dt_to_str(session.ended_at),
        "status": session.status.value,
        "blind_rules": session.blind_rules,
        "player_ids": list(session.player_ids),
        "current_round": session.current_round,
    }


def _session_from_dict(row: Dict[str, Any]) -> Session:
    return Session(
        id=str(row["id"]),
        name=row["name"],
        game_type=GameType(row.get("game_type", GameType.POKER.value)),
        created_at=_dt_from_str(row["created_at"]),
        ended_at=_dt_from_str(row.get("ended_at")),
        status=SessionStatus(row.get("status", SessionStatus.ACTIVE.value)),
        blind_rules=row.get("blind_rules"),
        player_ids=[str(pid) for pid in row.get("player_ids", [])],
        current_round=int(row.get("current_round") or 1),
    )


def _transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "id": tx.id,
        "session_id": tx.session_id,
        "player_id": tx.player_id,
        "kind": tx.kind.value,
        "amount": tx.amount,
        "timestamp": _dt_to_str(tx.timestamp),
        "round": tx.round,
        "note": tx.note,
    }


def _transaction_from_dict(row: Dict[str, Any]) -> Transaction:
    # Entries written before rounds existed have no `round`.
    return Transaction(
        id=str(row["id"]),
        session_id=str(row["session_id"]),
        player_id=str(row["player_id"]),
        kind=TransactionKind(row["kind"]),
        amount=float(row["amount"]),
        timestamp=_dt_from_str(row["timestamp"]),
        round=int(row.get("round") or 1),
        note=row.get("note"),
    )


def encode_state(state: AppState) -> str:
    """Serialise the whole ledger state to a JSON document."""

    return json.dumps(
        {
            "sessions": [_session_to_dict(s) for s in state.sessions],
            "players": [_player_to_dict(p) for p in state.players],
            "transactions": [_transaction_to_dict(t) for t in state.transactions],
        }
    )


def decode_state(data: str) -> AppState:
    """
    Parse a JSON document produced by `encode_state`.

    Raises `ValueError` if the document is not valid JSON or is missing
    required fields.
    """

    try:
        raw = json.loads(data)
        return AppState(
            sessions=[_session_from_dict(row) for row in raw.get("sessions", [])],
            players=[_player_from_dict(row) for row in raw.get("players", [])],
            transactions=[
                _transaction_from_dict(row) for row in raw.get("transactions", [])
            ],
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise ValueError(f"Invalid ledger state document: {exc}") from exc
