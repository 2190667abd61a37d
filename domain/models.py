from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TransactionKind(str, Enum):
    """
    Direction of a ledger entry from the player's point of view.

    BUY_IN is money/points going into the pot (or a recorded loss in games
    without chips); CASH_OUT is money/points coming back (or a recorded win).
    """

    BUY_IN = "BUY_IN"
    CASH_OUT = "CASH_OUT"


class GameType(str, Enum):
    POKER = "POKER"
    MAHJONG = "MAHJONG"
    GENERAL = "GENERAL"


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


@dataclass
class Player:
    """
    A person who can take part in sessions.

    Players are global: the same player can join any number of sessions.
    """

    id: str
    name: str
    avatar: Optional[str] = None
    is_guest: bool = True


@dataclass(frozen=True)
class Transaction:
    """
    A single buy-in or cash-out recorded against a player in a session.

    Transactions are facts: they are never edited, only deleted.
    """

    id: str
    session_id: str
    player_id: str
    kind: TransactionKind
    amount: float
    timestamp: datetime
    round: int = 1
    note: Optional[str] = None


@dataclass
class Session:
    """One game-playing occasion (a poker night, a mahjong table...)."""

    id: str
    name: str
    game_type: GameType
    created_at: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    player_ids: List[str] = field(default_factory=list)
    current_round: int = 1
    ended_at: Optional[datetime] = None
    blind_rules: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


@dataclass(frozen=True)
class PlayerSessionStats:
    player_id: str
    total_buy_in: float
    total_cash_out: float
    net_score: float


@dataclass(frozen=True)
class SettlementTransfer:
    """A payment from a net loser to a net winner."""

    from_player_id: str
    from_player_name: str
    to_player_id: str
    to_player_name: str
    amount: float


@dataclass
class AppState:
    """Everything the ledger persists."""

    sessions: List[Session] = field(default_factory=list)
    players: List[Player] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
