from __future__ import annotations

import functools
import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from domain.ledger import SessionSummary, group_by_round, summarize_session
from domain.models import (
    AppState,
    GameType,
    Player,
    Session,
    SessionStatus,
    Transaction,
    TransactionKind,
)
from domain.repositories import StateStorage

logger = logging.getLogger(__name__)

# Every mutation loads the whole state and saves it back, so concurrent
# callers (e.g. a threaded bot) must not interleave between load and save.
_state_lock = threading.RLock()


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error_message: Optional[str] = None


@dataclass
class SessionResult:
    success: bool
    error_message: Optional[str] = None
    session: Optional[Session] = None
    # Only filled in by `end_session`.
    summary: Optional[SessionSummary] = None


@dataclass
class PlayerResult:
    success: bool
    error_message: Optional[str] = None
    player: Optional[Player] = None


@dataclass
class TransactionResult:
    success: bool
    error_message: Optional[str] = None
    transaction: Optional[Transaction] = None


@dataclass
class SummaryResult:
    success: bool
    error_message: Optional[str] = None
    session: Optional[Session] = None
    summary: Optional[SessionSummary] = None
    players: List[Player] = field(default_factory=list)


@dataclass
class HistoryResult:
    success: bool
    error_message: Optional[str] = None
    rounds: List[Tuple[int, List[Transaction]]] = field(default_factory=list)
    players: List[Player] = field(default_factory=list)


@dataclass
class SessionListing:
    """Sessions split the way the lobby shows them, newest first."""

    active: List[Session] = field(default_factory=list)
    completed: List[Session] = field(default_factory=list)


SESSION_NOT_FOUND = "Session not found."
SESSION_NOT_ACTIVE = "Session has already ended."


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_positive_amount(amount: float) -> Optional[str]:
    if not math.isfinite(amount) or amount <= 0:
        return "Amount must be greater than zero."
    return None


def _holding_state_lock(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with _state_lock:
            return func(*args, **kwargs)

    return wrapper


def _find_session(state: AppState, session_id: str) -> Optional[Session]:
    for session in state.sessions:
        if session.id == session_id:
            return session
    return None


def _find_active_session(
    state: AppState,
    session_id: str,
) -> Tuple[Optional[Session], Optional[str]]:
    session = _find_session(state, session_id)
    if session is None:
        return None, SESSION_NOT_FOUND
    if not session.is_active:
        return None, SESSION_NOT_ACTIVE
    return session, None


@_holding_state_lock
def create_session(
    name: str,
    game_type: GameType,
    storage: StateStorage,
    blind_rules: Optional[str] = None,
) -> SessionResult:
    """
    Start a new session in round 1.

    New sessions are put in front of the list so the lobby shows them first.
    """

    name = (name or "").strip()
    if not name:
        return SessionResult(success=False, error_message="Session name is required.")

    state = storage.load()
    session = Session(
        id=_new_id(),
        name=name,
        game_type=game_type,
        created_at=_now(),
        blind_rules=blind_rules,
    )
    state.sessions.insert(0, session)
    storage.save(state)

    logger.info("Created %s session %s (%s)", game_type.value, session.id, name)
    return SessionResult(success=True, session=session)


def list_sessions(storage: StateStorage) -> SessionListing:
    state = storage.load()
    by_newest = sorted(state.sessions, key=lambda s: s.created_at, reverse=True)
    return SessionListing(
        active=[s for s in by_newest if s.status == SessionStatus.ACTIVE],
        completed=[s for s in by_newest if s.status == SessionStatus.COMPLETED],
    )


@_holding_state_lock
def add_player_to_session(
    session_id: str,
    player_name: str,
    storage: StateStorage,
) -> PlayerResult:
    """
    Seat a player in an active session.

    Players are looked up by name (case-insensitive) so a regular keeps the
    same identity across sessions; unknown names become new guest players.
    """

    player_name = (player_name or "").strip()
    if not player_name:
        return PlayerResult(success=False, error_message="Player name is required.")

    state = storage.load()
    session, error = _find_active_session(state, session_id)
    if error:
        return PlayerResult(success=False, error_message=error)

    player = next(
        (p for p in state.players if p.name.lower() == player_name.lower()),
        None,
    )
    if player is None:
        player = Player(id=_new_id(), name=player_name, is_guest=True)
        state.players.append(player)

    if player.id not in session.player_ids:
        session.player_ids.append(player.id)

    storage.save(state)
    return PlayerResult(success=True, player=player)


@_holding_state_lock
def record_transaction(
    session_id: str,
    player_id: str,
    kind: TransactionKind,
    amount: float,
    storage: StateStorage,
    note: Optional[str] = None,
) -> TransactionResult:
    """
    Record a buy-in or cash-out for a seated player.

    The transaction is stamped with the session's current round.
    """

    error = _validate_positive_amount(amount)
    if error:
        return TransactionResult(success=False, error_message=error)

    state = storage.load()
    session, error = _find_active_session(state, session_id)
    if error:
        return TransactionResult(success=False, error_message=error)

    if player_id not in session.player_ids:
        return TransactionResult(
            success=False,
            error_message="Player is not part of this session.",
        )

    tx = Transaction(
        id=_new_id(),
        session_id=session.id,
        player_id=player_id,
        kind=kind,
        amount=amount,
        timestamp=_now(),
        round=session.current_round or 1,
        note=note,
    )
    state.transactions.append(tx)
    storage.save(state)

    return TransactionResult(success=True, transaction=tx)


@_holding_state_lock
def delete_transaction(
    session_id: str,
    transaction_id: str,
    storage: StateStorage,
) -> OperationResult:
    state = storage.load()
    _, error = _find_active_session(state, session_id)
    if error:
        return OperationResult(success=False, error_message=error)

    remaining = [
        t
        for t in state.transactions
        if not (t.id == transaction_id and t.session_id == session_id)
    ]
    if len(remaining) == len(state.transactions):
        return OperationResult(success=False, error_message="Transaction not found.")

    state.transactions = remaining
    storage.save(state)
    return OperationResult(success=True)


@_holding_state_lock
def advance_round(session_id: str, storage: StateStorage) -> SessionResult:
    state = storage.load()
    session, error = _find_active_session(state, session_id)
    if error:
        return SessionResult(success=False, error_message=error)

    session.current_round = (session.current_round or 1) + 1
    storage.save(state)
    return SessionResult(success=True, session=session)


@_holding_state_lock
def end_session(session_id: str, storage: StateStorage) -> SessionResult:
    """
    Close a session and return its final summary.

    An unbalanced ledger does not block ending the session; it is logged
    and left for the caller to show alongside the settlement.
    """

    state = storage.load()
    session, error = _find_active_session(state, session_id)
    if error:
        return SessionResult(success=False, error_message=error)

    session.status = SessionStatus.COMPLETED
    session.ended_at = _now()
    storage.save(state)

    summary = summarize_session(session, state.transactions, state.players)
    if not summary.is_balanced:
        logger.warning(
            "Session %s ended with a discrepancy of %.2f",
            session.id,
            summary.discrepancy,
        )
    logger.info(
        "Ended session %s with %d settlement transfers",
        session.id,
        len(summary.transfers),
    )
    return SessionResult(success=True, session=session, summary=summary)


@_holding_state_lock
def delete_session(session_id: str, storage: StateStorage) -> OperationResult:
    """Remove a session together with all of its transactions."""

    state = storage.load()
    if _find_session(state, session_id) is None:
        return OperationResult(success=False, error_message=SESSION_NOT_FOUND)

    state.sessions = [s for s in state.sessions if s.id != session_id]
    state.transactions = [t for t in state.transactions if t.session_id != session_id]
    storage.save(state)

    logger.info("Deleted session %s", session_id)
    return OperationResult(success=True)


def get_session_summary(session_id: str, storage: StateStorage) -> SummaryResult:
    state = storage.load()
    session = _find_session(state, session_id)
    if session is None:
        return SummaryResult(success=False, error_message=SESSION_NOT_FOUND)

    return SummaryResult(
        success=True,
        session=session,
        summary=summarize_session(session, state.transactions, state.players),
        players=[p for p in state.players if p.id in session.player_ids],
    )


def get_round_history(session_id: str, storage: StateStorage) -> HistoryResult:
    state = storage.load()
    session = _find_session(state, session_id)
    if session is None:
        return HistoryResult(success=False, error_message=SESSION_NOT_FOUND)

    return HistoryResult(
        success=True,
        rounds=group_by_round(session.id, state.transactions),
        players=[p for p in state.players if p.id in session.player_ids],
    )
