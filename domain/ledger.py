"""
Statistics and settlement calculations for a session.

Everything here is a pure function of its arguments: inputs are treated
as read-only snapshots and nothing is cached between calls, so callers
can recompute after every change to the transaction log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .models import (
    Player,
    PlayerSessionStats,
    Session,
    SettlementTransfer,
    Transaction,
    TransactionKind,
)

# Balances closer to zero than this are treated as settled.
SETTLEMENT_TOLERANCE = 0.01

UNKNOWN_PLAYER_NAME = "Unknown"


def is_near_zero(value: float) -> bool:
    return abs(value) < SETTLEMENT_TOLERANCE


def compute_stats(
    session_id: str,
    all_transactions: Iterable[Transaction],
    participant_ids: Sequence[str],
) -> List[PlayerSessionStats]:
    """
    Aggregate buy-ins and cash-outs per participant of a session.

    Every id in `participant_ids` gets exactly one row, even without any
    transactions. Transactions of other sessions or of players outside
    `participant_ids` are ignored. Rows are ordered by net score, biggest
    winner first; ties keep the order of `participant_ids`.
    """

    buy_ins: Dict[str, float] = {pid: 0.0 for pid in participant_ids}
    cash_outs: Dict[str, float] = {pid: 0.0 for pid in participant_ids}

    for tx in all_transactions:
        if tx.session_id != session_id or tx.player_id not in buy_ins:
            continue
        if tx.kind == TransactionKind.BUY_IN:
            buy_ins[tx.player_id] += tx.amount
        elif tx.kind == TransactionKind.CASH_OUT:
            cash_outs[tx.player_id] += tx.amount

    stats = [
        PlayerSessionStats(
            player_id=pid,
            total_buy_in=buy_ins[pid],
            total_cash_out=cash_outs[pid],
            net_score=cash_outs[pid] - buy_ins[pid],
        )
        for pid in dict.fromkeys(participant_ids)
    ]
    stats.sort(key=lambda s: s.net_score, reverse=True)
    return stats


def compute_discrepancy(stats: Iterable[PlayerSessionStats]) -> float:
    """
    Total buy-in minus total cash-out.

    Positive means money is missing from the table, negative means more
    was paid out than was put in.
    """

    stats = list(stats)
    total_buy_in = sum(s.total_buy_in for s in stats)
    total_cash_out = sum(s.total_cash_out for s in stats)
    return total_buy_in - total_cash_out


def _player_name(player_directory: Mapping[str, Player], player_id: str) -> str:
    player = player_directory.get(player_id)
    if player is None:
        return UNKNOWN_PLAYER_NAME
    return player.name


def compute_settlement(
    stats: Iterable[PlayerSessionStats],
    player_directory: Mapping[str, Player],
) -> List[SettlementTransfer]:
    """
    Build the list of payments that zeroes every player's net score.

    Greedy: the biggest debtor pays the biggest creditor as much as one of
    them needs, then whichever side is settled moves on to the next player.
    The result is not guaranteed to be the absolute minimum number of
    transfers. If the ledger does not balance, whatever cannot be matched
    with a real counterparty is left unsettled.
    """

    stats = list(stats)

    # Working copies as [player_id, remaining]; the caller's stats stay untouched.
    debtors = [[s.player_id, s.net_score] for s in stats if s.net_score < 0]
    creditors = [[s.player_id, s.net_score] for s in stats if s.net_score > 0]

    debtors.sort(key=lambda entry: entry[1])
    creditors.sort(key=lambda entry: entry[1], reverse=True)

    transfers: List[SettlementTransfer] = []
    i = 0  # creditor cursor
    j = 0  # debtor cursor

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        amount = min(creditor[1], abs(debtor[1]))
        rounded = round(amount, 2)

        if rounded > 0:
            transfers.append(
                SettlementTransfer(
                    from_player_id=debtor[0],
                    from_player_name=_player_name(player_directory, debtor[0]),
                    to_player_id=creditor[0],
                    to_player_name=_player_name(player_directory, creditor[0]),
                    amount=rounded,
                )
            )

        creditor[1] -= amount
        debtor[1] += amount

        if is_near_zero(creditor[1]):
            i += 1
        if is_near_zero(debtor[1]):
            j += 1

    return transfers


@dataclass(frozen=True)
class SessionSummary:
    """Everything needed to show the state of a session's books."""

    session_id: str
    stats: List[PlayerSessionStats]
    transfers: List[SettlementTransfer]
    total_buy_in: float
    total_cash_out: float

    @property
    def discrepancy(self) -> float:
        return compute_discrepancy(self.stats)

    @property
    def is_balanced(self) -> bool:
        return is_near_zero(self.discrepancy)


def summarize_session(
    session: Session,
    all_transactions: Iterable[Transaction],
    players: Iterable[Player],
) -> SessionSummary:
    stats = compute_stats(session.id, all_transactions, session.player_ids)
    directory = {p.id: p for p in players}
    return SessionSummary(
        session_id=session.id,
        stats=stats,
        transfers=compute_settlement(stats, directory),
        total_buy_in=sum(s.total_buy_in for s in stats),
        total_cash_out=sum(s.total_cash_out for s in stats),
    )


def group_by_round(
    session_id: str,
    all_transactions: Iterable[Transaction],
) -> List[Tuple[int, List[Transaction]]]:
    """
    Group a session's transactions by round for history views.

    Rounds come newest first and so do the transactions within a round.
    """

    groups: Dict[int, List[Transaction]] = {}
    session_txs = sorted(
        (tx for tx in all_transactions if tx.session_id == session_id),
        key=lambda tx: tx.timestamp,
        reverse=True,
    )
    for tx in session_txs:
        groups.setdefault(tx.round or 1, []).append(tx)

    return sorted(groups.items(), key=lambda item: item[0], reverse=True)
