"""
Plain-text rendering shared by the Telegram and Discord bots.

Only presentation lives here; all numbers come from `domain.ledger`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from domain.ledger import UNKNOWN_PLAYER_NAME, SessionSummary
from domain.models import GameType, Player, Session, Transaction, TransactionKind

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CNY": "¥",
}


@dataclass(frozen=True)
class ActionLabels:
    buy_in: str
    cash_out: str


def format_currency(amount: float, currency: str = "USD") -> str:
    """Format `amount` as e.g. `$1,234.50` or `-¥20.00`."""

    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol is None:
        raise ValueError(f"Unsupported currency: {currency}")
    sign = "-" if round(amount, 2) < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_signed(amount: float, currency: str = "USD") -> str:
    """Like `format_currency` but always shows a sign for non-zero amounts."""

    text = format_currency(amount, currency)
    if round(amount, 2) > 0:
        return "+" + text
    return text


def action_labels(game_type: GameType) -> ActionLabels:
    # Without chips a buy-in is just a recorded loss and a cash-out a win.
    if game_type == GameType.POKER:
        return ActionLabels(buy_in="buy-in", cash_out="cash-out")
    return ActionLabels(buy_in="loss", cash_out="win")


def kind_label(kind: TransactionKind, game_type: GameType) -> str:
    labels = action_labels(game_type)
    return labels.buy_in if kind == TransactionKind.BUY_IN else labels.cash_out


def _names(players: Iterable[Player]) -> Dict[str, str]:
    return {p.id: p.name for p in players}


def render_session_list(active: Sequence[Session], completed: Sequence[Session]) -> str:
    if not active and not completed:
        return "No sessions yet. Start one with new <name>."

    lines: List[str] = []
    if active:
        lines.append("Active:")
        lines.extend(
            f"  [{s.id}] {s.name} ({s.game_type.value.lower()}, round {s.current_round})"
            for s in active
        )
    if completed:
        lines.append("History:")
        lines.extend(
            f"  [{s.id}] {s.name} ({s.game_type.value.lower()})" for s in completed
        )
    return "\n".join(lines)


def render_summary(
    session: Session,
    summary: SessionSummary,
    players: Iterable[Player],
    currency: str = "USD",
) -> str:
    names = _names(players)
    labels = action_labels(session.game_type)
    status = f"round {session.current_round}" if session.is_active else "final"

    lines = [f"{session.name} ({status})"]
    if not summary.stats:
        lines.append("No players yet.")
        return "\n".join(lines)

    for stat in summary.stats:
        lines.append(
            f"{names.get(stat.player_id, UNKNOWN_PLAYER_NAME)}: "
            f"{format_signed(stat.net_score, currency)} "
            f"({labels.buy_in} {format_currency(stat.total_buy_in, currency)}, "
            f"{labels.cash_out} {format_currency(stat.total_cash_out, currency)})"
        )

    lines.append(
        f"Total {labels.buy_in}: {format_currency(summary.total_buy_in, currency)}, "
        f"total {labels.cash_out}: {format_currency(summary.total_cash_out, currency)}"
    )

    if not summary.is_balanced:
        warning = "Money missing" if summary.discrepancy > 0 else "Extra money"
        lines.append(
            f"⚠ Ledger does not balance. {warning}: "
            f"{format_currency(abs(summary.discrepancy), currency)}"
        )

    lines.append("")
    if summary.transfers:
        lines.append("Settlement:")
        lines.extend(
            f"  {t.from_player_name} → {t.to_player_name}: "
            f"{format_currency(t.amount, currency)}"
            for t in summary.transfers
        )
    else:
        lines.append("Nothing to settle.")
    return "\n".join(lines)


def render_history(
    session: Session,
    rounds: Sequence[Tuple[int, List[Transaction]]],
    players: Iterable[Player],
    currency: str = "USD",
) -> str:
    if not rounds:
        return "No transactions yet."

    names = _names(players)
    lines: List[str] = []
    for round_number, txs in rounds:
        lines.append(f"Round {round_number}")
        for tx in txs:
            lines.append(
                f"  [{tx.id}] {tx.timestamp:%H:%M} "
                f"{names.get(tx.player_id, UNKNOWN_PLAYER_NAME)} "
                f"{kind_label(tx.kind, session.game_type)} "
                f"{format_currency(tx.amount, currency)}"
            )
    return "\n".join(lines)
