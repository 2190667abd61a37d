from __future__ import annotations

from typing import Dict, Optional

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.services import (
    add_player_to_session,
    advance_round,
    create_session,
    delete_session,
    delete_transaction,
    end_session,
    get_round_history,
    get_session_summary,
    list_sessions,
    record_transaction,
)
from domain.models import TransactionKind
from domain.repositories import StateStorage
from interfaces.commands import parse_amount, parse_new_session_args
from interfaces.formatting import (
    format_currency,
    kind_label,
    render_history,
    render_session_list,
    render_summary,
)
from interfaces.telegram.callback_data import (
    encode_confirmation,
    encode_player_choice,
    parse_confirmation,
    parse_player_choice,
)

CONFIRM_PROMPTS = {
    "round": "Start the next round?",
    "end": "End this session and settle up?",
    "delete": "Delete this session and all of its transactions?",
}


def _command_args(message) -> list[str]:
    return message.text.split()[1:]


def create_telegram_bot(
    bot_token: str,
    storage: StateStorage,
    currency: str = "USD",
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services.
    """

    bot = telebot.TeleBot(bot_token)

    # The session each chat is currently working on, keyed by chat ID.
    open_sessions: Dict[int, str] = {}

    def _open_session_id(message) -> Optional[str]:
        session_id = open_sessions.get(message.chat.id)
        if session_id is None:
            bot.send_message(
                message.chat.id,
                "No session open. Use /new <name> or /open <id> first.",
            )
        return session_id

    def _confirm_markup(session_id: str, action: str) -> InlineKeyboardMarkup:
        markup = InlineKeyboardMarkup(row_width=2)
        markup.add(
            InlineKeyboardButton(
                "yes",
                callback_data=encode_confirmation(session_id, action, accepted=True),
            ),
            InlineKeyboardButton(
                "no",
                callback_data=encode_confirmation(session_id, action, accepted=False),
            ),
        )
        return markup

    @bot.message_handler(commands=["start", "hello"])
    def handle_start(message):
        bot.send_message(
            message.chat.id,
            "Welcome to the table ledger bot!\n"
            "Use /new to start a session and /buyin or /cashout to record chips.\n"
            "Type /help to see available commands.",
        )

    @bot.message_handler(commands=["help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/new [poker|mahjong|general] <name> - start a session\n"
            "/games                - list sessions\n"
            "/open <id>            - switch to a session\n"
            "/join <name>          - add a player to the session\n"
            "/buyin <amount>       - record a buy-in (or a loss)\n"
            "/cashout <amount>     - record a cash-out (or a win)\n"
            "/stats                - standings and settlement\n"
            "/history              - transactions by round\n"
            "/undo <tx id>         - delete a transaction\n"
            "/round                - start the next round\n"
            "/end                  - end the session and settle up\n"
            "/delete               - delete the session\n",
        )

    @bot.message_handler(commands=["new"])
    def handle_new(message):
        game_type, name = parse_new_session_args(_command_args(message))
        result = create_session(name, game_type, storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return

        open_sessions[message.chat.id] = result.session.id
        bot.send_message(
            message.chat.id,
            f"Started {game_type.value.lower()} session "
            f"{result.session.name} [{result.session.id}].\n"
            "Add players with /join <name>.",
        )

    @bot.message_handler(commands=["games"])
    def handle_games(message):
        listing = list_sessions(storage)
        bot.send_message(
            message.chat.id,
            render_session_list(listing.active, listing.completed),
        )

    @bot.message_handler(commands=["open"])
    def handle_open(message):
        args = _command_args(message)
        if not args:
            bot.send_message(message.chat.id, "Please enter a session id.")
            return

        result = get_session_summary(args[0], storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return

        open_sessions[message.chat.id] = result.session.id
        bot.send_message(
            message.chat.id,
            render_summary(result.session, result.summary, result.players, currency),
        )

    @bot.message_handler(commands=["join"])
    def handle_join(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        name = " ".join(_command_args(message))
        result = add_player_to_session(session_id, name, storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        bot.send_message(message.chat.id, f"{result.player.name} joined the table.")

    @bot.message_handler(commands=["buyin", "cashout"])
    def handle_transaction(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        args = _command_args(message)
        if not args:
            bot.send_message(message.chat.id, "Please enter an amount.")
            return

        try:
            amount = parse_amount(args[0])
        except ValueError as exc:
            bot.send_message(message.chat.id, str(exc))
            return
        if amount <= 0:
            bot.send_message(message.chat.id, "Amount must be greater than zero.")
            return

        result = get_session_summary(session_id, storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        if not result.players:
            bot.send_message(message.chat.id, "No players yet. Use /join <name>.")
            return

        op = message.text.split()[0][1:].split("@")[0]  # strip leading '/' and bot name
        kind = TransactionKind.BUY_IN if op == "buyin" else TransactionKind.CASH_OUT

        markup = InlineKeyboardMarkup(row_width=2)
        markup.add(
            *[
                InlineKeyboardButton(
                    player.name,
                    callback_data=encode_player_choice(
                        session_id, kind, player.id, amount
                    ),
                )
                for player in result.players
            ]
        )
        bot.send_message(
            message.chat.id,
            f"Who is the {kind_label(kind, result.session.game_type)} of "
            f"{format_currency(amount, currency)} for?",
            reply_markup=markup,
        )

    @bot.callback_query_handler(func=lambda call: call.data.startswith("tx:"))
    def handle_player_choice(call):
        """
        Record the buy-in/cash-out once a player has been picked.
        """

        try:
            session_id, kind, player_id, amount = parse_player_choice(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        try:
            result = record_transaction(session_id, player_id, kind, amount, storage)
            if not result.success:
                bot.send_message(call.message.chat.id, result.error_message)
                return

            summary = get_session_summary(session_id, storage)
            names = {p.id: p.name for p in summary.players}
            label = kind_label(kind, summary.session.game_type)
            bot.send_message(
                call.message.chat.id,
                f"{names.get(player_id, player_id)}: {label} "
                f"{format_currency(amount, currency)} "
                f"(round {result.transaction.round}) [{result.transaction.id}]",
            )
        finally:
            bot.answer_callback_query(call.id)
            bot.delete_message(call.message.chat.id, call.message.id)

    @bot.message_handler(commands=["stats", "settle"])
    def handle_stats(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        result = get_session_summary(session_id, storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        bot.send_message(
            message.chat.id,
            render_summary(result.session, result.summary, result.players, currency),
        )

    @bot.message_handler(commands=["history"])
    def handle_history(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        summary = get_session_summary(session_id, storage)
        history = get_round_history(session_id, storage)
        if not history.success:
            bot.send_message(message.chat.id, history.error_message)
            return
        bot.send_message(
            message.chat.id,
            render_history(summary.session, history.rounds, history.players, currency),
        )

    @bot.message_handler(commands=["undo"])
    def handle_undo(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        args = _command_args(message)
        if not args:
            bot.send_message(message.chat.id, "Please enter a transaction id.")
            return

        result = delete_transaction(session_id, args[0], storage)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        bot.send_message(message.chat.id, "Transaction deleted.")

    @bot.message_handler(commands=["round", "end", "delete"])
    def handle_confirmable(message):
        session_id = _open_session_id(message)
        if session_id is None:
            return

        action = message.text.split()[0][1:].split("@")[0]
        bot.send_message(
            message.chat.id,
            CONFIRM_PROMPTS[action],
            reply_markup=_confirm_markup(session_id, action),
        )

    @bot.callback_query_handler(
        func=lambda call: call.data.startswith("yes:") or call.data.startswith("no:")
    )
    def handle_confirmation(call):
        """
        Carry out (or drop) a confirmed round/end/delete request.
        """

        try:
            accepted, action, session_id = parse_confirmation(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid confirmation.")
            return

        chat_id = call.message.chat.id
        try:
            if not accepted:
                return

            if action == "round":
                result = advance_round(session_id, storage)
                text = (
                    f"Round {result.session.current_round} started."
                    if result.success
                    else result.error_message
                )
            elif action == "end":
                result = end_session(session_id, storage)
                if result.success:
                    players = get_session_summary(session_id, storage).players
                    text = render_summary(
                        result.session, result.summary, players, currency
                    )
                else:
                    text = result.error_message
            else:
                result = delete_session(session_id, storage)
                if result.success and open_sessions.get(chat_id) == session_id:
                    open_sessions.pop(chat_id, None)
                text = "Session deleted." if result.success else result.error_message

            bot.send_message(chat_id, text)
        finally:
            bot.answer_callback_query(call.id)
            bot.delete_message(chat_id, call.message.id)

    return bot
