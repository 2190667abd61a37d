from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import discord
from discord.ext import commands

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

logger = logging.getLogger(__name__)

CONFIRM_EMOJI = "✅"
CANCEL_EMOJI = "❌"


def create_discord_bot(
    storage: StateStorage,
    currency: str = "USD",
) -> commands.Bot:
    """
    Configure and return a Discord bot with behaviour analogous to
    the Telegram interface: sessions, players, buy-ins/cash-outs and
    settlement. Players are named in the command itself instead of
    being picked from a keyboard.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.reactions = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    # The session each channel is currently working on.
    open_sessions: Dict[int, str] = {}

    # In-memory store of pending round/end/delete requests keyed by the
    # confirmation message ID.
    pending_requests: Dict[int, Tuple[str, str, int]] = {}
    # value: (session_id, action, requester_discord_id)

    async def _open_session_id(ctx: commands.Context) -> Optional[str]:
        session_id = open_sessions.get(ctx.channel.id)
        if session_id is None:
            await ctx.send("No session open. Use !new <name> or !open <id> first.")
        return session_id

    async def _ask_confirmation(ctx: commands.Context, action: str, prompt: str):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        message = await ctx.send(
            f"{prompt}\nReact with {CONFIRM_EMOJI} to confirm or {CANCEL_EMOJI} to cancel."
        )
        await message.add_reaction(CONFIRM_EMOJI)
        await message.add_reaction(CANCEL_EMOJI)
        pending_requests[message.id] = (session_id, action, ctx.author.id)

    async def _record(ctx: commands.Context, kind: TransactionKind, amount_text: str, player_name: str):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        try:
            amount = parse_amount(amount_text)
        except ValueError as exc:
            await ctx.send(str(exc))
            return

        summary = get_session_summary(session_id, storage)
        if not summary.success:
            await ctx.send(summary.error_message)
            return

        player = next(
            (p for p in summary.players if p.name.lower() == player_name.strip().lower()),
            None,
        )
        if player is None:
            await ctx.send(f"{player_name} is not at this table. Use !join {player_name}.")
            return

        result = record_transaction(session_id, player.id, kind, amount, storage)
        if not result.success:
            await ctx.send(result.error_message or "Could not record transaction.")
            return

        await ctx.send(
            f"{player.name}: {kind_label(kind, summary.session.game_type)} "
            f"{format_currency(amount, currency)} "
            f"(round {result.transaction.round}) [{result.transaction.id}]"
        )

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="start")
    async def start_cmd(ctx: commands.Context):
        await ctx.send(
            "Welcome to the table ledger bot (Discord)!\n"
            "Use !new to start a session and !buyin or !cashout to record chips.\n"
            "Type !help to see available commands."
        )

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(
            "!new [poker|mahjong|general] <name>  - start a session\n"
            "!games                    - list sessions\n"
            "!open <id>                - switch to a session\n"
            "!join <name>              - add a player to the session\n"
            "!buyin <amount> <name>    - record a buy-in (or a loss)\n"
            "!cashout <amount> <name>  - record a cash-out (or a win)\n"
            "!stats                    - standings and settlement\n"
            "!history                  - transactions by round\n"
            "!undo <tx id>             - delete a transaction\n"
            "!round                    - start the next round\n"
            "!end                      - end the session and settle up\n"
            "!delete                   - delete the session\n"
        )

    @bot.command(name="new")
    async def new_cmd(ctx: commands.Context, *args: str):
        game_type, name = parse_new_session_args(args)
        result = create_session(name, game_type, storage)
        if not result.success:
            await ctx.send(result.error_message)
            return

        open_sessions[ctx.channel.id] = result.session.id
        await ctx.send(
            f"Started {game_type.value.lower()} session "
            f"{result.session.name} [{result.session.id}].\n"
            "Add players with !join <name>."
        )

    @bot.command(name="games")
    async def games_cmd(ctx: commands.Context):
        listing = list_sessions(storage)
        await ctx.send(render_session_list(listing.active, listing.completed))

    @bot.command(name="open")
    async def open_cmd(ctx: commands.Context, session_id: str):
        result = get_session_summary(session_id, storage)
        if not result.success:
            await ctx.send(result.error_message)
            return

        open_sessions[ctx.channel.id] = result.session.id
        await ctx.send(render_summary(result.session, result.summary, result.players, currency))

    @bot.command(name="join")
    async def join_cmd(ctx: commands.Context, *, name: str):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        result = add_player_to_session(session_id, name, storage)
        if not result.success:
            await ctx.send(result.error_message)
            return
        await ctx.send(f"{result.player.name} joined the table.")

    @bot.command(name="buyin")
    async def buyin_cmd(ctx: commands.Context, amount: str, *, name: str):
        await _record(ctx, TransactionKind.BUY_IN, amount, name)

    @bot.command(name="cashout")
    async def cashout_cmd(ctx: commands.Context, amount: str, *, name: str):
        await _record(ctx, TransactionKind.CASH_OUT, amount, name)

    @bot.command(name="stats", aliases=["settle"])
    async def stats_cmd(ctx: commands.Context):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        result = get_session_summary(session_id, storage)
        if not result.success:
            await ctx.send(result.error_message)
            return
        await ctx.send(render_summary(result.session, result.summary, result.players, currency))

    @bot.command(name="history")
    async def history_cmd(ctx: commands.Context):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        summary = get_session_summary(session_id, storage)
        history = get_round_history(session_id, storage)
        if not history.success:
            await ctx.send(history.error_message)
            return
        await ctx.send(render_history(summary.session, history.rounds, history.players, currency))

    @bot.command(name="undo")
    async def undo_cmd(ctx: commands.Context, transaction_id: str):
        session_id = await _open_session_id(ctx)
        if session_id is None:
            return

        result = delete_transaction(session_id, transaction_id, storage)
        await ctx.send("Transaction deleted." if result.success else result.error_message)

    @bot.command(name="round")
    async def round_cmd(ctx: commands.Context):
        await _ask_confirmation(ctx, "round", "Start the next round?")

    @bot.command(name="end")
    async def end_cmd(ctx: commands.Context):
        await _ask_confirmation(ctx, "end", "End this session and settle up?")

    @bot.command(name="delete")
    async def delete_cmd(ctx: commands.Context):
        await _ask_confirmation(ctx, "delete", "Delete this session and all of its transactions?")

    @bot.event
    async def on_reaction_add(reaction: discord.Reaction, user: discord.abc.User):
        # Ignore bot reactions and reactions not on tracked messages.
        if user.bot:
            return

        message_id = reaction.message.id
        if message_id not in pending_requests:
            return

        session_id, action, requester_id = pending_requests[message_id]

        # Only whoever asked can confirm/cancel.
        if user.id != requester_id:
            return

        emoji = str(reaction.emoji)
        channel = reaction.message.channel

        if emoji == CANCEL_EMOJI:
            pending_requests.pop(message_id, None)
            await channel.send("Cancelled.")
            return
        if emoji != CONFIRM_EMOJI:
            return

        # Once reacted, remove the pending request.
        pending_requests.pop(message_id, None)

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
                text = render_summary(result.session, result.summary, players, currency)
            else:
                text = result.error_message
        else:
            result = delete_session(session_id, storage)
            if result.success and open_sessions.get(channel.id) == session_id:
                open_sessions.pop(channel.id, None)
            text = "Session deleted." if result.success else result.error_message

        await channel.send(text)

    return bot
