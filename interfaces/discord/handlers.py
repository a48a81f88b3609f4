from __future__ import annotations

import logging
from typing import Dict, Tuple

import discord
from discord.ext import commands

from application import accounts, notes, services, stats
from application.auth import resolve_external_identity
from domain.errors import GrindlogError
from domain.repositories import IdentityRepository, LedgerStore
from interfaces.formatting import (
    PRIVATE_CHAT_ONLY,
    format_bankroll,
    format_note,
    format_notes,
    format_session,
    format_sessions,
    format_settings,
    format_stats,
    help_text,
    parse_session_args,
    user_facing_error,
)

logger = logging.getLogger(__name__)

PROVIDER = "discord"
CONFIRM = "✅"
CANCEL = "❌"


def create_discord_bot(
    store: LedgerStore,
    identity_repo: IdentityRepository,
) -> commands.Bot:
    """
    Configure and return a Discord bot with the same commands as the
    Telegram interface, using `!` as the prefix.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.reactions = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    # Deletes waiting for a reaction, keyed by the confirmation message ID.
    pending_deletes: Dict[int, Tuple[str, int, int]] = {}
    # value: (kind, record_id, requester_discord_id)

    def current_user_id(author: discord.abc.User) -> int:
        return resolve_external_identity(identity_repo, PROVIDER, str(author.id))

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        original = getattr(error, "original", error)
        if isinstance(original, GrindlogError):
            await ctx.send(user_facing_error(original))
        elif isinstance(error, (commands.MissingRequiredArgument, commands.BadArgument)):
            await ctx.send(f"{error}\nType !help to see available commands.")
        elif isinstance(error, commands.CommandNotFound):
            return
        else:
            logger.error("Command %s failed", ctx.command, exc_info=original)
            await ctx.send("Something went wrong, please try again later.")

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(help_text("!"))

    async def refuse_credentials_outside_dm(ctx: commands.Context) -> bool:
        """Drop a `!register` or `!login` sent to a server channel; True if refused."""

        if ctx.guild is None:
            return False
        try:
            await ctx.message.delete()
        except discord.HTTPException as exc:
            logger.warning("Could not delete credentials message in %s: %s", ctx.channel, exc)
        await ctx.send(PRIVATE_CHAT_ONLY)
        return True

    @bot.command(name="register")
    async def register_cmd(ctx: commands.Context, username: str, email: str, password: str):
        if await refuse_credentials_outside_dm(ctx):
            return
        user = accounts.register(store, username, email, password)
        identity_repo.set_external_identity(PROVIDER, str(ctx.author.id), user.id)
        await ctx.send(f"Welcome, {user.username}! Your Discord account is now linked.")

    @bot.command(name="login")
    async def login_cmd(ctx: commands.Context, username: str, password: str):
        if await refuse_credentials_outside_dm(ctx):
            return
        user = accounts.authenticate(store, username, password)
        identity_repo.set_external_identity(PROVIDER, str(ctx.author.id), user.id)
        await ctx.send(f"Logged in as {user.username}.")

    @bot.command(name="logout")
    async def logout_cmd(ctx: commands.Context):
        identity_repo.clear_external_identity(PROVIDER, str(ctx.author.id))
        await ctx.send("Logged out.")

    @bot.command(name="session")
    async def session_cmd(ctx: commands.Context, *args: str):
        """
        !session <date> <earnings> [play_minutes] [games] [hands] [study_minutes] [notes...]
        """

        user_id = current_user_id(ctx.author)
        session = services.create_session(store, user_id, **parse_session_args(args))
        bankroll = services.get_bankroll(store, user_id)
        await ctx.send(f"Logged {format_session(session)}\n{format_bankroll(bankroll)}")

    @bot.command(name="sessions")
    async def sessions_cmd(ctx: commands.Context):
        sessions = services.list_sessions(store, current_user_id(ctx.author))
        await ctx.send(format_sessions(sessions))

    async def request_delete(ctx: commands.Context, kind: str, record_id: int):
        current_user_id(ctx.author)
        confirmation_message = await ctx.send(
            f"{ctx.author.mention}, delete {kind} #{record_id}?\n"
            f"React with {CONFIRM} to confirm or {CANCEL} to cancel."
        )
        await confirmation_message.add_reaction(CONFIRM)
        await confirmation_message.add_reaction(CANCEL)
        pending_deletes[confirmation_message.id] = (kind, record_id, ctx.author.id)

    @bot.command(name="delete")
    async def delete_cmd(ctx: commands.Context, session_id: int):
        await request_delete(ctx, "session", session_id)

    @bot.command(name="delnote")
    async def delnote_cmd(ctx: commands.Context, note_id: int):
        await request_delete(ctx, "note", note_id)

    @bot.command(name="bankroll")
    async def bankroll_cmd(ctx: commands.Context):
        await ctx.send(format_bankroll(services.get_bankroll(store, current_user_id(ctx.author))))

    @bot.command(name="stats")
    async def stats_cmd(ctx: commands.Context):
        report = stats.compute_stats(store, current_user_id(ctx.author))
        await ctx.send(format_stats(report))

    @bot.command(name="note")
    async def note_cmd(ctx: commands.Context, player: str, category: str, *, text: str):
        note = notes.create_player_note(store, current_user_id(ctx.author), player, category, text)
        await ctx.send(f"Saved {format_note(note)}")

    @bot.command(name="notes")
    async def notes_cmd(ctx: commands.Context):
        await ctx.send(format_notes(notes.list_player_notes(store, current_user_id(ctx.author))))

    @bot.command(name="goals")
    async def goals_cmd(ctx: commands.Context, *, text: str = ""):
        user_id = current_user_id(ctx.author)
        current = notes.get_settings(store, user_id)
        saved = notes.save_settings(
            store, user_id, weekly_goals=text, session_notes=current.session_notes
        )
        await ctx.send(format_settings(saved))

    @bot.command(name="settings")
    async def settings_cmd(ctx: commands.Context):
        await ctx.send(format_settings(notes.get_settings(store, current_user_id(ctx.author))))

    @bot.event
    async def on_reaction_add(reaction: discord.Reaction, user: discord.abc.User):
        # Ignore bot reactions and reactions not on tracked messages.
        if user.bot:
            return

        message_id = reaction.message.id
        if message_id not in pending_deletes:
            return

        kind, record_id, requester_id = pending_deletes[message_id]

        # Only the user who asked for the delete can confirm it.
        if user.id != requester_id:
            return

        emoji = str(reaction.emoji)
        channel = reaction.message.channel
        if emoji not in (CONFIRM, CANCEL):
            return

        pending_deletes.pop(message_id, None)

        if emoji == CANCEL:
            await channel.send("Cancelled.")
            return

        try:
            user_id = current_user_id(user)
            if kind == "session":
                session = services.delete_session(store, user_id, record_id)
                bankroll = services.get_bankroll(store, user_id)
                await channel.send(f"Deleted session #{session.id}.\n{format_bankroll(bankroll)}")
            else:
                notes.delete_player_note(store, user_id, record_id)
                await channel.send(f"Deleted note #{record_id}.")
        except GrindlogError as exc:
            await channel.send(user_facing_error(exc))

    return bot
