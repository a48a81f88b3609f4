from __future__ import annotations

import logging
from typing import Callable

import telebot
from telebot.apihelper import ApiTelegramException
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

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
    parse_id,
    parse_session_args,
    user_facing_error,
)
from interfaces.telegram.callback_data import (
    encode_delete_confirmation,
    is_delete_confirmation,
    parse_delete_confirmation,
)

logger = logging.getLogger(__name__)

PROVIDER = "telegram"


def _command_args(message) -> list[str]:
    """Arguments after the `/command` word."""

    return (message.text or "").split()[1:]


def _delete_markup(kind: str, record_id: int, requester_id: int) -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup(row_width=2)
    markup.add(
        InlineKeyboardButton(
            "yes",
            callback_data=encode_delete_confirmation(kind, record_id, requester_id, accepted=True),
        ),
        InlineKeyboardButton(
            "no",
            callback_data=encode_delete_confirmation(kind, record_id, requester_id, accepted=False),
        ),
    )
    return markup


def create_telegram_bot(
    bot_token: str,
    store: LedgerStore,
    identity_repo: IdentityRepository,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application functions.
    """

    bot = telebot.TeleBot(bot_token)

    def current_user_id(message) -> int:
        return resolve_external_identity(identity_repo, PROVIDER, str(message.from_user.id))

    def reply(message, action: Callable[[], str]) -> None:
        try:
            text = action()
        except GrindlogError as exc:
            text = user_facing_error(exc)
        bot.send_message(message.chat.id, text)

    @bot.message_handler(commands=["start", "help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "Welcome to the grind tracker!\n\n" + help_text("/"),
        )

    def refuse_credentials_outside_private_chat(message) -> bool:
        """Drop a `/register` or `/login` sent to a group; True if refused."""

        if message.chat.type == "private":
            return False
        try:
            bot.delete_message(message.chat.id, message.message_id)
        except ApiTelegramException as exc:
            logger.warning("Could not delete credentials message in chat %s: %s", message.chat.id, exc)
        bot.send_message(message.chat.id, PRIVATE_CHAT_ONLY)
        return True

    @bot.message_handler(commands=["register"])
    def handle_register(message):
        if refuse_credentials_outside_private_chat(message):
            return

        def action() -> str:
            args = _command_args(message)
            if len(args) != 3:
                return "Usage: /register <username> <email> <password>"
            user = accounts.register(store, *args)
            identity_repo.set_external_identity(PROVIDER, str(message.from_user.id), user.id)
            return f"Welcome, {user.username}! This chat is now linked to your account."

        reply(message, action)

    @bot.message_handler(commands=["login"])
    def handle_login(message):
        if refuse_credentials_outside_private_chat(message):
            return

        def action() -> str:
            args = _command_args(message)
            if len(args) != 2:
                return "Usage: /login <username> <password>"
            user = accounts.authenticate(store, *args)
            identity_repo.set_external_identity(PROVIDER, str(message.from_user.id), user.id)
            return f"Logged in as {user.username}."

        reply(message, action)

    @bot.message_handler(commands=["logout"])
    def handle_logout(message):
        identity_repo.clear_external_identity(PROVIDER, str(message.from_user.id))
        bot.send_message(message.chat.id, "Logged out.")

    @bot.message_handler(commands=["session"])
    def handle_session(message):
        def action() -> str:
            user_id = current_user_id(message)
            session = services.create_session(
                store, user_id, **parse_session_args(_command_args(message))
            )
            bankroll = services.get_bankroll(store, user_id)
            return f"Logged {format_session(session)}\n{format_bankroll(bankroll)}"

        reply(message, action)

    @bot.message_handler(commands=["sessions"])
    def handle_sessions(message):
        reply(message, lambda: format_sessions(services.list_sessions(store, current_user_id(message))))

    @bot.message_handler(commands=["delete", "delnote"])
    def handle_delete(message):
        kind = "note" if message.text.startswith("/delnote") else "session"
        args = _command_args(message)
        if len(args) != 1:
            usage = "/delnote <note_id>" if kind == "note" else "/delete <session_id>"
            bot.send_message(message.chat.id, f"Usage: {usage}")
            return

        try:
            current_user_id(message)
            record_id = parse_id("id", args[0])
        except GrindlogError as exc:
            bot.send_message(message.chat.id, user_facing_error(exc))
            return

        bot.send_message(
            message.chat.id,
            f"Delete {kind} #{record_id}?",
            reply_markup=_delete_markup(kind, record_id, message.from_user.id),
        )

    @bot.message_handler(commands=["bankroll"])
    def handle_bankroll(message):
        reply(message, lambda: format_bankroll(services.get_bankroll(store, current_user_id(message))))

    @bot.message_handler(commands=["stats"])
    def handle_stats(message):
        reply(message, lambda: format_stats(stats.compute_stats(store, current_user_id(message))))

    @bot.message_handler(commands=["note"])
    def handle_note(message):
        def action() -> str:
            user_id = current_user_id(message)
            args = _command_args(message)
            if len(args) < 3:
                return "Usage: /note <player> <category> <text...>"
            note = notes.create_player_note(store, user_id, args[0], args[1], " ".join(args[2:]))
            return f"Saved {format_note(note)}"

        reply(message, action)

    @bot.message_handler(commands=["notes"])
    def handle_notes(message):
        reply(message, lambda: format_notes(notes.list_player_notes(store, current_user_id(message))))

    @bot.message_handler(commands=["goals"])
    def handle_goals(message):
        def action() -> str:
            user_id = current_user_id(message)
            current = notes.get_settings(store, user_id)
            saved = notes.save_settings(
                store,
                user_id,
                weekly_goals=" ".join(_command_args(message)),
                session_notes=current.session_notes,
            )
            return format_settings(saved)

        reply(message, action)

    @bot.message_handler(commands=["settings"])
    def handle_settings(message):
        reply(message, lambda: format_settings(notes.get_settings(store, current_user_id(message))))

    @bot.callback_query_handler(func=lambda call: is_delete_confirmation(call.data or ""))
    def handle_delete_confirmation(call):
        """
        Apply or cancel a pending delete.

        Only the user who asked for the delete may answer the prompt. The
        ledger user is then resolved again from whoever pressed the button.
        """

        try:
            kind, record_id, requester_id, accepted = parse_delete_confirmation(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid confirmation.")
            return

        if call.from_user.id != requester_id:
            bot.answer_callback_query(call.id, "Only the user who asked for this delete can answer.")
            return

        bot.answer_callback_query(call.id)
        try:
            if not accepted:
                text = "Cancelled."
            else:
                user_id = resolve_external_identity(identity_repo, PROVIDER, str(call.from_user.id))
                if kind == "session":
                    session = services.delete_session(store, user_id, record_id)
                    bankroll = services.get_bankroll(store, user_id)
                    text = f"Deleted session #{session.id}.\n{format_bankroll(bankroll)}"
                else:
                    notes.delete_player_note(store, user_id, record_id)
                    text = f"Deleted note #{record_id}."
        except GrindlogError as exc:
            text = user_facing_error(exc)
        finally:
            bot.delete_message(call.message.chat.id, call.message.id)

        bot.send_message(call.message.chat.id, text)

    logger.debug("Telegram handlers registered")
    return bot
