import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

from application.accounts import register
from application.services import create_session, list_sessions
from fakes import InMemoryIdentityRepository, InMemoryLedgerStore
from interfaces.discord.handlers import create_discord_bot
from interfaces.formatting import PRIVATE_CHAT_ONLY
from interfaces.telegram.callback_data import encode_delete_confirmation
from interfaces.telegram.handlers import create_telegram_bot


def _telegram_message(text, chat_type="private", chat_id=7, user_id=7, message_id=55):
    return SimpleNamespace(
        text=text,
        chat=SimpleNamespace(id=chat_id, type=chat_type),
        from_user=SimpleNamespace(id=user_id),
        message_id=message_id,
    )


class TelegramHandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryLedgerStore()
        self.identities = InMemoryIdentityRepository()
        self.bot = create_telegram_bot("123456:TEST-TOKEN", self.store, self.identities)
        self.bot.send_message = Mock()
        self.bot.delete_message = Mock()
        self.bot.answer_callback_query = Mock()

    def _command(self, name):
        for handler in self.bot.message_handlers:
            if name in (handler["filters"].get("commands") or []):
                return handler["function"]
        raise AssertionError(f"no handler for /{name}")

    def _confirmation_handler(self):
        return self.bot.callback_query_handlers[0]["function"]

    def test_register_in_group_is_refused_and_message_removed(self):
        message = _telegram_message(
            "/register alice alice@example.com secret1", chat_type="group", chat_id=-100
        )

        self._command("register")(message)

        self.bot.delete_message.assert_called_once_with(-100, 55)
        self.bot.send_message.assert_called_once_with(-100, PRIVATE_CHAT_ONLY)
        self.assertIsNone(self.identities.find_user_id_by_external("telegram", "7"))
        self.assertIsNone(self.store.find_one("users", {"username": "alice"}))

    def test_login_in_group_is_refused(self):
        register(self.store, "alice", "alice@example.com", "secret1")
        message = _telegram_message("/login alice secret1", chat_type="supergroup", chat_id=-100)

        self._command("login")(message)

        self.bot.delete_message.assert_called_once_with(-100, 55)
        self.assertIsNone(self.identities.find_user_id_by_external("telegram", "7"))

    def test_register_in_private_chat_links_the_account(self):
        self._command("register")(_telegram_message("/register alice alice@example.com secret1"))

        self.bot.delete_message.assert_not_called()
        user = self.store.find_one("users", {"username": "alice"})
        self.assertEqual(self.identities.find_user_id_by_external("telegram", "7"), user["id"])

    def test_only_the_requester_can_answer_a_delete_prompt(self):
        user_id = register(self.store, "alice", "alice@example.com", "secret1").id
        self.identities.set_external_identity("telegram", "7", user_id)
        session = create_session(self.store, user_id, "2024-05-01", earnings=25)
        prompt = SimpleNamespace(chat=SimpleNamespace(id=-100), id=99)

        for accepted in (True, False):
            stranger = SimpleNamespace(
                id="cb-1",
                data=encode_delete_confirmation("session", session.id, 7, accepted=accepted),
                from_user=SimpleNamespace(id=8),
                message=prompt,
            )
            self._confirmation_handler()(stranger)

        self.bot.delete_message.assert_not_called()
        self.bot.send_message.assert_not_called()
        self.assertEqual(len(list_sessions(self.store, user_id)), 1)

        owner = SimpleNamespace(
            id="cb-2",
            data=encode_delete_confirmation("session", session.id, 7, accepted=True),
            from_user=SimpleNamespace(id=7),
            message=prompt,
        )
        self._confirmation_handler()(owner)

        self.bot.delete_message.assert_called_once_with(-100, 99)
        self.assertEqual(list_sessions(self.store, user_id), [])


class DiscordHandlerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = InMemoryLedgerStore()
        self.identities = InMemoryIdentityRepository()
        self.bot = create_discord_bot(self.store, self.identities)

    def _context(self, in_guild):
        return SimpleNamespace(
            guild=object() if in_guild else None,
            channel="general",
            author=SimpleNamespace(id=5),
            message=SimpleNamespace(delete=AsyncMock()),
            send=AsyncMock(),
        )

    async def test_register_in_server_channel_is_refused_and_message_removed(self):
        ctx = self._context(in_guild=True)

        await self.bot.get_command("register").callback(ctx, "alice", "alice@example.com", "secret1")

        ctx.message.delete.assert_awaited_once()
        ctx.send.assert_awaited_once_with(PRIVATE_CHAT_ONLY)
        self.assertIsNone(self.store.find_one("users", {"username": "alice"}))
        self.assertIsNone(self.identities.find_user_id_by_external("discord", "5"))

    async def test_login_in_server_channel_is_refused(self):
        register(self.store, "alice", "alice@example.com", "secret1")
        ctx = self._context(in_guild=True)

        await self.bot.get_command("login").callback(ctx, "alice", "secret1")

        ctx.message.delete.assert_awaited_once()
        self.assertIsNone(self.identities.find_user_id_by_external("discord", "5"))

    async def test_login_in_direct_message_links_the_account(self):
        user_id = register(self.store, "alice", "alice@example.com", "secret1").id
        ctx = self._context(in_guild=False)

        await self.bot.get_command("login").callback(ctx, "alice", "secret1")

        ctx.message.delete.assert_not_awaited()
        self.assertEqual(self.identities.find_user_id_by_external("discord", "5"), user_id)


if __name__ == "__main__":
    unittest.main()
