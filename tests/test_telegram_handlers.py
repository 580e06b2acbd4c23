import os
import tempfile
import unittest
from types import SimpleNamespace
from unittest import mock

from application.services import register_account, send_message, verify_account
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository
from interfaces.telegram.callback_data import encode_delete_message
from interfaces.telegram.handlers import create_telegram_bot

ALICE_TELEGRAM_ID = 1001
STRANGER_TELEGRAM_ID = 2002


def _message(text: str, user_id: int):
    return SimpleNamespace(
        text=text,
        chat=SimpleNamespace(id=user_id),
        from_user=SimpleNamespace(id=user_id),
    )


class TelegramHandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = os.path.join(self._tmp.name, "inbox.db")
        self.account_repo = SqliteAccountRepository(db_path)
        self.identity_repo = SqliteIdentityRepository(db_path)

        alice = register_account("alice", self.account_repo).account
        verify_account(alice.id, self.account_repo)
        self.identity_repo.set_external_identity("telegram", str(ALICE_TELEGRAM_ID), alice.id)
        self.alice_id = alice.id
        self.m1 = send_message("alice", "hello there", self.account_repo).message

        self.bot = create_telegram_bot("123456:TEST-TOKEN", self.account_repo, self.identity_repo)
        self.bot.send_message = mock.Mock()
        self.bot.delete_message = mock.Mock()
        self.bot.answer_callback_query = mock.Mock()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _command(self, name: str):
        for handler in self.bot.message_handlers:
            if name in (handler["filters"].get("commands") or []):
                return handler["function"]
        raise AssertionError(f"no handler for /{name}")

    def _replies(self):
        return [c.args[1] for c in self.bot.send_message.call_args_list]

    def test_check_reports_taken_and_invalid_names(self):
        check = self._command("check")
        check(_message("/check alice", STRANGER_TELEGRAM_ID))
        check(_message("/check carol", STRANGER_TELEGRAM_ID))
        check(_message("/check x", STRANGER_TELEGRAM_ID))

        replies = self._replies()
        self.assertEqual(replies[0], "Username is already taken")
        self.assertEqual(replies[1], "Username is unique")
        self.assertEqual(replies[2], "Username must be at least 3 characters")

    def test_inbox_requires_linked_chat(self):
        self._command("inbox")(_message("/inbox", STRANGER_TELEGRAM_ID))
        self.assertEqual(self._replies(), ["This chat is not linked to an account."])

    def test_inbox_lists_messages_with_delete_buttons(self):
        self._command("inbox")(_message("/inbox", ALICE_TELEGRAM_ID))

        call = self.bot.send_message.call_args
        self.assertIn("hello there", call.args[1])
        button = call.kwargs["reply_markup"].keyboard[0][0]
        self.assertEqual(button.callback_data, encode_delete_message(self.m1.id))

    def test_delete_command_twice(self):
        delete = self._command("delete")
        delete(_message(f"/delete {self.m1.id}", ALICE_TELEGRAM_ID))
        delete(_message(f"/delete {self.m1.id}", ALICE_TELEGRAM_ID))

        self.assertEqual(
            self._replies(), ["Message Deleted", "Message Not Found or Already Deleted"]
        )
        self.assertEqual(self.account_repo.list_messages(self.alice_id), [])

    def test_delete_button_filter_ignores_other_callbacks(self):
        matches = self.bot.callback_query_handlers[0]["filters"]["func"]

        self.assertTrue(matches(SimpleNamespace(data=encode_delete_message(self.m1.id))))
        self.assertFalse(matches(SimpleNamespace(data="from:1:to:2:3")))
        self.assertFalse(matches(SimpleNamespace(data=None)))

    def test_delete_button_removes_chat_message(self):
        handler = self.bot.callback_query_handlers[0]["function"]
        call = SimpleNamespace(
            id="cb1",
            data=encode_delete_message(self.m1.id),
            from_user=SimpleNamespace(id=ALICE_TELEGRAM_ID),
            message=SimpleNamespace(id=55, chat=SimpleNamespace(id=ALICE_TELEGRAM_ID)),
        )
        handler(call)

        self.bot.delete_message.assert_called_once_with(ALICE_TELEGRAM_ID, 55)
        self.assertEqual(self._replies(), ["Message Deleted"])


if __name__ == "__main__":
    unittest.main()
