import os
import sqlite3
import tempfile
import threading
import unittest
from datetime import datetime, timezone
from unittest import mock

from application.services import check_username_available, register_account, verify_account
from domain.errors import ErrorKind, InfrastructureError
from domain.models import Account, Message
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository


def _message(message_id: str, content: str = "hi") -> Message:
    return Message(id=message_id, content=content, created_at=datetime.now(timezone.utc))


def _track_connections(test: unittest.TestCase) -> list:
    """Record every SQLite connection opened until the test finishes."""

    opened = []
    real_connect = sqlite3.connect

    def tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    patcher = mock.patch("sqlite3.connect", side_effect=tracking_connect)
    patcher.start()
    test.addCleanup(patcher.stop)
    return opened


class SqliteAccountRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self._tmp.name, "inbox.db")
        self.repo = SqliteAccountRepository(self.db_path)
        self.repo.create_account(Account(id="acc1", username="alice", is_verified=True))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_messages_round_trip_in_append_order(self):
        first = _message("m1", "first")
        self.repo.append_message("acc1", first)
        self.repo.append_message("acc1", _message("m2", "second"))

        messages = self.repo.list_messages("acc1")
        self.assertEqual([m.id for m in messages], ["m1", "m2"])
        self.assertEqual(messages[0].content, "first")
        self.assertEqual(messages[0].created_at, first.created_at)

    def test_remove_message_is_conditional_on_owner(self):
        self.repo.create_account(Account(id="acc2", username="bob", is_verified=True))
        self.repo.append_message("acc1", _message("m1"))

        self.assertFalse(self.repo.remove_message("acc2", "m1"))
        self.assertTrue(self.repo.remove_message("acc1", "m1"))
        self.assertFalse(self.repo.remove_message("acc1", "m1"))

    def test_concurrent_deletes_succeed_exactly_once(self):
        self.repo.append_message("acc1", _message("m1"))
        results = []
        lock = threading.Lock()

        def worker():
            removed = self.repo.remove_message("acc1", "m1")
            with lock:
                results.append(removed)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(results.count(True), 1)
        self.assertEqual(results.count(False), 7)

    def test_find_verified_ignores_unverified_holder(self):
        self.repo.create_account(Account(id="acc3", username="carol", is_verified=False))
        self.assertIsNone(self.repo.find_verified_by_username("carol"))
        self.assertEqual(self.repo.find_verified_by_username("alice").id, "acc1")

    def test_index_allows_only_one_verified_holder(self):
        self.repo.create_account(Account(id="acc2", username="alice", is_verified=False))
        self.assertFalse(self.repo.mark_verified("acc2"))
        self.assertFalse(self.repo.get_by_id("acc2").is_verified)

    def test_registration_flow_against_sqlite(self):
        registered = register_account("dave", self.repo)
        self.assertTrue(check_username_available("dave", self.repo).available)
        self.assertTrue(verify_account(registered.account.id, self.repo).success)
        self.assertFalse(check_username_available("dave", self.repo).available)

        duplicate = register_account("dave", self.repo)
        self.assertEqual(duplicate.error, ErrorKind.CONFLICT)

    def test_connections_are_closed_after_each_operation(self):
        opened = _track_connections(self)
        self.repo.append_message("acc1", _message("m1"))
        self.repo.list_messages("acc1")
        self.repo.remove_message("acc1", "m1")
        self.repo.ping()

        self.assertEqual(len(opened), 4)
        for conn in opened:
            with self.assertRaises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")

    def test_messages_require_an_existing_account(self):
        with self.assertRaises(InfrastructureError):
            self.repo.append_message("ghost", _message("m1"))
        self.assertEqual(self.repo.list_messages("ghost"), [])

    def test_driver_errors_become_infrastructure_errors(self):
        repo = SqliteAccountRepository(self.db_path)
        repo._db_path = os.path.join(self._tmp.name, "missing", "inbox.db")
        with self.assertRaises(InfrastructureError):
            repo.ping()


class SqliteIdentityRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.repo = SqliteIdentityRepository(os.path.join(self._tmp.name, "inbox.db"))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_set_and_find(self):
        self.assertIsNone(self.repo.find_account_id_by_external("web", "tok"))

        self.repo.set_external_identity("web", "tok", "acc1")
        self.repo.set_external_identity("web", "tok", "acc2")
        self.assertEqual(self.repo.find_account_id_by_external("web", "tok"), "acc2")

    def test_mappings_are_scoped_by_provider(self):
        self.repo.set_external_identity("telegram", "100", "acc1")
        self.assertIsNone(self.repo.find_account_id_by_external("web", "100"))

    def test_connections_are_closed_after_each_operation(self):
        opened = _track_connections(self)
        self.repo.set_external_identity("web", "tok", "acc1")
        self.repo.find_account_id_by_external("web", "tok")

        self.assertEqual(len(opened), 2)
        for conn in opened:
            with self.assertRaises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")


if __name__ == "__main__":
    unittest.main()
