from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from domain.errors import InfrastructureError
from domain.models import Account, Message
from domain.repositories import AccountRepository


class SqliteAccountRepository(AccountRepository):
    """
    SQLite-backed implementation of `AccountRepository`.

    Manages the `accounts` table and the `messages` table owned by it.
    A partial unique index keeps at most one verified holder per username
    while letting unverified signups collide freely.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_tables()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(sqlite3.connect(self._db_path, timeout=self._timeout)) as conn:
                # Off by default; must be set per connection, outside a transaction.
                conn.execute("PRAGMA foreign_keys = ON")
                with conn:
                    yield conn
        except sqlite3.Error as exc:
            raise InfrastructureError(f"SQLite error: {exc}") from exc

    def _ensure_tables(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    is_verified INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS ux_accounts_verified_username
                ON accounts (username) WHERE is_verified = 1
                """
            )
            # `seq` preserves append order independently of clock resolution.
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    account_id TEXT NOT NULL REFERENCES accounts (id),
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    @staticmethod
    def _to_account(row: sqlite3.Row) -> Account:
        return Account(
            id=str(row[0]),
            username=row[1],
            is_verified=bool(row[2]),
        )

    @staticmethod
    def _to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=str(row[0]),
            content=row[1],
            created_at=datetime.fromisoformat(row[2]),
        )

    def find_verified_by_username(self, username: str) -> Optional[Account]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, username, is_verified FROM accounts
                WHERE username = ? AND is_verified = 1
                """,
                (username,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_account(row)

    def get_by_id(self, account_id: str) -> Optional[Account]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, username, is_verified FROM accounts WHERE id = ?",
                (account_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_account(row)

    def create_account(self, account: Account) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO accounts (id, username, is_verified)
                VALUES (?, ?, ?)
                """,
                (account.id, account.username, int(account.is_verified)),
            )
            conn.commit()

    def mark_verified(self, account_id: str) -> bool:
        with self._connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "UPDATE accounts SET is_verified = 1 WHERE id = ?",
                    (account_id,),
                )
            except sqlite3.IntegrityError:
                # Another account already holds this username verified.
                conn.rollback()
                return False
            conn.commit()
            return cur.rowcount > 0

    def append_message(self, account_id: str, message: Message) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO messages (id, account_id, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    message.id,
                    account_id,
                    message.content,
                    message.created_at.isoformat(),
                ),
            )
            conn.commit()

    def list_messages(self, account_id: str) -> List[Message]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT id, content, created_at FROM messages
                WHERE account_id = ?
                ORDER BY seq
                """,
                (account_id,),
            )
            return [self._to_message(row) for row in cur.fetchall()]

    def remove_message(self, account_id: str, message_id: str) -> bool:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM messages WHERE id = ? AND account_id = ?",
                (message_id, account_id),
            )
            conn.commit()
            return cur.rowcount == 1

    def ping(self) -> None:
        with self._connection() as conn:
            conn.execute("SELECT 1").fetchone()
