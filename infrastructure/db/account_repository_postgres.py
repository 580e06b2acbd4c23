from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg2

from domain.errors import InfrastructureError
from domain.models import Account, Message
from domain.repositories import AccountRepository


class PostgresAccountRepository(AccountRepository):
    """
    Postgres-backed implementation of `AccountRepository`.

    Schema mirrors `SqliteAccountRepository`: an `accounts` table with a
    partial unique index over verified usernames, and a `messages` table
    ordered by a serial `seq` column.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_tables()

    @contextmanager
    def _connection(self) -> Iterator["psycopg2.extensions.connection"]:
        try:
            conn = psycopg2.connect(**self._db_params)
        except psycopg2.Error as exc:
            raise InfrastructureError(f"Postgres connection failed: {exc}") from exc
        try:
            # `with conn` scopes a transaction; it does not close the connection.
            with conn:
                yield conn
        except psycopg2.Error as exc:
            raise InfrastructureError(f"Postgres error: {exc}") from exc
        finally:
            conn.close()

    def _ensure_tables(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS accounts (
                        id TEXT PRIMARY KEY,
                        username TEXT NOT NULL,
                        is_verified BOOLEAN NOT NULL DEFAULT FALSE
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE UNIQUE INDEX IF NOT EXISTS ux_accounts_verified_username
                    ON accounts (username) WHERE is_verified
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS messages (
                        seq BIGSERIAL PRIMARY KEY,
                        id TEXT NOT NULL UNIQUE,
                        account_id TEXT NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
                        content TEXT NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )

    @staticmethod
    def _to_account(row: tuple) -> Account:
        return Account(id=str(row[0]), username=row[1], is_verified=bool(row[2]))

    @staticmethod
    def _to_message(row: tuple) -> Message:
        return Message(id=str(row[0]), content=row[1], created_at=row[2])

    def find_verified_by_username(self, username: str) -> Optional[Account]:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, username, is_verified FROM accounts
                    WHERE username = %s AND is_verified
                    """,
                    (username,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_account(row)

    def get_by_id(self, account_id: str) -> Optional[Account]:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, username, is_verified FROM accounts WHERE id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_account(row)

    def create_account(self, account: Account) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO accounts (id, username, is_verified)
                    VALUES (%s, %s, %s)
                    """,
                    (account.id, account.username, account.is_verified),
                )

    def mark_verified(self, account_id: str) -> bool:
        with self._connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        "UPDATE accounts SET is_verified = TRUE WHERE id = %s",
                        (account_id,),
                    )
                except psycopg2.IntegrityError:
                    # Another account already holds this username verified.
                    conn.rollback()
                    return False
                return cur.rowcount > 0

    def append_message(self, account_id: str, message: Message) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO messages (id, account_id, content, created_at)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (message.id, account_id, message.content, message.created_at),
                )

    def list_messages(self, account_id: str) -> List[Message]:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, content, created_at FROM messages
                    WHERE account_id = %s
                    ORDER BY seq
                    """,
                    (account_id,),
                )
                return [self._to_message(row) for row in cur.fetchall()]

    def remove_message(self, account_id: str, message_id: str) -> bool:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM messages WHERE id = %s AND account_id = %s",
                    (message_id, account_id),
                )
                return cur.rowcount == 1

    def ping(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
