from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from typing import Iterator, Optional

from domain.errors import InfrastructureError
from domain.repositories import IdentityRepository


class SqliteIdentityRepository(IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    Stores mappings from (provider, provider_user_id) to account IDs
    in an `account_identities` table.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            with closing(sqlite3.connect(self._db_path)) as conn:
                with conn:
                    yield conn
        except sqlite3.Error as exc:
            raise InfrastructureError(f"SQLite error: {exc}") from exc

    def _ensure_table(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS account_identities (
                    provider TEXT NOT NULL,
                    provider_user_id TEXT NOT NULL,
                    account_id TEXT NOT NULL,
                    PRIMARY KEY (provider, provider_user_id)
                )
                """
            )
            conn.commit()

    def find_account_id_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[str]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT account_id
                FROM account_identities
                WHERE provider = ? AND provider_user_id = ?
                """,
                (provider, provider_user_id),
            )
            row = cur.fetchone()
            if not row:
                return None
            return str(row[0])

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        account_id: str,
    ) -> None:
        """
        Upsert a mapping from external identity to account ID.
        """

        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO account_identities (provider, provider_user_id, account_id)
                VALUES (?, ?, ?)
                ON CONFLICT (provider, provider_user_id)
                DO UPDATE SET account_id = excluded.account_id
                """,
                (provider, provider_user_id, account_id),
            )
            conn.commit()
