from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2

from domain.errors import InfrastructureError
from domain.repositories import IdentityRepository


class PostgresIdentityRepository(IdentityRepository):
    """
    Postgres-backed implementation of `IdentityRepository`.

    It uses a dedicated `account_identities` table to map external
    identities (provider + provider_user_id) to IDs in `accounts`.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    @contextmanager
    def _connection(self) -> Iterator["psycopg2.extensions.connection"]:
        try:
            conn = psycopg2.connect(**self._db_params)
        except psycopg2.Error as exc:
            raise InfrastructureError(f"Postgres connection failed: {exc}") from exc
        try:
            with conn:
                yield conn
        except psycopg2.Error as exc:
            raise InfrastructureError(f"Postgres error: {exc}") from exc
        finally:
            conn.close()

    def _ensure_table(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cur:
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

    def find_account_id_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[str]:
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT account_id
                    FROM account_identities
                    WHERE provider = %s AND provider_user_id = %s
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
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO account_identities (provider, provider_user_id, account_id)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (provider, provider_user_id)
                    DO UPDATE SET account_id = excluded.account_id
                    """,
                    (provider, provider_user_id, account_id),
                )
