import logging
import os
from typing import Tuple

from dotenv import load_dotenv

from domain.repositories import AccountRepository, IdentityRepository


load_dotenv()

DB_BACKEND = os.environ.get("DB_BACKEND", "sqlite")
DB_PATH = os.environ.get("DB_PATH", "anon_inbox.db")
DATABASE_URL = os.environ.get("DATABASE_URL")
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
HTTP_HOST = os.environ.get("HTTP_HOST", "127.0.0.1")
HTTP_PORT = int(os.environ.get("HTTP_PORT", "8000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_repositories() -> Tuple[AccountRepository, IdentityRepository]:
    """Instantiate the repositories selected by `DB_BACKEND`."""

    if DB_BACKEND == "sqlite":
        from infrastructure.db.account_repository_sqlite import SqliteAccountRepository
        from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository

        return SqliteAccountRepository(DB_PATH), SqliteIdentityRepository(DB_PATH)

    if DB_BACKEND == "postgres":
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL environment variable is not set.")

        from infrastructure.db.account_repository_postgres import PostgresAccountRepository
        from infrastructure.db.identity_repository_postgres import PostgresIdentityRepository

        db_params = {"dsn": DATABASE_URL}
        return PostgresAccountRepository(db_params), PostgresIdentityRepository(db_params)

    raise RuntimeError(f"Unsupported DB_BACKEND: {DB_BACKEND!r}")
