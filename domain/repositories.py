from __future__ import annotations

from typing import List, Optional, Protocol

from .models import Account, Message


class AccountRepository(Protocol):
    """
    Abstraction over account and message persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `Account` / `Message` models.
    - Hiding any SQL / driver details from the application layer.
    - Raising `InfrastructureError` (never a driver exception) when the
      store is unreachable or rejects an operation.
    """

    def find_verified_by_username(self, username: str) -> Optional[Account]:
        """Return the verified account holding `username`, if any."""

        ...

    def get_by_id(self, account_id: str) -> Optional[Account]:
        """Return the account with the given ID (messages not loaded)."""

        ...

    def create_account(self, account: Account) -> None:
        """Persist a new account. Its `messages` are ignored."""

        ...

    def mark_verified(self, account_id: str) -> bool:
        """
        Flag the account as verified.

        Returns False when the account does not exist or another verified
        account already holds its username. The check and the update must
        be a single statement.
        """

        ...

    def append_message(self, account_id: str, message: Message) -> None:
        """Append `message` to the end of the account's message sequence."""

        ...

    def list_messages(self, account_id: str) -> List[Message]:
        """Return the account's messages in append order."""

        ...

    def remove_message(self, account_id: str, message_id: str) -> bool:
        """
        Remove one message from an account.

        Implementations should perform a single conditional removal and
        report whether anything was removed, so that of several concurrent
        callers exactly one observes True.
        """

        ...

    def ping(self) -> None:
        """Round-trip to the store; raise `InfrastructureError` if it fails."""

        ...


class IdentityRepository(Protocol):
    """
    Maps external identities (web sessions, Telegram chats) to account IDs.

    Sessions are issued elsewhere; the application layer only reads these
    mappings to learn who is calling.
    """

    def find_account_id_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[str]:
        """Return the account ID mapped to the given external identity, if any."""

        ...

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        account_id: str,
    ) -> None:
        """Associate an external identity with an account ID."""

        ...
