from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Type, TypeVar

from domain.errors import ErrorKind, InfrastructureError
from domain.models import Account, Authorization, CallerIdentity, Message
from domain.repositories import AccountRepository
from domain.username_policy import username_violations

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 300


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error: Optional[ErrorKind] = None
    error_message: Optional[str] = None


R = TypeVar("R", bound=OperationResult)


@dataclass
class UsernameCheckResult(OperationResult):
    """Outcome of an availability check; `available` is only meaningful on success."""

    available: bool = False


@dataclass
class RegistrationResult(OperationResult):
    account: Optional[Account] = None


@dataclass
class AuthorizationResult(OperationResult):
    authorization: Optional[Authorization] = None


@dataclass
class DeleteResult(OperationResult):
    """
    Outcome of a message removal.

    A missing message is not a failure: `success` stays True and
    `deleted` is False.
    """

    deleted: bool = False


@dataclass
class SendResult(OperationResult):
    message: Optional[Message] = None


@dataclass
class MessagesResult(OperationResult):
    messages: List[Message] = field(default_factory=list)


def _failure(
    result_cls: Type[R],
    kind: Optional[ErrorKind],
    message: Optional[str],
) -> R:
    return result_cls(success=False, error=kind, error_message=message)


# Identity registry


def check_username_available(
    candidate: Optional[str],
    account_repo: AccountRepository,
) -> UsernameCheckResult:
    """
    Report whether `candidate` can be used by a new (unverified) signup.

    Only verified accounts claim a username; an unverified holder of the
    same name is ignored so abandoned registrations never block a signup.
    """

    violations = username_violations(candidate)
    if violations:
        return _failure(UsernameCheckResult, ErrorKind.VALIDATION, ", ".join(violations))

    try:
        holder = account_repo.find_verified_by_username(candidate)
    except InfrastructureError:
        logger.exception("Error checking username %r", candidate)
        return _failure(
            UsernameCheckResult, ErrorKind.INFRASTRUCTURE, "Error checking username"
        )

    return UsernameCheckResult(success=True, available=holder is None)


def register_account(
    username: Optional[str],
    account_repo: AccountRepository,
) -> RegistrationResult:
    """Create a new unverified account, provided no verified account holds the name."""

    availability = check_username_available(username, account_repo)
    if not availability.success:
        return _failure(RegistrationResult, availability.error, availability.error_message)
    if not availability.available:
        return _failure(RegistrationResult, ErrorKind.CONFLICT, "Username is already taken")

    account = Account(id=uuid.uuid4().hex, username=username, is_verified=False)
    try:
        account_repo.create_account(account)
    except InfrastructureError:
        logger.exception("Error registering account for %r", username)
        return _failure(RegistrationResult, ErrorKind.INFRASTRUCTURE, "Error registering user")

    logger.info("Registered unverified account %s (%s)", account.id, username)
    return RegistrationResult(success=True, account=account)


def verify_account(account_id: str, account_repo: AccountRepository) -> OperationResult:
    """
    Make an account's username binding authoritative.

    Fails with CONFLICT when another account verified the same name first.
    """

    try:
        account = account_repo.get_by_id(account_id)
        if account is None:
            return _failure(OperationResult, ErrorKind.NOT_FOUND, "User not found")
        if account.is_verified:
            return OperationResult(success=True)
        if not account_repo.mark_verified(account_id):
            return _failure(OperationResult, ErrorKind.CONFLICT, "Username is already taken")
    except InfrastructureError:
        logger.exception("Error verifying account %s", account_id)
        return _failure(OperationResult, ErrorKind.INFRASTRUCTURE, "Error verifying user")

    logger.info("Verified account %s", account_id)
    return OperationResult(success=True)


# Access guard


def authorize(
    caller: Optional[CallerIdentity],
    target_account_id: str,
) -> AuthorizationResult:
    """
    Decide whether `caller` may mutate the messages of `target_account_id`.

    Only the owner is allowed; there is no administrative override.
    """

    if caller is None:
        return _failure(AuthorizationResult, ErrorKind.UNAUTHENTICATED, "Not Authenticated")
    if caller.account_id != target_account_id:
        return _failure(AuthorizationResult, ErrorKind.FORBIDDEN, "Not allowed")
    return AuthorizationResult(
        success=True,
        authorization=Authorization(account_id=target_account_id),
    )


# Message store


def delete_message(
    account_id: str,
    message_id: str,
    account_repo: AccountRepository,
) -> DeleteResult:
    """
    Remove a message from an account's inbox.

    The caller must already have been authorized. Removal is a single
    conditional operation in the store, so a repeated or concurrent
    delete observes `deleted=False` instead of an error.
    """

    try:
        removed = account_repo.remove_message(account_id, message_id)
    except InfrastructureError:
        logger.exception("Error deleting message %s of account %s", message_id, account_id)
        return _failure(DeleteResult, ErrorKind.INFRASTRUCTURE, "Error Deleting Message")

    if removed:
        logger.info("Deleted message %s of account %s", message_id, account_id)
    return DeleteResult(success=True, deleted=removed)


def delete_owned_message(
    caller: Optional[CallerIdentity],
    message_id: str,
    account_repo: AccountRepository,
    account_id: Optional[str] = None,
) -> DeleteResult:
    """
    Authorize `caller` against the target inbox, then delete.

    The target defaults to the caller's own account. Authorization
    failures are returned before the store is touched.
    """

    if account_id is None and caller is not None:
        account_id = caller.account_id

    auth = authorize(caller, account_id)
    if not auth.success:
        return _failure(DeleteResult, auth.error, auth.error_message)

    return delete_message(auth.authorization.account_id, message_id, account_repo)


def send_message(
    username: str,
    content: str,
    account_repo: AccountRepository,
) -> SendResult:
    """Append an anonymous message to the verified account holding `username`."""

    text = (content or "").strip()
    if not text:
        return _failure(SendResult, ErrorKind.VALIDATION, "Message content must not be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        return _failure(
            SendResult,
            ErrorKind.VALIDATION,
            f"Message content must be no longer than {MAX_MESSAGE_LENGTH} characters",
        )

    try:
        account = account_repo.find_verified_by_username(username)
        if account is None:
            return _failure(SendResult, ErrorKind.NOT_FOUND, "User not found")

        message = Message(
            id=uuid.uuid4().hex,
            content=text,
            created_at=datetime.now(timezone.utc),
        )
        account_repo.append_message(account.id, message)
    except InfrastructureError:
        logger.exception("Error sending message to %r", username)
        return _failure(SendResult, ErrorKind.INFRASTRUCTURE, "Error sending message")

    return SendResult(success=True, message=message)


def get_messages(
    authorization: Authorization,
    account_repo: AccountRepository,
) -> MessagesResult:
    """Return the owner's messages, newest first."""

    try:
        messages = account_repo.list_messages(authorization.account_id)
    except InfrastructureError:
        logger.exception("Error loading messages of account %s", authorization.account_id)
        return _failure(MessagesResult, ErrorKind.INFRASTRUCTURE, "Error loading messages")

    return MessagesResult(success=True, messages=list(reversed(messages)))


def check_store_connection(account_repo: AccountRepository) -> OperationResult:
    try:
        account_repo.ping()
    except InfrastructureError:
        logger.exception("Database connection check failed")
        return _failure(OperationResult, ErrorKind.INFRASTRUCTURE, "Database connection failed")
    return OperationResult(success=True)
