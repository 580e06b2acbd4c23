from __future__ import annotations

import logging
from typing import Optional

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.services import (
    authorize,
    check_username_available,
    delete_owned_message,
    get_messages,
)
from domain.errors import ErrorKind, InfrastructureError
from domain.models import CallerIdentity
from domain.repositories import AccountRepository, IdentityRepository
from interfaces.telegram.callback_data import (
    DELETE_PREFIX,
    encode_delete_message,
    parse_delete_message,
)

logger = logging.getLogger(__name__)

PROVIDER = "telegram"

REPLY_BY_ERROR = {
    ErrorKind.UNAUTHENTICATED: "This chat is not linked to an account.",
    ErrorKind.FORBIDDEN: "You can only manage your own inbox.",
    ErrorKind.INFRASTRUCTURE: "Something went wrong, please try again later.",
}


def _resolve_caller(
    identity_repo: IdentityRepository,
    telegram_user_id: int,
) -> Optional[CallerIdentity]:
    """Look up the account linked to a Telegram user, if any."""

    account_id = identity_repo.find_account_id_by_external(PROVIDER, str(telegram_user_id))
    if account_id is None:
        return None
    return CallerIdentity(account_id=account_id)


def _error_reply(kind: Optional[ErrorKind], fallback: Optional[str]) -> str:
    return REPLY_BY_ERROR.get(kind) or fallback or "Request failed."


def create_telegram_bot(
    bot_token: str,
    account_repo: AccountRepository,
    identity_repo: IdentityRepository,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the application layer.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks and mapping them to/from application services.
    Linking a chat to an account happens outside this bot.
    """

    bot = telebot.TeleBot(bot_token)

    @bot.message_handler(commands=["start", "help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/check <username>      - see whether a username is free\n"
            "/inbox                 - list your anonymous messages\n"
            "/delete <message_id>   - delete one of your messages\n",
        )

    @bot.message_handler(commands=["check"])
    def handle_check(message):
        parts = message.text.split()
        candidate = parts[1] if len(parts) > 1 else None

        result = check_username_available(candidate, account_repo)
        if not result.success:
            bot.send_message(message.chat.id, _error_reply(result.error, result.error_message))
            return

        text = "Username is unique" if result.available else "Username is already taken"
        bot.send_message(message.chat.id, text)

    @bot.message_handler(commands=["inbox"])
    def handle_inbox(message):
        try:
            caller = _resolve_caller(identity_repo, message.from_user.id)
        except InfrastructureError:
            logger.exception("Error resolving Telegram user %s", message.from_user.id)
            bot.send_message(message.chat.id, REPLY_BY_ERROR[ErrorKind.INFRASTRUCTURE])
            return

        auth = authorize(caller, caller.account_id if caller else None)
        if not auth.success:
            bot.send_message(message.chat.id, _error_reply(auth.error, auth.error_message))
            return

        result = get_messages(auth.authorization, account_repo)
        if not result.success:
            bot.send_message(message.chat.id, _error_reply(result.error, result.error_message))
            return
        if not result.messages:
            bot.send_message(message.chat.id, "No messages yet.")
            return

        for item in result.messages:
            markup = InlineKeyboardMarkup()
            markup.add(
                InlineKeyboardButton(
                    "Delete",
                    callback_data=encode_delete_message(item.id),
                )
            )
            bot.send_message(
                message.chat.id,
                f"{item.content}\n\n{item.created_at:%Y-%m-%d %H:%M} · {item.id}",
                reply_markup=markup,
            )

    def _delete_and_reply(chat_id, telegram_user_id: int, message_id: str) -> bool:
        try:
            caller = _resolve_caller(identity_repo, telegram_user_id)
        except InfrastructureError:
            logger.exception("Error resolving Telegram user %s", telegram_user_id)
            bot.send_message(chat_id, REPLY_BY_ERROR[ErrorKind.INFRASTRUCTURE])
            return False

        result = delete_owned_message(caller, message_id, account_repo)
        if not result.success:
            bot.send_message(chat_id, _error_reply(result.error, result.error_message))
            return False
        if not result.deleted:
            bot.send_message(chat_id, "Message Not Found or Already Deleted")
            return False
        bot.send_message(chat_id, "Message Deleted")
        return True

    @bot.message_handler(commands=["delete"])
    def handle_delete(message):
        parts = message.text.split()
        if len(parts) < 2:
            bot.send_message(message.chat.id, "Please enter a message id.")
            return
        _delete_and_reply(message.chat.id, message.from_user.id, parts[1])

    @bot.callback_query_handler(
        func=lambda call: (call.data or "").startswith(f"{DELETE_PREFIX}:")
    )
    def handle_delete_button(call):
        try:
            message_id = parse_delete_message(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        bot.answer_callback_query(call.id)
        if _delete_and_reply(call.message.chat.id, call.from_user.id, message_id):
            bot.delete_message(call.message.chat.id, call.message.id)

    return bot
