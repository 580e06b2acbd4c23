from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass
class Message:
    """
    An anonymous message addressed to a single account.

    There is deliberately no sender field: anonymity is structural, the
    model simply has nowhere to record who wrote the message.
    """

    id: str
    content: str
    created_at: datetime


@dataclass
class Account:
    """
    A registered identity that can receive anonymous messages.

    The username binding only becomes authoritative once `is_verified` is
    set; unverified accounts never block another signup from taking the
    same name.
    """

    id: str
    username: str
    is_verified: bool = False
    messages: List[Message] = field(default_factory=list)


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller of a mutating request, as resolved by a channel."""

    account_id: str


@dataclass(frozen=True)
class Authorization:
    """Proof that the access guard let a caller act on `account_id`."""

    account_id: str
