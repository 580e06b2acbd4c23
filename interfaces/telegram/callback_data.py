from __future__ import annotations

DELETE_PREFIX = "del"

# Telegram rejects callback data longer than 64 bytes.
MAX_CALLBACK_BYTES = 64


def encode_delete_message(message_id: str) -> str:
    """
    Encode a "delete this message" button callback.

    Format: del:{message_id}

    The owning account is not encoded; it is resolved from whoever presses
    the button, so a forwarded keyboard cannot act on someone else's inbox.
    """

    data = f"{DELETE_PREFIX}:{message_id}"
    if len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        raise ValueError(f"Message id too long for callback data: {message_id}")
    return data


def parse_delete_message(data: str) -> str:
    prefix, sep, message_id = data.partition(":")
    if prefix != DELETE_PREFIX or not sep or not message_id or ":" in message_id:
        raise ValueError(f"Invalid delete callback data: {data}")
    return message_id
