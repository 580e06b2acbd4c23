from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """
    Machine-distinguishable failure kinds carried by application results.

    Interfaces map these to their own status vocabulary (HTTP codes,
    chat replies) without inspecting the human-readable message.
    """

    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"


class InfrastructureError(Exception):
    """
    Raised by repositories when the backing store cannot be reached or
    rejects an operation. Driver exceptions are chained as `__cause__`.
    """
