from __future__ import annotations

import re
from typing import List, Optional

MIN_LENGTH = 3
MAX_LENGTH = 20

_ALLOWED = re.compile(r"^[a-zA-Z0-9_]+$")


def username_violations(candidate: Optional[str]) -> List[str]:
    """
    Return every rule `candidate` breaks, in a stable order.

    An empty list means the username is acceptable.
    """

    if candidate is None:
        return ["Username is required"]

    violations = []
    if len(candidate) < MIN_LENGTH:
        violations.append(f"Username must be at least {MIN_LENGTH} characters")
    if len(candidate) > MAX_LENGTH:
        violations.append(f"Username must be no more than {MAX_LENGTH} characters")
    if candidate and not _ALLOWED.match(candidate):
        violations.append("Username must not contain special characters")
    return violations
