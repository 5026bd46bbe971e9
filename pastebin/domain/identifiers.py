from __future__ import annotations

import secrets
import string


# URL-safe, no punctuation: 62 ** 8 ~ 2.18e14 possible ids.
PASTE_ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
PASTE_ID_LENGTH = 8


def generate_paste_id() -> str:
    """
    Return a fresh random paste id.

    Calls are independent; uniqueness is left to the primary key constraint.
    """
    return "".join(secrets.choice(PASTE_ID_ALPHABET) for _ in range(PASTE_ID_LENGTH))


def is_valid_paste_id(value: str) -> bool:
    """Check that ``value`` has the shape of a generated paste id."""
    return len(value) == PASTE_ID_LENGTH and all(
        ch in PASTE_ID_ALPHABET for ch in value
    )
