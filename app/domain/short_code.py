"""Base56 short code generation.

Codes are 7 symbols drawn independently from an alphabet with the visually
ambiguous characters (``0 O o 1 I l``) removed, giving 56**7 (~1.7e12)
possible codes. Uniqueness is not checked here: the store's UNIQUE constraint
decides, and the caller retries on a collision.
"""

from __future__ import annotations

import secrets

ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"
SHORT_CODE_LENGTH = 7

_ALPHABET_SET = frozenset(ALPHABET)


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    """Sample a random short code.

    Uses ``secrets`` so codes are not predictable from previously issued ones.
    """
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def is_valid_short_code(value: str) -> bool:
    """Return True if ``value`` could have been produced by the generator."""
    return len(value) == SHORT_CODE_LENGTH and all(ch in _ALPHABET_SET for ch in value)
