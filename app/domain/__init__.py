"""Link domain: short codes, TTL presets and the Link entity."""

from __future__ import annotations

from app.domain.link import Link
from app.domain.short_code import ALPHABET, SHORT_CODE_LENGTH, generate_short_code, is_valid_short_code
from app.domain.ttl import Ttl

__all__ = [
    "ALPHABET",
    "SHORT_CODE_LENGTH",
    "Link",
    "Ttl",
    "generate_short_code",
    "is_valid_short_code",
]
