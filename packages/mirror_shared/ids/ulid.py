"""ULID generation and conversion helpers.

Canonical string form is 26 Crockford Base32 characters holding 128 bits,
big-endian: a 48-bit millisecond timestamp followed by 80 random bits.
"""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE = {char: index for index, char in enumerate(_ALPHABET)}
_MAX_ULID = (1 << 128) - 1


def generate_ulid_bytes(*, timestamp_ms: int | None = None) -> bytes:
    """Generate one ULID as 16 big-endian bytes."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")
    entropy = int.from_bytes(secrets.token_bytes(10), byteorder="big")
    return ((ts_ms << 80) | entropy).to_bytes(16, byteorder="big")


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate one ULID in canonical string form."""
    return ulid_bytes_to_str(generate_ulid_bytes(timestamp_ms=timestamp_ms))


def ulid_bytes_to_str(value: bytes) -> str:
    """Encode 16 ULID bytes as a 26-character Base32 string."""
    if len(value) != 16:
        raise ValueError("ULID bytes must be exactly 16 bytes")
    number = int.from_bytes(value, byteorder="big")
    chars: list[str] = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def ulid_str_to_bytes(value: str) -> bytes:
    """Decode a 26-character ULID string into 16 bytes."""
    candidate = value.strip().upper()
    if len(candidate) != 26:
        raise ValueError("ULID string must be exactly 26 characters")
    number = 0
    for char in candidate:
        if char not in _DECODE:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | _DECODE[char]
    if number > _MAX_ULID:
        raise ValueError("ULID value exceeds 128-bit range")
    return number.to_bytes(16, byteorder="big")
