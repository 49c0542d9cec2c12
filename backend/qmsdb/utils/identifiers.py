from __future__ import annotations

import secrets
import string
import time
import uuid

_USER_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_uuid7() -> str:
    """
    Time-ordered UUIDv7 string: 48-bit millisecond timestamp, version and
    variant bits, random tail.

    Primary key for documents, audits and ledger rows, so ids sort roughly
    by creation time.
    """
    value = (int(time.time() * 1000) & ((1 << 48) - 1)) << 80
    value |= secrets.randbits(80)
    value &= ~(0xF << 76)
    value |= 0x7 << 76
    value &= ~(0x3 << 62)
    value |= 0x2 << 62
    return str(uuid.UUID(int=value))


def generate_user_id() -> str:
    """Short, human-quotable user id like 'USR-1F2A9C3D'."""
    return "USR-" + "".join(secrets.choice(_USER_ID_ALPHABET) for _ in range(8))
