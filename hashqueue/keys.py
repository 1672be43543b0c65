"""
Position key encoding.

Queue entries are keyed by a signed 64-bit big-endian integer so that the
byte-wise key order of the store equals numeric position order. The store's
own first/last and pop-min/pop-max primitives therefore double as queue front
and back access.
"""

from __future__ import annotations

import struct

from .exceptions import CodecError

KEY_WIDTH = 8
_KEY_FORMAT = ">q"


def encode_key(position: int) -> bytes:
    """Encode a queue position as an 8-byte big-endian key."""
    try:
        return struct.pack(_KEY_FORMAT, position)
    except struct.error as exc:
        raise ValueError(f"Position {position!r} does not fit a signed 64-bit key.") from exc


def decode_key(raw: bytes) -> int:
    """
    Decode the position stored in the first 8 bytes of ``raw``.

    Raises
    ------
    CodecError
        If the key is shorter than :data:`KEY_WIDTH` bytes.
    """
    if len(raw) < KEY_WIDTH:
        raise CodecError(f"Position key must be {KEY_WIDTH} bytes, got {len(raw)}.")
    return struct.unpack(_KEY_FORMAT, bytes(raw[:KEY_WIDTH]))[0]


def next_position(last_key: bytes | None) -> int:
    """Return the position following ``last_key``, or ``0`` for an empty region."""
    if last_key is None:
        return 0
    return decode_key(last_key) + 1
