"""
Key identifier normalization.

Every lookup goes through ``key_id`` first, which turns any accepted shape
(raw id, 8-byte id, fingerprint, key object) into the canonical 64-bit int.
"""

from functools import singledispatch

import pgpy

_MAX_KEY_ID = (1 << 64) - 1


@singledispatch
def key_id(value: object) -> int:
    """
    Normalize ``value`` to a 64-bit key id.

    Accepts an int, an 8-byte id, a 20-byte (v4) or 32-byte (v5/v6)
    fingerprint, the hex form of any of those (spaces and ``0x`` allowed), a
    ``pgpy.PGPKey`` or anything with a ``key_id`` attribute.

    Raises:
        TypeError: For unsupported input types.
        ValueError: For malformed ids of a supported type.
    """
    nested = getattr(value, "key_id", None)
    if nested is not None and nested is not value:
        return key_id(nested)
    msg = f"Cannot derive a key id from {type(value).__name__}"
    raise TypeError(msg)


@key_id.register
def _(value: int) -> int:
    if isinstance(value, bool):
        msg = "Cannot derive a key id from bool"
        raise TypeError(msg)
    if not 0 <= value <= _MAX_KEY_ID:
        msg = f"Key id out of 64-bit range: {value}"
        raise ValueError(msg)
    return value


@key_id.register(bytes)
@key_id.register(bytearray)
def _(value: bytes | bytearray) -> int:
    match len(value):
        case 8:
            return int.from_bytes(value, "big")
        case 20:
            return int.from_bytes(value[-8:], "big")
        case 32:
            return int.from_bytes(value[:8], "big")
        case size:
            msg = f"Expected an 8-byte key id or a fingerprint, got {size} bytes"
            raise ValueError(msg)


@key_id.register
def _(value: str) -> int:
    text = value.replace(" ", "").removeprefix("0x").removeprefix("0X")
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        msg = f"Key id is not hexadecimal: {value!r}"
        raise ValueError(msg) from None
    return key_id(raw)


@key_id.register
def _(value: pgpy.PGPKey) -> int:
    return key_id(str(value.fingerprint.keyid))


def format_key_id(value: object) -> str:
    """Render a key id as 16 uppercase hex digits."""
    return f"{key_id(value):016X}"
