from dataclasses import dataclass

import pgpy
import pytest

from pgp_pipeline.crypto.key_id import format_key_id, key_id

KEY_ID = 0x0123456789ABCDEF


@dataclass
class _Session:
    key_id: int


def test_int_is_returned_unchanged() -> None:
    assert key_id(KEY_ID) == KEY_ID


def test_int_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError, match="64-bit"):
        key_id(1 << 64)
    with pytest.raises(ValueError, match="64-bit"):
        key_id(-1)


def test_bool_is_rejected() -> None:
    with pytest.raises(TypeError):
        key_id(True)


def test_eight_bytes_are_big_endian() -> None:
    assert key_id(bytes.fromhex("0123456789abcdef")) == KEY_ID
    assert key_id(bytearray.fromhex("0123456789abcdef")) == KEY_ID


def test_v4_fingerprint_uses_low_eight_bytes() -> None:
    fingerprint = bytes(12) + KEY_ID.to_bytes(8, "big")

    assert key_id(fingerprint) == KEY_ID


def test_v5_fingerprint_uses_high_eight_bytes() -> None:
    fingerprint = KEY_ID.to_bytes(8, "big") + bytes(24)

    assert key_id(fingerprint) == KEY_ID


def test_other_byte_lengths_are_rejected() -> None:
    with pytest.raises(ValueError, match="got 4 bytes"):
        key_id(b"abcd")


@pytest.mark.parametrize("text", ["0123456789ABCDEF", "0x0123456789abcdef", "0123 4567 89AB CDEF"])
def test_hex_text_is_parsed(text: str) -> None:
    assert key_id(text) == KEY_ID


def test_non_hex_text_is_rejected() -> None:
    with pytest.raises(ValueError, match="not hexadecimal"):
        key_id("not-a-key-id")


def test_pgpy_key_and_its_fingerprint_agree(alice: pgpy.PGPKey) -> None:
    expected = int(alice.fingerprint.keyid, 16)

    assert key_id(alice) == expected
    assert key_id(alice.pubkey) == expected
    assert key_id(alice.fingerprint) == expected


def test_objects_with_key_id_attribute_are_unwrapped() -> None:
    assert key_id(_Session(key_id=KEY_ID)) == KEY_ID


def test_unsupported_types_are_rejected() -> None:
    with pytest.raises(TypeError, match="Cannot derive a key id from float"):
        key_id(1.5)


def test_format_key_id_pads_to_sixteen_hex_digits() -> None:
    assert format_key_id(0xABC) == "0000000000000ABC"
    assert format_key_id(bytes.fromhex("0123456789abcdef")) == "0123456789ABCDEF"
