"""
OpenPGP building blocks for the pipelines.

This package provides:
- Packet framing with partial body lengths
- ASCII armor with CRC-24
- SEIPD (CFB + MDC) encryption layers
- Compressed data layers
- Session key wrapping through pgpy
- Key ids and keyrings
"""

from pgp_pipeline.crypto.armor import ArmorReader, ArmorWriter, crc24, is_armored
from pgp_pipeline.crypto.cipher import SeipdReader, SeipdWriter
from pgp_pipeline.crypto.compression import CompressorWriter, DecompressorReader
from pgp_pipeline.crypto.key_id import format_key_id, key_id
from pgp_pipeline.crypto.keyring import (
    PublicKeyRing,
    PublicKeyRingCollection,
    SecretKeyRing,
    SecretKeyRingCollection,
    key_resolver,
    load_public_keyring,
    load_secret_keyring,
)
from pgp_pipeline.crypto.packets import PartialBodyWriter, read_objects
from pgp_pipeline.crypto.protocol import KeyResolver, KeyRing
from pgp_pipeline.crypto.session_key import unwrap_session_key, wrap_session_key

__all__ = [
    "ArmorReader",
    "ArmorWriter",
    "crc24",
    "is_armored",
    "SeipdReader",
    "SeipdWriter",
    "CompressorWriter",
    "DecompressorReader",
    "key_id",
    "format_key_id",
    "KeyRing",
    "KeyResolver",
    "PublicKeyRing",
    "PublicKeyRingCollection",
    "SecretKeyRing",
    "SecretKeyRingCollection",
    "key_resolver",
    "load_public_keyring",
    "load_secret_keyring",
    "PartialBodyWriter",
    "read_objects",
    "wrap_session_key",
    "unwrap_session_key",
]
