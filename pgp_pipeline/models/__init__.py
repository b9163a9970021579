"""
Domain models for pgp_pipeline.

These are immutable (frozen) dataclasses and enumerations representing the
core OpenPGP concepts the pipelines work with.
"""

from pgp_pipeline.models.crypto import (
    CompressionAlgorithm,
    LiteralFormat,
    LiteralMetadata,
    PacketTag,
    PublicKeyAlgorithm,
    SessionKey,
    SymmetricAlgorithm,
)

__all__ = [
    "CompressionAlgorithm",
    "LiteralFormat",
    "LiteralMetadata",
    "PacketTag",
    "PublicKeyAlgorithm",
    "SessionKey",
    "SymmetricAlgorithm",
]
