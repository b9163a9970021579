"""
Cryptographic domain models.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum, StrEnum
from typing import Self

from pgp_pipeline.core.secure_bytes import SecureBytes


class SymmetricAlgorithm(IntEnum):
    """OpenPGP symmetric algorithm identifiers."""

    PLAINTEXT = 0
    IDEA = 1
    TRIPLE_DES = 2
    CAST5 = 3
    BLOWFISH = 4
    AES_128 = 7
    AES_192 = 8
    AES_256 = 9
    TWOFISH = 10
    CAMELLIA_128 = 11
    CAMELLIA_192 = 12
    CAMELLIA_256 = 13

    @property
    def key_size(self) -> int:
        """Get key size in bytes for this algorithm."""
        match self:
            case self.AES_128 | self.CAST5 | self.BLOWFISH | self.CAMELLIA_128 | self.IDEA:
                return 16
            case self.AES_192 | self.TRIPLE_DES | self.CAMELLIA_192:
                return 24
            case self.AES_256 | self.TWOFISH | self.CAMELLIA_256:
                return 32
            case _:
                return 0

    @property
    def block_size(self) -> int:
        """Get block size in bytes for this algorithm."""
        match self:
            case self.CAST5 | self.BLOWFISH | self.TRIPLE_DES | self.IDEA:
                return 8
            case (
                self.AES_128
                | self.AES_192
                | self.AES_256
                | self.TWOFISH
                | self.CAMELLIA_128
                | self.CAMELLIA_192
                | self.CAMELLIA_256
            ):
                return 16
            case _:
                return 0

    @property
    def is_supported(self) -> bool:
        """Whether messages can be encrypted and decrypted with this algorithm."""
        return self in _SUPPORTED_SYMMETRIC


_SUPPORTED_SYMMETRIC = frozenset(
    {
        SymmetricAlgorithm.AES_128,
        SymmetricAlgorithm.AES_192,
        SymmetricAlgorithm.AES_256,
        SymmetricAlgorithm.CAMELLIA_128,
        SymmetricAlgorithm.CAMELLIA_192,
        SymmetricAlgorithm.CAMELLIA_256,
    }
)


class CompressionAlgorithm(IntEnum):
    """OpenPGP compression algorithm identifiers."""

    UNCOMPRESSED = 0
    ZIP = 1
    ZLIB = 2
    BZIP2 = 3


class PublicKeyAlgorithm(IntEnum):
    """OpenPGP public key algorithm identifiers."""

    RSA_ENCRYPT_OR_SIGN = 1
    RSA_ENCRYPT_ONLY = 2
    RSA_SIGN_ONLY = 3
    ELGAMAL_ENCRYPT_ONLY = 16
    DSA = 17
    ECDH = 18
    ECDSA = 19
    ELGAMAL_ENCRYPT_OR_SIGN = 20
    EDDSA = 22
    X25519 = 25
    ED25519 = 27

    @property
    def can_encrypt(self) -> bool:
        match self:
            case (
                self.RSA_ENCRYPT_OR_SIGN
                | self.RSA_ENCRYPT_ONLY
                | self.ELGAMAL_ENCRYPT_ONLY
                | self.ELGAMAL_ENCRYPT_OR_SIGN
                | self.ECDH
                | self.X25519
            ):
                return True
            case _:
                return False


class PacketTag(IntEnum):
    """OpenPGP packet tags the pipelines know about."""

    PKESK = 1
    SIGNATURE = 2
    SKESK = 3
    ONE_PASS_SIGNATURE = 4
    COMPRESSED_DATA = 8
    SYMMETRICALLY_ENCRYPTED_DATA = 9
    MARKER = 10
    LITERAL_DATA = 11
    SEIPD = 18
    MDC = 19


class LiteralFormat(StrEnum):
    """Format octet of a literal data packet."""

    BINARY = "b"
    TEXT = "t"
    UTF8 = "u"


@dataclass(frozen=True, kw_only=True)
class SessionKey:
    """
    A symmetric session key for one message.

    Attributes:
        algorithm: The symmetric algorithm used.
        key_data: The raw key bytes, zeroed once the message is finished.
    """

    algorithm: SymmetricAlgorithm
    key_data: SecureBytes

    def __post_init__(self) -> None:
        """Validate key size matches algorithm."""
        expected = self.algorithm.key_size
        if not expected or (len(self.key_data) == expected):
            return
        msg = f"Key size mismatch: {self.algorithm.name} expects {expected} bytes, got {len(self.key_data)}"
        raise ValueError(msg)

    @classmethod
    def generate(cls, algorithm: SymmetricAlgorithm) -> Self:
        """Create a fresh random session key from the system CSPRNG."""
        return cls(algorithm=algorithm, key_data=SecureBytes(secrets.token_bytes(algorithm.key_size)))

    @property
    def block_size(self) -> int:
        """Get the block size for this key's algorithm."""
        return self.algorithm.block_size

    def clear(self) -> None:
        self.key_data.clear()


@dataclass(frozen=True, kw_only=True)
class LiteralMetadata:
    """
    Header fields of a literal data packet.

    Attributes:
        format: How the content should be interpreted.
        filename: Suggested file name, empty when not set.
        modified_at: Modification time, None when the packet carries zero.
    """

    format: LiteralFormat = LiteralFormat.BINARY
    filename: str = ""
    modified_at: datetime | None = None
