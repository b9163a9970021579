"""
pgp_pipeline exception hierarchy.

All exceptions inherit from PGPPipelineError for easy catching. I/O errors
raised by caller-supplied sinks and sources are never wrapped.
"""

from typing import Any


class PGPPipelineError(Exception):
    """Base exception for all pgp_pipeline errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class CryptoError(PGPPipelineError):
    """Cryptographic operation failed."""


class MalformedInputError(CryptoError):
    """Input did not parse as the expected sequence of OpenPGP objects."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message, stage=stage)
        self.stage = stage


class NoUsableKeyError(CryptoError):
    """None of the encrypted sessions resolved to a local private key."""

    def __init__(
        self,
        message: str = "No encrypted session matches an available private key",
        *,
        key_ids: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, key_ids=key_ids)
        self.key_ids = key_ids


class UnexpectedFramingError(CryptoError):
    """Decrypted content did not start with a literal data packet."""

    def __init__(self, message: str, *, packet_tag: int | None = None) -> None:
        super().__init__(message, packet_tag=packet_tag)
        self.packet_tag = packet_tag


class SessionKeyError(CryptoError):
    """Failed to wrap, unwrap or use a session key."""


class IntegrityError(CryptoError):
    """Data integrity verification failed (MDC failure, armor checksum)."""


class UnsupportedAlgorithmError(CryptoError):
    """The requested cipher or compression algorithm is not available."""

    def __init__(self, message: str, *, algorithm: int | None = None) -> None:
        super().__init__(message, algorithm=algorithm)
        self.algorithm = algorithm


class KeyDecryptionError(CryptoError):
    """A secret key could not be used (locked or missing key material)."""

    def __init__(self, message: str, *, key_id: str | None = None) -> None:
        super().__init__(message, key_id=key_id)
        self.key_id = key_id


class KeyRingError(PGPPipelineError):
    """Keyring operation failed."""


class MalformedKeyringError(KeyRingError):
    """Keyring data could not be parsed."""


class KeyTypeError(KeyRingError):
    """A key of the wrong kind was supplied (public vs secret, signing-only)."""
