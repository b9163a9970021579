"""
OpenPGP streaming encryption pipelines.

Layered stream encryption and decryption of OpenPGP messages with pgpy keys,
plus keyrings to look those keys up.

Example:
    ```python
    import pgpy
    from pgp_pipeline import decrypt, encrypt, load_secret_keyring

    recipient, _ = pgpy.PGPKey.from_file("bob.pub.asc")
    ciphertext = encrypt(b"attack at dawn", recipient, armor=True, compress="zlib")

    keyring = load_secret_keyring(open("bob.sec.asc", "rb").read())
    assert decrypt(ciphertext, keyring) == b"attack at dawn"
    ```
"""

from pgp_pipeline.config import EncryptionOptions
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
from pgp_pipeline.crypto.protocol import KeyResolver, KeyRing
from pgp_pipeline.decryption import DecryptionStream, decrypt, decrypt_stream
from pgp_pipeline.encryption import EncryptionStream, encrypt, encrypt_stream
from pgp_pipeline.exceptions import (
    CryptoError,
    IntegrityError,
    KeyDecryptionError,
    KeyRingError,
    KeyTypeError,
    MalformedInputError,
    MalformedKeyringError,
    NoUsableKeyError,
    PGPPipelineError,
    SessionKeyError,
    UnexpectedFramingError,
    UnsupportedAlgorithmError,
)
from pgp_pipeline.models.crypto import CompressionAlgorithm, LiteralFormat, LiteralMetadata, SymmetricAlgorithm

__version__ = "0.1.0"

__all__ = [
    # Pipelines
    "encrypt",
    "encrypt_stream",
    "decrypt",
    "decrypt_stream",
    "EncryptionStream",
    "DecryptionStream",
    "EncryptionOptions",
    # Keys
    "KeyRing",
    "KeyResolver",
    "PublicKeyRing",
    "PublicKeyRingCollection",
    "SecretKeyRing",
    "SecretKeyRingCollection",
    "key_resolver",
    "load_public_keyring",
    "load_secret_keyring",
    "key_id",
    "format_key_id",
    # Models
    "CompressionAlgorithm",
    "LiteralFormat",
    "LiteralMetadata",
    "SymmetricAlgorithm",
    # Exceptions
    "PGPPipelineError",
    "CryptoError",
    "MalformedInputError",
    "NoUsableKeyError",
    "UnexpectedFramingError",
    "SessionKeyError",
    "IntegrityError",
    "UnsupportedAlgorithmError",
    "KeyDecryptionError",
    "KeyRingError",
    "MalformedKeyringError",
    "KeyTypeError",
]
