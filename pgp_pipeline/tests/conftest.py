from collections.abc import Callable

import pgpy
import pytest
from pgpy.constants import (
    CompressionAlgorithm,
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SymmetricKeyAlgorithm,
)

from pgp_pipeline.crypto.keyring import SecretKeyRing, SecretKeyRingCollection

PASSPHRASE = "correct horse battery staple"


def _create_key(name: str, *, usage: set[KeyFlags] | None = None) -> pgpy.PGPKey:
    key = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    uid = pgpy.PGPUID.new(name, comment="test", email=f"{name.lower()}@test.com")
    key.add_uid(
        uid,
        usage=usage or {KeyFlags.Sign, KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage},
        hashes=[HashAlgorithm.SHA256],
        ciphers=[SymmetricKeyAlgorithm.AES256],
        compression=[CompressionAlgorithm.Uncompressed],
    )
    return key


@pytest.fixture(scope="session")
def alice() -> pgpy.PGPKey:
    return _create_key("Alice")


@pytest.fixture(scope="session")
def bob() -> pgpy.PGPKey:
    return _create_key("Bob")


@pytest.fixture(scope="session")
def carol() -> pgpy.PGPKey:
    return _create_key("Carol")


@pytest.fixture(scope="session")
def dave() -> pgpy.PGPKey:
    """Signing-only primary key with a separate encryption subkey."""
    key = _create_key("Dave", usage={KeyFlags.Sign, KeyFlags.Certify})
    subkey = pgpy.PGPKey.new(PubKeyAlgorithm.RSAEncryptOrSign, 2048)
    key.add_subkey(subkey, usage={KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})
    return key


@pytest.fixture(scope="session")
def passphrase() -> str:
    return PASSPHRASE


@pytest.fixture(scope="session")
def protected_key() -> pgpy.PGPKey:
    key = _create_key("Erin")
    key.protect(PASSPHRASE, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)
    return key


@pytest.fixture
def secret_keyring() -> Callable[..., SecretKeyRingCollection]:
    def _make(*keys: pgpy.PGPKey) -> SecretKeyRingCollection:
        return SecretKeyRingCollection(SecretKeyRing(key) for key in keys)

    return _make


@pytest.fixture
def resolver_for() -> Callable[..., Callable[[int], pgpy.PGPKey | None]]:
    """Build a resolve_key callback that knows only the given secret keys."""

    def _make(*keys: pgpy.PGPKey) -> Callable[[int], pgpy.PGPKey | None]:
        ring = SecretKeyRingCollection(SecretKeyRing(key) for key in keys)
        return ring.get_secret_key

    return _make
