"""
Keyrings over pgpy keys.

Four shapes implement the KeyRing protocol: a single public ring, a
collection of public rings, a single secret ring and a collection of secret
rings. A ring is one primary key with its subkeys. Collections delegate to
their member rings and chain their results lazily; they never copy key
material into a store of their own.
"""

import io
import itertools
import re
from collections.abc import Iterable, Iterator

import pgpy
import structlog

from pgp_pipeline.core.layers import Source, open_source
from pgp_pipeline.crypto.armor import ArmorReader, is_armored
from pgp_pipeline.crypto.key_id import format_key_id, key_id
from pgp_pipeline.crypto.protocol import KeyResolver, KeyRing
from pgp_pipeline.exceptions import KeyTypeError, MalformedInputError, MalformedKeyringError

logger = structlog.get_logger(__name__)

_ARMOR_BLOCK = re.compile(rb"-----BEGIN PGP .*?-----END PGP [^\r\n]*", re.DOTALL)


def _with_subkeys(primary: pgpy.PGPKey) -> Iterator[pgpy.PGPKey]:
    yield primary
    yield from primary.subkeys.values()


def _find(keys: Iterable[pgpy.PGPKey], identifier: object) -> pgpy.PGPKey | None:
    wanted = key_id(identifier)
    return next((key for key in keys if key_id(key) == wanted), None)


class PublicKeyRing:
    """A public primary key and its subkeys."""

    def __init__(self, primary: pgpy.PGPKey) -> None:
        if not primary.is_public:
            msg = "PublicKeyRing requires a public key"
            raise KeyTypeError(msg)
        self.primary = primary

    def __repr__(self) -> str:
        return f"PublicKeyRing({format_key_id(self.primary)})"

    def list_public_keys(self) -> Iterator[pgpy.PGPKey]:
        return _with_subkeys(self.primary)

    def list_secret_keys(self) -> Iterator[pgpy.PGPKey]:
        return iter(())

    def get_public_key(self, identifier: object) -> pgpy.PGPKey | None:
        return _find(self.list_public_keys(), identifier)

    def get_secret_key(self, identifier: object) -> pgpy.PGPKey | None:
        return None


class SecretKeyRing:
    """
    A secret primary key and its subkeys.

    The public half is derived once at construction so lookups return the
    same public key objects on every call.
    """

    def __init__(self, primary: pgpy.PGPKey) -> None:
        if primary.is_public:
            msg = "SecretKeyRing requires a secret key"
            raise KeyTypeError(msg)
        self.primary = primary
        self.public = PublicKeyRing(primary.pubkey)

    def __repr__(self) -> str:
        return f"SecretKeyRing({format_key_id(self.primary)})"

    def list_public_keys(self) -> Iterator[pgpy.PGPKey]:
        return self.public.list_public_keys()

    def list_secret_keys(self) -> Iterator[pgpy.PGPKey]:
        return _with_subkeys(self.primary)

    def get_public_key(self, identifier: object) -> pgpy.PGPKey | None:
        return self.public.get_public_key(identifier)

    def get_secret_key(self, identifier: object) -> pgpy.PGPKey | None:
        return _find(self.list_secret_keys(), identifier)

    def owns(self, identifier: object) -> bool:
        return self.get_secret_key(identifier) is not None


class PublicKeyRingCollection:
    """A sequence of public rings searched in order, first match wins."""

    def __init__(self, rings: Iterable[PublicKeyRing] = ()) -> None:
        self.rings = tuple(rings)

    def __iter__(self) -> Iterator[PublicKeyRing]:
        return iter(self.rings)

    def __len__(self) -> int:
        return len(self.rings)

    def list_public_keys(self) -> Iterator[pgpy.PGPKey]:
        return itertools.chain.from_iterable(ring.list_public_keys() for ring in self.rings)

    def list_secret_keys(self) -> Iterator[pgpy.PGPKey]:
        return iter(())

    def get_public_key(self, identifier: object) -> pgpy.PGPKey | None:
        wanted = key_id(identifier)
        return next(
            (key for ring in self.rings if (key := ring.get_public_key(wanted)) is not None),
            None,
        )

    def get_secret_key(self, identifier: object) -> pgpy.PGPKey | None:
        return None


class SecretKeyRingCollection:
    """A sequence of secret rings; lookups locate the owning ring first."""

    def __init__(self, rings: Iterable[SecretKeyRing] = ()) -> None:
        self.rings = tuple(rings)

    def __iter__(self) -> Iterator[SecretKeyRing]:
        return iter(self.rings)

    def __len__(self) -> int:
        return len(self.rings)

    def list_public_keys(self) -> Iterator[pgpy.PGPKey]:
        return itertools.chain.from_iterable(ring.list_public_keys() for ring in self.rings)

    def list_secret_keys(self) -> Iterator[pgpy.PGPKey]:
        return itertools.chain.from_iterable(ring.list_secret_keys() for ring in self.rings)

    def get_secret_ring(self, identifier: object) -> SecretKeyRing | None:
        wanted = key_id(identifier)
        return next((ring for ring in self.rings if ring.owns(wanted)), None)

    def get_public_key(self, identifier: object) -> pgpy.PGPKey | None:
        ring = self.get_secret_ring(identifier)
        return ring.get_public_key(identifier) if ring is not None else None

    def get_secret_key(self, identifier: object) -> pgpy.PGPKey | None:
        ring = self.get_secret_ring(identifier)
        return ring.get_secret_key(identifier) if ring is not None else None


def key_resolver(keyring: KeyRing) -> KeyResolver:
    """
    Build a decryption key callback on top of ``keyring.get_secret_key``.

    Example:
        keyring = load_secret_keyring(path.read_bytes())
        plaintext = decrypt(ciphertext, key_resolver(keyring))
    """

    def resolve(identifier: int) -> pgpy.PGPKey | None:
        key = keyring.get_secret_key(identifier)
        logger.debug("Resolved secret key", key_id=format_key_id(identifier), found=key is not None)
        return key

    return resolve


def load_public_keyring(source: Source) -> PublicKeyRingCollection:
    """
    Load a public keyring collection from binary or armored data.

    Raises:
        MalformedKeyringError: If the data does not parse as public keys.
    """
    keys = _load_primary_keys(source)
    if secret := [key for key in keys if not key.is_public]:
        msg = f"Expected public keys, found {len(secret)} secret key(s)"
        raise MalformedKeyringError(msg)

    collection = PublicKeyRingCollection(PublicKeyRing(key) for key in keys)
    logger.debug("Loaded public keyring", rings=len(collection))
    return collection


def load_secret_keyring(source: Source) -> SecretKeyRingCollection:
    """
    Load a secret keyring collection from binary or armored data.

    Raises:
        MalformedKeyringError: If the data does not parse as secret keys.
    """
    keys = _load_primary_keys(source)
    if public := [key for key in keys if key.is_public]:
        msg = f"Expected secret keys, found {len(public)} public key(s)"
        raise MalformedKeyringError(msg)

    collection = SecretKeyRingCollection(SecretKeyRing(key) for key in keys)
    logger.debug("Loaded secret keyring", rings=len(collection))
    return collection


def _load_primary_keys(source: Source) -> list[pgpy.PGPKey]:
    data = open_source(source).read()
    if not data or not data.strip():
        msg = "Keyring data is empty"
        raise MalformedKeyringError(msg)
    if is_armored(data.lstrip()):
        data = _dearmor_blocks(data)

    try:
        loaded = pgpy.PGPKey.from_blob(data)
    except Exception as e:
        msg = f"Failed to parse keyring: {e}"
        raise MalformedKeyringError(msg) from e

    first, others = loaded if isinstance(loaded, tuple) else (loaded, {})
    keys: list[pgpy.PGPKey] = []
    seen: set[int] = set()
    for key in (first, *others.values()):
        if id(key) in seen or not key.is_primary:
            continue
        seen.add(id(key))
        keys.append(key)
    if not keys:
        msg = "Keyring data contains no primary keys"
        raise MalformedKeyringError(msg)
    return keys


def _dearmor_blocks(data: bytes) -> bytes:
    # pgpy only unarmors the first block of concatenated exports.
    blocks = _ARMOR_BLOCK.findall(data)
    if not blocks:
        msg = "Keyring data is neither binary nor armored"
        raise MalformedKeyringError(msg)

    binary = bytearray()
    for block in blocks:
        try:
            binary += ArmorReader(io.BytesIO(block + b"\n")).read()
        except MalformedInputError as e:
            msg = f"Failed to decode armored keyring block: {e}"
            raise MalformedKeyringError(msg) from e
    return bytes(binary)
