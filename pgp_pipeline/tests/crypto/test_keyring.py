import pgpy
import pytest

from pgp_pipeline.crypto.key_id import key_id
from pgp_pipeline.crypto.keyring import (
    PublicKeyRing,
    PublicKeyRingCollection,
    SecretKeyRing,
    SecretKeyRingCollection,
    key_resolver,
    load_public_keyring,
    load_secret_keyring,
)
from pgp_pipeline.crypto.protocol import KeyRing
from pgp_pipeline.exceptions import KeyTypeError, MalformedKeyringError

MISSING_ID = 0x0102030405060708


def _ids(keys: object) -> list[int]:
    return [key_id(key) for key in keys]  # type: ignore[attr-defined]


def test_all_rings_satisfy_keyring_protocol(alice: pgpy.PGPKey) -> None:
    rings = [
        PublicKeyRing(alice.pubkey),
        SecretKeyRing(alice),
        PublicKeyRingCollection([PublicKeyRing(alice.pubkey)]),
        SecretKeyRingCollection([SecretKeyRing(alice)]),
    ]

    assert all(isinstance(ring, KeyRing) for ring in rings)


def test_public_ring_rejects_secret_key(alice: pgpy.PGPKey) -> None:
    with pytest.raises(KeyTypeError, match="public key"):
        PublicKeyRing(alice)


def test_secret_ring_rejects_public_key(alice: pgpy.PGPKey) -> None:
    with pytest.raises(KeyTypeError, match="secret key"):
        SecretKeyRing(alice.pubkey)


def test_public_ring_lists_primary_and_subkeys(dave: pgpy.PGPKey) -> None:
    ring = PublicKeyRing(dave.pubkey)

    assert _ids(ring.list_public_keys()) == [key_id(dave), *(key_id(sub) for sub in dave.subkeys.values())]
    assert list(ring.list_secret_keys()) == []


def test_public_ring_lookup_by_subkey_id(dave: pgpy.PGPKey) -> None:
    ring = PublicKeyRing(dave.pubkey)
    subkey_id = key_id(next(iter(dave.subkeys.values())))

    found = ring.get_public_key(subkey_id)

    assert found is not None
    assert found.is_public
    assert key_id(found) == subkey_id
    assert ring.get_secret_key(subkey_id) is None


def test_secret_ring_returns_secret_and_public_halves(alice: pgpy.PGPKey) -> None:
    ring = SecretKeyRing(alice)

    secret = ring.get_secret_key(alice.fingerprint)
    public = ring.get_public_key(key_id(alice))

    assert secret is alice
    assert public is not None and public.is_public
    assert ring.get_public_key(key_id(alice)) is public


def test_lookup_of_absent_id_returns_none(alice: pgpy.PGPKey) -> None:
    ring = SecretKeyRing(alice)

    assert ring.get_secret_key(MISSING_ID) is None
    assert ring.get_public_key(MISSING_ID) is None
    assert not ring.owns(MISSING_ID)


def test_public_collection_lists_union_in_order(alice: pgpy.PGPKey, bob: pgpy.PGPKey) -> None:
    collection = PublicKeyRingCollection([PublicKeyRing(alice.pubkey), PublicKeyRing(bob.pubkey)])

    assert len(collection) == 2
    assert _ids(collection.list_public_keys()) == [key_id(alice), key_id(bob)]
    assert key_id(collection.get_public_key(key_id(bob))) == key_id(bob)
    assert collection.get_public_key(MISSING_ID) is None
    assert collection.get_secret_key(key_id(bob)) is None


def test_secret_collection_delegates_to_owning_ring(alice: pgpy.PGPKey, bob: pgpy.PGPKey) -> None:
    alice_ring, bob_ring = SecretKeyRing(alice), SecretKeyRing(bob)
    collection = SecretKeyRingCollection([alice_ring, bob_ring])

    assert collection.get_secret_ring(key_id(bob)) is bob_ring
    assert collection.get_secret_key(key_id(bob)) is bob
    assert collection.get_public_key(key_id(bob)) is bob_ring.get_public_key(key_id(bob))
    assert _ids(collection.list_secret_keys()) == [key_id(alice), key_id(bob)]
    assert _ids(collection.list_public_keys()) == [key_id(alice), key_id(bob)]


def test_secret_collection_absent_id(alice: pgpy.PGPKey) -> None:
    collection = SecretKeyRingCollection([SecretKeyRing(alice)])

    assert collection.get_secret_ring(MISSING_ID) is None
    assert collection.get_secret_key(MISSING_ID) is None
    assert collection.get_public_key(MISSING_ID) is None


def test_empty_collections_find_nothing() -> None:
    assert list(PublicKeyRingCollection().list_public_keys()) == []
    assert SecretKeyRingCollection().get_secret_key(MISSING_ID) is None


def test_key_resolver_uses_secret_lookup(alice: pgpy.PGPKey, bob: pgpy.PGPKey) -> None:
    resolve = key_resolver(SecretKeyRingCollection([SecretKeyRing(alice)]))

    assert resolve(key_id(alice)) is alice
    assert resolve(key_id(bob)) is None


def test_load_public_keyring_from_armored_text(alice: pgpy.PGPKey, bob: pgpy.PGPKey) -> None:
    armored = str(alice.pubkey) + "\n" + str(bob.pubkey)

    collection = load_public_keyring(armored)

    assert key_id(collection.get_public_key(key_id(alice))) == key_id(alice)
    assert key_id(collection.get_public_key(key_id(bob))) == key_id(bob)
    assert len(collection) == 2


def test_load_public_keyring_from_binary(alice: pgpy.PGPKey) -> None:
    collection = load_public_keyring(bytes(alice.pubkey))

    assert len(collection) == 1
    assert _ids(collection.list_public_keys()) == [key_id(alice)]


def test_load_secret_keyring_keeps_subkeys(dave: pgpy.PGPKey) -> None:
    collection = load_secret_keyring(str(dave))
    subkey_id = key_id(next(iter(dave.subkeys.values())))

    found = collection.get_secret_key(subkey_id)

    assert found is not None
    assert not found.is_public


def test_load_public_keyring_rejects_secret_keys(alice: pgpy.PGPKey) -> None:
    with pytest.raises(MalformedKeyringError, match="Expected public keys"):
        load_public_keyring(str(alice))


def test_load_secret_keyring_rejects_public_keys(alice: pgpy.PGPKey) -> None:
    with pytest.raises(MalformedKeyringError, match="Expected secret keys"):
        load_secret_keyring(str(alice.pubkey))


@pytest.mark.parametrize("data", [b"", b"   \n", "-----BEGIN PGP PUBLIC KEY BLOCK-----\n\ngarbage\n"])
def test_load_rejects_malformed_data(data: bytes | str) -> None:
    with pytest.raises(MalformedKeyringError):
        load_public_keyring(data)
