import pytest

from pgp_pipeline.core.secure_bytes import SecureBytes
from pgp_pipeline.models.crypto import (
    LiteralFormat,
    LiteralMetadata,
    PublicKeyAlgorithm,
    SessionKey,
    SymmetricAlgorithm,
)


@pytest.mark.parametrize(
    ("algorithm", "key_size", "block_size"),
    [
        (SymmetricAlgorithm.AES_128, 16, 16),
        (SymmetricAlgorithm.AES_192, 24, 16),
        (SymmetricAlgorithm.AES_256, 32, 16),
        (SymmetricAlgorithm.CAMELLIA_128, 16, 16),
        (SymmetricAlgorithm.CAMELLIA_256, 32, 16),
        (SymmetricAlgorithm.CAST5, 16, 8),
        (SymmetricAlgorithm.PLAINTEXT, 0, 0),
    ],
)
def test_symmetric_algorithm_sizes(algorithm: SymmetricAlgorithm, key_size: int, block_size: int) -> None:
    assert algorithm.key_size == key_size
    assert algorithm.block_size == block_size


def test_only_aes_and_camellia_are_supported() -> None:
    supported = {algorithm for algorithm in SymmetricAlgorithm if algorithm.is_supported}

    assert supported == {
        SymmetricAlgorithm.AES_128,
        SymmetricAlgorithm.AES_192,
        SymmetricAlgorithm.AES_256,
        SymmetricAlgorithm.CAMELLIA_128,
        SymmetricAlgorithm.CAMELLIA_192,
        SymmetricAlgorithm.CAMELLIA_256,
    }


def test_public_key_algorithm_can_encrypt() -> None:
    assert PublicKeyAlgorithm.RSA_ENCRYPT_OR_SIGN.can_encrypt
    assert PublicKeyAlgorithm.ECDH.can_encrypt
    assert not PublicKeyAlgorithm.DSA.can_encrypt
    assert not PublicKeyAlgorithm.EDDSA.can_encrypt


def test_session_key_validates_size() -> None:
    with pytest.raises(ValueError, match="Key size mismatch"):
        SessionKey(algorithm=SymmetricAlgorithm.AES_256, key_data=SecureBytes(bytes(16)))


def test_generate_creates_random_key_of_right_size() -> None:
    first = SessionKey.generate(SymmetricAlgorithm.AES_192)
    second = SessionKey.generate(SymmetricAlgorithm.AES_192)

    assert len(first.key_data) == 24
    assert first.block_size == 16
    assert bytes(first.key_data) != bytes(second.key_data)


def test_session_key_clear_zeroes_key_data() -> None:
    session_key = SessionKey.generate(SymmetricAlgorithm.AES_128)

    session_key.clear()

    assert session_key.key_data.is_cleared


def test_literal_metadata_defaults() -> None:
    metadata = LiteralMetadata()

    assert metadata.format == LiteralFormat.BINARY
    assert metadata.filename == ""
    assert metadata.modified_at is None
