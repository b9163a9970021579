"""
Streaming encryption for OpenPGP SEIPD packets.

Symmetrically Encrypted Integrity Protected Data (version 1) is plain CFB
with an all-zero IV over: a random prefix of one block, the last two prefix
octets repeated, the plaintext and a Modification Detection Code packet
holding the SHA-1 of everything before the hash.
"""

import hashlib
import hmac
import os
from typing import IO

from cryptography.hazmat.decrepit.ciphers import algorithms as decrepit
from cryptography.hazmat.primitives.ciphers import Cipher, CipherContext, algorithms, modes

from pgp_pipeline.core.layers import DEFAULT_CHUNK_SIZE, InputLayer, OutputLayer, read_exact
from pgp_pipeline.exceptions import (
    IntegrityError,
    MalformedInputError,
    SessionKeyError,
    UnsupportedAlgorithmError,
)
from pgp_pipeline.models.crypto import SessionKey, SymmetricAlgorithm

_SEIPD_VERSION = 1
_MDC_PACKET_SIZE = 22  # 2-byte header + 20-byte SHA-1
_MDC_HEADER = b"\xd3\x14"

_CIPHERS = {
    SymmetricAlgorithm.AES_128: algorithms.AES,
    SymmetricAlgorithm.AES_192: algorithms.AES,
    SymmetricAlgorithm.AES_256: algorithms.AES,
    SymmetricAlgorithm.CAMELLIA_128: algorithms.Camellia,
    SymmetricAlgorithm.CAMELLIA_192: algorithms.Camellia,
    SymmetricAlgorithm.CAMELLIA_256: algorithms.Camellia,
}

# Read-only support for messages from older implementations.
_LEGACY_CIPHERS = {
    SymmetricAlgorithm.TRIPLE_DES: decrepit.TripleDES,
    SymmetricAlgorithm.CAST5: decrepit.CAST5,
    SymmetricAlgorithm.BLOWFISH: decrepit.Blowfish,
}


def _cfb_context(session_key: SessionKey, *, encrypt: bool) -> CipherContext:
    algorithm = _CIPHERS.get(session_key.algorithm)
    if algorithm is None and not encrypt:
        algorithm = _LEGACY_CIPHERS.get(session_key.algorithm)
    if algorithm is None:
        msg = f"Unsupported symmetric algorithm: {session_key.algorithm.name}"
        raise UnsupportedAlgorithmError(msg, algorithm=int(session_key.algorithm))
    cipher = Cipher(algorithm(bytes(session_key.key_data)), modes.CFB(bytes(session_key.block_size)))
    return cipher.encryptor() if encrypt else cipher.decryptor()


class SeipdWriter(OutputLayer):
    """
    Encrypts everything written to it into a SEIPD packet body.

    ``inner`` receives the body (version octet and ciphertext); packet
    framing is the caller's job. The session key is zeroed on close.
    """

    def __init__(self, inner: IO[bytes], session_key: SessionKey) -> None:
        super().__init__(inner)
        self._session_key = session_key
        self._encryptor = _cfb_context(session_key, encrypt=True)
        self._mdc = hashlib.sha1()

        prefix = os.urandom(session_key.block_size)
        self._inner.write(bytes([_SEIPD_VERSION]))
        self._emit(prefix + prefix[-2:])

    def _write(self, data: bytes) -> None:
        self._emit(data)

    def _emit(self, plaintext: bytes) -> None:
        self._mdc.update(plaintext)
        self._inner.write(self._encryptor.update(plaintext))

    def _finish(self) -> None:
        try:
            self._mdc.update(_MDC_HEADER)
            trailer = _MDC_HEADER + self._mdc.digest()
            self._inner.write(self._encryptor.update(trailer) + self._encryptor.finalize())
        finally:
            self._session_key.clear()

    def discard(self) -> None:
        self._session_key.clear()
        super().discard()


class SeipdReader(InputLayer):
    """
    Decrypts a SEIPD packet body.

    The last 22 plaintext octets are held back until the body ends, at which
    point they are checked as the MDC packet. Reading to end of stream
    therefore raises IntegrityError if the ciphertext was modified.
    """

    def __init__(self, inner: IO[bytes], session_key: SessionKey) -> None:
        super().__init__(inner)
        self._decryptor = _cfb_context(session_key, encrypt=False)
        self._mdc = hashlib.sha1()
        self._tail = b""
        self._plaintext = bytearray()
        self._finished = False
        self._failure: IntegrityError | None = None
        self.verified = False

        version = read_exact(inner, 1)
        if not version:
            msg = "Encrypted data packet is empty"
            raise MalformedInputError(msg, stage="decrypt")
        if version[0] != _SEIPD_VERSION:
            msg = f"Unsupported SEIPD version: {version[0]}"
            raise MalformedInputError(msg, stage="decrypt")
        self._check_prefix(session_key.block_size)

    def _check_prefix(self, block_size: int) -> None:
        prefix_size = block_size + 2
        ciphertext = read_exact(self._inner, prefix_size)
        if len(ciphertext) < prefix_size:
            msg = f"Encrypted data too short: {len(ciphertext)} < {prefix_size}"
            raise MalformedInputError(msg, stage="decrypt")

        prefix = self._decryptor.update(ciphertext)
        if prefix[block_size - 2 : block_size] != prefix[block_size:]:
            raise SessionKeyError("CFB prefix verification failed, possibly wrong key")
        self._mdc.update(prefix)

    def _read(self, size: int) -> bytes:
        if self._failure is not None:
            raise self._failure
        while len(self._plaintext) < size and not self._finished:
            self._fill()
        chunk = bytes(self._plaintext[:size])
        del self._plaintext[:size]
        return chunk

    def _fill(self) -> None:
        ciphertext = self._inner.read(DEFAULT_CHUNK_SIZE)
        if not ciphertext:
            self._finished = True
            self._tail += self._decryptor.finalize()
            try:
                self._verify_mdc()
            except IntegrityError as e:
                self._failure = e
                raise
            return

        window = self._tail + self._decryptor.update(ciphertext)
        released, self._tail = window[:-_MDC_PACKET_SIZE], window[-_MDC_PACKET_SIZE:]
        self._mdc.update(released)
        self._plaintext += released

    def _verify_mdc(self) -> None:
        if len(self._tail) < _MDC_PACKET_SIZE:
            raise IntegrityError("Data too short for MDC")
        if self._tail[:2] != _MDC_HEADER:
            raise IntegrityError(f"Invalid MDC header: {self._tail[:2].hex()}")

        self._mdc.update(_MDC_HEADER)
        if not hmac.compare_digest(self._mdc.digest(), self._tail[2:]):
            raise IntegrityError("MDC verification failed, data may be corrupted or tampered")
        self.verified = True
