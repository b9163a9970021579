"""
Session key wrapping with recipients' public keys.

Each recipient gets a Public-Key Encrypted Session Key (PKESK v3) packet.
The public-key math and PKCS#1 / ECDH encodings are delegated to pgpy; this
module only picks the right key and converts between pgpy and our models.
"""

import binascii

import pgpy
from pgpy.constants import KeyFlags, SymmetricKeyAlgorithm
from pgpy.packet import Packet
from pgpy.packet.packets import PKESessionKeyV3

from pgp_pipeline.core.secure_bytes import SecureBytes
from pgp_pipeline.crypto.key_id import format_key_id, key_id
from pgp_pipeline.crypto.packets import EncryptedSession
from pgp_pipeline.exceptions import KeyDecryptionError, KeyTypeError, SessionKeyError
from pgp_pipeline.models.crypto import PublicKeyAlgorithm, SessionKey, SymmetricAlgorithm

_ENCRYPT_FLAGS = frozenset({KeyFlags.EncryptCommunications, KeyFlags.EncryptStorage})


def _usage_flags(key: pgpy.PGPKey) -> set[KeyFlags]:
    if key.is_primary:
        signatures = [uid.selfsig for uid in key.userids if uid.selfsig is not None]
    else:
        signatures = list(key.self_signatures)
    for signature in signatures:
        if signature.key_flags:
            return set(signature.key_flags)
    return set()


def _can_encrypt(key: pgpy.PGPKey) -> bool:
    # Keys without usage flags fall back to what their algorithm allows.
    if flags := _usage_flags(key):
        return bool(flags & _ENCRYPT_FLAGS)
    try:
        return PublicKeyAlgorithm(int(key.key_algorithm)).can_encrypt
    except ValueError:
        return False


def find_encryption_key(key: pgpy.PGPKey) -> pgpy.PGPKey:
    """
    Pick the key a message to ``key`` should be encrypted to.

    A primary key with an encryption subkey encrypts to the subkey;
    otherwise the key itself must be able to encrypt. Keys whose
    self-signature carries usage flags must be flagged for encryption.

    Raises:
        KeyTypeError: If neither the key nor its subkeys can encrypt.
    """
    if key.is_primary:
        for subkey in key.subkeys.values():
            if _can_encrypt(subkey):
                return subkey
    if _can_encrypt(key):
        return key
    msg = f"Key {format_key_id(key)} cannot be used for encryption"
    raise KeyTypeError(msg)


def find_decryption_key(key: pgpy.PGPKey, session_key_id: int) -> pgpy.PGPKey:
    """Return the key or subkey of ``key`` that a session was encrypted to."""
    if key_id(key) == session_key_id:
        return key
    for subkey in key.subkeys.values():
        if key_id(subkey) == session_key_id:
            return subkey
    return key


def wrap_session_key(recipient: pgpy.PGPKey, session_key: SessionKey) -> bytes:
    """
    Encrypt ``session_key`` to ``recipient``.

    Returns:
        A complete PKESK packet.

    Raises:
        SessionKeyError: If the recipient's algorithm cannot wrap keys.
    """
    try:
        pkesk = PKESessionKeyV3()
        pkesk.encrypter = bytearray(binascii.unhexlify(str(recipient.fingerprint.keyid).encode("latin-1")))
        pkesk.pkalg = recipient.key_algorithm
        pkesk.encrypt_sk(
            recipient._key,
            SymmetricKeyAlgorithm(int(session_key.algorithm)),
            bytes(session_key.key_data),
        )
        return bytes(pkesk)
    except Exception as e:
        msg = f"Failed to wrap session key for {format_key_id(recipient)}: {e}"
        raise SessionKeyError(msg) from e


def unwrap_session_key(session: EncryptedSession, private_key: pgpy.PGPKey) -> SessionKey:
    """
    Recover the session key of ``session`` with ``private_key``.

    Raises:
        KeyTypeError: If a public key was supplied.
        KeyDecryptionError: If the key is passphrase protected and locked.
        SessionKeyError: If unwrapping fails (wrong key, bad checksum).
    """
    key = find_decryption_key(private_key, session.key_id)
    if key.is_public:
        msg = f"Key {format_key_id(key)} is a public key"
        raise KeyTypeError(msg)
    if not key.is_unlocked:
        msg = "Secret key is protected and has not been unlocked"
        raise KeyDecryptionError(msg, key_id=format_key_id(key))

    try:
        packet = Packet(bytearray(session.packet))
        symalg, symkey = packet.decrypt_sk(key._key)
    except Exception as e:
        msg = f"Failed to unwrap session key: {e}"
        raise SessionKeyError(msg) from e

    algorithm = _parse_algorithm(int(symalg))
    return _build_session_key(algorithm, bytes(symkey))


def _parse_algorithm(algorithm_id: int) -> SymmetricAlgorithm:
    try:
        return SymmetricAlgorithm(algorithm_id)
    except ValueError:
        msg = f"Unknown symmetric algorithm: {algorithm_id}"
        raise SessionKeyError(msg) from None


def _build_session_key(algorithm: SymmetricAlgorithm, key_data: bytes) -> SessionKey:
    try:
        return SessionKey(algorithm=algorithm, key_data=SecureBytes(key_data))
    except ValueError as e:
        raise SessionKeyError(str(e)) from e
