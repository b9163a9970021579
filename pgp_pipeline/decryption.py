"""
Layered stream decryption.

The input is peeled in the reverse order of encryption:

    source -> [armor, detected automatically] -> encrypted data list
           -> session selected via resolve_key -> SEIPD decryption
           -> [compressed data] -> literal data content

Only the first encrypted data list is considered, and inside the decrypted
payload only the first object (after the optional decompression) is read.
"""

import io
from collections.abc import Iterator
from contextlib import ExitStack
from typing import IO, Any

import pgpy
import structlog

from pgp_pipeline.core.layers import (
    InputLayer,
    Source,
    SourceReader,
    close_layers,
    discard_layers,
    open_source,
)
from pgp_pipeline.crypto.armor import ArmorReader, is_armored
from pgp_pipeline.crypto.cipher import SeipdReader
from pgp_pipeline.crypto.compression import DecompressorReader
from pgp_pipeline.crypto.key_id import format_key_id
from pgp_pipeline.crypto.keyring import key_resolver
from pgp_pipeline.crypto.packets import (
    CompressedData,
    EncryptedDataList,
    EncryptedSession,
    LiteralData,
    PGPObject,
    read_objects,
)
from pgp_pipeline.crypto.protocol import KeyResolver, KeyRing
from pgp_pipeline.crypto.session_key import unwrap_session_key
from pgp_pipeline.exceptions import (
    IntegrityError,
    MalformedInputError,
    NoUsableKeyError,
    UnexpectedFramingError,
)
from pgp_pipeline.models.crypto import LiteralMetadata

logger = structlog.get_logger(__name__)


class DecryptionStream(io.RawIOBase):
    """
    Readable plaintext end of a decryption pipeline.

    Owns every intermediate layer, but not the caller's source. Once the
    plaintext has been read to the end, the rest of the encrypted payload is
    consumed and its modification detection code verified; a mismatch raises
    IntegrityError from the read that reached the end.
    """

    def __init__(
        self,
        layers: list[InputLayer],
        decrypted: SeipdReader,
        literal: LiteralMetadata,
        key_id: int,
    ) -> None:
        """
        Args:
            layers: Pipeline layers in data-flow order, the literal content
                reader first and the source reader last.
            decrypted: The decrypting layer, drained to verify integrity.
            literal: Literal data packet header of the message.
            key_id: Id of the session that was decrypted.
        """
        super().__init__()
        self._layers = layers
        self._content = layers[0]
        self._decrypted = decrypted
        self.literal = literal
        self.key_id = key_id

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        size = self._content.readinto(buffer)
        if size == 0 and len(buffer) > 0 and not self._decrypted.verified:
            self._decrypted.drain()
        return size

    @property
    def verified(self) -> bool:
        """Whether the integrity of the whole payload has been checked."""
        return self._decrypted.verified

    def close(self) -> None:
        if self.closed:
            return
        try:
            close_layers(self._layers)
            logger.debug("Closed decryption pipeline", layers=len(self._layers))
        finally:
            super().close()


def decrypt_stream(source: IO[bytes], resolve_key: KeyResolver | KeyRing) -> DecryptionStream:
    """
    Wrap ``source`` with decryption layers.

    Args:
        source: Binary stream holding a binary or armored message. It is not
            closed.
        resolve_key: Callback mapping a key id to an unlocked private key or
            None, or a KeyRing whose secret keys are used.

    Returns:
        A stream yielding the plaintext.

    Raises:
        MalformedInputError: If the input is not an encrypted message, or the
            decrypted payload does not parse.
        NoUsableKeyError: If no session can be opened with a local key.
        UnexpectedFramingError: If the payload does not hold literal data.
        SessionKeyError: If the resolved key cannot unwrap its session.
    """
    resolver = resolve_key if callable(resolve_key) else key_resolver(resolve_key)

    layers: list[InputLayer] = []
    with ExitStack() as cleanup:
        cleanup.callback(discard_layers, layers)

        def push(layer: InputLayer) -> InputLayer:
            layers.append(layer)
            return layer

        reader = push(SourceReader(source))
        if is_armored(reader.peek(1)):
            reader = push(ArmorReader(reader))

        data_list = _find_encrypted_data(read_objects(reader))
        session, private_key = _select_session(data_list.sessions, resolver)
        session_key = unwrap_session_key(session, private_key)

        push(data_list.data)
        try:
            decrypted = SeipdReader(data_list.data, session_key)
        finally:
            session_key.clear()
        push(decrypted)

        payload = _first_object(decrypted, stage="decrypted")
        match payload:
            case CompressedData(algorithm=algorithm, data=body):
                push(body)
                decompressed = push(DecompressorReader(body, algorithm))
                payload = _first_object(decompressed, stage="decompressed")

        match payload:
            case LiteralData(metadata=metadata, data=body):
                push(body)
            case _:
                msg = "Encrypted data did not contain a literal data packet"
                raise UnexpectedFramingError(msg, packet_tag=int(payload.tag))
        cleanup.pop_all()

    logger.debug("Built decryption pipeline", key_id=format_key_id(session.key_id), layers=len(layers))
    return DecryptionStream(list(reversed(layers)), decrypted, metadata, session.key_id)


def decrypt(ciphertext: Source, resolve_key: KeyResolver | KeyRing) -> bytes:
    """
    Decrypt a whole message.

    Args:
        ciphertext: Bytes, armored text or a binary file object.
        resolve_key: As in ``decrypt_stream``.

    Returns:
        The plaintext.
    """
    with decrypt_stream(open_source(ciphertext), resolve_key) as stream:
        return stream.read()


def _find_encrypted_data(objects: Iterator[PGPObject]) -> EncryptedDataList:
    for obj in objects:
        if isinstance(obj, EncryptedDataList):
            if not obj.integrity_protected:
                msg = "Encrypted data without integrity protection is not supported"
                raise IntegrityError(msg)
            return obj
    msg = "Input does not contain an encrypted data packet"
    raise MalformedInputError(msg, stage="encrypted")


def _select_session(
    sessions: tuple[EncryptedSession, ...],
    resolve_key: KeyResolver,
) -> tuple[EncryptedSession, pgpy.PGPKey]:
    for session in sessions:
        key = resolve_key(session.key_id)
        if key is not None:
            logger.debug(
                "Selected encrypted session",
                key_id=format_key_id(session.key_id),
                candidates=len(sessions),
            )
            return session, key
    raise NoUsableKeyError(key_ids=tuple(format_key_id(session.key_id) for session in sessions))


def _first_object(stream: IO[bytes], *, stage: str) -> PGPObject:
    first = next(read_objects(stream), None)
    if first is None:
        msg = f"No packets found in {stage} data"
        raise MalformedInputError(msg, stage=stage)
    return first

