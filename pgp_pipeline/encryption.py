"""
Layered stream encryption.

Data written by the caller flows through:

    literal data framing -> [compression] -> SEIPD encryption -> [armor] -> sink

The session key is wrapped once per recipient and the resulting PKESK packets
precede the encrypted data packet. Closing the returned stream finalizes
every layer in that order so each one flushes its trailing bytes into the
next before the next one finishes.
"""

import io
import shutil
from collections.abc import Iterable, Mapping
from contextlib import ExitStack
from typing import IO, Any

import pgpy
import structlog

from pgp_pipeline.config import EncryptionOptions
from pgp_pipeline.core.layers import OutputLayer, Source, close_layers, discard_layers, open_source
from pgp_pipeline.crypto.armor import ArmorWriter
from pgp_pipeline.crypto.cipher import SeipdWriter
from pgp_pipeline.crypto.compression import CompressorWriter
from pgp_pipeline.crypto.key_id import format_key_id
from pgp_pipeline.crypto.packets import PartialBodyWriter, encode_literal_header
from pgp_pipeline.crypto.session_key import find_encryption_key, wrap_session_key
from pgp_pipeline.models.crypto import LiteralMetadata, PacketTag, SessionKey

logger = structlog.get_logger(__name__)

Recipients = pgpy.PGPKey | Iterable[pgpy.PGPKey]


class EncryptionStream(io.RawIOBase):
    """
    Writable plaintext end of an encryption pipeline.

    Owns every layer it was built from, but not the caller's sink.

    Example:
        with open("out.asc", "wb") as sink:
            with encrypt_stream(sink, recipient, armor=True) as stream:
                stream.write(b"attack at dawn")
    """

    def __init__(self, layers: list[OutputLayer]) -> None:
        """
        Args:
            layers: Pipeline layers in data-flow order, the one the caller
                writes to first.
        """
        super().__init__()
        self._layers = layers

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        return self._layers[0].write(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            close_layers(self._layers)
            logger.debug("Closed encryption pipeline", layers=len(self._layers))
        finally:
            super().close()


class _LiteralWriter(OutputLayer):
    def __init__(self, inner: IO[bytes], metadata: LiteralMetadata) -> None:
        super().__init__(inner)
        self._inner.write(encode_literal_header(metadata))

    def _write(self, data: bytes) -> None:
        self._inner.write(data)


def encrypt_stream(
    sink: IO[bytes],
    recipients: Recipients,
    options: EncryptionOptions | Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> EncryptionStream:
    """
    Wrap ``sink`` with encryption layers.

    Args:
        sink: Binary stream receiving the encrypted message. It is not closed.
        recipients: Public key, or keys, the message is encrypted to.
        options: EncryptionOptions or a mapping of option names.
        **kwargs: Option overrides (``algorithm``, ``compress``, ``armor``...).
            Unknown names are ignored.

    Returns:
        A stream accepting plaintext; close it to finish the message.

    Raises:
        KeyTypeError: If a recipient cannot be used for encryption.
        SessionKeyError: If the session key cannot be wrapped for a recipient.
    """
    opts = EncryptionOptions.resolve(options, kwargs)
    keys = [find_encryption_key(key) for key in _as_key_list(recipients)]
    if not keys:
        msg = "At least one recipient is required"
        raise ValueError(msg)

    session_key = SessionKey.generate(opts.algorithm)
    with ExitStack() as cleanup:
        cleanup.callback(session_key.clear)
        sessions = [wrap_session_key(key, session_key) for key in keys]

        layers: list[OutputLayer] = []
        cleanup.callback(discard_layers, layers)

        def push(layer: OutputLayer) -> OutputLayer:
            layers.append(layer)
            return layer

        top: IO[bytes] = sink
        if opts.armor:
            top = push(ArmorWriter(top, headers=opts.armor_headers))
        for packet in sessions:
            top.write(packet)
        top = push(PartialBodyWriter(top, PacketTag.SEIPD, opts.chunk_size))
        top = push(SeipdWriter(top, session_key))
        if opts.compress is not None:
            top = push(PartialBodyWriter(top, PacketTag.COMPRESSED_DATA, opts.chunk_size))
            top = push(CompressorWriter(top, opts.compress, opts.compression_level))
        top = push(PartialBodyWriter(top, PacketTag.LITERAL_DATA, opts.chunk_size))
        push(
            _LiteralWriter(
                top,
                LiteralMetadata(
                    format=opts.literal_format,
                    filename=opts.filename,
                    modified_at=opts.modified_at,
                ),
            )
        )
        cleanup.pop_all()

    logger.debug(
        "Built encryption pipeline",
        recipients=[format_key_id(key) for key in keys],
        algorithm=opts.algorithm.name,
        compress=opts.compress.name if opts.compress is not None else None,
        armor=opts.armor,
    )
    return EncryptionStream(list(reversed(layers)))


def encrypt(
    plaintext: Source,
    recipients: Recipients,
    options: EncryptionOptions | Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> bytes:
    """
    Encrypt ``plaintext`` and return the whole message.

    Args:
        plaintext: Bytes, text (encoded as UTF-8) or a binary file object.
        recipients: Public key, or keys, the message is encrypted to.
        options: As in ``encrypt_stream``.

    Returns:
        The encrypted message, armored text encoded as ASCII when ``armor``
        is set.
    """
    buffer = io.BytesIO()
    with encrypt_stream(buffer, recipients, options, **kwargs) as stream:
        shutil.copyfileobj(open_source(plaintext), stream)
    return buffer.getvalue()


def _as_key_list(recipients: Recipients) -> list[pgpy.PGPKey]:
    if isinstance(recipients, pgpy.PGPKey):
        return [recipients]
    return list(recipients)
