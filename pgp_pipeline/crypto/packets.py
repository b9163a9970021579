"""
OpenPGP packet framing.

Writes packets with new-format headers (streaming bodies use partial body
lengths) and reads both old and new formats. Parsed packets are exposed as a
small tagged union of protocol objects that the pipelines match on:
EncryptedDataList, CompressedData, LiteralData and OtherPacket.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import IO

from pgp_pipeline.core.layers import DEFAULT_CHUNK_SIZE, InputLayer, OutputLayer, read_exact
from pgp_pipeline.exceptions import MalformedInputError
from pgp_pipeline.models.crypto import LiteralFormat, LiteralMetadata, PacketTag

_MAX_PARTIAL_POWER = 30
_MIN_PARTIAL_CHUNK = 512
_PKESK_V3 = 3
_MIN_PKESK_BODY_LENGTH = 10


@dataclass(frozen=True, kw_only=True)
class PacketHeader:
    """
    A parsed packet header.

    Attributes:
        tag: Packet tag.
        length: Body length (of the first part for partial bodies), None for
            old-format indeterminate length.
        partial: Whether the body uses partial body lengths.
    """

    tag: int
    length: int | None
    partial: bool = False


@dataclass(frozen=True, kw_only=True)
class EncryptedSession:
    """One recipient's public-key encrypted session key (PKESK v3)."""

    key_id: int
    algorithm: int
    packet: bytes


@dataclass(frozen=True, kw_only=True)
class EncryptedDataList:
    """Encrypted session keys followed by the encrypted payload they unlock."""

    sessions: tuple[EncryptedSession, ...]
    data: "PacketBodyReader"
    integrity_protected: bool

    @property
    def tag(self) -> int:
        if self.integrity_protected:
            return PacketTag.SEIPD
        return PacketTag.SYMMETRICALLY_ENCRYPTED_DATA


@dataclass(frozen=True, kw_only=True)
class CompressedData:
    algorithm: int
    data: "PacketBodyReader"

    tag = PacketTag.COMPRESSED_DATA


@dataclass(frozen=True, kw_only=True)
class LiteralData:
    metadata: LiteralMetadata
    data: "PacketBodyReader"

    tag = PacketTag.LITERAL_DATA


@dataclass(frozen=True, kw_only=True)
class OtherPacket:
    """Any packet the pipelines do not interpret; its body has been skipped."""

    tag: int


PGPObject = EncryptedDataList | CompressedData | LiteralData | OtherPacket


def encode_length(length: int) -> bytes:
    """Encode a definite new-format body length."""
    if length < 192:
        return bytes([length])
    if length < 8384:
        length -= 192
        return bytes([(length >> 8) + 192, length & 0xFF])
    return b"\xff" + length.to_bytes(4, "big")


def encode_header(tag: int, length: int) -> bytes:
    return bytes([0xC0 | tag]) + encode_length(length)


def encode_packet(tag: int, body: bytes) -> bytes:
    return encode_header(tag, len(body)) + body


def partial_length_octet(chunk_size: int) -> int:
    power = chunk_size.bit_length() - 1
    if chunk_size < _MIN_PARTIAL_CHUNK or power > _MAX_PARTIAL_POWER or chunk_size != 1 << power:
        msg = f"Partial body chunk size must be a power of two between 512 and 2**30, got {chunk_size}"
        raise ValueError(msg)
    return 224 + power


class PartialBodyWriter(OutputLayer):
    """
    Streams one packet body using partial body lengths.

    Bytes are emitted in fixed power-of-two chunks; the remainder goes out as
    the final, definite-length part when the layer is closed. Bodies shorter
    than one chunk become an ordinary definite-length packet.
    """

    def __init__(self, inner: IO[bytes], tag: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        super().__init__(inner)
        self._tag = tag
        self._chunk_size = chunk_size
        self._length_octet = partial_length_octet(chunk_size)
        self._buffer = bytearray()
        self._started = False

    def _write(self, data: bytes) -> None:
        self._buffer += data
        while len(self._buffer) > self._chunk_size:
            self._emit(bytes([self._length_octet]), self._buffer[: self._chunk_size])
            del self._buffer[: self._chunk_size]

    def _finish(self) -> None:
        self._emit(encode_length(len(self._buffer)), self._buffer)
        self._buffer.clear()

    def _emit(self, length: bytes, chunk: bytes | bytearray) -> None:
        tag = b"" if self._started else bytes([0xC0 | self._tag])
        self._started = True
        self._inner.write(tag + length + bytes(chunk))


def read_body_length(stream: IO[bytes]) -> tuple[int, bool]:
    """Read a new-format body length. Returns (length, is_partial)."""
    first = _read_octets(stream, 1, "Missing length octet")[0]
    if first < 192:
        return first, False
    if first < 224:
        second = _read_octets(stream, 1, "Incomplete two-octet length")[0]
        return ((first - 192) << 8) + second + 192, False
    if first < 255:
        return 1 << (first & 0x1F), True
    return int.from_bytes(_read_octets(stream, 4, "Incomplete five-octet length"), "big"), False


def read_header(stream: IO[bytes]) -> PacketHeader | None:
    """Read the next packet header, or None at a clean end of stream."""
    first = stream.read(1)
    if not first:
        return None

    octet = first[0]
    if not octet & 0x80:
        msg = f"Invalid packet header: 0x{octet:02x}"
        raise MalformedInputError(msg, stage="packet")

    if octet & 0x40:
        length, partial = read_body_length(stream)
        return PacketHeader(tag=octet & 0x3F, length=length, partial=partial)

    tag = (octet & 0x3C) >> 2
    match octet & 0x03:
        case 0:
            length = _read_octets(stream, 1, "Missing length octet")[0]
        case 1:
            length = int.from_bytes(_read_octets(stream, 2, "Incomplete two-octet length"), "big")
        case 2:
            length = int.from_bytes(_read_octets(stream, 4, "Incomplete four-octet length"), "big")
        case _:
            return PacketHeader(tag=tag, length=None)
    return PacketHeader(tag=tag, length=length)


class PacketBodyReader(InputLayer):
    """Reads one packet body, following partial body length continuations."""

    def __init__(self, inner: IO[bytes], header: PacketHeader) -> None:
        super().__init__(inner)
        self.tag = header.tag
        self._remaining = header.length
        self._partial = header.partial

    def _read(self, size: int) -> bytes:
        while self._remaining == 0 and self._partial:
            self._remaining, self._partial = read_body_length(self._inner)
        if self._remaining is None:
            return self._inner.read(size) or b""
        if self._remaining == 0 or size <= 0:
            return b""

        chunk = self._inner.read(min(size, self._remaining))
        if not chunk:
            msg = f"Unexpected end of stream inside packet (tag {self.tag})"
            raise MalformedInputError(msg, stage="packet")
        self._remaining -= len(chunk)
        return chunk


def read_objects(stream: IO[bytes]) -> Iterator[PGPObject]:
    """
    Lazily parse a stream into protocol objects.

    Public-key encrypted session key packets are collected and attached to
    the encrypted data packet that follows them. Each yielded object shares
    ``stream``; its body is skipped before the next object is produced.
    """
    sessions: list[EncryptedSession] = []
    while (header := read_header(stream)) is not None:
        body = PacketBodyReader(stream, header)
        match header.tag:
            case PacketTag.PKESK:
                sessions.append(_parse_session(body.read()))
                continue
            case PacketTag.SKESK | PacketTag.MARKER:
                body.drain()
                continue
            case PacketTag.SEIPD | PacketTag.SYMMETRICALLY_ENCRYPTED_DATA:
                yield EncryptedDataList(
                    sessions=tuple(sessions),
                    data=body,
                    integrity_protected=header.tag == PacketTag.SEIPD,
                )
                sessions = []
            case PacketTag.COMPRESSED_DATA:
                algorithm = _read_octets(body, 1, "Compressed data packet is empty")[0]
                yield CompressedData(algorithm=algorithm, data=body)
            case PacketTag.LITERAL_DATA:
                yield LiteralData(metadata=_parse_literal_header(body), data=body)
            case _:
                body.drain()
                yield OtherPacket(tag=header.tag)
        body.drain()


def encode_literal_header(metadata: LiteralMetadata) -> bytes:
    filename = metadata.filename.encode("utf-8")
    if len(filename) > 255:
        msg = "Literal data filename must encode to at most 255 bytes"
        raise ValueError(msg)
    timestamp = int(metadata.modified_at.timestamp()) if metadata.modified_at else 0
    return (
        metadata.format.value.encode("ascii")
        + bytes([len(filename)])
        + filename
        + timestamp.to_bytes(4, "big")
    )


def _parse_literal_header(body: IO[bytes]) -> LiteralMetadata:
    format_octet, name_length = _read_octets(body, 2, "Literal data header too short")
    filename = _read_octets(body, name_length, "Literal data filename truncated")
    timestamp = int.from_bytes(_read_octets(body, 4, "Literal data date truncated"), "big")
    try:
        literal_format = LiteralFormat(chr(format_octet))
    except ValueError:
        literal_format = LiteralFormat.BINARY
    return LiteralMetadata(
        format=literal_format,
        filename=filename.decode("utf-8", errors="replace"),
        modified_at=datetime.fromtimestamp(timestamp, tz=timezone.utc) if timestamp else None,
    )


def _parse_session(body: bytes) -> EncryptedSession:
    if len(body) < _MIN_PKESK_BODY_LENGTH:
        msg = f"PKESK body too short: {len(body)} bytes"
        raise MalformedInputError(msg, stage="packet")
    if body[0] != _PKESK_V3:
        msg = f"Unsupported PKESK version: {body[0]}"
        raise MalformedInputError(msg, stage="packet")
    return EncryptedSession(
        key_id=int.from_bytes(body[1:9], "big"),
        algorithm=body[9],
        packet=encode_packet(PacketTag.PKESK, body),
    )


def _read_octets(stream: IO[bytes], size: int, error: str) -> bytes:
    data = read_exact(stream, size)
    if len(data) < size:
        raise MalformedInputError(error, stage="packet")
    return data
