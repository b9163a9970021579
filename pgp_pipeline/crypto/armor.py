"""
Streaming ASCII armor (RFC 4880 section 6).

ArmorWriter turns binary packets into ``-----BEGIN PGP MESSAGE-----`` text
with a CRC-24 checksum; ArmorReader reverses it line by line, so neither side
needs the whole message in memory.
"""

import base64
import binascii
from collections.abc import Sequence
from typing import IO

from pgp_pipeline.core.layers import DEFAULT_CHUNK_SIZE, InputLayer, OutputLayer
from pgp_pipeline.exceptions import IntegrityError, MalformedInputError

MESSAGE_LABEL = "PGP MESSAGE"

_CRC24_INIT = 0xB704CE
_CRC24_POLY = 0x1864CFB
_LINE_BYTES = 48  # 64 base64 characters
_BEGIN = b"-----BEGIN PGP "
_END = b"-----END PGP "


def _crc24_table() -> tuple[int, ...]:
    table = []
    for index in range(256):
        crc = index << 16
        for _ in range(8):
            crc <<= 1
            if crc & 0x1000000:
                crc ^= _CRC24_POLY
        table.append(crc & 0xFFFFFF)
    return tuple(table)


_CRC24_TABLE = _crc24_table()


def crc24(data: bytes, crc: int = _CRC24_INIT) -> int:
    """OpenPGP CRC-24, optionally continuing from a previous value."""
    table = _CRC24_TABLE
    for byte in data:
        crc = (table[((crc >> 16) ^ byte) & 0xFF] ^ (crc << 8)) & 0xFFFFFF
    return crc


def is_armored(prefix: bytes) -> bool:
    """
    Whether a stream starting with ``prefix`` is armored text.

    Every binary OpenPGP packet starts with an octet whose high bit is set;
    anything else is treated as armor.
    """
    return bool(prefix) and not prefix[0] & 0x80


class ArmorWriter(OutputLayer):
    """Encodes everything written to it as an armored block."""

    def __init__(
        self,
        inner: IO[bytes],
        *,
        label: str = MESSAGE_LABEL,
        headers: Sequence[tuple[str, str]] = (),
    ) -> None:
        super().__init__(inner)
        self._label = label
        self._headers = tuple(headers)
        self._buffer = bytearray()
        self._crc = _CRC24_INIT
        self._started = False

    def _start(self) -> None:
        if self._started:
            return
        self._started = True
        lines = [f"-----BEGIN {self._label}-----"]
        lines.extend(f"{name}: {value}" for name, value in self._headers)
        lines.append("")
        self._inner.write(("\n".join(lines) + "\n").encode("ascii"))

    def _write(self, data: bytes) -> None:
        self._start()
        self._crc = crc24(data, self._crc)
        self._buffer += data
        full = len(self._buffer) - len(self._buffer) % _LINE_BYTES
        if full:
            self._inner.write(self._encode_lines(self._buffer[:full]))
            del self._buffer[:full]

    def _finish(self) -> None:
        self._start()
        tail = self._encode_lines(self._buffer) if self._buffer else b""
        checksum = base64.b64encode(self._crc.to_bytes(3, "big"))
        footer = f"-----END {self._label}-----\n".encode("ascii")
        self._inner.write(tail + b"=" + checksum + b"\n" + footer)
        self._buffer.clear()

    @staticmethod
    def _encode_lines(data: bytes | bytearray) -> bytes:
        return b"".join(
            base64.b64encode(bytes(data[i : i + _LINE_BYTES])) + b"\n"
            for i in range(0, len(data), _LINE_BYTES)
        )


class ArmorReader(InputLayer):
    """
    Decodes an armored block back into binary.

    Text before the BEGIN line is skipped, armor headers are collected into
    ``headers`` and the CRC-24 checksum is verified when present.
    """

    def __init__(self, inner: IO[bytes]) -> None:
        super().__init__(inner)
        self.headers: dict[str, str] = {}
        self.label: str | None = None
        self._text = bytearray()
        self._decoded = bytearray()
        self._source_done = False
        self._pending = b""  # base64 characters not yet forming a full quantum
        self._crc = _CRC24_INIT
        self._checksum: int | None = None
        self._state = "begin"

    def _read(self, size: int) -> bytes:
        while not self._decoded and self._state != "done":
            line = self._next_line()
            if line is None:
                msg = "Armored data ended before its END line"
                raise MalformedInputError(msg, stage="armor")
            self._decoded += self._handle_line(line)
        chunk = bytes(self._decoded[:size])
        del self._decoded[:size]
        return chunk

    def _handle_line(self, line: bytes) -> bytes:
        match self._state:
            case "begin":
                if line.startswith(_BEGIN) and not line.startswith(b"-----BEGIN PGP SIGNED"):
                    self.label = line.strip(b"-").decode("ascii", errors="replace")[len("BEGIN ") :]
                    self._state = "headers"
                return b""
            case "headers":
                if not line.strip():
                    self._state = "body"
                    return b""
                name, sep, value = line.decode("utf-8", errors="replace").partition(":")
                if sep and " " not in name.strip():
                    self.headers[name.strip()] = value.strip()
                    return b""
                self._state = "body"
                return self._handle_line(line)
            case "body":
                return self._handle_body_line(line.strip())
        return b""

    def _handle_body_line(self, line: bytes) -> bytes:
        if line.startswith(_END):
            self._state = "done"
            return self._complete()
        if line.startswith(b"=") and len(line) == 5:
            self._checksum = int.from_bytes(self._b64decode(line[1:]), "big")
            return b""
        if not line:
            return b""

        self._pending += line
        usable = len(self._pending) - len(self._pending) % 4
        chunk, self._pending = self._pending[:usable], self._pending[usable:]
        decoded = self._b64decode(chunk) if chunk else b""
        self._crc = crc24(decoded, self._crc)
        return decoded

    def _complete(self) -> bytes:
        decoded = b""
        if self._pending:
            decoded = self._b64decode(self._pending + b"=" * (-len(self._pending) % 4))
            self._crc = crc24(decoded, self._crc)
            self._pending = b""
        if self._checksum is not None and self._checksum != self._crc:
            msg = f"Armor checksum mismatch: expected 0x{self._checksum:06x}, got 0x{self._crc:06x}"
            raise IntegrityError(msg)
        return decoded

    def _next_line(self) -> bytes | None:
        while True:
            newline = self._text.find(b"\n")
            if newline >= 0:
                line = bytes(self._text[:newline]).rstrip(b"\r")
                del self._text[: newline + 1]
                return line
            if self._source_done:
                if not self._text:
                    return None
                line = bytes(self._text).rstrip(b"\r")
                self._text.clear()
                return line
            chunk = self._inner.read(DEFAULT_CHUNK_SIZE)
            if chunk:
                self._text += chunk
            else:
                self._source_done = True

    @staticmethod
    def _b64decode(data: bytes) -> bytes:
        try:
            return base64.b64decode(data, validate=True)
        except binascii.Error as e:
            msg = f"Invalid base64 in armored data: {e}"
            raise MalformedInputError(msg, stage="armor") from e
