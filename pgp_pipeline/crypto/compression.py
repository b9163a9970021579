"""
Compressed data packet bodies (RFC 4880 section 5.6).

ZIP is raw deflate, ZLIB is deflate with a zlib header, BZip2 is bzip2.
"""

import bz2
import zlib
from collections.abc import Callable
from typing import IO, Protocol

from pgp_pipeline.core.layers import DEFAULT_CHUNK_SIZE, InputLayer, OutputLayer
from pgp_pipeline.exceptions import MalformedInputError, UnsupportedAlgorithmError
from pgp_pipeline.models.crypto import CompressionAlgorithm

_RAW_DEFLATE_BITS = -15
_ZLIB_BITS = 15
_DEFAULT_BZIP2_LEVEL = 9


class _Compressor(Protocol):
    def compress(self, data: bytes, /) -> bytes: ...

    def flush(self) -> bytes: ...


class _Passthrough:
    def compress(self, data: bytes) -> bytes:
        return data

    def flush(self) -> bytes:
        return b""


def _parse_algorithm(algorithm: int) -> CompressionAlgorithm:
    try:
        return CompressionAlgorithm(algorithm)
    except ValueError:
        msg = f"Unknown compression algorithm: {algorithm}"
        raise UnsupportedAlgorithmError(msg, algorithm=algorithm) from None


def _compressor(algorithm: CompressionAlgorithm, level: int | None) -> _Compressor:
    match algorithm:
        case CompressionAlgorithm.ZIP:
            return zlib.compressobj(-1 if level is None else level, zlib.DEFLATED, _RAW_DEFLATE_BITS)
        case CompressionAlgorithm.ZLIB:
            return zlib.compressobj(-1 if level is None else level, zlib.DEFLATED, _ZLIB_BITS)
        case CompressionAlgorithm.BZIP2:
            return bz2.BZ2Compressor(_DEFAULT_BZIP2_LEVEL if level in (None, -1, 0) else level)
        case _:
            return _Passthrough()


class CompressorWriter(OutputLayer):
    """
    Compresses everything written to it into a compressed data packet body.

    The algorithm octet is written first; packet framing is the caller's job.
    """

    def __init__(
        self,
        inner: IO[bytes],
        algorithm: CompressionAlgorithm,
        level: int | None = None,
    ) -> None:
        super().__init__(inner)
        self.algorithm = _parse_algorithm(algorithm)
        self._compressor = _compressor(self.algorithm, level)
        self._inner.write(bytes([self.algorithm]))

    def _write(self, data: bytes) -> None:
        compressed = self._compressor.compress(data)
        if compressed:
            self._inner.write(compressed)

    def _finish(self) -> None:
        self._inner.write(self._compressor.flush())


class DecompressorReader(InputLayer):
    """Inflates the body of a compressed data packet."""

    def __init__(self, inner: IO[bytes], algorithm: int) -> None:
        super().__init__(inner)
        self.algorithm = _parse_algorithm(algorithm)
        match self.algorithm:
            case CompressionAlgorithm.ZIP:
                self._decompressor = zlib.decompressobj(_RAW_DEFLATE_BITS)
            case CompressionAlgorithm.ZLIB:
                self._decompressor = zlib.decompressobj(_ZLIB_BITS)
            case CompressionAlgorithm.BZIP2:
                self._decompressor = bz2.BZ2Decompressor()
            case _:
                self._decompressor = None
        self._output = bytearray()
        self._finished = False

    def _read(self, size: int) -> bytes:
        while len(self._output) < size and not self._finished:
            self._fill()
        chunk = bytes(self._output[:size])
        del self._output[:size]
        return chunk

    def _fill(self) -> None:
        data = self._inner.read(DEFAULT_CHUNK_SIZE)
        if not data:
            self._finished = True
            if self.algorithm in (CompressionAlgorithm.ZIP, CompressionAlgorithm.ZLIB):
                self._output += self._inflate(self._decompressor.flush)
            if self._decompressor is not None and not self._decompressor.eof:
                msg = "Compressed data ended before the end of the compressed stream"
                raise MalformedInputError(msg, stage="decompress")
            return
        if self._decompressor is None:
            self._output += data
        elif not self._decompressor.eof:
            self._output += self._inflate(self._decompressor.decompress, data)

    @staticmethod
    def _inflate(operation: Callable[..., bytes], *args: bytes) -> bytes:
        try:
            return operation(*args)
        except (zlib.error, OSError, EOFError) as e:
            msg = f"Failed to decompress data: {e}"
            raise MalformedInputError(msg, stage="decompress") from e
