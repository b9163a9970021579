"""
Stream layer primitives shared by the encryption and decryption pipelines.

A pipeline is a stack of filter layers. Each layer writes into (or reads
from) the layer directly beneath it. Layers never close what they wrap;
the pipeline object that owns the stack closes every layer in data-flow
order and leaves the caller's sink or source alone.
"""

import io
from collections.abc import Iterable
from typing import IO, Any

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 8192

Source = bytes | bytearray | memoryview | str | IO[bytes]


class OutputLayer(io.RawIOBase):
    """
    Write-only filter feeding its output into ``inner``.

    Subclasses implement ``_write`` and optionally ``_finish``, which emits
    trailing bytes (padding, checksums, footers) when the layer is closed.
    """

    def __init__(self, inner: IO[bytes]) -> None:
        super().__init__()
        self._inner = inner

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        chunk = bytes(data)
        if chunk:
            self._write(chunk)
        return len(chunk)

    def _write(self, data: bytes) -> None:
        raise NotImplementedError

    def _finish(self) -> None:
        return None

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._finish()
        finally:
            super().close()

    def discard(self) -> None:
        """Release the layer without emitting trailing bytes."""
        if not self.closed:
            super().close()


class InputLayer(io.RawIOBase):
    """
    Read-only filter pulling its input from ``inner``.

    Subclasses implement ``_read(size)`` returning at most ``size`` bytes and
    ``b""`` only at end of stream.
    """

    def __init__(self, inner: IO[bytes]) -> None:
        super().__init__()
        self._inner = inner

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        data = self._read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def _read(self, size: int) -> bytes:
        raise NotImplementedError

    def drain(self) -> None:
        """Consume everything left in the layer."""
        while self._read(DEFAULT_CHUNK_SIZE):
            pass

    def discard(self) -> None:
        self.close()


class SourceReader(InputLayer):
    """
    Bottom layer over a caller-supplied source, with look-ahead.

    Closing it does not close the caller's source.
    """

    def __init__(self, inner: IO[bytes]) -> None:
        super().__init__(inner)
        self._pushback = b""

    def peek(self, size: int = 1) -> bytes:
        while len(self._pushback) < size:
            chunk = self._inner.read(size - len(self._pushback))
            if not chunk:
                break
            self._pushback += chunk
        return self._pushback[:size]

    def _read(self, size: int) -> bytes:
        if self._pushback:
            chunk, self._pushback = self._pushback[:size], self._pushback[size:]
            return chunk
        return self._inner.read(size) or b""


def read_exact(stream: IO[bytes], size: int) -> bytes:
    """Read exactly ``size`` bytes, returning fewer only at end of stream."""
    parts = bytearray()
    while len(parts) < size:
        chunk = stream.read(size - len(parts))
        if not chunk:
            break
        parts += chunk
    return bytes(parts)


def open_source(data: Source) -> IO[bytes]:
    """Turn bytes, text or a binary file object into a readable stream."""
    if isinstance(data, str):
        return io.BytesIO(data.encode("utf-8"))
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(data))
    if hasattr(data, "read"):
        return data
    msg = f"Unsupported data source: {type(data).__name__}"
    raise TypeError(msg)


def close_layers(layers: Iterable[io.IOBase]) -> None:
    """
    Close every layer in order.

    The first error is re-raised after all layers had their chance to close.
    """
    error: BaseException | None = None
    for layer in layers:
        try:
            layer.close()
        except Exception as e:
            if error is None:
                error = e
            else:
                logger.warning(
                    "Suppressed error while closing layer",
                    layer=type(layer).__name__,
                    error=str(e),
                )
    if error is not None:
        raise error


def discard_layers(layers: Iterable[OutputLayer | InputLayer]) -> None:
    """Release layers of a pipeline whose construction failed."""
    for layer in layers:
        layer.discard()
