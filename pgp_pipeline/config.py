"""
Encryption options.
"""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, Self, TypeVar

from pgp_pipeline.core.layers import DEFAULT_CHUNK_SIZE
from pgp_pipeline.crypto.packets import partial_length_octet
from pgp_pipeline.exceptions import UnsupportedAlgorithmError
from pgp_pipeline.models.crypto import CompressionAlgorithm, LiteralFormat, SymmetricAlgorithm

E = TypeVar("E", bound=IntEnum)

_COMPRESSION_ALIASES = {
    "NONE": None,
    "DEFLATE": CompressionAlgorithm.ZIP,
    "BZ2": CompressionAlgorithm.BZIP2,
}


@dataclass(frozen=True, kw_only=True)
class EncryptionOptions:
    """
    Attributes:
        algorithm: Symmetric cipher for the message body.
        compress: Compression applied to the plaintext before encryption,
            None for no compression layer.
        armor: Whether to ASCII-armor the output.
        filename: File name recorded in the literal data packet.
        modified_at: Modification time recorded in the literal data packet.
        literal_format: Format octet of the literal data packet.
        compression_level: Compressor level, None for the library default.
        chunk_size: Partial body chunk size for streamed packets.
        armor_headers: Extra ``Name: value`` lines for the armor header.
    """

    algorithm: SymmetricAlgorithm = SymmetricAlgorithm.AES_256
    compress: CompressionAlgorithm | None = None
    armor: bool = False
    filename: str = ""
    modified_at: datetime | None = None
    literal_format: LiteralFormat = LiteralFormat.BINARY
    compression_level: int | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    armor_headers: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.algorithm.is_supported:
            msg = f"Unsupported symmetric algorithm: {self.algorithm.name}"
            raise UnsupportedAlgorithmError(msg, algorithm=int(self.algorithm))
        if self.compression_level is not None and not -1 <= self.compression_level <= 9:
            msg = "compression_level must be between -1 and 9"
            raise ValueError(msg)
        if len(self.filename.encode("utf-8")) > 255:
            msg = "filename must encode to at most 255 bytes"
            raise ValueError(msg)
        if self.modified_at is not None and not 0 <= self.modified_at.timestamp() < 2**32:
            msg = "modified_at must fit in a 32-bit timestamp"
            raise ValueError(msg)
        partial_length_octet(self.chunk_size)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None = None, **overrides: Any) -> Self:
        """
        Build options from loosely typed values.

        Algorithms may be given as enum members, ids or names such as
        ``"aes-256"`` or ``"zlib"``. Unknown option names are ignored.
        """
        merged = {**(options or {}), **overrides}
        known = {field.name for field in dataclasses.fields(cls)}
        values = {name: value for name, value in merged.items() if name in known}

        if "algorithm" in values:
            values["algorithm"] = _coerce_enum(SymmetricAlgorithm, values["algorithm"])
        if "compress" in values:
            values["compress"] = _coerce_compression(values["compress"])
        if "literal_format" in values:
            values["literal_format"] = LiteralFormat(values["literal_format"])
        if "armor" in values:
            values["armor"] = bool(values["armor"])
        if "armor_headers" in values:
            headers = values["armor_headers"]
            items = headers.items() if isinstance(headers, Mapping) else headers
            values["armor_headers"] = tuple((str(name), str(value)) for name, value in items)
        return cls(**values)

    @classmethod
    def resolve(cls, options: "EncryptionOptions | Mapping[str, Any] | None", overrides: Mapping[str, Any]) -> Self:
        """Combine an options object or mapping with keyword overrides."""
        if isinstance(options, cls):
            if not overrides:
                return options
            return cls.from_mapping(_as_dict(options), **overrides)
        return cls.from_mapping(options, **overrides)


def _as_dict(options: EncryptionOptions) -> dict[str, Any]:
    return {field.name: getattr(options, field.name) for field in dataclasses.fields(options)}


def _coerce_enum(enum_cls: type[E], value: Any) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return enum_cls(value)
    if isinstance(value, str):
        wanted = _normalize_name(value)
        for member in enum_cls:
            if _normalize_name(member.name) == wanted:
                return member
    msg = f"Unknown {enum_cls.__name__}: {value!r}"
    raise ValueError(msg)


def _coerce_compression(value: Any) -> CompressionAlgorithm | None:
    if value is None or value is False:
        return None
    if isinstance(value, str) and _normalize_name(value) in _COMPRESSION_ALIASES:
        return _COMPRESSION_ALIASES[_normalize_name(value)]
    return _coerce_enum(CompressionAlgorithm, value)


def _normalize_name(name: str) -> str:
    return name.upper().replace("-", "").replace("_", "").replace(" ", "")
