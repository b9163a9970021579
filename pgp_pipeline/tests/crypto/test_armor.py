import base64
import io

import pytest

from pgp_pipeline.crypto.armor import ArmorReader, ArmorWriter, crc24, is_armored
from pgp_pipeline.exceptions import IntegrityError, MalformedInputError


def _armor(data: bytes, **kwargs: object) -> bytes:
    sink = io.BytesIO()
    writer = ArmorWriter(sink, **kwargs)  # type: ignore[arg-type]
    writer.write(data)
    writer.close()
    return sink.getvalue()


def test_crc24_of_empty_input_is_init_value() -> None:
    assert crc24(b"") == 0xB704CE


def test_crc24_can_be_continued() -> None:
    assert crc24(b"world", crc24(b"hello ")) == crc24(b"hello world")


def test_is_armored_checks_high_bit() -> None:
    assert is_armored(b"-")
    assert not is_armored(b"\x85")
    assert not is_armored(b"")


def test_writer_produces_standard_block() -> None:
    armored = _armor(b"\x85hello").decode("ascii").splitlines()

    assert armored[0] == "-----BEGIN PGP MESSAGE-----"
    assert armored[1] == ""
    assert base64.b64decode(armored[2]) == b"\x85hello"
    assert armored[3] == "=" + base64.b64encode(crc24(b"\x85hello").to_bytes(3, "big")).decode()
    assert armored[4] == "-----END PGP MESSAGE-----"


def test_writer_wraps_lines_at_64_characters() -> None:
    lines = _armor(bytes(200)).decode("ascii").splitlines()
    body = lines[2:-2]

    assert [len(line) for line in body] == [64, 64, 64, 64, 12]


def test_writer_emits_headers() -> None:
    lines = _armor(b"x", headers=[("Comment", "test"), ("Version", "1")]).decode("ascii").splitlines()

    assert lines[1:4] == ["Comment: test", "Version: 1", ""]


def test_writer_without_data_still_emits_block() -> None:
    sink = io.BytesIO()
    ArmorWriter(sink).close()

    text = sink.getvalue().decode("ascii")
    assert text.startswith("-----BEGIN PGP MESSAGE-----")
    assert text.rstrip().endswith("-----END PGP MESSAGE-----")


@pytest.mark.parametrize("size", [0, 1, 47, 48, 49, 1000, 20000])
def test_reader_recovers_written_bytes(size: int) -> None:
    payload = bytes(index % 251 for index in range(size))

    reader = ArmorReader(io.BytesIO(_armor(payload, headers=[("Comment", "x")])))

    assert reader.read() == payload
    assert reader.headers == {"Comment": "x"}
    assert reader.label == "PGP MESSAGE"


def test_reader_skips_leading_text_and_crlf() -> None:
    armored = b"Some preamble\r\n" + _armor(b"payload").replace(b"\n", b"\r\n")

    assert ArmorReader(io.BytesIO(armored)).read() == b"payload"


def test_reader_accepts_missing_checksum() -> None:
    lines = [line for line in _armor(b"payload").splitlines() if not line.startswith(b"=")]

    assert ArmorReader(io.BytesIO(b"\n".join(lines))).read() == b"payload"


def test_reader_detects_checksum_mismatch() -> None:
    lines = _armor(b"payload").splitlines()
    lines[-2] = b"=" + base64.b64encode(b"\x00\x00\x00")

    with pytest.raises(IntegrityError, match="checksum mismatch"):
        ArmorReader(io.BytesIO(b"\n".join(lines))).read()


def test_reader_requires_end_line() -> None:
    truncated = b"\n".join(_armor(b"payload").splitlines()[:-1])

    with pytest.raises(MalformedInputError, match="END line") as exc_info:
        ArmorReader(io.BytesIO(truncated)).read()

    assert exc_info.value.stage == "armor"


def test_reader_rejects_invalid_base64() -> None:
    armored = b"-----BEGIN PGP MESSAGE-----\n\n!!!!\n-----END PGP MESSAGE-----\n"

    with pytest.raises(MalformedInputError, match="Invalid base64"):
        ArmorReader(io.BytesIO(armored)).read()


def test_reader_without_begin_line() -> None:
    with pytest.raises(MalformedInputError):
        ArmorReader(io.BytesIO(b"just some text\n")).read()
