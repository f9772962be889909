import io
import struct
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from pngbuild import SIGNATURE, chunk, iend, ihdr, make_png, text_chunk  # noqa: E402
from viewmeta.chunks import FormatError, iter_chunks  # noqa: E402


def test_walks_chunks_in_file_order():
    data = make_png(text_chunk("parameters", "Steps: 20"))
    chunks = list(iter_chunks(io.BytesIO(data)))
    assert [c.type for c in chunks] == ["IHDR", "tEXt", "IDAT", "IEND"]
    assert chunks[1].payload == b"parameters\x00Steps: 20"
    assert chunks[1].length == len(chunks[1].payload)


def test_bad_signature_raises_before_iteration():
    with pytest.raises(FormatError):
        iter_chunks(io.BytesIO(b"GIF89a" + b"\x00" * 32))


def test_each_step_consumes_header_payload_and_crc():
    payload = b"k\x00v"
    stream = io.BytesIO(SIGNATURE + chunk(b"tEXt", payload) + iend())
    it = iter_chunks(stream)
    first = next(it)
    assert first.type == "tEXt"
    assert stream.tell() == 8 + 12 + len(payload)


def test_stops_at_terminal_chunk():
    data = SIGNATURE + ihdr() + iend() + text_chunk("after", "ignored")
    assert [c.type for c in iter_chunks(io.BytesIO(data))] == ["IHDR", "IEND"]


def test_crc_is_not_checked():
    data = SIGNATURE + chunk(b"tEXt", b"a\x00b", crc=0) + iend()
    assert [c.type for c in iter_chunks(io.BytesIO(data))] == ["tEXt", "IEND"]


def test_truncated_header_ends_quietly():
    data = SIGNATURE + ihdr() + b"\x00\x00"
    assert [c.type for c in iter_chunks(io.BytesIO(data))] == ["IHDR"]


def test_length_past_end_of_stream_ends_quietly():
    data = SIGNATURE + struct.pack(">I", 1000) + b"tEXt" + b"short"
    assert list(iter_chunks(io.BytesIO(data))) == []


def test_oversized_length_ends_quietly():
    data = SIGNATURE + struct.pack(">I", 0xFFFFFFFF) + b"tEXt" + b"\x00" * 16
    assert list(iter_chunks(io.BytesIO(data))) == []


class ReadOnlyStream:
    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)

    def read(self, n=-1):
        return self._buf.read(n)


def test_works_without_seek_support():
    data = SIGNATURE + ihdr() + chunk(b"tEXt", b"a\x00b" * 3)[:-6]
    assert [c.type for c in iter_chunks(ReadOnlyStream(data))] == ["IHDR"]
