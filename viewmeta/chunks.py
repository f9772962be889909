"""
chunks.py

Walk a PNG-style container: an 8-byte signature followed by chunks laid out as
4-byte big-endian length, 4-byte ASCII type, payload, 4-byte CRC.
The CRC is consumed but never checked.
"""

from __future__ import annotations
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

PNG_SIGNATURE = bytes([137, 80, 78, 71, 13, 10, 26, 10])
TERMINAL_CHUNK = "IEND"
MAX_CHUNK_LENGTH = 0x7FFFFFFF

_HEADER = struct.Struct(">I4s")


class FormatError(ValueError):
    """The stream does not start with the expected signature."""


@dataclass(frozen=True)
class Chunk:
    type: str
    length: int
    payload: bytes


def iter_chunks(stream: BinaryIO, signature: bytes = PNG_SIGNATURE,
                terminal: Optional[str] = TERMINAL_CHUNK) -> Iterator[Chunk]:
    """Check the signature, then return a lazy iterator over the chunks.

    Raises FormatError immediately when the signature does not match. The
    iterator itself never raises on truncated or oversized chunks; it just
    stops. The terminal chunk, if reached, is yielded last.
    """
    head = stream.read(len(signature))
    if head != signature:
        raise FormatError("bad container signature")
    return _walk(stream, terminal)


def _stream_end(stream: BinaryIO) -> Optional[int]:
    seekable = getattr(stream, "seekable", None)
    try:
        if seekable is None or not seekable():
            return None
        pos = stream.tell()
        end = stream.seek(0, 2)
        stream.seek(pos)
        return end
    except (OSError, ValueError):
        return None


def _walk(stream: BinaryIO, terminal: Optional[str]) -> Iterator[Chunk]:
    end = _stream_end(stream)
    while True:
        header = stream.read(_HEADER.size)
        if len(header) < _HEADER.size:
            return
        length, raw_type = _HEADER.unpack(header)
        if length > MAX_CHUNK_LENGTH:
            return
        if end is not None and stream.tell() + length + 4 > end:
            return
        # payload + CRC; a short read means the declared length runs past EOF
        body = stream.read(length + 4)
        if len(body) < length + 4:
            return
        chunk_type = raw_type.decode("latin-1")
        yield Chunk(type=chunk_type, length=length, payload=body[:length])
        if terminal is not None and chunk_type == terminal:
            return
