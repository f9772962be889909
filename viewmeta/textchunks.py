"""
textchunks.py

Decode the three PNG text chunk kinds into TextEntry records:
- tEXt: keyword NUL text
- zTXt: keyword NUL method compressed-text
- iTXt: keyword NUL flag method language NUL translated-keyword NUL text

parse_* functions raise DecodeError on a malformed layout; decode_chunk()
is the per-chunk boundary and turns that into None.
"""

from __future__ import annotations
import logging
import zlib
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .chunks import Chunk

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """A text chunk payload could not be decoded."""


@dataclass(frozen=True)
class TextEntry:
    kind: str
    keyword: str
    text: str
    language: Optional[str] = None
    translated_keyword: Optional[str] = None
    compressed: bool = False
    method: Optional[int] = None

    def heading(self) -> str:
        if self.kind == "zTXt":
            return f"[{self.keyword}] (compressed, method {self.method})"
        if self.kind == "iTXt":
            return (f"[{self.keyword}] lang={self.language}, translated=\"{self.translated_keyword}\", "
                    f"compressed={self.compressed}, method={self.method}")
        return f"[{self.keyword}]"


def inflate_text(data: bytes) -> str:
    """Inflate a compressed text field, returning "" on any failure.

    The first two bytes are dropped as a zlib header whenever more than two
    bytes are present and the rest is inflated as a raw deflate stream. This is
    a heuristic, not a header check: a genuinely headerless stream loses its
    first two bytes.
    """
    try:
        body = data[2:] if len(data) > 2 else data
        inflater = zlib.decompressobj(-zlib.MAX_WBITS)
        raw = inflater.decompress(body) + inflater.flush()
        return raw.decode("utf-8")
    except (zlib.error, UnicodeDecodeError) as exc:
        logger.debug("inflate failed: %s", exc)
        return ""


def _utf8(data: bytes, field: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"{field} is not valid UTF-8") from exc


def parse_text(payload: bytes) -> TextEntry:
    sep = payload.find(b"\x00")
    if sep <= 0 or sep >= len(payload) - 1:
        raise DecodeError("tEXt: missing keyword separator or empty text")
    keyword = payload[:sep].decode("latin-1")
    return TextEntry(kind="tEXt", keyword=keyword, text=_utf8(payload[sep + 1:], "tEXt text"))


def parse_ztext(payload: bytes) -> TextEntry:
    sep = payload.find(b"\x00")
    if sep <= 0 or sep >= len(payload) - 2:
        raise DecodeError("zTXt: missing keyword separator or compressed data")
    keyword = payload[:sep].decode("latin-1")
    method = payload[sep + 1]
    text = inflate_text(payload[sep + 2:])
    if not text.strip():
        raise DecodeError("zTXt: empty or undecodable text")
    return TextEntry(kind="zTXt", keyword=keyword, text=text, compressed=True, method=method)


def parse_itext(payload: bytes) -> TextEntry:
    keyword_end = payload.find(b"\x00")
    if keyword_end <= 0:
        raise DecodeError("iTXt: missing keyword")
    keyword = payload[:keyword_end].decode("latin-1")
    offset = keyword_end + 1
    if offset + 2 > len(payload):
        raise DecodeError("iTXt: truncated compression fields")
    flag = payload[offset]
    method = payload[offset + 1]
    offset += 2

    language_end = payload.find(b"\x00", offset)
    if language_end < 0:
        raise DecodeError("iTXt: unterminated language tag")
    language = payload[offset:language_end].decode("latin-1")
    offset = language_end + 1

    translated_end = payload.find(b"\x00", offset)
    if translated_end < 0:
        raise DecodeError("iTXt: unterminated translated keyword")
    translated = _utf8(payload[offset:translated_end], "iTXt translated keyword")
    offset = translated_end + 1

    compressed = flag == 1
    body = payload[offset:]
    text = inflate_text(body) if compressed else _utf8(body, "iTXt text")
    if not text.strip():
        raise DecodeError("iTXt: empty text")
    return TextEntry(kind="iTXt", keyword=keyword, text=text, language=language,
                     translated_keyword=translated, compressed=compressed, method=method)


PARSERS: Dict[str, Callable[[bytes], TextEntry]] = {
    "tEXt": parse_text,
    "zTXt": parse_ztext,
    "iTXt": parse_itext,
}


def decode_chunk(chunk: Chunk) -> Optional[TextEntry]:
    """Decode one text chunk; None for other chunk types or malformed payloads."""
    parser = PARSERS.get(chunk.type)
    if parser is None:
        return None
    try:
        return parser(chunk.payload)
    except DecodeError as exc:
        logger.debug("skipping %s chunk: %s", chunk.type, exc)
        return None
