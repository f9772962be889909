"""
providers.py

Adapters over the third-party readers the engine depends on:
- PillowImageProvider: image metadata tree (EXIF IFDs + codec info) via Pillow
- MediaInfoTagProvider: duration/resolution/codecs/tags for videos via pymediainfo

Both raise CollaboratorError; the engine catches it at its boundary.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Protocol, Tuple

from PIL import ExifTags, Image
from pymediainfo import MediaInfo


class CollaboratorError(RuntimeError):
    """An external reader (image codec, tag library) failed."""


# ----------------------- Image metadata tree -----------------------

@dataclass
class ImageInfo:
    name: str
    format: str
    width: int
    height: int
    title: Optional[str] = None
    subject: Optional[str] = None
    comment: Optional[str] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    date_taken: Optional[str] = None
    entries: List[Tuple[str, str]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.title or self.subject or self.comment or self.camera_make
                    or self.camera_model or self.date_taken or self.entries)


class ImageTreeProvider(Protocol):
    def read(self, stream: BinaryIO, name: str) -> Optional[ImageInfo]:
        """Return the metadata tree, or None when the image carries none."""
        ...


TAG_IMAGE_DESCRIPTION = 0x010E
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
TAG_USER_COMMENT = 0x9286
TAG_MAKER_NOTE = 0x927C
TAG_XP_TITLE = 0x9C9B
TAG_XP_COMMENT = 0x9C9C
TAG_XP_SUBJECT = 0x9C9F
IFD_POINTERS = {0x8769, 0x8825, 0xA005}
XP_TAGS = {TAG_XP_TITLE, TAG_XP_COMMENT, TAG_XP_SUBJECT, 0x9C9D, 0x9C9E}
SKIP_INFO_KEYS = {"exif", "icc_profile", "xmp", "photoshop"}


def _decode_xp(value: Any) -> Optional[str]:
    if isinstance(value, (tuple, list)):
        value = bytes(value)
    if isinstance(value, bytes):
        return value.decode("utf-16-le", errors="ignore").rstrip("\x00").strip() or None
    return _to_text(value)


def _decode_user_comment(value: Any) -> Optional[str]:
    if not isinstance(value, bytes):
        return _to_text(value)
    prefix, body = value[:8], value[8:]
    if prefix.startswith(b"UNICODE"):
        text = body.decode("utf-16-be", errors="ignore")
    elif prefix.startswith((b"ASCII", b"\x00\x00\x00\x00")):
        text = body.decode("utf-8", errors="ignore")
    else:
        text = value.decode("utf-8", errors="ignore")
    return text.rstrip("\x00").strip() or None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            s = value.decode("utf-8").rstrip("\x00").strip()
        except UnicodeDecodeError:
            return f"<{len(value)} bytes>"
        return s or None
    if isinstance(value, (tuple, list)):
        parts = [p for p in (_to_text(v) for v in value) if p]
        return ", ".join(parts) or None
    s = str(value).strip()
    return s or None


class PillowImageProvider:
    """Image metadata via Pillow: EXIF (base, Exif and GPS IFDs) plus codec info."""

    def read(self, stream: BinaryIO, name: str) -> Optional[ImageInfo]:
        try:
            with Image.open(stream) as img:
                return self._collect(img, name)
        except Exception as exc:
            raise CollaboratorError(str(exc) or exc.__class__.__name__) from exc

    def _collect(self, img: Image.Image, name: str) -> Optional[ImageInfo]:
        exif = img.getexif()
        exif_ifd = exif.get_ifd(0x8769)
        gps_ifd = exif.get_ifd(0x8825)

        info = ImageInfo(name=name, format=img.format or "unknown", width=img.width, height=img.height)
        info.title = _decode_xp(exif.get(TAG_XP_TITLE)) or _to_text(exif.get(TAG_IMAGE_DESCRIPTION))
        info.subject = _decode_xp(exif.get(TAG_XP_SUBJECT))
        info.comment = _decode_xp(exif.get(TAG_XP_COMMENT)) or _decode_user_comment(exif_ifd.get(TAG_USER_COMMENT))
        info.camera_make = _to_text(exif.get(TAG_MAKE))
        info.camera_model = _to_text(exif.get(TAG_MODEL))
        info.date_taken = _to_text(exif_ifd.get(TAG_DATETIME_ORIGINAL)) or _to_text(exif.get(TAG_DATETIME))

        self._add_ifd(info, "/ifd", exif, ExifTags.TAGS)
        self._add_ifd(info, "/exif", exif_ifd, ExifTags.TAGS)
        self._add_ifd(info, "/gps", gps_ifd, ExifTags.GPSTAGS)

        for key, value in img.info.items():
            if key in SKIP_INFO_KEYS:
                continue
            # PNG text chunks are reported by the container scan
            if img.format == "PNG" and isinstance(value, str):
                continue
            text = _to_text(value)
            if text:
                info.entries.append((f"/info/{key}", text))

        return None if info.is_empty() else info

    @staticmethod
    def _add_ifd(info: ImageInfo, prefix: str, ifd: Any, names: dict) -> None:
        for tag, value in ifd.items():
            if tag in IFD_POINTERS or tag == TAG_MAKER_NOTE:
                continue
            text = _decode_xp(value) if tag in XP_TAGS else _to_text(value)
            if text:
                info.entries.append((f"{prefix}/{names.get(tag, hex(tag))}", text))


# ----------------------- Video tag library -----------------------

@dataclass
class Codec:
    media_type: str  # "video" | "audio"
    description: str


@dataclass
class VideoTags:
    duration: float = 0.0  # seconds
    width: int = 0
    height: int = 0
    audio_bitrate: int = 0  # kbps
    audio_sample_rate: int = 0  # Hz
    codecs: List[Codec] = field(default_factory=list)
    title: Optional[str] = None
    album: Optional[str] = None
    year: int = 0
    performers: List[str] = field(default_factory=list)
    album_artists: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    comment: Optional[str] = None
    track: int = 0
    track_count: int = 0


class TagProvider(Protocol):
    def read(self, path: str | Path) -> VideoTags:
        ...


def _num(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    m = re.search(r"\d+(?:\.\d+)?", str(value))
    return float(m.group(0)) if m else 0.0


def _split_names(value: Any) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in re.split(r"\s*/\s*|;", str(value)) if p.strip()]


def _codec_name(track: Any) -> Optional[str]:
    return _to_text(getattr(track, "commercial_name", None)) or _to_text(getattr(track, "format", None))


class MediaInfoTagProvider:
    """Video properties and tags via pymediainfo (libmediainfo)."""

    def read(self, path: str | Path) -> VideoTags:
        try:
            media = MediaInfo.parse(str(path))
        except Exception as exc:
            raise CollaboratorError(str(exc) or exc.__class__.__name__) from exc
        if not media.tracks:
            raise CollaboratorError("No readable tracks in media file.")

        tags = VideoTags()
        general = media.general_tracks[0] if media.general_tracks else None
        videos = media.video_tracks
        audios = media.audio_tracks

        if general is not None:
            # MediaInfo reports milliseconds
            tags.duration = _num(general.duration) / 1000.0
            tags.title = _to_text(general.title) or _to_text(general.movie_name)
            tags.album = _to_text(general.album)
            year = re.search(r"\d{4}", str(general.recorded_date or ""))
            tags.year = int(year.group(0)) if year else 0
            tags.performers = _split_names(general.performer)
            tags.album_artists = _split_names(general.album_performer)
            tags.genres = _split_names(general.genre)
            tags.comment = _to_text(general.comment)
            tags.track = int(_num(general.track_name_position))
            tags.track_count = int(_num(general.track_name_total))

        if videos:
            tags.width = int(_num(videos[0].width))
            tags.height = int(_num(videos[0].height))
            if not tags.duration:
                tags.duration = _num(videos[0].duration) / 1000.0
        if audios:
            tags.audio_bitrate = int(_num(audios[0].bit_rate) // 1000)
            tags.audio_sample_rate = int(_num(audios[0].sampling_rate))

        for media_type, tracks in (("video", videos), ("audio", audios)):
            for track in tracks:
                name = _codec_name(track)
                if name:
                    tags.codecs.append(Codec(media_type=media_type, description=name))
        return tags
