"""
engine.py

Per-file metadata orchestration:
- images: metadata tree from the image provider, then the PNG text chunk scan
- videos: tag library properties, then a workflow JSON scan of the file tail
- one SummaryCollector per request; sections merged in a fixed order
- rendered reports cached per normalized path until the caller evicts them

describe() never raises; every source failure degrades into the report text.
"""

from __future__ import annotations
import enum
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .chunks import FormatError, iter_chunks
from .jsonblock import TAIL_WINDOW_BYTES, WORKFLOW_ANCHORS, format_json, locate_json_block, read_tail_text
from .providers import (
    ImageTreeProvider,
    MediaInfoTagProvider,
    PillowImageProvider,
    TagProvider,
    VideoTags,
)
from .settings import DEFAULT_IMAGE_EXTENSIONS, DEFAULT_VIDEO_EXTENSIONS, SettingsType, normalize_exts
from .summary import SUMMARY_KEY_MAPPINGS, SummaryCollector, looks_like_large_json
from .textchunks import decode_chunk

logger = logging.getLogger(__name__)

NO_METADATA = "No metadata found."
UNSUPPORTED_KIND = "No metadata available for this media type."
IMAGE_CODEC_ERROR = "Unable to read metadata via image codec."
VIDEO_READ_ERROR = "Unable to read metadata from the video file."
WORKFLOW_SCAN_NOTE = "Unable to scan for embedded workflow metadata."


class MediaKind(enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


def media_kind_for(path: str | Path, image_exts: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
                   video_exts: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS) -> Optional[MediaKind]:
    ext = Path(path).suffix.lower()
    if ext in normalize_exts(image_exts):
        return MediaKind.IMAGE
    if ext in normalize_exts(video_exts):
        return MediaKind.VIDEO
    return None


def format_file_size(size: int) -> str:
    value = float(max(0, size))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[unit]}"


def format_timestamp(seconds: float) -> str:
    if seconds != seconds or seconds in (float("inf"), float("-inf")):
        seconds = 0
    total = int(max(0.0, seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours >= 1:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


# ----------------------- Report + cache -----------------------

@dataclass(frozen=True)
class MetadataReport:
    summary_entries: Tuple[Tuple[str, str], ...] = ()
    notes: Tuple[str, ...] = ()
    raw_sections: Tuple[str, ...] = ()
    source_error: Optional[str] = None

    @classmethod
    def build(cls, summary: SummaryCollector, sections: Sequence[str],
              source_error: Optional[str] = None) -> "MetadataReport":
        return cls(
            summary_entries=tuple(summary.entries),
            notes=tuple(summary.notes),
            raw_sections=tuple(s for s in sections if s and s.strip()),
            source_error=source_error,
        )

    def summary_section(self) -> str:
        if not self.summary_entries and not self.notes:
            return ""
        lines = ["Metadata summary:"]
        lines.extend(f"{label}: {value}" for label, value in self.summary_entries)
        if self.notes:
            lines.append("")
            lines.extend(f"- {n}" for n in self.notes)
        return "\n".join(lines).rstrip()

    def render(self) -> str:
        sections = [self.summary_section()] + list(self.raw_sections)
        sections = [s for s in sections if s]
        if sections:
            return "\n\n".join(sections)
        if self.source_error:
            return self.source_error
        return NO_METADATA


def normalize_path(path: str | Path) -> str:
    return os.path.normcase(os.path.abspath(os.fspath(path)))


class MetadataCache:
    """Rendered report text per normalized absolute path. No automatic invalidation."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, path: str | Path) -> Optional[str]:
        return self._items.get(normalize_path(path))

    def put_if_absent(self, path: str | Path, text: str) -> str:
        # dict.setdefault is atomic under the GIL; the first writer wins
        return self._items.setdefault(normalize_path(path), text)

    def evict(self, path: str | Path) -> bool:
        return self._items.pop(normalize_path(path), None) is not None

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and normalize_path(path) in self._items

    def __len__(self) -> int:
        return len(self._items)


# ----------------------- Orchestrator -----------------------

class MetadataEngine:
    """Builds, renders and caches metadata reports for image and video files."""

    def __init__(self, image_provider: Optional[ImageTreeProvider] = None,
                 tag_provider: Optional[TagProvider] = None,
                 cache: Optional[MetadataCache] = None,
                 tail_window_bytes: int = TAIL_WINDOW_BYTES,
                 anchors: Sequence[str] = WORKFLOW_ANCHORS,
                 summary_mappings: Optional[Sequence[Tuple[str, str]]] = None,
                 image_exts: Iterable[str] = DEFAULT_IMAGE_EXTENSIONS,
                 video_exts: Iterable[str] = DEFAULT_VIDEO_EXTENSIONS) -> None:
        self.image_provider = image_provider if image_provider is not None else PillowImageProvider()
        self.tag_provider = tag_provider if tag_provider is not None else MediaInfoTagProvider()
        self.cache = cache if cache is not None else MetadataCache()
        self.tail_window_bytes = tail_window_bytes if tail_window_bytes > 0 else TAIL_WINDOW_BYTES
        self.anchors = tuple(anchors) or WORKFLOW_ANCHORS
        self.summary_mappings = summary_mappings
        self.image_exts = normalize_exts(image_exts)
        self.video_exts = normalize_exts(video_exts)

    @classmethod
    def from_settings(cls, settings: SettingsType, **kwargs) -> "MetadataEngine":
        extra = [tuple(p) for p in settings.get("extra_summary_mappings", [])]
        return cls(
            tail_window_bytes=settings.get("tail_window_bytes", TAIL_WINDOW_BYTES),
            anchors=settings.get("workflow_anchors") or WORKFLOW_ANCHORS,
            summary_mappings=tuple(extra) + SUMMARY_KEY_MAPPINGS if extra else None,
            image_exts=settings.get("image_extensions") or DEFAULT_IMAGE_EXTENSIONS,
            video_exts=settings.get("video_extensions") or DEFAULT_VIDEO_EXTENSIONS,
            **kwargs,
        )

    def kind_for(self, path: str | Path) -> Optional[MediaKind]:
        return media_kind_for(path, self.image_exts, self.video_exts)

    def describe(self, path: str | Path, kind: Optional[MediaKind] = None) -> str:
        """Return the rendered report, computing and caching it on first request."""
        cached = self.cache.get(path)
        if cached is not None:
            return cached
        kind = kind or self.kind_for(path)
        if kind is None:
            return UNSUPPORTED_KIND
        try:
            text = self.build_report(path, kind).render()
        except Exception:
            logger.exception("metadata extraction failed for %s", path)
            return NO_METADATA
        return self.cache.put_if_absent(path, text)

    def evict(self, path: str | Path) -> bool:
        return self.cache.evict(path)

    def report_for(self, path: str | Path, kind: MediaKind) -> MetadataReport:
        """A freshly built report that never raises; the cache is neither read nor written."""
        try:
            return self.build_report(path, kind)
        except Exception:
            logger.exception("metadata extraction failed for %s", path)
            return MetadataReport()

    def build_report(self, path: str | Path, kind: MediaKind) -> MetadataReport:
        if kind is MediaKind.VIDEO:
            return self.video_report(path)
        return self.image_report(path)

    def _collector(self) -> SummaryCollector:
        return SummaryCollector(self.summary_mappings)

    # ----------------------- Images -----------------------

    def image_report(self, path: str | Path) -> MetadataReport:
        summary = self._collector()
        codec_error: Optional[str] = None
        standard = ""
        try:
            with open(path, "rb") as f:
                info = self.image_provider.read(f, Path(path).name)
        except Exception as exc:
            logger.debug("image provider failed for %s: %s", path, exc)
            codec_error = str(exc) or exc.__class__.__name__
            info = None

        if info is not None:
            lines = [f"File: {info.name}", f"Format: {info.format}", ""]
            for label, value in (("Title", info.title), ("Subject", info.subject), ("Comment", info.comment),
                                 ("Camera Manufacturer", info.camera_make), ("Camera Model", info.camera_model),
                                 ("Date Taken", info.date_taken)):
                if value and value.strip():
                    lines.append(f"{label}: {value}")
            summary.add("Camera", info.camera_model)
            summary.add("Date Taken", info.date_taken)
            summary.add("Pixel Size", f"{info.width} x {info.height}")
            lines.extend(f"{query}: {value}" for query, value in info.entries)
            standard = "Standard metadata:\n" + "\n".join(lines).strip()

        container = self.png_text_section(path, summary)
        error_text = f"{IMAGE_CODEC_ERROR}\n{codec_error}" if codec_error else None
        return MetadataReport.build(summary, [standard, container], error_text)

    def png_text_section(self, path: str | Path, summary: SummaryCollector) -> str:
        """Scan PNG text chunks, feeding the summary; "" for non-PNG or unreadable files."""
        out: List[str] = []
        last_kind: Optional[str] = None
        try:
            with open(path, "rb") as f:
                for chunk in iter_chunks(f):
                    entry = decode_chunk(chunk)
                    if entry is None:
                        continue
                    if entry.kind != last_kind:
                        out.append(f"PNG text metadata ({entry.kind}):")
                        out.append("")
                        last_kind = entry.kind
                    out.append(entry.heading())
                    out.append(entry.text)
                    out.append("")
                    if not summary.feed_text(entry.keyword, entry.text) and looks_like_large_json(entry.text):
                        block = locate_json_block(entry.text, self.anchors)
                        if block:
                            summary.feed_json_text(block)
        except FormatError:
            return ""
        except OSError as exc:
            logger.debug("PNG text scan failed for %s: %s", path, exc)
        return "\n".join(out).strip()

    # ----------------------- Videos -----------------------

    def video_report(self, path: str | Path) -> MetadataReport:
        summary = self._collector()
        try:
            tags = self.tag_provider.read(path)
            props = self._video_properties(path, tags, summary)
        except Exception as exc:
            logger.debug("tag provider failed for %s: %s", path, exc)
            return MetadataReport(source_error=f"{VIDEO_READ_ERROR}\n{str(exc) or exc.__class__.__name__}")

        sections = [props]
        workflow = self.workflow_section(path, summary)
        if workflow:
            sections.append(f"Embedded workflow metadata:\n{workflow}")
        return MetadataReport.build(summary, sections)

    def _video_properties(self, path: str | Path, tags: VideoTags, summary: SummaryCollector) -> str:
        lines = [f"File: {Path(path).name}"]
        if os.path.isfile(path):
            lines.append(f"File Size: {format_file_size(os.path.getsize(path))}")
        if tags.duration > 0:
            duration = format_timestamp(tags.duration)
            lines.append(f"Duration: {duration}")
            summary.add("Duration", duration)
        if tags.width > 0 and tags.height > 0:
            size = f"{tags.width} x {tags.height}"
            lines.append(f"Video Size: {size}")
            summary.add("Size", size)
        if tags.audio_bitrate > 0:
            lines.append(f"Audio Bitrate: {tags.audio_bitrate} kbps")
        if tags.audio_sample_rate > 0:
            lines.append(f"Audio Sample Rate: {tags.audio_sample_rate} Hz")
        for media_type, heading, label in (("video", "Video Codec(s)", "Video Codec"),
                                           ("audio", "Audio Codec(s)", "Audio Codec")):
            names = _unique(c.description for c in tags.codecs if c.media_type == media_type)
            if names:
                text = ", ".join(names)
                lines.append(f"{heading}: {text}")
                summary.add(label, text)

        tag_lines = _tag_lines(tags)
        if tag_lines:
            lines.append("")
            lines.append("Tag metadata:")
            lines.extend(tag_lines)
        return "\n".join(lines).strip()

    def workflow_section(self, path: str | Path, summary: SummaryCollector) -> str:
        """Locate workflow JSON in the file tail; pretty-printed, or "" if absent."""
        try:
            text = read_tail_text(path, self.tail_window_bytes)
            block = locate_json_block(text, self.anchors)
            if not block:
                return ""
            summary.feed_json_text(block)
            return format_json(block)
        except Exception as exc:
            logger.debug("workflow scan failed for %s: %s", path, exc)
            summary.note(WORKFLOW_SCAN_NOTE)
            return ""


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for v in values:
        if not v or not v.strip() or v.lower() in seen:
            continue
        seen.add(v.lower())
        out.append(v)
    return out


def _tag_lines(tags: VideoTags) -> List[str]:
    fields: List[Tuple[str, Optional[str]]] = [
        ("Title", tags.title),
        ("Album", tags.album),
        ("Year", str(tags.year) if tags.year > 0 else None),
        ("Performers", ", ".join(p for p in tags.performers if p.strip()) or None),
        ("Album Artists", ", ".join(a for a in tags.album_artists if a.strip()) or None),
        ("Genres", ", ".join(g for g in tags.genres if g.strip()) or None),
        ("Comment", tags.comment),
    ]
    if tags.track > 0:
        track = f"{tags.track} / {tags.track_count}" if tags.track_count > 0 else str(tags.track)
        fields.append(("Track", track))
    return [f"{label}: {value}" for label, value in fields if value and value.strip()]
