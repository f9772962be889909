from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

import orjson

from .jsonblock import TAIL_WINDOW_BYTES as DEFAULT_TAIL_WINDOW_BYTES

# Default settings file: ~/.viewmeta/settings.json
SETTINGS_DEFAULT_PATH = str(Path.home() / ".viewmeta" / "settings.json")

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".tif", ".webp")
DEFAULT_VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv", ".m4v")

SettingsType = Dict[str, Any]


def normalize_exts(exts: Iterable[str]) -> Set[str]:
    out = set()
    for part in exts:
        s = str(part).strip().lower()
        if not s:
            continue
        if not s.startswith("."):
            s = "." + s
        out.add(s)
    return out


def default_settings() -> SettingsType:
    return {
        "tail_window_bytes": DEFAULT_TAIL_WINDOW_BYTES,
        "image_extensions": list(DEFAULT_IMAGE_EXTENSIONS),
        "video_extensions": list(DEFAULT_VIDEO_EXTENSIONS),
        "extra_summary_mappings": [],
        "workflow_anchors": [],
    }


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v.strip()]


def _pairs(value: Any) -> List[List[str]]:
    if not isinstance(value, list):
        return []
    out: List[List[str]] = []
    for item in value:
        if (isinstance(item, (list, tuple)) and len(item) == 2
                and all(isinstance(x, str) and x.strip() for x in item)):
            out.append([item[0].lower(), item[1]])
    return out


def load_settings(path: Path) -> SettingsType:
    """Read a settings file; anything missing or malformed falls back to its default."""
    settings = default_settings()
    if not path.exists():
        return settings
    try:
        with open(path, "rb") as f:
            data = orjson.loads(f.read())
    except (OSError, orjson.JSONDecodeError):
        return settings
    if not isinstance(data, dict):
        return settings

    window = data.get("tail_window_bytes")
    if isinstance(window, int) and not isinstance(window, bool) and window > 0:
        settings["tail_window_bytes"] = window
    for key in ("image_extensions", "video_extensions"):
        exts = _string_list(data.get(key))
        if exts:
            settings[key] = sorted(normalize_exts(exts))
    settings["extra_summary_mappings"] = _pairs(data.get("extra_summary_mappings"))
    settings["workflow_anchors"] = _string_list(data.get("workflow_anchors"))
    return settings


def save_settings(path: Path, settings: SettingsType) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(orjson.dumps(settings, option=orjson.OPT_INDENT_2))
