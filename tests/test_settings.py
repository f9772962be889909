import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from viewmeta.engine import MediaKind, MetadataEngine  # noqa: E402
from viewmeta.jsonblock import TAIL_WINDOW_BYTES  # noqa: E402
from viewmeta.settings import default_settings, load_settings, normalize_exts, save_settings  # noqa: E402


def test_missing_or_invalid_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "nope.json") == default_settings()
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert load_settings(bad) == default_settings()
    assert default_settings()["tail_window_bytes"] == TAIL_WINDOW_BYTES


def test_values_fall_back_key_by_key(tmp_path):
    p = tmp_path / "settings.json"
    p.write_text(json.dumps({
        "tail_window_bytes": -5,
        "video_extensions": ["WEBM", ".mp4", ""],
        "extra_summary_mappings": [["LoRA", "LoRA"], ["bad"], ["x", ""]],
        "workflow_anchors": ['"graph"', 3],
    }), encoding="utf-8")
    s = load_settings(p)
    assert s["tail_window_bytes"] == TAIL_WINDOW_BYTES
    assert s["video_extensions"] == [".mp4", ".webm"]
    assert s["image_extensions"] == default_settings()["image_extensions"]
    assert s["extra_summary_mappings"] == [["lora", "LoRA"]]
    assert s["workflow_anchors"] == ['"graph"']


def test_save_then_load(tmp_path):
    p = tmp_path / "nested" / "settings.json"
    s = default_settings()
    s["tail_window_bytes"] = 1024
    save_settings(p, s)
    assert load_settings(p)["tail_window_bytes"] == 1024


def test_normalize_exts():
    assert normalize_exts(["PNG", " .Jpg ", ""]) == {".png", ".jpg"}


def test_engine_from_settings(tmp_path):
    s = default_settings()
    s["video_extensions"] = [".webm"]
    s["extra_summary_mappings"] = [["lora", "LoRA"]]
    s["tail_window_bytes"] = 2048
    engine = MetadataEngine.from_settings(s, image_provider=object(), tag_provider=object())
    assert engine.tail_window_bytes == 2048
    assert engine.kind_for("clip.WEBM") is MediaKind.VIDEO
    assert engine.kind_for("clip.mp4") is None
    collector = engine._collector()
    assert collector.map_key("Lora hashes") == "LoRA"
    assert collector.map_key("Negative prompt") == "Negative Prompt"
