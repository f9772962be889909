from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import csv
import sys

import orjson

from .engine import MediaKind, MetadataEngine

PROGRESS_EVERY = 500


def to_cell(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (str, int, float, bool)):
        return str(v)
    return orjson.dumps(v).decode("utf-8")


def scan_media(folder: Path, engine: MetadataEngine, kinds: Optional[Set[MediaKind]] = None) -> List[Path]:
    """Supported media files under folder, recursively, sorted case-insensitively."""
    files = []
    for p in folder.rglob("*"):
        if not p.is_file():
            continue
        kind = engine.kind_for(p)
        if kind is None or (kinds and kind not in kinds):
            continue
        files.append(p.resolve())
    files.sort(key=lambda x: str(x).lower())
    return files


def build_record(engine: MetadataEngine, path: Path) -> Dict[str, Any]:
    kind = engine.kind_for(path)
    record: Dict[str, Any] = {"SourceFile": str(path), "Kind": kind.value if kind else "unknown"}
    if kind is None:
        record.update({"Summary": {}, "Notes": [], "Report": engine.describe(path)})
        return record
    # one fresh report feeds every field; the cache is not consulted
    report = engine.report_for(path, kind)
    record["Summary"] = {label: value for label, value in report.summary_entries}
    record["Notes"] = list(report.notes)
    record["Report"] = report.render()
    return record


def iter_records(engine: MetadataEngine, paths: Iterable[Path]) -> Iterable[Dict[str, Any]]:
    count = 0
    for p in paths:
        yield build_record(engine, p)
        count += 1
        if count % PROGRESS_EVERY == 0:
            print(f"described {count:,} files...", file=sys.stderr)


def flatten_record(record: Dict[str, Any]) -> Dict[str, str]:
    flat: Dict[str, str] = {
        "SourceFile": to_cell(record.get("SourceFile", "unknown")),
        "Kind": to_cell(record.get("Kind")),
    }
    summary = record.get("Summary", {})
    if isinstance(summary, dict):
        for k, v in summary.items():
            flat[f"Summary:{k}"] = to_cell(v)
    return flat


def collect_headers(records: Iterable[Dict[str, Any]]) -> List[str]:
    keys: Set[str] = set()
    for obj in records:
        keys.update(flatten_record(obj).keys())
    keys.discard("SourceFile")
    keys.discard("Kind")
    return ["SourceFile", "Kind"] + sorted(keys)


def export_reports_ndjson(engine: MetadataEngine, paths: Iterable[Path], out_path: Path) -> int:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(out_path, "wb") as f:
        for record in iter_records(engine, paths):
            f.write(orjson.dumps(record))
            f.write(b"\n")
            count += 1
    print(f"NDJSON saved: {out_path} | rows: {count}", file=sys.stderr)
    return count


def export_reports_csv(engine: MetadataEngine, paths: Iterable[Path], out_csv: Path) -> Tuple[int, List[str]]:
    # Records are buffered: the header is the union of every file's labels.
    records = list(iter_records(engine, paths))
    headers = collect_headers(records)
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    with open(out_csv, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=headers, extrasaction="ignore")
        w.writeheader()
        for obj in records:
            w.writerow(flatten_record(obj))
    print(f"CSV saved: {out_csv} | rows: {len(records)}", file=sys.stderr)
    return len(records), headers
