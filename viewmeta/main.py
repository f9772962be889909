"""
viewmeta

Print the metadata report for image and video files, or export reports for a
whole folder.

Usage
- viewmeta image.png clip.mp4         print each report
- viewmeta --kind video clip.bin      force the media kind
- viewmeta FOLDER --export-ndjson out.ndjson
- viewmeta FOLDER --export-csv out.csv
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .engine import MediaKind, MetadataEngine
from .export import export_reports_csv, export_reports_ndjson, scan_media
from .settings import SETTINGS_DEFAULT_PATH, load_settings


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="viewmeta", description="Show embedded image/video metadata and AI workflow data.")
    ap.add_argument("paths", nargs="+", help="Files to describe, or folders to export")
    ap.add_argument("--kind", choices=[k.value for k in MediaKind], default=None,
                    help="Treat every file as this media kind instead of guessing from the extension")
    ap.add_argument("--export-ndjson", default=None, help="Write one JSON record per file found under the folder(s)")
    ap.add_argument("--export-csv", default=None, help="Write a flattened CSV (Summary:* columns) for the folder(s)")
    ap.add_argument("--settings", default=SETTINGS_DEFAULT_PATH, help="Settings JSON file")
    ap.add_argument("--verbose", action="store_true", help="Log degraded sources (debug output)")
    return ap


def _collect_paths(engine: MetadataEngine, inputs: List[str]) -> List[Path]:
    files: List[Path] = []
    for raw in inputs:
        p = Path(raw)
        if p.is_dir():
            files.extend(scan_media(p, engine))
        elif p.exists():
            files.append(p.resolve())
        else:
            print(f"WARNING: not found: {p}", file=sys.stderr)
    return files


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    engine = MetadataEngine.from_settings(load_settings(Path(args.settings)))

    if args.export_ndjson or args.export_csv:
        files = _collect_paths(engine, args.paths)
        print(f"Found {len(files):,} media files", file=sys.stderr)
        if not files:
            print("Nothing to do.", file=sys.stderr)
            return 1
        if args.export_ndjson:
            export_reports_ndjson(engine, files, Path(args.export_ndjson))
        if args.export_csv:
            export_reports_csv(engine, files, Path(args.export_csv))
        return 0

    kind = MediaKind(args.kind) if args.kind else None
    status = 0
    for i, raw in enumerate(args.paths):
        p = Path(raw)
        if not p.is_file():
            print(f"ERROR: not a file: {p}", file=sys.stderr)
            status = 2
            continue
        if len(args.paths) > 1:
            if i:
                print()
            print(f"== {p} ==")
        print(engine.describe(p, kind))
    return status


if __name__ == "__main__":
    sys.exit(main())
