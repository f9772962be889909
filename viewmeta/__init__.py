"""Metadata extraction for a media browser.

This package contains the building blocks used by `main.py`:
- chunks: PNG container chunk reader
- textchunks: tEXt / zTXt / iTXt payload decoding
- jsonblock: locate embedded workflow JSON in text or a file tail
- summary: canonical (label, value) summary collection
- providers: Pillow image tree and pymediainfo tag adapters
- engine: per-file orchestration, report rendering and caching
- settings: persistent settings file
- export: NDJSON/CSV batch export of reports
"""
from .engine import MediaKind, MetadataCache, MetadataEngine, MetadataReport

__all__ = ["MediaKind", "MetadataCache", "MetadataEngine", "MetadataReport"]
