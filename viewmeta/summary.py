"""
summary.py

Collect canonical (label, value) summary entries from heterogeneous sources:
"Key: value" text blocks and parsed JSON documents. One add() enforces the
report rules: no blank labels or values, first write for a label wins
(case-insensitive), insertion order is display order.
"""

from __future__ import annotations
import re
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

import orjson

# Ordered: first substring match wins, so specific keys precede generic ones.
SUMMARY_KEY_MAPPINGS: Tuple[Tuple[str, str], ...] = (
    ("negative prompt", "Negative Prompt"),
    ("positive prompt", "Prompt"),
    ("prompt", "Prompt"),
    ("sampler", "Sampler"),
    ("model", "Model"),
    ("checkpoint", "Model"),
    ("steps", "Steps"),
    ("cfg scale", "CFG Scale"),
    ("cfg", "CFG Scale"),
    ("seed", "Seed"),
    ("size", "Size"),
    ("width", "Width"),
    ("height", "Height"),
    ("denoise", "Denoise"),
    ("clip skip", "Clip Skip"),
)

LARGE_JSON_CHARS = 400
FALLBACK_PATH_WORDS = ("prompt", "workflow")
LINE_BREAK = re.compile(r"[\r\n]+")


def looks_like_large_json(text: str) -> bool:
    """True for JSON-looking blobs that would be noise in a line summary."""
    if not text or not text.strip():
        return False
    trimmed = text.strip()
    if not trimmed.startswith(("{", "[")):
        return False
    return len(trimmed) > LARGE_JSON_CHARS or '"nodes"' in trimmed.lower()


def _json_scalar(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (str, int)):
        return str(value)
    return orjson.dumps(value).decode("utf-8")


class SummaryCollector:
    """Accumulates the summary entries and notes for one report."""

    def __init__(self, mappings: Optional[Sequence[Tuple[str, str]]] = None) -> None:
        self.mappings: Tuple[Tuple[str, str], ...] = (
            tuple((match.lower(), label) for match, label in mappings) if mappings else SUMMARY_KEY_MAPPINGS
        )
        self.entries: List[Tuple[str, str]] = []
        self.notes: List[str] = []
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries or self.notes)

    def add(self, label: Optional[str], value: Optional[str]) -> bool:
        if not label or not label.strip() or value is None or not str(value).strip():
            return False
        key = label.lower()
        if key in self._seen:
            return False
        self._seen.add(key)
        self.entries.append((label, str(value)))
        return True

    def note(self, text: str) -> None:
        if text and text.strip():
            self.notes.append(text)

    def map_key(self, raw_key: str) -> Optional[str]:
        low = raw_key.lower()
        for match, label in self.mappings:
            if match in low:
                return label
        return None

    # ----------------------- Line-oriented feed -----------------------

    def feed_text(self, keyword: str, text: str) -> bool:
        """Summarize "Key: value" lines. Returns False when the text was skipped.

        Large JSON blobs are not split into lines; they are recorded as a note.
        """
        if not text or not text.strip():
            return False
        trimmed = text.strip()
        if looks_like_large_json(trimmed):
            self.note(f"[{keyword}] contains a workflow JSON block (raw metadata shown below).")
            return False
        self.feed_lines(LINE_BREAK.split(trimmed))
        return True

    def feed_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            sep = line.find(":")
            if sep <= 0 or sep >= len(line) - 1:
                continue
            raw_key = line[:sep].strip()
            value = line[sep + 1:].strip()
            if not raw_key or not value:
                continue
            label = self.map_key(raw_key)
            if label:
                self.add(label, value)

    # ----------------------- JSON-tree feed -----------------------

    def feed_json_text(self, text: str) -> bool:
        """Parse and flatten a JSON document; False if it does not parse."""
        try:
            doc = orjson.loads(text)
        except orjson.JSONDecodeError:
            return False
        self.feed_json(doc)
        return True

    def feed_json(self, node: Any, path: str = "") -> None:
        # explicit stack: orjson accepts nesting deeper than the recursion limit
        stack: List[Tuple[str, Any]] = [(path, node)]
        while stack:
            path, node = stack.pop()
            if isinstance(node, dict):
                children = [(f"{path}.{name}" if path else str(name), child) for name, child in node.items()]
            elif isinstance(node, list):
                children = [(f"{path}[{i}]", child) for i, child in enumerate(node)]
            else:
                self._add_from_path(path, _json_scalar(node))
                continue
            stack.extend(reversed(children))

    def _add_from_path(self, path: str, value: Optional[str]) -> None:
        if not path or not path.strip() or value is None:
            return
        label = self.map_key(path)
        if label:
            self.add(label, value)
            return
        low = path.lower()
        if any(word in low for word in FALLBACK_PATH_WORDS):
            self.add(path, value)

