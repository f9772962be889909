"""
jsonblock.py

Recover an embedded JSON object from arbitrary text by anchoring on a quoted
property name and walking out to the enclosing, brace-balanced object.
Also reads the trailing byte window of a file for video workflow scans.
"""

from __future__ import annotations
import os
import re
from pathlib import Path
from typing import Optional, Sequence

import orjson

# Most specific first
WORKFLOW_ANCHORS = ('"workflow"', '"Workflow"', '"prompt"', '"Prompt"', '"nodes"')
TAIL_WINDOW_BYTES = 4 * 1024 * 1024


def format_json(text: str) -> str:
    """Pretty-print a JSON document, or return the text untouched if it does not parse."""
    try:
        obj = orjson.loads(text)
    except orjson.JSONDecodeError:
        return text
    try:
        return orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8")
    except orjson.JSONEncodeError:
        # orjson serializes less nesting than it parses
        return text


def _open_brace_before(text: str, index: int) -> int:
    start = text.rfind("{", 0, index)
    while start > 0 and text[start - 1] == "\\":
        start = text.rfind("{", 0, start - 1)
    return start


def _matching_brace(text: str, start: int) -> Optional[int]:
    """Index of the '}' closing the '{' at start, skipping string literals."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def _parses(block: str) -> bool:
    try:
        orjson.loads(block)
    except orjson.JSONDecodeError:
        return False
    return True


def find_json_block(text: str, anchor: str) -> Optional[str]:
    """Return the JSON object around the first case-insensitive occurrence of anchor.

    Starts from the nearest '{' before the anchor whose object is still open
    at the anchor and balances forward. The block then widens to any
    enclosing object that still parses as JSON, so an anchor nested inside a
    document yields the whole document.
    """
    m = re.search(re.escape(anchor), text, re.IGNORECASE)
    if not m:
        return None
    index = m.start()
    start = _open_brace_before(text, index)
    while True:
        if start < 0:
            return None
        end = _matching_brace(text, start)
        if end is None:
            return None
        if end > index:
            break
        start = _open_brace_before(text, start)

    probe = start
    while True:
        probe = _open_brace_before(text, probe)
        if probe < 0:
            break
        outer = _matching_brace(text, probe)
        if outer is None:
            break
        if outer < start:
            # closed sibling, keep looking further back
            continue
        if outer <= end or not _parses(text[probe:outer + 1]):
            break
        start, end = probe, outer
    return text[start:end + 1]


def locate_json_block(text: str, anchors: Sequence[str] = WORKFLOW_ANCHORS) -> Optional[str]:
    """Try each anchor in order; the first one that yields a balanced block wins."""
    if not text:
        return None
    for anchor in anchors:
        block = find_json_block(text, anchor)
        if block:
            return block
    return None


def read_tail_text(path: str | Path, max_bytes: int = TAIL_WINDOW_BYTES) -> str:
    """Decode (lossily) at most the last max_bytes bytes of a file. Raises OSError."""
    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        count = min(size, max(0, max_bytes))
        if size > count:
            f.seek(size - count)
        data = f.read(count)
    return data.decode("utf-8", errors="replace")
