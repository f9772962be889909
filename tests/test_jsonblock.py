import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from viewmeta.jsonblock import find_json_block, format_json, locate_json_block, read_tail_text  # noqa: E402


def test_nested_anchor_returns_enclosing_document():
    assert find_json_block('noise {"a":{"workflow":1}} tail', '"workflow"') == '{"a":{"workflow":1}}'


def test_missing_anchor_or_brace_gives_none():
    assert find_json_block('{"a": 1}', '"workflow"') is None
    assert find_json_block('"workflow": 1}', '"workflow"') is None


def test_unbalanced_block_gives_none():
    assert find_json_block('x {"workflow": {"a": 1}', '"workflow"') is None


def test_braces_inside_strings_do_not_count():
    text = '{"workflow": "a } b", "x": 1} trailing }'
    assert find_json_block(text, '"workflow"') == '{"workflow": "a } b", "x": 1}'


def test_escaped_quotes_inside_strings():
    text = 'junk {"workflow": "say \\"hi\\" {", "n": 2} junk'
    assert find_json_block(text, '"workflow"') == '{"workflow": "say \\"hi\\" {", "n": 2}'


def test_closed_sibling_before_anchor_is_skipped():
    text = '{"prompt": {"a": 1}, "workflow": 5}'
    assert find_json_block(text, '"workflow"') == text


def test_enclosing_text_that_is_not_json_is_not_included():
    text = 'prefix {broken {"workflow": 1} more}'
    assert find_json_block(text, '"workflow"') == '{"workflow": 1}'


def test_anchor_match_ignores_case():
    assert find_json_block('x {"WORKFLOW": 1}', '"workflow"') == '{"WORKFLOW": 1}'


def test_anchors_are_tried_in_order():
    text = 'A {"prompt": 1} B {"workflow": 2}'
    assert locate_json_block(text) == '{"workflow": 2}'
    assert locate_json_block(text, ['"prompt"']) == '{"prompt": 1}'
    assert locate_json_block("") is None


def test_format_json_indents_or_passes_through():
    assert format_json('{"a":1}') == '{\n  "a": 1\n}'
    assert format_json("{not json") == "{not json"


def test_read_tail_text_window(tmp_path):
    p = tmp_path / "clip.bin"
    p.write_bytes(b"0123456789")
    assert read_tail_text(p, 4) == "6789"
    assert read_tail_text(p, 100) == "0123456789"


def test_read_tail_text_replaces_bad_bytes(tmp_path):
    p = tmp_path / "clip.bin"
    p.write_bytes(b"\xff{}")
    assert read_tail_text(p) == "�{}"
