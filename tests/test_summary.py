import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from viewmeta.summary import SummaryCollector, looks_like_large_json  # noqa: E402


def test_first_write_wins_for_shared_label():
    s = SummaryCollector()
    s.feed_text("parameters", "Model: x\nCheckpoint: y")
    assert s.entries == [("Model", "x")]


def test_parameter_lines_map_to_canonical_labels_in_order():
    s = SummaryCollector()
    assert s.feed_text("parameters", "Positive prompt: a cat\nSteps: 20\nSeed: 42")
    assert s.entries == [("Prompt", "a cat"), ("Steps", "20"), ("Seed", "42")]


def test_negative_prompt_is_not_mistaken_for_prompt():
    s = SummaryCollector()
    s.feed_text("parameters", "Negative prompt: blurry\r\nPrompt: sharp")
    assert s.entries == [("Negative Prompt", "blurry"), ("Prompt", "sharp")]


def test_lines_without_key_or_value_are_skipped():
    s = SummaryCollector()
    s.feed_lines(["Steps:", ": 12", "no separator", "Sampler:   ", "CFG scale: 7"])
    assert s.entries == [("CFG Scale", "7")]


def test_blank_and_duplicate_labels_rejected():
    s = SummaryCollector()
    assert not s.add("", "x")
    assert not s.add("Seed", "   ")
    assert not s.add("Seed", None)
    assert s.add("Seed", "1")
    assert not s.add("seed", "2")
    assert s.entries == [("Seed", "1")]


def test_large_json_text_becomes_a_note():
    blob = '{"nodes": [' + ", ".join('{"id": %d}' % i for i in range(60)) + "]}"
    assert looks_like_large_json(blob)
    s = SummaryCollector()
    assert not s.feed_text("workflow", blob)
    assert s.entries == []
    assert s.notes == ["[workflow] contains a workflow JSON block (raw metadata shown below)."]


def test_small_json_is_still_summarized_by_lines():
    assert not looks_like_large_json('{"a": 1}')
    s = SummaryCollector()
    assert s.feed_text("comment", '{"a": 1}')
    assert s.notes == []


def test_json_tree_paths_map_or_fall_back():
    s = SummaryCollector()
    s.feed_json_text(
        '{"3": {"inputs": {"seed": 42, "cfg": 7.5, "sampler_name": "euler", "unused": null}},'
        ' "extra": {"workflow_version": "1"}, "flag": true}'
    )
    assert s.entries == [
        ("Seed", "42"),
        ("CFG Scale", "7.5"),
        ("Sampler", "euler"),
        ("extra.workflow_version", "1"),
    ]


def test_json_tree_arrays_and_booleans():
    s = SummaryCollector()
    s.feed_json({"prompts": ["a", "b"], "positive_prompt_enabled": True})
    # "prompts[0]" claims the Prompt label before the boolean is seen
    assert s.entries == [("Prompt", "a")]

    s = SummaryCollector()
    s.feed_json({"positive_prompt_enabled": False})
    assert s.entries == [("Prompt", "False")]


def test_invalid_json_text_is_rejected():
    s = SummaryCollector()
    assert not s.feed_json_text("{nope")
    assert not s


def test_extra_mappings_take_precedence():
    s = SummaryCollector([("lora", "LoRA"), ("prompt", "Prompt")])
    s.feed_text("parameters", "Lora hashes: abc\nPrompt: x\nSteps: 3")
    assert s.entries == [("LoRA", "abc"), ("Prompt", "x")]


def test_deeply_nested_json_is_walked():
    deep = '{"nodes": [], "prompt": "a cat", "x": ' + "[" * 990 + "1" + "]" * 990 + "}"
    s = SummaryCollector()
    assert s.feed_json_text(deep)
    assert s.entries == [("Prompt", "a cat")]


def test_mapping_match_strings_ignore_case():
    s = SummaryCollector([("LoRA", "LoRA")])
    s.feed_text("parameters", "lora hashes: abc")
    assert s.entries == [("LoRA", "abc")]
