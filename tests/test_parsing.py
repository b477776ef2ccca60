"""Tests for turning the text model's answer into panels."""

import json

import pytest

from conftest import scene_payload
from errors import MalformedResponseError
from models import CaptionPlacement, GenerationOptions, PromptBundle
from parsing import normalize_dialogue, parse_scene_response, strip_code_fence


def _opts(**kw) -> GenerationOptions:
    kw.setdefault("num_pages", 3)
    return GenerationOptions(story="Zara finds a map.", **kw)


def test_parse_yields_exactly_n_panels_in_order() -> None:
    board = parse_scene_response(json.dumps(scene_payload(3)), _opts())

    assert [p.index for p in board.panels] == [1, 2, 3]
    assert board.panels[0].caption == "Caption 1"
    assert board.panels[2].dialogues == ['Zara: "Line 3"']
    assert "Zara" in board.character_canon


def test_parse_accepts_fenced_json() -> None:
    text = "```json\n" + json.dumps(scene_payload(3)) + "\n```"

    board = parse_scene_response(text, _opts())

    assert len(board.panels) == 3


def test_strip_code_fence_leaves_bare_text_alone() -> None:
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'


def test_captions_disabled_clears_ui_fields() -> None:
    board = parse_scene_response(json.dumps(scene_payload(3)), _opts(include_captions=False))

    assert all(p.caption is None for p in board.panels)
    assert all(p.dialogues == [] for p in board.panels)


def test_embedded_captions_clear_ui_fields() -> None:
    board = parse_scene_response(
        json.dumps(scene_payload(3)), _opts(caption_placement=CaptionPlacement.IN_IMAGE)
    )

    assert all(p.caption is None and p.dialogues == [] for p in board.panels)


def test_structured_dialogue_pairs_are_normalized() -> None:
    payload = scene_payload(3, dialogues=[{"character": "Zara", "line": "Let's go!"}, "Narrator: Later..."])

    board = parse_scene_response(json.dumps(payload), _opts())

    assert board.panels[0].dialogues == ['Zara: "Let\'s go!"', "Narrator: Later..."]


def test_unrecognised_dialogue_entry_is_rejected() -> None:
    with pytest.raises(MalformedResponseError):
        normalize_dialogue({"speaker": "Zara"})


def test_missing_scene_numbers_fall_back_to_position() -> None:
    payload = scene_payload(3)
    for scene in payload["scenes"]:
        del scene["scene_number"]

    board = parse_scene_response(json.dumps(payload), _opts())

    assert [p.index for p in board.panels] == [1, 2, 3]


def test_sparse_scene_numbers_are_renumbered() -> None:
    payload = scene_payload(3)
    payload["scenes"][1]["scene_number"] = 7

    board = parse_scene_response(json.dumps(payload), _opts())

    assert [p.index for p in board.panels] == [1, 2, 3]


def test_panel_prompt_is_a_canon_bundle() -> None:
    board = parse_scene_response(json.dumps(scene_payload(3)), _opts())

    bundle = PromptBundle.model_validate_json(board.panels[1].image_prompt)
    assert bundle.scene == "Zara in scene 2"
    assert bundle.character_canon["Zara"].visual_anchor == "ZARA_BLUE_SPIKY_HAIR"


def test_extra_scenes_are_truncated() -> None:
    board = parse_scene_response(json.dumps(scene_payload(5)), _opts())

    assert len(board.panels) == 3


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"character_canon": {}}),
        json.dumps({"scenes": []}),
        json.dumps({"character_canon": [], "scenes": []}),
        json.dumps({"character_canon": {"Zara": "blue hair"}, "scenes": []}),
        json.dumps({"character_canon": {}, "scenes": ["just a string"]}),
    ],
)
def test_malformed_responses_raise(payload: str) -> None:
    with pytest.raises(MalformedResponseError):
        parse_scene_response(payload, _opts(num_pages=1))


def test_too_few_scenes_is_reported() -> None:
    with pytest.raises(MalformedResponseError, match="Expected 3 scenes"):
        parse_scene_response(json.dumps(scene_payload(2)), _opts())
