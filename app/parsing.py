## app/parsing.py

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from errors import MalformedResponseError
from models import CaptionPlacement, CharacterProfile, GenerationOptions, Panel, PromptBundle, Storyboard

logger = logging.getLogger(__name__)

# ```json ... ``` around the whole payload, language tag optional
_FENCE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

_CANON = TypeAdapter(Dict[str, CharacterProfile])

_MISSING_PROMPT = "No prompt generated for this scene."


def strip_code_fence(text: str) -> str:
    s = (text or "").strip()
    m = _FENCE.match(s)
    if m and m.group(2):
        return m.group(2).strip()
    return s


def normalize_dialogue(entry: Any) -> str:
    """One canonical string per line: plain strings pass, {character, line} pairs become `Name: "line"`."""
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict) and entry.get("character") and entry.get("line"):
        return f'{entry["character"]}: "{entry["line"]}"'
    raise MalformedResponseError(f"Unrecognised dialogue entry: {entry!r}")


def _ui_fields(scene: Dict[str, Any], options: GenerationOptions):
    if not options.include_captions or options.caption_placement == CaptionPlacement.IN_IMAGE:
        return None, []

    caption: Optional[str] = scene.get("caption") or None
    if caption is not None and not isinstance(caption, str):
        raise MalformedResponseError("Scene 'caption' must be a string or null")
    raw = scene.get("dialogues") or []
    if not isinstance(raw, list):
        raise MalformedResponseError("Scene 'dialogues' must be an array")
    dialogues = [d for d in (normalize_dialogue(x) for x in raw) if d]
    return caption, dialogues


def _dense_indices(scenes: List[Dict[str, Any]]) -> List[int]:
    indices = []
    for pos, scene in enumerate(scenes, start=1):
        n = scene.get("scene_number")
        indices.append(n if isinstance(n, int) and not isinstance(n, bool) else pos)
    if indices != list(range(1, len(scenes) + 1)):
        logger.warning("Scene numbering %s is not 1..%d, renumbering by position", indices, len(scenes))
        indices = list(range(1, len(scenes) + 1))
    return indices


def parse_scene_response(text: str, options: GenerationOptions) -> Storyboard:
    """
    Turn the text model's answer into a Storyboard of exactly options.num_pages panels.
    Raises MalformedResponseError when the answer cannot be normalised.
    """
    payload = strip_code_fence(text)
    if not payload:
        raise MalformedResponseError("The scene response was empty.")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"Failed to parse scene prompts from the API response: {e}. This can happen if the story is "
            "too long or requests too many pages. Try reducing pages or simplifying the story."
        ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError("The scene response must be a JSON object.")
    if "scenes" not in data or not isinstance(data["scenes"], list):
        raise MalformedResponseError("The scene response has no 'scenes' list.")
    if "character_canon" not in data:
        raise MalformedResponseError("The scene response has no 'character_canon'.")
    try:
        canon = _CANON.validate_python(data["character_canon"])
    except ValidationError as e:
        raise MalformedResponseError(f"The 'character_canon' is malformed: {e}") from e

    scenes = data["scenes"]
    if any(not isinstance(s, dict) for s in scenes):
        raise MalformedResponseError("Every scene must be a JSON object.")
    if len(scenes) < options.num_pages:
        raise MalformedResponseError(
            f"Expected {options.num_pages} scenes but the model returned {len(scenes)}."
        )
    if len(scenes) > options.num_pages:
        logger.warning("Model returned %d scenes, keeping the first %d", len(scenes), options.num_pages)
        scenes = scenes[: options.num_pages]

    panels = []
    for idx, scene in zip(_dense_indices(scenes), scenes):
        caption, dialogues = _ui_fields(scene, options)
        bundle = PromptBundle(character_canon=canon, scene=str(scene.get("image_prompt") or _MISSING_PROMPT))
        panels.append(
            Panel(index=idx, image_prompt=bundle.model_dump_json(), caption=caption, dialogues=dialogues)
        )
    return Storyboard(character_canon=canon, panels=panels)
