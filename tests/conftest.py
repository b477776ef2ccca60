import io
import json
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest
from PIL import Image

from models import GenerationOptions, PanelImage


def make_image(width: int = 64, height: int = 48, fmt: str = "PNG") -> PanelImage:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format=fmt)
    return PanelImage(mime_type=f"image/{fmt.lower()}", data=buf.getvalue())


def scene_payload(n: int, **scene_overrides: Any) -> Dict[str, Any]:
    return {
        "character_canon": {
            "Zara": {
                "visual_anchor": "ZARA_BLUE_SPIKY_HAIR",
                "appearance": "Young woman, spiky short blue hair, green almond eyes.",
                "attire": "Brown leather jacket, black jeans.",
                "identity_note": "",
            }
        },
        "scenes": [
            {
                "scene_number": i,
                "image_prompt": f"Zara in scene {i}",
                "caption": f"Caption {i}",
                "dialogues": [f'Zara: "Line {i}"'],
                **scene_overrides,
            }
            for i in range(1, n + 1)
        ],
    }


class FakeClient:
    """Stands in for GeminiClient: canned scene text, scripted image outcomes."""

    def __init__(self, scene_text: str, image_outcomes: List[Any]):
        self.scene_text = scene_text
        self.image_outcomes = list(image_outcomes)
        self.image_prompts: List[str] = []

    def generate_text(self, prompt: str, model: str) -> str:
        if isinstance(self.scene_text, Exception):
            raise self.scene_text
        return self.scene_text

    def generate_image(self, prompt, model, aspect_ratio) -> PanelImage:
        self.image_prompts.append(prompt)
        outcome = self.image_outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def options() -> GenerationOptions:
    return GenerationOptions(story="Zara finds a map and sets off across the city.", num_pages=3)


@pytest.fixture
def fake_client_factory():
    def _factory(n: int, image_outcomes: List[Any]) -> FakeClient:
        return FakeClient(json.dumps(scene_payload(n)), image_outcomes)

    return _factory


@pytest.fixture
def no_sleep():
    delays: List[float] = []
    return SimpleNamespace(delays=delays, sleep=delays.append)
