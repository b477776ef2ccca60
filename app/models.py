## app/models.py

import base64
import io
from enum import Enum
from typing import Dict, List, Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_NUM_PAGES,
    DEFAULT_TEXT_MODEL,
    MAX_COMIC_PAGES,
    MAX_STORY_CHARS,
)


class ComicStyle(str, Enum):
    TWO_D = "2D Animation"
    THREE_D = "3D Rendered"
    REALISTIC = "Photorealistic"
    ANIME = "Anime/Manga"
    CARTOON = "Classic Cartoon"


class ComicEra(str, Enum):
    OLD = "Vintage/Retro (e.g., 1950s-1970s style)"
    NEW = "Modern/Contemporary (e.g., 2000s-Present style)"
    FUTURISTIC = "Futuristic/Sci-Fi"


class AspectRatio(str, Enum):
    SQUARE = "SQUARE"
    PORTRAIT = "PORTRAIT"
    LANDSCAPE = "LANDSCAPE"

    @property
    def api_value(self) -> str:
        return {"SQUARE": "1:1", "PORTRAIT": "9:16", "LANDSCAPE": "16:9"}[self.value]

    @property
    def description(self) -> str:
        return {"SQUARE": "1:1 square", "PORTRAIT": "9:16 portrait", "LANDSCAPE": "16:9 landscape"}[self.value]


class CaptionPlacement(str, Enum):
    IN_UI = "In User Interface"
    IN_IMAGE = "Embedded in Image"


class TextModel(str, Enum):
    GEMINI_2_5_FLASH = "gemini-2.5-flash"
    GEMINI_2_5_FLASH_LITE = "gemini-2.5-flash-lite-preview-06-17"
    GEMINI_2_5_PRO = "gemini-2.5-pro"
    GEMINI_2_0_FLASH = "gemini-2.0-flash"


class ImageModel(str, Enum):
    IMAGEN_3 = "imagen-3.0-generate-002"
    GEMINI_2_FLASH_IMG = "gemini-2.0-flash-preview-image-generation"

    @property
    def returns_inline_image(self) -> bool:
        """Gemini image models answer with inline bytes next to text parts."""
        return self is ImageModel.GEMINI_2_FLASH_IMG


class GenerationOptions(BaseModel):
    """Immutable snapshot of the form for a single run."""

    model_config = ConfigDict(frozen=True)

    story: str = Field(max_length=MAX_STORY_CHARS)
    style: ComicStyle = ComicStyle.TWO_D
    era: ComicEra = ComicEra.NEW
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    num_pages: int = Field(default=DEFAULT_NUM_PAGES, ge=1, le=MAX_COMIC_PAGES)
    include_captions: bool = True
    caption_placement: CaptionPlacement = CaptionPlacement.IN_UI
    text_model: TextModel = TextModel(DEFAULT_TEXT_MODEL)
    image_model: ImageModel = ImageModel(DEFAULT_IMAGE_MODEL)

    @field_validator("story")
    @classmethod
    def _story_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please enter a story.")
        return v


class CharacterProfile(BaseModel):
    visual_anchor: str
    appearance: str
    attire: str
    identity_note: str = ""


class PromptBundle(BaseModel):
    """What a panel stores as its image prompt: the canon plus its own scene."""

    character_canon: Dict[str, CharacterProfile] = {}
    scene: str


class PanelImage(BaseModel):
    mime_type: str
    data: bytes

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"

    def to_pil(self) -> Image.Image:
        img = Image.open(io.BytesIO(self.data))
        img.load()
        return img


class Panel(BaseModel):
    index: int
    image_prompt: str
    caption: Optional[str] = None
    dialogues: List[str] = []
    image: Optional[PanelImage] = None
    error: Optional[str] = None

    @property
    def status(self) -> str:
        if self.image is not None:
            return "ready"
        if self.error is not None:
            return "failed"
        return "pending"

    def set_image(self, image: PanelImage) -> None:
        if self.status != "pending":
            raise RuntimeError(f"Panel {self.index} already resolved ({self.status})")
        self.image = image

    def set_error(self, message: str) -> None:
        if self.status != "pending":
            raise RuntimeError(f"Panel {self.index} already resolved ({self.status})")
        self.error = message


class Storyboard(BaseModel):
    character_canon: Dict[str, CharacterProfile] = {}
    panels: List[Panel]


class RunProgress(BaseModel):
    step: str
    percentage: float = Field(ge=0, le=100)
    current_panel: Optional[int] = None
    total_panels: Optional[int] = None

    @property
    def label(self) -> str:
        """Progress bar text, e.g. `Generating image for panel 2... (Panel 2 of 6)`."""
        if self.current_panel is None or not self.total_panels:
            return self.step
        return f"{self.step} (Panel {self.current_panel} of {self.total_panels})"
