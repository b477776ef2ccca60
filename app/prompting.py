## app/prompting.py

import logging
from typing import Dict

from pydantic import ValidationError

from models import (
    AspectRatio,
    CaptionPlacement,
    CharacterProfile,
    ComicEra,
    ComicStyle,
    GenerationOptions,
    PromptBundle,
)

logger = logging.getLogger(__name__)

_STYLE_MAP = {
    ComicStyle.TWO_D: "clean 2D animation look, crisp line art, flat cel colours, smooth shape language",
    ComicStyle.THREE_D: "3D rendered look, physically based materials, soft global illumination, subtle depth of field",
    ComicStyle.REALISTIC: "photorealistic, realistic textures and anatomy, natural lighting, shallow depth of field",
    ComicStyle.ANIME: "anime/manga style, dynamic action lines, expressive eyes, cel-shaded rendering, genre colour palette",
    ComicStyle.CARTOON: "classic cartoon style, bold outlines, playful exaggerated expressions, bright saturated colours",
}

_ERA_MAP = {
    ComicEra.OLD: "vintage comic print feel, film grain, muted 1950s-1970s colour palette, period fashion and technology",
    ComicEra.NEW: "contemporary setting, present-day fashion, technology and architecture",
    ComicEra.FUTURISTIC: "futuristic sci-fi setting, advanced technology, sleek materials, neon and holographic accents",
}

_QUALITY = (
    "ultra-detailed, cinematic lighting setup (key, fill and rim light), volumetric lighting, "
    "tack-sharp focus on subjects, professional digital painting, masterpiece composition, "
    "intricate environment details, vivid and harmonious colour palette, flawless rendering, "
    "no digital artifacts, extremely high resolution aesthetic"
)

_CANON_SCHEMA = """{
  "character_canon": {
    "<Character name>": {
      "visual_anchor": "SHORT_UPPERCASE_TOKEN_OF_IMMUTABLE_FEATURES",
      "appearance": "age, build, height, hair, eyes, exact facial structure and marks",
      "attire": "clothing, colours, materials and accessories",
      "identity_note": "gender identity and any portrayal constraints"
    }
  },
  "scenes": [
    {
      "scene_number": 1,
      "image_prompt": "full visual description of this panel",
      "caption": "narrative caption or null",
      "dialogues": ["Name: \\"line\\""]
    }
  ]
}"""


def _caption_instruction(options: GenerationOptions) -> str:
    if not options.include_captions:
        return (
            'Captions and dialogues are disabled for this comic: the "caption" field MUST be null '
            'and the "dialogues" field MUST be an empty array for every scene.'
        )
    if options.caption_placement == CaptionPlacement.IN_IMAGE:
        return (
            "Captions and dialogues MUST be written into the 'image_prompt' itself as text visibly "
            "present in the panel (e.g. 'a speech bubble above Zara's head reads \"Let's go!\"', "
            "'a yellow caption box at the bottom reads \"Meanwhile...\"'). "
            'The "caption" field MUST then be null and "dialogues" an empty array.'
        )
    return (
        'The "caption" field holds a concise narrative caption for the scene, or null. '
        'The "dialogues" field is an array of strings formatted as CharacterName: "Dialogue line", '
        "or an empty array when nobody speaks."
    )


def build_scene_prompt(options: GenerationOptions) -> str:
    """Instruction for the text model: canon first, then exactly N scenes as one JSON object."""
    style_prompt = _STYLE_MAP[options.style]
    era_prompt = _ERA_MAP[options.era]
    return f"""You are an assistant specialised in highly consistent, contextually accurate comic book scripts.
Break the story below into exactly {options.num_pages} scenes.

OUTPUT: a single valid JSON object with exactly two keys, "character_canon" and "scenes", shaped like:
{_CANON_SCHEMA}
"scenes" MUST contain exactly {options.num_pages} entries numbered 1 to {options.num_pages} in story order.

CAPTIONS AND DIALOGUE:
{_caption_instruction(options)}

CHARACTER CANON:
1. Read the whole story first. Create one "character_canon" entry for EVERY recurring character.
2. The canon is the absolute source of truth for faces, hair, build and attire. Facial structure and
   distinct marks MUST stay identical in every panel unless the story explicitly changes them.
3. If the story describes a character as a transgender woman or as crossdressing, the canon MUST
   describe feminine features and attire, with no facial hair unless the story requires a disguise.
4. Every "image_prompt" that shows a character MUST start that character's description with their name
   followed by their canon appearance and attire, verbatim. Do not summarise, paraphrase or omit details.

SCENES:
- Each "image_prompt" is a direct visual translation of that moment of the story: setting, actions,
  poses, emotions, camera angle and mood. Keep injuries, props and dirt consistent with earlier scenes.
- Style: "{options.style.value}" ({style_prompt}). Era: "{options.era.value}" ({era_prompt}).
  Do not mix styles between panels.
- Quality: {_QUALITY}.
- Frame every panel as {options.aspect_ratio.description}.

Story to process:
---
{options.story}
---
Return ONLY the raw JSON object, with no markdown fences or commentary. Escape quotes, backslashes,
newlines and control characters inside strings.
"""


def _canon_block(canon: Dict[str, CharacterProfile]) -> str:
    if not canon:
        return "No recurring characters are defined for this comic."
    lines = []
    for name, profile in canon.items():
        lines.append(
            f"- {name} [{profile.visual_anchor}]: {profile.appearance} Attire: {profile.attire}"
            + (f" Identity: {profile.identity_note}" if profile.identity_note else "")
        )
    return "\n".join(lines)


def augment_image_prompt(prompt: str, style: ComicStyle, era: ComicEra, aspect_ratio: AspectRatio) -> str:
    try:
        bundle = PromptBundle.model_validate_json(prompt)
    except ValidationError:
        logger.warning("Panel prompt is not a canon bundle, using it as plain scene text")
        bundle = PromptBundle(scene=prompt)

    return f"""**CHARACTER CANON (ABSOLUTE, APPLIES TO EVERY PANEL):**
{_canon_block(bundle.character_canon)}

**SCENE (TREAT AS CANON FOR THIS IMAGE):**
{bundle.scene}

**MANDATORY ARTISTIC DIRECTIVES:**
- Style: an unwavering "{style.value}" aesthetic ({_STYLE_MAP[style]}). Every line, colour and texture must conform.
- Era: the scene reflects a "{era.value}" setting ({_ERA_MAP[era]}). No anachronisms.
- Quality: {_QUALITY}.
- Framing: {aspect_ratio.description} composition.
- Text in image: any speech bubble or caption text requested above is rendered clearly and accurately.

**FACIAL IDENTITY LOCK:**
- Every character listed in the canon has the EXACT SAME FACE in every panel: head shape, jawline,
  cheekbones, eye shape and colour, nose, mouth, scars, moles and freckles, replicated pixel for pixel.
- Hairstyle, body type and attire match the canon exactly unless this scene explicitly changes them.
- A transgender woman is portrayed with feminine features, never facial hair unless this scene calls for a disguise.
- The character must be recognisable by the face alone, as if drawn by one artist with perfect memory.

**NEGATIVE PROMPT (AVOID):**
- distorted or malformed faces, misshapen limbs, wrong number of fingers or toes, inconsistent anatomy
- any drift of a character's facial structure, hairstyle or attire away from the canon
- style drift or mixing of art styles, warped perspective, blur, pixelation, banding, digital artifacts
- generic backgrounds unrelated to the scene, expressions or poses that contradict the scene
- unreadable, garbled or misspelled text
"""
