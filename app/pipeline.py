## app/pipeline.py

import logging
import random
import time
from functools import lru_cache
from typing import Any, Callable, Optional

from google import genai
from google.genai import errors, types

from config import FIXED_IMAGE_SEED, MAX_RETRIES, RETRY_BASE_DELAY
from errors import (
    AuthError,
    ComicError,
    ContentPolicyError,
    MalformedResponseError,
    RetriesExhaustedError,
    ServiceError,
    TransientServiceError,
)
from models import AspectRatio, GenerationOptions, ImageModel, Panel, PanelImage, Storyboard
from parsing import parse_scene_response
from prompting import augment_image_prompt, build_scene_prompt

logger = logging.getLogger(__name__)

_SAFETY_FINISH = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "IMAGE_PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}
# wording the image endpoints use when a prompt is rejected as a 400
_SAFETY_WORDING = ("safety polic", "safety filter", "responsible ai", "raimediafiltered")


def _name(value: Any) -> str:
    """Enum members from the SDK and plain strings compare the same way."""
    return str(getattr(value, "name", value) or "")


def classify_error(exc: Exception) -> ComicError:
    """Map an SDK/transport failure onto the error taxonomy. Domain errors pass through unchanged."""
    if isinstance(exc, ComicError):
        return exc

    message = str(exc)
    lowered = message.lower()
    code = getattr(exc, "code", None)
    status = str(getattr(exc, "status", "") or "").upper()

    if (
        code in (401, 403)
        or status in ("PERMISSION_DENIED", "UNAUTHENTICATED")
        or "api key not valid" in lowered
        or "permission denied" in lowered
    ):
        return AuthError(f"{message}. Please check your API key and its permissions.")
    if code == 429 or status == "RESOURCE_EXHAUSTED" or "rate_limit_exceeded" in lowered:
        return TransientServiceError(message)
    if (
        isinstance(exc, errors.ServerError)
        or (isinstance(code, int) and code >= 500)
        or status in ("INTERNAL", "UNAVAILABLE")
    ):
        return TransientServiceError(message)
    if any(w in lowered for w in _SAFETY_WORDING):
        return ContentPolicyError(
            message + " Please try a different prompt or adjust story content.", status or None
        )
    return ServiceError(message)


def call_with_retry(
    fn: Callable[[], Any],
    model: str,
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
    jitter: Callable[[], float] = random.random,
) -> Any:
    """
    Run fn, retrying only rate-limit and server failures.
    Delay before retry n is base_delay * 2**(n-1) plus up to one second of jitter.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            err = classify_error(exc)
            if isinstance(err, TransientServiceError):
                if attempt >= max_retries:
                    raise RetriesExhaustedError(model, attempt + 1, err) from exc
                attempt += 1
                delay = base_delay * 2 ** (attempt - 1) + jitter()
                logger.warning(
                    "API error for '%s', retrying attempt %d/%d in %.1fs: %s",
                    model, attempt, max_retries, delay, err,
                )
                sleep(delay)
                continue
            if err is exc:
                raise
            if isinstance(err, ServiceError):
                raise ServiceError(
                    f"API call failed for model '{model}' (attempt {attempt + 1}/{max_retries + 1}). "
                    f"Original error: {exc}"
                ) from exc
            raise err from exc


class GeminiClient:
    """Thin wrapper over genai.Client: one text call, two image request shapes."""

    def __init__(self, api_key: str):
        if not api_key:
            raise AuthError("API Key is required to generate comics.")
        self.client = genai.Client(api_key=api_key)

    def generate_text(self, prompt: str, model: str) -> str:
        try:
            resp = self.client.models.generate_content(
                model=model,
                contents=prompt,
                config=types.GenerateContentConfig(response_mime_type="application/json"),
            )
        except Exception as exc:
            err = classify_error(exc)
            if isinstance(err, AuthError):
                raise err from exc
            raise type(err)(f"Failed to generate scene prompts (model: {model}). Error: {exc}") from exc

        feedback = getattr(resp, "prompt_feedback", None)
        if feedback is not None and getattr(feedback, "block_reason", None):
            reason = _name(feedback.block_reason)
            raise ContentPolicyError(
                f"Your story was blocked by content policies using model {model} ({reason}). "
                "Please revise your story.",
                category=reason,
            )
        if not getattr(resp, "text", None):
            raise MalformedResponseError(
                f"API response (model: {model}) was malformed or did not contain expected text content."
            )
        return resp.text

    def generate_image(self, prompt: str, model: ImageModel, aspect_ratio: AspectRatio) -> PanelImage:
        """Single attempt; wrap with call_with_retry for the retry policy."""
        if model.returns_inline_image:
            return self._generate_inline_image(prompt, model)
        return self._generate_listed_image(prompt, model, aspect_ratio)

    def _generate_inline_image(self, prompt: str, model: ImageModel) -> PanelImage:
        resp = self.client.models.generate_content(
            model=model.value,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                seed=FIXED_IMAGE_SEED,
            ),
        )
        candidate = (getattr(resp, "candidates", None) or [None])[0]
        parts = []
        if candidate is not None:
            reason = _name(getattr(candidate, "finish_reason", None))
            if reason in _SAFETY_FINISH:
                blocked = next((r for r in (candidate.safety_ratings or []) if getattr(r, "blocked", False)), None)
                message = f"Image generation was blocked by safety filters (Reason: {reason})."
                category = None
                if blocked is not None:
                    category = _name(blocked.category)
                    message += f" Details: Category {category}, Probability {_name(blocked.probability)}."
                raise ContentPolicyError(message + " Please try a different prompt or adjust story content.", category)
            content = getattr(candidate, "content", None)
            parts = (getattr(content, "parts", None) or []) if content is not None else []

        for part in parts:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return PanelImage(mime_type=inline.mime_type or "image/png", data=inline.data)

        text = " ".join(p.text for p in parts if getattr(p, "text", None)) or "No explicit text feedback from API."
        logger.error("No image data from %s; feedback: %s", model.value, text)
        raise ServiceError(
            f'API did not return an image for {model.value}. Feedback: "{text}". This could be due to '
            "restrictive safety filters, an issue with the prompt, or an API problem."
        )

    def _generate_listed_image(self, prompt: str, model: ImageModel, aspect_ratio: AspectRatio) -> PanelImage:
        resp = self.client.models.generate_images(
            model=model.value,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio=aspect_ratio.api_value,
                seed=FIXED_IMAGE_SEED,
                include_rai_reason=True,
            ),
        )
        images = getattr(resp, "generated_images", None) or []
        first = images[0] if images else None
        image = getattr(first, "image", None)
        if image is not None and image.image_bytes:
            return PanelImage(mime_type=getattr(image, "mime_type", None) or "image/jpeg", data=image.image_bytes)

        rai_reason: Optional[str] = getattr(first, "rai_filtered_reason", None)
        if rai_reason:
            raise ContentPolicyError(
                f"Image generation was blocked by safety filters ({rai_reason}).", category=rai_reason
            )
        raise ServiceError(
            f"No image data received from {model.value} API. This could be due to safety filters or other issues."
        )


@lru_cache(maxsize=4)
def get_client(api_key: str) -> GeminiClient:
    """One client per key for the life of the process."""
    return GeminiClient(api_key)


def generate_storyboard(client: GeminiClient, options: GenerationOptions) -> Storyboard:
    prompt = build_scene_prompt(options)
    logger.info("Requesting %d scenes from %s", options.num_pages, options.text_model.value)
    text = client.generate_text(prompt, options.text_model.value)
    return parse_scene_response(text, options)


def generate_panel_image(
    client: GeminiClient,
    panel: Panel,
    options: GenerationOptions,
    sleep: Callable[[float], None] = time.sleep,
) -> PanelImage:
    prompt = augment_image_prompt(panel.image_prompt, options.style, options.era, options.aspect_ratio)
    return call_with_retry(
        lambda: client.generate_image(prompt, options.image_model, options.aspect_ratio),
        model=options.image_model.value,
        sleep=sleep,
    )
