from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import structlog
from google import genai
from google.genai import types
from pydantic import ValidationError

from collector import ALLOWED_MEDIA_TYPES
from config import DEFAULT_ENCODE_CONCURRENCY, Settings, load_settings
from errors import ImageEncodeError, MalformedResponseError, RemoteServiceError
from models import VIDEO_PROMPT_FIELDS, VideoPromptResult
from prompts_lib import video_prompt_system_instruction, video_prompt_user_directive

logger = structlog.get_logger()


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    media_type: str


@dataclass(frozen=True)
class EncodedImage:
    data: str
    mime_type: str

    def to_part(self) -> types.Part:
        return types.Part.from_bytes(data=base64.b64decode(self.data), mime_type=self.mime_type)


def encode_image(data: bytes, mime_type: str) -> EncodedImage:
    if not data:
        raise ImageEncodeError("Uploaded image is empty.")
    if mime_type not in ALLOWED_MEDIA_TYPES:
        raise ImageEncodeError(f"Unsupported image type: {mime_type or 'unknown'}.")
    return EncodedImage(data=base64.b64encode(data).decode("utf-8"), mime_type=mime_type)


async def encode_images(
    images: Sequence[Any],
    limit: int = DEFAULT_ENCODE_CONCURRENCY,
) -> list[EncodedImage]:
    """Encode every image concurrently, at most ``limit`` at a time.

    ``images`` items need ``data`` and ``media_type`` attributes. The result
    keeps input order. The first failure cancels the remaining encodes and
    is re-raised, so a batch is either fully encoded or rejected.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _encode(image: Any) -> EncodedImage:
        async with semaphore:
            return await asyncio.to_thread(encode_image, image.data, image.media_type)

    tasks = [asyncio.ensure_future(_encode(image)) for image in images]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def build_contents(encoded: Sequence[EncodedImage]) -> list[types.Content]:
    parts = [image.to_part() for image in encoded]
    parts.append(types.Part.from_text(text=video_prompt_user_directive))
    return [types.Content(role="user", parts=parts)]


def build_response_schema() -> types.Schema:
    properties = {
        name: types.Schema(
            type=types.Type.STRING,
            description=VideoPromptResult.model_fields[name].description,
        )
        for name in VIDEO_PROMPT_FIELDS
    }
    return types.Schema(
        type=types.Type.OBJECT,
        properties=properties,
        required=list(VIDEO_PROMPT_FIELDS),
        property_ordering=list(VIDEO_PROMPT_FIELDS),
    )


def build_generation_config(settings: Settings) -> types.GenerateContentConfig:
    config_kwargs: dict[str, Any] = {
        "system_instruction": video_prompt_system_instruction,
        "response_mime_type": "application/json",
        "response_schema": build_response_schema(),
    }
    if settings.temperature is not None:
        config_kwargs["temperature"] = settings.temperature
    return types.GenerateContentConfig(**config_kwargs)


def _invalid_fields(exc: ValidationError) -> list[str]:
    names: list[str] = []
    for error in exc.errors():
        location = error.get("loc") or ()
        if location and str(location[0]) not in names:
            names.append(str(location[0]))
    return names


def parse_video_prompt(text: Optional[str]) -> VideoPromptResult:
    cleaned = (text or "").strip()
    if not cleaned:
        raise MalformedResponseError("Gemini response was empty.")

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Gemini response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedResponseError("Gemini response is not a JSON object.")

    try:
        return VideoPromptResult.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(_invalid_fields(exc)) or "unknown"
        raise MalformedResponseError(
            f"Gemini response is missing or has invalid fields: {fields}"
        ) from exc


class VideoPromptGenerator:
    """Turns a list of images into one ``VideoPromptResult`` via Gemini.

    Settings are re-read on every attempt unless given explicitly, so a key
    exported after startup is picked up. A client can be injected; otherwise
    a fresh ``genai.Client`` is built per attempt.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Any = None) -> None:
        self._settings = settings
        self._client = client

    def _resolve_settings(self) -> Settings:
        return self._settings if self._settings is not None else load_settings()

    async def generate(self, images: Sequence[Any]) -> VideoPromptResult:
        settings = self._resolve_settings()
        api_key = settings.require_api_key()
        if not images:
            raise ImageEncodeError("At least one image is required.")

        encoded = await encode_images(images, limit=settings.encode_concurrency)
        client = self._client if self._client is not None else genai.Client(api_key=api_key)

        logger.info("video_prompt.generate.start", model=settings.model, images=len(encoded))
        try:
            response = await client.aio.models.generate_content(
                model=settings.model,
                contents=build_contents(encoded),
                config=build_generation_config(settings),
            )
        except Exception as exc:
            logger.warning("video_prompt.generate.remote_failed", error=str(exc))
            raise RemoteServiceError(
                f"Failed to generate video prompt from Gemini API: {exc}"
            ) from exc

        result = parse_video_prompt(getattr(response, "text", None))
        logger.info("video_prompt.generate.done", model=settings.model)
        return result
