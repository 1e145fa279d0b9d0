from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class VideoPromptResult(BaseModel):
    """Structured description of one synthesized video scene."""

    model_config = ConfigDict(frozen=True, extra="ignore", strict=True)

    scene_description: str = Field(..., description="Description of the image scene.")
    camera_movement: str = Field(..., description="Suggested camera movement.")
    camera_angle: str = Field(..., description="Suggested camera angle.")
    lighting: str = Field(..., description="Description of the lighting.")
    environment: str = Field(..., description="Description of the environment.")
    subject_action: str = Field(..., description="Action the subject could perform.")
    mood_tone: str = Field(..., description="The mood and tone of the video.")
    video_style: str = Field(..., description="The visual style of the video.")
    duration: str = Field(..., description="Suggested duration in seconds.")
    recommended_prompt: str = Field(..., description="A consolidated prompt for a video model.")


# Declaration order is the schema order and the serialized key order.
VIDEO_PROMPT_FIELDS: tuple[str, ...] = tuple(VideoPromptResult.model_fields)
