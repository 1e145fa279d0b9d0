from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Optional

from models import VideoPromptResult

if TYPE_CHECKING:
    from session import GenerationState

COPY_FEEDBACK_MS = 2000

PLACEHOLDER_TITLE = "Your generated prompt will appear here."
PLACEHOLDER_HINT = 'Upload one or more images and click "Generate Prompt" to start.'
LOADER_TEXT = "Analyzing your vision..."
UNEXPECTED_ERROR = "An unexpected error occurred."


def serialize_result(result: VideoPromptResult) -> str:
    return json.dumps(result.model_dump(), indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class PromptView:
    status: str
    title: Optional[str] = None
    message: Optional[str] = None
    result_json: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


def render_view(state: "GenerationState") -> PromptView:
    """Pick the single pane to show for the current generation state."""
    status = state.phase.value
    if status == "generating":
        return PromptView(status=status, message=LOADER_TEXT)
    if status == "failed":
        return PromptView(status=status, message=state.error or UNEXPECTED_ERROR)
    if status == "succeeded" and state.result is not None:
        return PromptView(status=status, result_json=serialize_result(state.result))
    return PromptView(status="idle", title=PLACEHOLDER_TITLE, message=PLACEHOLDER_HINT)
