import os
import sys
from types import SimpleNamespace

import pytest

# Ensure project root is importable during tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from collector import UploadedImage  # noqa: E402

VALID_PROMPT = {
    "scene_description": "A cat lounges on a sunlit beach towel as waves roll in.",
    "camera_movement": "Slow dolly in",
    "camera_angle": "Low angle",
    "lighting": "Golden hour sunlight",
    "environment": "Sandy beach with gentle surf",
    "subject_action": "The cat stretches and watches a seagull",
    "mood_tone": "Calm and playful",
    "video_style": "Cinematic",
    "duration": "8",
    "recommended_prompt": "Cinematic low-angle dolly toward a cat on a beach at golden hour.",
}


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeClient:
    """Stands in for genai.Client; only the async models surface is used."""

    def __init__(self, text=None, error=None):
        self.models_api = FakeModels(text=text, error=error)
        self.aio = SimpleNamespace(models=self.models_api)

    @property
    def calls(self):
        return self.models_api.calls


@pytest.fixture(autouse=True)
def no_gemini_env(monkeypatch):
    # Never pick up a real key from the developer's environment or .env
    for name in ("GEMINI_API_KEY", "GOOGLE_AI_STUDIO_API", "API_KEY", "GEMINI_MODEL", "GEMINI_TEMPERATURE"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def cat_and_beach():
    return [
        UploadedImage(filename="cat.png", content_type="image/png", data=b"\x89PNG-cat"),
        UploadedImage(filename="beach.jpg", content_type="image/jpeg", data=b"\xff\xd8beach"),
    ]
