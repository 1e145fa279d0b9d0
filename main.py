from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from collector import ALLOWED_MEDIA_TYPES, UploadedImage, resolve_media_type
from config import configure_logging, load_settings
from errors import (
    ConfigurationError,
    ImageEncodeError,
    SessionBusyError,
    UnsupportedImageError,
    VideoPromptError,
)
from presenter import COPY_FEEDBACK_MS, LOADER_TEXT
from session import SessionContext, SessionStore
from video_prompt_utils import ImagePayload, VideoPromptGenerator

BASE_DIR = Path(__file__).parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"
SESSION_COOKIE = "vp_session"

logger = structlog.get_logger()

sessions = SessionStore()
generator = VideoPromptGenerator()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("app.startup", model=settings.model, api_key_configured=bool(settings.api_key))
    yield
    sessions.close_all()
    logger.info("app.shutdown")


app = FastAPI(title="Visual-to-Video Prompt Generator", lifespan=lifespan)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def get_sessions() -> SessionStore:
    return sessions


def get_generator() -> VideoPromptGenerator:
    return generator


def get_session(
    request: Request, store: SessionStore = Depends(get_sessions)
) -> SessionContext:
    return store.get_or_create(request.cookies.get(SESSION_COOKIE))


def find_session(
    request: Request, store: SessionStore = Depends(get_sessions)
) -> Optional[SessionContext]:
    return store.get(request.cookies.get(SESSION_COOKIE))


def _with_session_cookie(response: Response, context: SessionContext) -> Response:
    response.set_cookie(SESSION_COOKIE, context.session_id, httponly=True, samesite="lax")
    return response


def _session_payload(context: Optional[SessionContext]) -> dict:
    if context is None:
        context = SessionContext(session_id="")
    return {
        "images": [
            {"name": asset.filename, "url": asset.preview_url}
            for asset in context.collector.assets
        ],
        "can_generate": context.can_generate,
        "is_generating": context.is_generating,
        "view": context.view().as_dict(),
    }


async def _read_uploads(files: Optional[List[UploadFile]]) -> list[UploadedImage]:
    uploads: list[UploadedImage] = []
    for upload in files or []:
        if not upload or not upload.filename:
            continue
        uploads.append(
            UploadedImage(
                filename=upload.filename,
                content_type=upload.content_type,
                data=await upload.read(),
            )
        )
    if not uploads:
        raise HTTPException(status_code=400, detail="At least one image is required.")
    return uploads


@app.get("/", response_class=HTMLResponse)
async def index(
    request: Request, context: SessionContext = Depends(get_session)
) -> HTMLResponse:
    response = templates.TemplateResponse(
        request,
        "index.html",
        {
            "session": _session_payload(context),
            "accept": ", ".join(ALLOWED_MEDIA_TYPES),
            "copy_feedback_ms": COPY_FEEDBACK_MS,
            "loader_text": LOADER_TEXT,
        },
    )
    return _with_session_cookie(response, context)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post("/images")
async def set_images(
    files: List[UploadFile] = File(...),
    context: SessionContext = Depends(get_session),
) -> JSONResponse:
    uploads = await _read_uploads(files)
    try:
        context.set_images(uploads)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except UnsupportedImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _with_session_cookie(JSONResponse(_session_payload(context)), context)


@app.post("/images/clear")
async def clear_images(
    context: Optional[SessionContext] = Depends(find_session),
) -> JSONResponse:
    if context is None:
        return JSONResponse(_session_payload(None))
    try:
        context.clear()
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _with_session_cookie(JSONResponse(_session_payload(context)), context)


@app.get("/previews/{handle}")
async def preview(
    handle: str, context: Optional[SessionContext] = Depends(find_session)
) -> Response:
    asset = context.collector.preview(handle) if context is not None else None
    if asset is None:
        raise HTTPException(status_code=404, detail="Preview not found.")
    return Response(content=asset.data, media_type=asset.media_type)


@app.post("/generate")
async def generate(
    context: Optional[SessionContext] = Depends(find_session),
    prompt_generator: VideoPromptGenerator = Depends(get_generator),
) -> JSONResponse:
    if context is None:
        return JSONResponse(dict(_session_payload(None), started=False))
    started = await context.generate(prompt_generator)
    payload = _session_payload(context)
    payload["started"] = started
    return _with_session_cookie(JSONResponse(payload), context)


@app.get("/state")
async def state(context: Optional[SessionContext] = Depends(find_session)) -> JSONResponse:
    if context is None:
        return JSONResponse(_session_payload(None))
    return _with_session_cookie(JSONResponse(_session_payload(context)), context)


@app.post("/api/video-prompt")
async def video_prompt_api(
    files: List[UploadFile] = File(...),
    prompt_generator: VideoPromptGenerator = Depends(get_generator),
) -> JSONResponse:
    uploads = await _read_uploads(files)
    images = [
        ImagePayload(data=upload.data, media_type=resolve_media_type(upload.filename, upload.content_type))
        for upload in uploads
    ]
    images = [image for image in images if image.media_type in ALLOWED_MEDIA_TYPES]
    if not images:
        raise HTTPException(status_code=400, detail="Only PNG, JPEG or WEBP images are supported.")

    try:
        result = await prompt_generator.generate(images)
    except (ConfigurationError, ImageEncodeError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except VideoPromptError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return JSONResponse({"prompt": result.model_dump()})
