from __future__ import annotations

import asyncio
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import structlog

from collector import ImageAsset, ImageCollector, UploadedImage
from errors import SessionBusyError, VideoPromptError
from models import VideoPromptResult
from presenter import UNEXPECTED_ERROR, PromptView, render_view

logger = structlog.get_logger()

DEFAULT_MAX_SESSIONS = 256
DEFAULT_IDLE_TIMEOUT = 30 * 60
CANCELLED_ERROR = "Generation was cancelled."


class Phase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationState:
    phase: Phase = Phase.IDLE
    result: Optional[VideoPromptResult] = None
    error: Optional[str] = None

    def begin(self) -> None:
        self.phase = Phase.GENERATING
        self.result = None
        self.error = None

    def succeed(self, result: VideoPromptResult) -> None:
        self.phase = Phase.SUCCEEDED
        self.result = result
        self.error = None

    def fail(self, message: str) -> None:
        self.phase = Phase.FAILED
        self.result = None
        self.error = message

    def reset(self) -> None:
        self.phase = Phase.IDLE
        self.result = None
        self.error = None


@dataclass
class SessionContext:
    """Everything one browser session owns: its images and its generation state."""

    session_id: str
    collector: ImageCollector = field(default_factory=ImageCollector)
    state: GenerationState = field(default_factory=GenerationState)

    @property
    def is_generating(self) -> bool:
        return self.state.phase is Phase.GENERATING

    @property
    def can_generate(self) -> bool:
        return len(self.collector) > 0 and not self.is_generating

    def view(self) -> PromptView:
        return render_view(self.state)

    def set_images(self, files: Iterable[UploadedImage]) -> tuple[ImageAsset, ...]:
        if self.is_generating:
            raise SessionBusyError("Generation in progress.")
        assets = self.collector.set_images(files)
        self.state.reset()
        return assets

    def clear(self) -> None:
        if self.is_generating:
            raise SessionBusyError("Generation in progress.")
        self.collector.clear()
        self.state.reset()

    async def generate(self, generator: Any) -> bool:
        """Run one generation attempt. Returns False when nothing was started."""
        if not self.can_generate:
            logger.info(
                "session.generate.skipped",
                session_id=self.session_id,
                images=len(self.collector),
                phase=self.state.phase.value,
            )
            return False

        self.state.begin()
        images = self.collector.assets
        try:
            result = await generator.generate(images)
        except VideoPromptError as exc:
            logger.warning("session.generate.failed", session_id=self.session_id, error=str(exc))
            self.state.fail(str(exc))
        except asyncio.CancelledError:
            logger.warning("session.generate.cancelled", session_id=self.session_id)
            self.state.fail(CANCELLED_ERROR)
            raise
        except Exception as exc:
            logger.exception("session.generate.unexpected", session_id=self.session_id)
            self.state.fail(str(exc) or UNEXPECTED_ERROR)
        else:
            self.state.succeed(result)
            logger.info("session.generate.succeeded", session_id=self.session_id)
        return True

    def close(self) -> None:
        self.collector.close()
        self.state.reset()


class SessionStore:
    """In-memory sessions, evicted after ``idle_timeout`` seconds or beyond ``max_sessions``.

    Evicted sessions are closed so their preview handles are released. A
    session that is generating is never evicted for size.
    """

    def __init__(
        self,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_sessions = max(1, max_sessions)
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: OrderedDict[str, SessionContext] = OrderedDict()
        self._last_seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: Optional[str]) -> Optional[SessionContext]:
        self._expire()
        if not session_id or session_id not in self._sessions:
            return None
        self._touch(session_id)
        return self._sessions[session_id]

    def get_or_create(self, session_id: Optional[str]) -> SessionContext:
        context = self.get(session_id)
        if context is None:
            context = SessionContext(session_id=uuid.uuid4().hex)
            self._sessions[context.session_id] = context
            self._touch(context.session_id)
            self._evict_overflow()
            logger.info("session.created", session_id=context.session_id, sessions=len(self))
        return context

    def discard(self, session_id: str) -> None:
        context = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if context is not None:
            context.close()

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.discard(session_id)

    def _touch(self, session_id: str) -> None:
        self._sessions.move_to_end(session_id)
        self._last_seen[session_id] = self._clock()

    def _expire(self) -> None:
        now = self._clock()
        expired = [
            session_id
            for session_id, context in self._sessions.items()
            if now - self._last_seen[session_id] > self.idle_timeout and not context.is_generating
        ]
        for session_id in expired:
            logger.info("session.expired", session_id=session_id)
            self.discard(session_id)

    def _evict_overflow(self) -> None:
        # Least recently used first; the newest session is never a candidate.
        for session_id in list(self._sessions)[:-1]:
            if len(self._sessions) <= self.max_sessions:
                break
            if self._sessions[session_id].is_generating:
                continue
            logger.info("session.evicted", session_id=session_id)
            self.discard(session_id)
