import asyncio

import pytest

from conftest import VALID_PROMPT
from errors import MalformedResponseError, SessionBusyError
from models import VideoPromptResult
from session import CANCELLED_ERROR, Phase, SessionContext, SessionStore


class StubGenerator:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def generate(self, images):
        self.calls.append(list(images))
        if self.error is not None:
            raise self.error
        return self.result


class GatedGenerator:
    """Blocks inside generate() until released, to observe the in-flight state."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def generate(self, images):
        self.calls += 1
        self.entered.set()
        await self.release.wait()
        return VideoPromptResult(**VALID_PROMPT)


def test_generate_with_no_images_is_noop():
    context = SessionContext(session_id="s")
    generator = StubGenerator(result=VideoPromptResult(**VALID_PROMPT))

    assert asyncio.run(context.generate(generator)) is False
    assert generator.calls == []
    assert context.state.phase is Phase.IDLE


def test_generate_success_sets_exactly_one_terminal_state(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    generator = StubGenerator(result=VideoPromptResult(**VALID_PROMPT))

    assert asyncio.run(context.generate(generator)) is True
    assert context.state.phase is Phase.SUCCEEDED
    assert context.state.result is not None
    assert context.state.error is None
    assert [asset.filename for asset in generator.calls[0]] == ["cat.png", "beach.jpg"]


def test_generate_failure_keeps_message_and_no_result(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    context.state.succeed(VideoPromptResult(**VALID_PROMPT))

    asyncio.run(context.generate(StubGenerator(error=MalformedResponseError("Gemini response was empty."))))

    assert context.state.phase is Phase.FAILED
    assert context.state.error == "Gemini response was empty."
    assert context.state.result is None


def test_unexpected_exception_becomes_failure(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)

    asyncio.run(context.generate(StubGenerator(error=ValueError())))

    assert context.state.phase is Phase.FAILED
    assert context.state.error == "An unexpected error occurred."


def test_second_trigger_while_generating_is_noop(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    generator = GatedGenerator()

    async def scenario():
        first = asyncio.create_task(context.generate(generator))
        await generator.entered.wait()
        assert context.state.phase is Phase.GENERATING
        assert context.state.result is None and context.state.error is None
        second = await context.generate(generator)
        with pytest.raises(SessionBusyError):
            context.clear()
        generator.release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert (first, second) == (True, False)
    assert generator.calls == 1
    assert context.state.phase is Phase.SUCCEEDED


def test_clear_resets_to_placeholder(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    context.state.fail("boom")

    context.clear()

    assert len(context.collector) == 0
    assert context.view().status == "idle"


def test_new_selection_resets_previous_result(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    context.state.succeed(VideoPromptResult(**VALID_PROMPT))

    context.set_images(cat_and_beach[:1])

    assert context.state.phase is Phase.IDLE
    assert context.state.result is None


def test_store_reuses_known_sessions_and_closes_all(cat_and_beach):
    store = SessionStore()
    context = store.get_or_create(None)
    assert store.get_or_create(context.session_id) is context
    assert store.get_or_create("unknown") is not context

    context.set_images(cat_and_beach)
    store.close_all()

    assert len(store) == 0
    assert len(context.collector) == 0


def test_cancelled_attempt_does_not_stay_generating(cat_and_beach):
    context = SessionContext(session_id="s")
    context.set_images(cat_and_beach)
    generator = GatedGenerator()

    async def scenario():
        task = asyncio.create_task(context.generate(generator))
        await generator.entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert context.state.phase is Phase.FAILED
    assert context.state.error == CANCELLED_ERROR
    context.clear()
    assert len(context.collector) == 0


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_store_expires_idle_sessions_and_releases_previews(cat_and_beach):
    clock = FakeClock()
    store = SessionStore(idle_timeout=60, clock=clock)
    idle = store.get_or_create(None)
    idle.set_images(cat_and_beach)

    clock.now = 30
    active = store.get_or_create(None)
    clock.now = 61
    assert store.get(active.session_id) is active

    assert store.get(idle.session_id) is None
    assert len(store) == 1
    assert len(idle.collector) == 0


def test_store_evicts_least_recently_used_beyond_cap(cat_and_beach):
    clock = FakeClock()
    store = SessionStore(max_sessions=2, clock=clock)
    first = store.get_or_create(None)
    first.set_images(cat_and_beach)
    clock.now = 1
    second = store.get_or_create(None)
    clock.now = 2
    store.get(first.session_id)
    clock.now = 3
    third = store.get_or_create(None)

    assert len(store) == 2
    assert store.get(second.session_id) is None
    assert store.get(first.session_id) is first
    assert store.get(third.session_id) is third


def test_store_never_evicts_a_generating_session():
    store = SessionStore(max_sessions=1)
    busy = store.get_or_create(None)
    busy.state.begin()

    newer = store.get_or_create(None)

    assert store.get(busy.session_id) is busy
    assert store.get(newer.session_id) is newer
