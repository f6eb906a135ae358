import asyncio

import pytest

from focusvoice.config_models import DialogueConfig
from focusvoice.interfaces import CaptureUnavailableError, TranscriptFragment
from focusvoice.orchestrator import DialogueOrchestrator
from focusvoice.schema import ResponseReply


class FakeCapture:
    def __init__(self, fail=False):
        self.fail = fail
        self.starts = 0
        self.stops = 0
        self._capturing = False

    @property
    def is_capturing(self):
        return self._capturing

    def start(self):
        if self.fail:
            raise CaptureUnavailableError("microphone permission denied")
        self.starts += 1
        self._capturing = True

    def stop(self):
        if self._capturing:
            self.stops += 1
        self._capturing = False


class FakeSynthesizer:
    """auto_complete=False のときは finish() を呼ぶまで発話が終わらない"""

    def __init__(self, auto_complete=True, fail=False):
        self.auto_complete = auto_complete
        self.fail = fail
        self.spoken = []
        self.stops = 0
        self._pending = None

    def speak(self, text, on_complete, on_error):
        self.spoken.append(text)
        if self.fail:
            on_error(RuntimeError("synthesis unavailable"))
        elif self.auto_complete:
            on_complete()
        else:
            self._pending = (on_complete, on_error)

    def finish(self):
        on_complete, _ = self._pending
        self._pending = None
        on_complete()

    @property
    def pending(self):
        return self._pending is not None

    def stop_speaking(self):
        self.stops += 1
        self._pending = None


class FakeResponder:
    def __init__(self, replies=None, error=None, delay=0.0):
        self.replies = list(replies or [])
        self.error = error
        self.delay = delay
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if self.replies else "Sure, happy to help."
        return ResponseReply(response=text)


class FakeTaskStore:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def _record(self, *call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return self.result

    async def complete_all(self, user_id, priority=None):
        return await self._record("complete_all", user_id, priority)

    async def delete_all(self, user_id, priority=None):
        return await self._record("delete_all", user_id, priority)

    async def create_task(self, user_id, title, priority):
        return await self._record("create_task", user_id, title, priority)


def fragment(text, is_final=True):
    return TranscriptFragment(text=text, is_final=is_final)


async def wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fast_config():
    return DialogueConfig(
        silence_commit_delay=0.05,
        idle_timeout=0.5,
        word_reveal_interval=0.001,
        relisten_delay=0.05,
        barge_in_grace_delay=0.02,
    )


@pytest.fixture
def session(fast_config):
    """テスト用のオーケストレーターと偽コラボレーター一式を作るファクトリ"""

    def build(capture=None, synthesizer=None, responder=None, task_store=None, **kwargs):
        parts = {
            "capture": capture or FakeCapture(),
            "synthesizer": synthesizer or FakeSynthesizer(),
            "responder": responder or FakeResponder(),
            "task_store": task_store or FakeTaskStore(),
        }
        events = {"tones": [], "turns": [], "states": [], "reveals": []}
        kwargs.setdefault("config", fast_config)
        kwargs.setdefault("user_id", "user-1")
        orchestrator = DialogueOrchestrator(
            parts["capture"], parts["synthesizer"], parts["responder"], parts["task_store"],
            on_tone=events["tones"].append,
            on_turn=events["turns"].append,
            on_state_change=lambda old, new: events["states"].append(new),
            on_reveal=events["reveals"].append,
            **kwargs,
        )
        return orchestrator, parts, events

    return build
