import asyncio
import json

import httpx
import pytest

from focusvoice.bridge_client import BridgeClient
from focusvoice.interfaces import CaptureUnavailableError, ResponderError, TaskStoreError
from focusvoice.responder_client import HttpResponseGenerator
from focusvoice.schema import Continuation, ResponseRequest
from focusvoice.task_client import HttpTaskStore


def mock_transport(handler, seen):
    def record(request):
        seen.append(request)
        return handler(request)
    return httpx.MockTransport(record)


# ================================================================================
# 応答生成サービス
# ================================================================================

def test_generate_posts_payload():
    seen = []
    transport = mock_transport(lambda r: httpx.Response(200, json={"response": "Here you go", "success": True}), seen)
    client = HttpResponseGenerator("http://responder/api/voice-command", transport=transport)
    request = ResponseRequest(command="another one", user_id="u1",
                              continuation=Continuation(topic="quote", previous="Stay hungry."))

    reply = asyncio.run(client.generate(request))

    assert reply.response == "Here you go"
    body = json.loads(seen[0].content)
    assert body["userId"] == "u1"
    assert body["continuation"] == {"topic": "quote", "previous": "Stay hungry."}
    assert body["context"]["lastTopic"] == "general"


@pytest.mark.parametrize("response", [
    httpx.Response(500, json={"error": "boom"}),
    httpx.Response(200, text="<html>oops</html>"),
    httpx.Response(200, json={"success": False, "error": "quota", "response": ""}),
    httpx.Response(200, json={"success": True, "response": "  "}),
    httpx.Response(200, json={"success": True}),
])
def test_generate_failures_raise(response):
    client = HttpResponseGenerator("http://responder", transport=httpx.MockTransport(lambda r: response))
    with pytest.raises(ResponderError):
        asyncio.run(client.generate(ResponseRequest(command="hi there")))


def test_generate_network_error():
    def fail(request):
        raise httpx.ConnectError("refused", request=request)

    client = HttpResponseGenerator("http://responder", transport=httpx.MockTransport(fail))
    with pytest.raises(ResponderError):
        asyncio.run(client.generate(ResponseRequest(command="hi there")))


# ================================================================================
# タスクストア
# ================================================================================

def test_task_store_routes_and_bodies():
    seen = []
    transport = mock_transport(lambda r: httpx.Response(200, json={"success": True}), seen)
    store = HttpTaskStore("http://app/api/tasks/", transport=transport)

    async def scenario():
        assert await store.complete_all("u1", "urgent")
        assert await store.delete_all("u1")
        assert await store.create_task("u1", "buy milk", "important")

    asyncio.run(scenario())

    assert [str(r.url) for r in seen] == [
        "http://app/api/tasks/complete-all",
        "http://app/api/tasks/delete-all",
        "http://app/api/tasks",
    ]
    assert json.loads(seen[0].content) == {"userId": "u1", "priority": "urgent"}
    assert json.loads(seen[1].content) == {"userId": "u1"}
    assert json.loads(seen[2].content) == {"userId": "u1", "title": "buy milk", "priority": "important"}


def test_task_store_reports_failure():
    store = HttpTaskStore("http://app/api/tasks",
                          transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    assert asyncio.run(store.delete_all("u1")) is False

    store = HttpTaskStore("http://app/api/tasks",
                          transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"success": False})))
    assert asyncio.run(store.complete_all("u1")) is False


def test_task_store_network_error():
    def fail(request):
        raise httpx.ConnectError("refused", request=request)

    store = HttpTaskStore("http://app/api/tasks", transport=httpx.MockTransport(fail))
    with pytest.raises(TaskStoreError):
        asyncio.run(store.delete_all("u1"))


# ================================================================================
# ブラウザブリッジ
# ================================================================================

class FakeSocket:
    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(json.loads(message))


def connected_bridge(**kwargs):
    bridge = BridgeClient("ws://bridge", **kwargs)
    bridge.ws = FakeSocket()
    return bridge


def test_capture_start_and_transcripts():
    fragments = []

    async def scenario():
        bridge = connected_bridge(on_fragment=fragments.append)
        bridge.handle_event({"type": "transcript", "text": "ignored", "isFinal": True})
        bridge.start()
        bridge.handle_event({"type": "transcript", "text": "hello", "isFinal": False})
        bridge.stop()
        await asyncio.sleep(0.01)
        return bridge

    bridge = asyncio.run(scenario())
    assert [f.text for f in fragments] == ["hello"]
    assert fragments[0].is_final is False
    assert [e["type"] for e in bridge.ws.sent] == ["capture.start", "capture.stop"]


def test_start_without_connection_is_unavailable():
    bridge = BridgeClient("ws://bridge")
    with pytest.raises(CaptureUnavailableError):
        bridge.start()


def test_permission_error_disables_capture():
    errors = []
    bridge = connected_bridge(on_capture_error=errors.append)
    bridge.handle_event({"type": "capture.error", "error": "not-allowed"})
    assert errors == ["not-allowed"]
    assert not bridge.capture_supported
    with pytest.raises(CaptureUnavailableError):
        bridge.start()


def test_speech_completion_is_matched_by_id():
    done, failed = [], []

    async def scenario():
        bridge = connected_bridge()
        bridge.speak("first", lambda: done.append("first"), failed.append)
        bridge.speak("second", lambda: done.append("second"), failed.append)
        await asyncio.sleep(0.01)
        bridge.handle_event({"type": "speech.done", "id": 2})
        bridge.handle_event({"type": "speech.error", "id": 1, "error": "synthesis-failed"})
        bridge.handle_event({"type": "speech.done", "id": 1})
        return bridge

    bridge = asyncio.run(scenario())
    assert done == ["second"]
    assert len(failed) == 1
    assert [e["text"] for e in bridge.ws.sent] == ["first", "second"]


def test_stop_speaking_drops_pending_callbacks():
    done = []

    async def scenario():
        bridge = connected_bridge()
        bridge.speak("hello", lambda: done.append(True), lambda e: done.append(e))
        bridge.stop_speaking()
        bridge.handle_event({"type": "speech.done", "id": 1})
        await asyncio.sleep(0.01)
        return bridge

    bridge = asyncio.run(scenario())
    assert done == []
    assert bridge.ws.sent[-1] == {"type": "speech.stop"}
