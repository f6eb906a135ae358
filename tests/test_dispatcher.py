import asyncio

import pytest

from conftest import FakeResponder, FakeTaskStore
from focusvoice.context_store import ContextStore, ConversationLog, Role, Topic
from focusvoice.dispatcher import (
    ABORTED,
    ADD_TASK_PROMPT,
    CLEARED_MESSAGE,
    SIGN_IN_MESSAGE,
    TASK_ERROR_MESSAGE,
    CommandDispatcher,
)
from focusvoice.intents import Intent, KeywordIntentClassifier, LocalResponder
from focusvoice.interfaces import ResponderError, TaskStoreError

FALLBACK = "I'm experiencing some technical difficulties. Please try again."


@pytest.fixture
def build():
    def factory(responder=None, task_store=None, user_id="user-1"):
        responder = responder or FakeResponder()
        task_store = task_store if task_store is not None else FakeTaskStore()
        store = ContextStore()
        log = ConversationLog()
        dispatcher = CommandDispatcher(
            classifier=KeywordIntentClassifier(),
            local=LocalResponder(),
            responder=responder,
            task_store=task_store,
            context_store=store,
            log=log,
            session_key="user-1",
            user_id=user_id,
            fallback_message=FALLBACK,
        )
        return dispatcher, responder, task_store, store, log

    return factory


def dispatch(dispatcher, command, history=()):
    return asyncio.run(dispatcher.dispatch(command, list(history)))


def test_stop_returns_abort_sentinel(build):
    dispatcher, responder, *_ = build()
    result = dispatch(dispatcher, "stop")
    assert result.text == ABORTED
    assert result.aborted
    assert not result.record_context
    assert responder.requests == []


def test_clear_conversation_resets_log_and_context(build):
    dispatcher, responder, _, store, log = build()
    log.append(Role.USER, "tell me a joke")
    store.update("user-1", "A funny joke", "tell me a joke")

    result = dispatch(dispatcher, "clear conversation")

    assert result.text == CLEARED_MESSAGE
    assert len(log) == 0
    assert store.get("user-1").last_topic is Topic.GENERAL
    assert responder.requests == []


def test_local_intent_never_calls_network(build):
    dispatcher, responder, task_store, *_ = build()
    result = dispatch(dispatcher, "what time is it")
    assert result.intent is Intent.TIME
    assert ":" in result.text
    assert responder.requests == []
    assert task_store.calls == []


def test_complete_all_with_priority(build):
    dispatcher, _, task_store, *_ = build()
    result = dispatch(dispatcher, "complete all urgent tasks")
    assert task_store.calls == [("complete_all", "user-1", "urgent")]
    assert result.text == "All urgent tasks have been marked as completed!"


def test_delete_all_failure_message(build):
    dispatcher, _, task_store, *_ = build(task_store=FakeTaskStore(result=False))
    result = dispatch(dispatcher, "delete all tasks")
    assert task_store.calls == [("delete_all", "user-1", None)]
    assert result.text == "Failed to delete tasks. Please try again."


def test_add_task(build):
    dispatcher, _, task_store, *_ = build()
    result = dispatch(dispatcher, "add task buy milk")
    assert task_store.calls == [("create_task", "user-1", "buy milk", "important")]
    assert result.text == 'Added "buy milk" as an important task!'


def test_add_task_without_title_prompts(build):
    dispatcher, _, task_store, *_ = build()
    assert dispatch(dispatcher, "add task").text == ADD_TASK_PROMPT
    assert task_store.calls == []


def test_task_commands_require_sign_in(build):
    dispatcher, _, task_store, *_ = build(user_id=None)
    assert dispatch(dispatcher, "delete all tasks").text == SIGN_IN_MESSAGE
    assert task_store.calls == []


def test_task_store_error(build):
    dispatcher, *_ = build(task_store=FakeTaskStore(error=TaskStoreError("boom")))
    assert dispatch(dispatcher, "mark all done").text == TASK_ERROR_MESSAGE


def test_general_command_sends_history_and_context(build):
    dispatcher, responder, _, store, log = build(responder=FakeResponder(["Start with your hardest task."]))
    store.update("user-1", "Good morning!", "hello")
    history = [log.append(Role.USER, "hello"), log.append(Role.ASSISTANT, "Good morning!")]

    result = dispatch(dispatcher, "how should I plan my morning", history)

    assert result.text == "Start with your hardest task."
    assert result.record_context
    payload = responder.requests[0].to_payload()
    assert payload["command"] == "how should I plan my morning"
    assert payload["userId"] == "user-1"
    assert payload["context"]["lastCommand"] == "hello"
    assert [entry["type"] for entry in payload["context"]["fullConversation"]] == ["user", "assistant"]
    assert "continuation" not in payload


def test_continuation_anchors_on_previous_response(build):
    dispatcher, responder, _, store, _ = build(responder=FakeResponder(["Why don't eggs tell jokes? They'd crack up."]))
    store.update("user-1", "Why did the scarecrow win an award? He was outstanding in his field. Funny!", "tell me a joke")

    result = dispatch(dispatcher, "another one")

    request = responder.requests[0]
    assert request.continuation.topic == "joke"
    assert request.continuation.previous.startswith("Why did the scarecrow")
    assert result.topic_hint is Topic.JOKE


def test_continuation_without_topic_is_forwarded(build):
    dispatcher, responder, *_ = build()
    result = dispatch(dispatcher, "tell me more")
    assert result.intent is Intent.CONTINUATION
    assert responder.requests[0].continuation is None


def test_responder_failure_returns_fallback(build):
    dispatcher, *_ = build(responder=FakeResponder(error=ResponderError("HTTP 500")))
    result = dispatch(dispatcher, "summarize my week")
    assert result.text == FALLBACK
    assert result.failed
    assert not result.record_context


def test_empty_response_returns_fallback(build):
    dispatcher, *_ = build(responder=FakeResponder(["   "]))
    assert dispatch(dispatcher, "summarize my week").text == FALLBACK
