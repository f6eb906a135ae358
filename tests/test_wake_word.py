from focusvoice.state_machine import InputMode
from focusvoice.wake_word import WakeWordGate

PHRASES = ["hello", "hey", "focusflow", "wake up", "assistant", "start listening"]


def test_short_fragment_with_phrase_is_detected():
    gate = WakeWordGate(PHRASES)
    assert gate.detect("Hello") == "hello"
    assert gate.detect("hey there") == "hey"
    assert gate.detect("okay wake up now") == "wake up"


def test_long_fragment_is_ignored():
    gate = WakeWordGate(PHRASES)
    assert gate.detect("I said hello to my neighbour this morning") is None


def test_max_words_is_inclusive():
    gate = WakeWordGate(PHRASES, max_words=4)
    assert gate.detect("um well hello there") == "hello"
    assert gate.detect("um well hello there friend") is None


def test_unrelated_text_is_ignored():
    gate = WakeWordGate(PHRASES)
    assert gate.detect("what time") is None
    assert gate.detect("   ") is None


def test_only_voice_mode_listens_for_wake_words():
    assert WakeWordGate.enabled_for(InputMode.VOICE)
    assert not WakeWordGate.enabled_for(InputMode.TEXT)
