import pytest

from focusvoice.interruption import BargeInClassifier, InterruptKind


@pytest.fixture
def classifier():
    return BargeInClassifier(["stop", "cancel", "enough"], min_chars=5)


@pytest.mark.parametrize("text", ["stop", "Okay STOP", "cancel that", "that's enough"])
def test_stop_words(classifier, text):
    assert classifier.classify(text) is InterruptKind.STOP


def test_longer_fragment_supersedes(classifier):
    assert classifier.classify("what about tomorrow") is InterruptKind.SUPERSEDE


def test_short_noise_is_ignored(classifier):
    assert classifier.classify("uh") is InterruptKind.NONE
    # ちょうど最小文字数は上書き扱いにしない
    assert classifier.classify("hmmmm") is InterruptKind.NONE
    assert classifier.classify("hmmmmm") is InterruptKind.SUPERSEDE
