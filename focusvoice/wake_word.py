"""
ウェイクワード判定

休止中に届いた認識断片からウェイクフレーズ（"hello", "hey", "focusflow" など）を
検知します。長い発話にたまたま挨拶が含まれているだけの場合に誤起動しないよう、
単語数が上限以下の短い断片だけを対象にします。
"""

import logging
from typing import Iterable, Optional

from .state_machine import InputMode

logger = logging.getLogger(__name__)


class WakeWordGate:
    """
    テキストベースのウェイクワード判定

    判定条件:
        - 断片を小文字化した文字列がウェイクフレーズのいずれかを含む
        - 断片の単語数が max_words 以下
        - 入力モードがテキストではない

    Attributes:
        phrases (tuple[str]): ウェイクフレーズ（小文字）
        max_words (int): 判定対象とする最大単語数
    """
    def __init__(self, phrases: Iterable[str], max_words: int = 4):
        self.phrases = tuple(p.lower() for p in phrases)
        self.max_words = max_words

    def detect(self, text: str) -> Optional[str]:
        """
        断片からウェイクフレーズを検知

        Args:
            text: 認識断片

        Returns:
            検知したフレーズ。未検知の場合は None

        Examples:
            >>> gate = WakeWordGate(["hello", "hey"])
            >>> gate.detect("Hello there")
            'hello'
            >>> gate.detect("I said hello to my neighbour this morning") is None
            True
        """
        lowered = text.lower().strip()
        if not lowered or len(lowered.split()) > self.max_words:
            return None
        for phrase in self.phrases:
            if phrase in lowered:
                logger.debug(f"Wake phrase '{phrase}' found in '{text}'")
                return phrase
        return None

    @staticmethod
    def enabled_for(mode: InputMode) -> bool:
        return mode is InputMode.VOICE
