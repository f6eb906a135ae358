"""
割り込み（バージイン）判定

応答処理中・発話中に届いた断片を、デバウンスせずに即座に分類します。

- 停止系: "stop" / "cancel" / "enough" を含む → 全中断し、コマンドとしては扱わない
- 上書き系: それ以外で一定文字数より長い断片 → 全中断後、短い猶予をおいて次のコマンドとして再投入
- それ以外（短いノイズなど）→ 無視
"""

from enum import Enum, auto
from typing import Iterable


class InterruptKind(Enum):
    NONE = auto()
    STOP = auto()
    SUPERSEDE = auto()


class BargeInClassifier:
    """
    割り込み断片の分類器

    Attributes:
        stop_words (tuple[str]): 停止キーワード（小文字）
        min_chars (int): 上書き系と判定する最小文字数（これを超える長さ）
    """
    def __init__(self, stop_words: Iterable[str], min_chars: int = 5):
        self.stop_words = tuple(w.lower() for w in stop_words)
        self.min_chars = min_chars

    def classify(self, text: str) -> InterruptKind:
        """
        Examples:
            >>> c = BargeInClassifier(["stop", "cancel", "enough"])
            >>> c.classify("okay stop")
            <InterruptKind.STOP: 2>
            >>> c.classify("what about tomorrow")
            <InterruptKind.SUPERSEDE: 3>
            >>> c.classify("uh")
            <InterruptKind.NONE: 1>
        """
        lowered = text.lower()
        if any(word in lowered for word in self.stop_words):
            return InterruptKind.STOP
        if len(text.strip()) > self.min_chars:
            return InterruptKind.SUPERSEDE
        return InterruptKind.NONE
