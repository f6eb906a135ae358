"""外部コラボレーターのプロトコル定義

オーケストレーターが前提とする契約はここに定義したものだけです。
音声認識エンジンや音声合成プロバイダー固有の挙動には依存しません。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .schema import ResponseReply, ResponseRequest


class CaptureUnavailableError(RuntimeError):
    """音声認識エンジンが利用できない（未対応・マイク権限拒否など）"""


class ResponderError(RuntimeError):
    """応答生成サービスの失敗（HTTPエラー・不正な応答）"""


class TaskStoreError(RuntimeError):
    """タスクストアへの操作失敗"""


@dataclass(frozen=True)
class TranscriptFragment:
    """音声認識から届く断片"""
    text: str
    is_final: bool = False


class SpeechCapture(Protocol):
    """ストリーミング音声認識アダプター"""

    def start(self) -> None:
        """認識を開始する。利用不可なら CaptureUnavailableError を送出する。"""

    def stop(self) -> None:
        """認識を停止する。停止済みなら何もしない。"""

    @property
    def is_capturing(self) -> bool:
        """認識中かどうか"""


class SpeechSynthesizer(Protocol):
    """音声合成アダプター

    speak() 1回につき on_complete / on_error のどちらかがちょうど1回呼ばれる。
    stop_speaking() で止めた場合はどちらも呼ばれない。
    """

    def speak(
        self,
        text: str,
        on_complete: Callable[[], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """text を再生する。"""

    def stop_speaking(self) -> None:
        """再生中の音声を止める。"""


class TaskStore(Protocol):
    """タスク永続化サービス"""

    async def complete_all(self, user_id: str, priority: Optional[str] = None) -> bool:
        ...

    async def delete_all(self, user_id: str, priority: Optional[str] = None) -> bool:
        ...

    async def create_task(self, user_id: str, title: str, priority: str) -> bool:
        ...


class ResponseGenerator(Protocol):
    """自然言語応答生成サービス（ネットワーク越し）"""

    async def generate(self, request: ResponseRequest) -> ResponseReply:
        """リクエストを送り応答を返す。

        空の（または古い）コンテキストでも最善の応答を返すこと。

        Raises:
            ResponderError: HTTP失敗や不正な応答の場合
        """
