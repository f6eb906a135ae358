"""セッションタイマー管理

名前付きタイマー（silence / idle / word_reveal / relisten / resubmit）を
asyncio のイベントループ上で管理します。同じ名前のタイマーは同時に1つしか
存在せず、再設定すると以前のタイマーは必ず解除されます。

各コールバックはセッション世代（generation）に紐付けられ、
中断後に発火した古いコールバックは何もせずに破棄されます。
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

SILENCE = "silence"
IDLE = "idle"
WORD_REVEAL = "word_reveal"
RELISTEN = "relisten"
RESUBMIT = "resubmit"


class Generation:
    """
    セッション世代カウンター

    中断のたびに bump() で値を進めます。非同期コールバックは生成時の値を
    捕捉し、発火時に is_current() で現行世代かどうかを確認します。
    """

    def __init__(self):
        self.value = 0

    def bump(self) -> int:
        self.value += 1
        return self.value

    def is_current(self, value: int) -> bool:
        return value == self.value

    def guard(self, callback: Callable, *args) -> Callable[[], None]:
        """
        現行世代でのみ実行されるコールバックを作る

        Args:
            callback: 実行する関数
            *args: 関数に渡す引数

        Returns:
            引数なしで呼べるラッパー関数
        """
        captured = self.value

        def guarded():
            if captured != self.value:
                logger.debug(f"Discarding stale callback {getattr(callback, '__name__', callback)} "
                             f"(generation {captured}, current {self.value})")
                return
            callback(*args)

        return guarded


class SessionTimers:
    """
    名前付きタイマーのレジストリ

    Attributes:
        _handles (dict): タイマー名 → asyncio.TimerHandle
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def arm(self, name: str, delay: float, callback: Callable[[], None]) -> None:
        """
        タイマーを設定（同名の既存タイマーは解除して置き換え）

        Args:
            name: タイマー名
            delay: 発火までの秒数
            callback: 発火時に呼ばれる関数（引数なし）
        """
        self.disarm(name)
        self._handles[name] = self._get_loop().call_later(delay, self._fire, name, callback)

    def _fire(self, name: str, callback: Callable[[], None]) -> None:
        self._handles.pop(name, None)
        callback()

    def disarm(self, name: str) -> bool:
        """
        タイマーを解除

        Returns:
            解除したタイマーが存在した場合 True
        """
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def disarm_all(self) -> None:
        for name in list(self._handles):
            self.disarm(name)

    def is_armed(self, name: str) -> bool:
        return name in self._handles

    def armed(self) -> Set[str]:
        return set(self._handles)
