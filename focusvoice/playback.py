"""
応答再生

応答テキストを一定間隔で1単語ずつ表示し（ライブタイピング表示用）、
全文を表示し終えてから音声合成に渡します。表示中に中断された場合は
表示タイマーを即座に止め、音声合成には進みません。

音声合成の完了とエラーは制御フロー上まったく同じに扱います
（無音のほうが止まったセッションよりましなため、エラーはログに残すだけ）。
"""

import asyncio
import logging
from typing import Callable, Optional

from .interfaces import SpeechSynthesizer
from .timers import WORD_REVEAL, SessionTimers

logger = logging.getLogger(__name__)


class ResponsePlayback:
    """
    単語表示と音声合成の制御

    Attributes:
        timers (SessionTimers): セッションのタイマーレジストリ
        synthesizer (SpeechSynthesizer): 音声合成アダプター
        interval (float): 単語表示間隔（秒）
        on_reveal (callable): 表示中テキストを受け取るコールバック
        is_speaking (bool): 音声合成の再生中フラグ
    """
    def __init__(self, timers: SessionTimers, synthesizer: SpeechSynthesizer, interval: float,
                 on_reveal: Optional[Callable[[str], None]] = None):
        self.timers = timers
        self.synthesizer = synthesizer
        self.interval = interval
        self.on_reveal = on_reveal
        self.is_speaking = False

    async def reveal(self, text: str, guard: Callable[..., Callable[[], None]]) -> str:
        """
        テキストを1単語ずつ表示

        Args:
            text: 応答テキスト
            guard: タイマーコールバックを世代ガードで包む関数

        Returns:
            表示し終えたテキスト
        """
        loop = asyncio.get_running_loop()
        done = loop.create_future()
        words = text.split()
        shown = []

        def step():
            if done.done():
                return
            if len(shown) < len(words):
                shown.append(words[len(shown)])
                if self.on_reveal:
                    self.on_reveal(" ".join(shown))
                self.timers.arm(WORD_REVEAL, self.interval, guard(step))
            else:
                done.set_result(" ".join(shown))

        step()
        try:
            return await done
        finally:
            self.timers.disarm(WORD_REVEAL)

    async def speak(self, text: str) -> None:
        """
        音声合成で再生し、完了（またはエラー）まで待つ

        stop_speaking() で止められた場合は完了通知が来ないため、
        呼び出し側のタスクがキャンセルされるまで待ち続けます。
        """
        loop = asyncio.get_running_loop()
        finished = loop.create_future()

        def resolve(error: Optional[Exception]):
            if not finished.done():
                finished.set_result(error)

        def on_complete():
            loop.call_soon_threadsafe(resolve, None)

        def on_error(error: Exception):
            loop.call_soon_threadsafe(resolve, error)

        self.is_speaking = True
        try:
            try:
                self.synthesizer.speak(text, on_complete, on_error)
            except Exception as e:
                resolve(e)
            error = await finished
        finally:
            self.is_speaking = False

        if error is not None:
            logger.warning(f"Speech synthesis failed, continuing as completed: {error}")

    def cancel(self) -> bool:
        """
        表示と再生を中断（何度呼んでも安全）

        Returns:
            再生中の音声を止めた場合 True
        """
        self.timers.disarm(WORD_REVEAL)
        if not self.is_speaking:
            return False
        self.is_speaking = False
        self.synthesizer.stop_speaking()
        return True
