"""
無音確定デバウンサー

聞き取り中に届く断片を蓄積し、最後の断片から一定時間（無音ディレイ）
新しい断片が来なければ、蓄積内容を1つのコマンド文字列として確定します。
断片が届くたびにタイマーは置き換えられ、2本同時に走ることはありません。

断片の扱い:
    - final 断片は確定済みの発話として順に蓄積
    - interim 断片は認識途中の仮説で、次の断片（interim / final）が置き換える
    確定時の文字列は「確定済み final の列 + 最新の interim」です。
"""

import logging
from typing import Callable, List, Optional

from .interfaces import TranscriptFragment
from .timers import SILENCE, SessionTimers

logger = logging.getLogger(__name__)


class SilenceCommitDebouncer:
    """
    断片バッファと無音タイマー

    Attributes:
        timers (SessionTimers): セッションのタイマーレジストリ
        delay (float): 無音ディレイ（秒）
        on_silence (callable): 無音タイマー発火時に呼ばれる関数（引数なし）
        finals (list[str]): 前回の確定以降に届いた final 断片
        interim (str | None): 最新の interim 断片
    """
    def __init__(self, timers: SessionTimers, delay: float, on_silence: Callable[[], None]):
        self.timers = timers
        self.delay = delay
        self.on_silence = on_silence
        self.finals: List[str] = []
        self.interim: Optional[str] = None

    @property
    def buffer(self) -> List[str]:
        """確定時に連結される断片（最新の interim を含む）"""
        if self.interim is None:
            return list(self.finals)
        return self.finals + [self.interim]

    def push(self, fragment: TranscriptFragment, wrap: Optional[Callable[[Callable], Callable]] = None) -> None:
        """
        断片を追加して無音タイマーを再設定

        Args:
            fragment: 認識断片。interim は直前の interim を置き換え、
                final は直前の interim を置き換えたうえで確定済みに加わる
            wrap: タイマーコールバックを包む関数（世代ガード用）
        """
        if fragment.is_final:
            self.finals.append(fragment.text)
            self.interim = None
        else:
            self.interim = fragment.text
        callback = wrap(self.on_silence) if wrap else self.on_silence
        self.timers.arm(SILENCE, self.delay, callback)

    def flush(self) -> Optional[str]:
        """
        バッファを連結してコマンド文字列に確定し、バッファを空にする

        Returns:
            確定したコマンド。空白のみの場合は None
        """
        command = " ".join(part.strip() for part in self.buffer if part.strip()).strip()
        self.finals.clear()
        self.interim = None
        return command or None

    def cancel(self) -> None:
        """無音タイマーを解除してバッファを破棄"""
        self.timers.disarm(SILENCE)
        self.finals.clear()
        self.interim = None

    @property
    def pending(self) -> bool:
        return self.timers.is_armed(SILENCE)
