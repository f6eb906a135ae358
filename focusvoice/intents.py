"""
コマンド意図の分類とローカル応答

キーワードによる意図分類は差し替え可能な IntentClassifier インターフェースの
裏に置いています。オーケストレーションのロジックに触れずに分類器だけを
交換できます。

LocalResponder は時刻・日付・挨拶などネットワーク不要の意図に即答します。
バリエーションのため、小さな固定候補からランダムに選びます。
"""

import random
import re
from datetime import datetime
from enum import Enum, auto
from typing import Iterable, Optional, Protocol


class Intent(Enum):
    STOP = auto()
    CLEAR_CONVERSATION = auto()
    TIME = auto()
    DATE = auto()
    DAY = auto()
    GREETING = auto()
    HOW_ARE_YOU = auto()
    THANKS = auto()
    COMPLETE_ALL = auto()
    DELETE_ALL = auto()
    ADD_TASK = auto()
    CONTINUATION = auto()
    GENERAL = auto()


LOCAL_INTENTS = frozenset({
    Intent.TIME, Intent.DATE, Intent.DAY, Intent.GREETING, Intent.HOW_ARE_YOU, Intent.THANKS,
})
TASK_INTENTS = frozenset({Intent.COMPLETE_ALL, Intent.DELETE_ALL, Intent.ADD_TASK})

PRIORITIES = ("urgent", "important", "later")

_PRIORITY_RE = re.compile(r"\b(urgent|important|later)\b")
_TASK_TITLE_RE = re.compile(r"\b(?:add|create)\b.*?\btask\b\s*:?\s*(.*)", re.IGNORECASE)

# ローカル意図（先にマッチしたものを採用）
_LOCAL_PATTERNS = (
    (Intent.TIME, re.compile(r"\btime\b")),
    (Intent.DATE, re.compile(r"\bdate\b")),
    (Intent.DAY, re.compile(r"\b(?:what|which) day\b")),
    (Intent.GREETING, re.compile(r"\b(?:hello|hi|hey)\b")),
    (Intent.HOW_ARE_YOU, re.compile(r"\bhow (?:are you|do you do)\b")),
    (Intent.THANKS, re.compile(r"\bthank")),
)


class IntentClassifier(Protocol):
    def classify(self, text: str) -> Intent:
        ...


class KeywordIntentClassifier:
    """
    キーワード部分一致による意図分類

    分類順（最初にマッチしたものを採用）:
        1. 停止 ("stop")
        2. 会話クリア ("clear conversation" / "delete history")
        3. ローカル意図（時刻・日付・曜日・挨拶・調子・お礼）
        4. タスク一括操作・タスク追加
        5. 継続コマンド ("another one" / "more" / "again")
        6. その他（応答生成サービスへ転送）
    """

    def __init__(self, continuation_phrases: Iterable[str] = ("another one", "more", "again")):
        self.continuation_phrases = tuple(p.lower() for p in continuation_phrases)

    def classify(self, text: str) -> Intent:
        lowered = text.lower().strip()

        if "stop" in lowered:
            return Intent.STOP
        if "clear conversation" in lowered or "delete history" in lowered:
            return Intent.CLEAR_CONVERSATION

        for intent, pattern in _LOCAL_PATTERNS:
            if pattern.search(lowered):
                return intent

        if "complete all" in lowered or "mark all" in lowered:
            return Intent.COMPLETE_ALL
        if "delete all" in lowered or "remove all" in lowered:
            return Intent.DELETE_ALL
        if "add task" in lowered or "create task" in lowered:
            return Intent.ADD_TASK

        if any(phrase in lowered for phrase in self.continuation_phrases):
            return Intent.CONTINUATION

        return Intent.GENERAL


def extract_priority(text: str) -> Optional[str]:
    """
    Examples:
        >>> extract_priority("complete all urgent tasks")
        'urgent'
        >>> extract_priority("delete all tasks") is None
        True
    """
    match = _PRIORITY_RE.search(text.lower())
    return match.group(1) if match else None


def extract_task_title(text: str) -> Optional[str]:
    """
    "add task ..." からタスク名を取り出す

    Examples:
        >>> extract_task_title("add task buy milk")
        'buy milk'
        >>> extract_task_title("Create a task: call mom")
        'call mom'
        >>> extract_task_title("add task") is None
        True
    """
    match = _TASK_TITLE_RE.search(text)
    if not match:
        return None
    title = match.group(1).strip(" .:")
    return title or None


def task_priority_for(text: str) -> str:
    """追加タスクの優先度（"urgent" / "later" 指定がなければ "important"）"""
    lowered = text.lower()
    if "urgent" in lowered:
        return "urgent"
    if "later" in lowered:
        return "later"
    return "important"


class LocalResponder:
    """ネットワーク不要の意図に対する即答"""

    def __init__(self, rng: Optional[random.Random] = None, clock=datetime.now):
        self.rng = rng or random.Random()
        self.clock = clock

    def respond(self, intent: Intent) -> str:
        now = self.clock()
        if intent is Intent.TIME:
            return self.rng.choice(self._time_responses(now))
        if intent is Intent.DATE:
            return self.rng.choice(self._date_responses(now))
        if intent is Intent.DAY:
            return f"Today is {now:%A}"
        if intent is Intent.GREETING:
            return self.rng.choice(self._greeting_responses(now))
        if intent is Intent.HOW_ARE_YOU:
            return "I'm doing great! Ready to help you be more productive. What can I do for you?"
        if intent is Intent.THANKS:
            return "You're welcome! Happy to help. Is there anything else you need?"
        raise ValueError(f"No local response for {intent.name}")

    @staticmethod
    def _time_responses(now: datetime):
        hours = now.hour % 12 or 12
        ampm = "PM" if now.hour >= 12 else "AM"
        formatted = f"{hours}:{now.minute:02d} {ampm}"
        return [
            f"It's {formatted}",
            f"The time is {formatted}",
            f"Right now it's {formatted}",
            f"Currently, it's {formatted}",
        ]

    @staticmethod
    def _date_responses(now: datetime):
        formatted = f"{now:%A, %B} {now.day}, {now.year}"
        return [
            f"Today is {formatted}",
            f"It's {formatted}",
            f"The date is {formatted}",
        ]

    @staticmethod
    def _greeting_responses(now: datetime):
        if now.hour < 12:
            time_of_day = "morning"
        elif now.hour < 17:
            time_of_day = "afternoon"
        else:
            time_of_day = "evening"
        return [
            f"Good {time_of_day}! How can I help you today?",
            f"Hello there! Good {time_of_day}. What would you like to do?",
            f"Hi! Good {time_of_day}. Ready to be productive?",
            f"Hey! Good {time_of_day}. How can I assist you?",
        ]
