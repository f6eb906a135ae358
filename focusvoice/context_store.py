"""
対話コンテキストと会話ログ

- ContextSnapshot: 直前の話題・応答抜粋・コマンドを保持する派生状態。
  継続コマンド（"another one" など）の解決にだけ使われます。
- ContextStore: セッション（ユーザー）キーごとに ContextSnapshot を保持します。
  プロセス全体で共有される1つの可変コンテキストを持たないことで、
  同時に話している別ユーザーの会話が混ざらないようにしています。
- ConversationLog: 追記専用・上限付きの会話ターン列（古いものから破棄）。
- JsonConversationArchive: 会話ログのベストエフォートなJSON永続化。
"""

import asyncio
import json
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    QUOTE = "quote"
    JOKE = "joke"
    GENERAL = "general"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


QUOTE_KEYWORDS = ("quote", "motiv", "inspire")
JOKE_KEYWORDS = ("joke", "funny", "laugh")


def classify_topic(text: str) -> Topic:
    """
    応答テキストから話題を分類する

    Examples:
        >>> classify_topic("Here is a motivational quote for you").value
        'quote'
        >>> classify_topic("Why did the chicken cross the road? Funny, right?").value
        'joke'
        >>> classify_topic("It is sunny today").value
        'general'
    """
    lowered = text.lower()
    if any(keyword in lowered for keyword in QUOTE_KEYWORDS):
        return Topic.QUOTE
    if any(keyword in lowered for keyword in JOKE_KEYWORDS):
        return Topic.JOKE
    return Topic.GENERAL


def make_excerpt(text: str, length: int = 100) -> str:
    text = text.strip()
    if len(text) <= length:
        return text
    return text[:length] + "..."


@dataclass(frozen=True)
class ConversationTurn:
    """会話ターン（作成後は変更しない）"""
    role: Role
    text: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "type": self.role.value,
            "message": self.text,
            "timestamp": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationTurn":
        return cls(
            role=Role(data["type"]),
            text=data["message"],
            created_at=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class ContextSnapshot:
    """
    直前のやり取りの要約

    Attributes:
        last_topic: 直前応答の話題
        last_response_excerpt: 直前応答の抜粋
        last_command_text: 直前のコマンド
        updated_at: 更新時刻（未更新なら None）
    """
    last_topic: Topic = Topic.GENERAL
    last_response_excerpt: str = ""
    last_command_text: str = ""
    updated_at: Optional[datetime] = None

    def to_payload(self) -> dict:
        return {
            "lastTopic": self.last_topic.value,
            "lastResponse": self.last_response_excerpt,
            "lastCommand": self.last_command_text,
        }


class ContextStore:
    """
    セッションキーごとの ContextSnapshot ストア

    書き込みはオーケストレーターのみが行い、1回のやり取りの完了につき1回だけ
    上書きされます（マージはしません）。
    """

    def __init__(self, excerpt_length: int = 100):
        self.excerpt_length = excerpt_length
        self._snapshots: Dict[str, ContextSnapshot] = {}

    def get(self, key: str) -> ContextSnapshot:
        return self._snapshots.get(key, ContextSnapshot())

    def update(self, key: str, response_text: str, command_text: str,
               topic_hint: Optional[Topic] = None) -> ContextSnapshot:
        """
        やり取りの完了時にスナップショットを上書き

        Args:
            key: セッションキー
            response_text: アシスタントの応答全文
            command_text: ユーザーのコマンド
            topic_hint: 応答テキストが general と分類された場合に使う話題（継続コマンド用）

        Returns:
            新しいスナップショット
        """
        topic = classify_topic(response_text)
        if topic is Topic.GENERAL and topic_hint is not None:
            topic = topic_hint
        snapshot = ContextSnapshot(
            last_topic=topic,
            last_response_excerpt=make_excerpt(response_text, self.excerpt_length),
            last_command_text=command_text,
            updated_at=datetime.now(),
        )
        self._snapshots[key] = snapshot
        logger.debug(f"Context updated for {key}: topic={topic.value}")
        return snapshot

    def reset(self, key: str) -> None:
        self._snapshots.pop(key, None)


class JsonConversationArchive:
    """
    会話ログのJSON永続化（ベストエフォート）

    読み書きに失敗してもログを出すだけで例外は送出しません。
    イベントループ上から呼ばれた場合、ファイル書き込みは専用の1スレッドの
    エグゼキューターで行います（タイマーを止めないため）。1スレッドなので
    書き込みの順序は呼び出し順のままです。

    Attributes:
        path (Path): 保存先ファイル
        limit (int): 保存する最大ターン数
    """
    def __init__(self, path: Path, limit: int = 100):
        self.path = Path(path)
        self.limit = limit
        self._turns: Deque[ConversationTurn] = deque(maxlen=limit)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="conversation-archive")
        self._pending: Optional[asyncio.Future] = None

    def load(self) -> List[ConversationTurn]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            turns = [ConversationTurn.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError) as e:
            logger.error(f"Error loading conversation from {self.path}: {e}")
            return []
        self._turns = deque(turns, maxlen=self.limit)
        return list(self._turns)

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)
        # シリアライズはループ上で行い、書き込む内容をこの時点で固定する
        payload = json.dumps([t.to_dict() for t in self._turns], ensure_ascii=False, indent=2)
        self._submit(self._write, payload)

    def clear(self) -> None:
        self._turns.clear()
        self._submit(self._remove)

    def _submit(self, func: Callable, *args) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            func(*args)
            return
        self._pending = loop.run_in_executor(self._executor, func, *args)

    def _write(self, payload: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(payload, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error saving conversation to {self.path}: {e}")

    def _remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing conversation file {self.path}: {e}")

    async def flush(self) -> None:
        """投入済みの書き込みがすべて終わるまで待つ"""
        pending = self._pending
        if pending is not None:
            await pending

    def close(self) -> None:
        self._executor.shutdown(wait=True)


class ConversationLog:
    """
    上限付きの会話ターン列

    上限を超えると最も古いターンから破棄されます。
    on_append が指定されていれば、追加されたターンごとに呼び出されます。
    """

    def __init__(self, limit: int = 50, archive: Optional[JsonConversationArchive] = None,
                 on_append: Optional[Callable[[ConversationTurn], None]] = None):
        self._turns: Deque[ConversationTurn] = deque(maxlen=limit)
        self.archive = archive
        self.on_append = on_append
        if archive is not None:
            self._turns.extend(archive.load())

    def append(self, role: Role, text: str) -> ConversationTurn:
        turn = ConversationTurn(role=role, text=text)
        self._turns.append(turn)
        if self.archive is not None:
            self.archive.append(turn)
        if self.on_append is not None:
            self.on_append(turn)
        return turn

    def recent(self, count: int) -> List[ConversationTurn]:
        if count <= 0:
            return []
        return list(self._turns)[-count:]

    def clear(self) -> None:
        self._turns.clear()
        if self.archive is not None:
            self.archive.clear()

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(list(self._turns))

    def __len__(self) -> int:
        return len(self._turns)
