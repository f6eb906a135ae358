"""
コマンドディスパッチャー

確定したコマンド文字列を分類し、ローカル応答・タスク操作・継続リクエスト・
応答生成サービスのいずれかに振り分けます。

振り分け順（最初にマッチしたものを採用）:
    1. "stop" → ABORTED（以降の処理なし）
    2. 会話クリア → 会話ログとコンテキストを消去し確認文を返す（通信なし）
    3. ローカル意図 → LocalResponder が即答（通信なし）
    4. タスク操作 → 外部タスクストアに委譲し、その結果文を返す
    5. 継続コマンド → 直前の話題が quote / joke なら話題別の継続リクエスト
    6. その他 → 直近の会話履歴とコンテキスト付きで応答生成サービスへ

6（および5）で例外や通信失敗が起きた場合は固定のフォールバック文を返します。
自動リトライはしません。
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .context_store import ContextSnapshot, ContextStore, ConversationLog, ConversationTurn, Topic
from .intents import (
    Intent,
    IntentClassifier,
    LOCAL_INTENTS,
    LocalResponder,
    TASK_INTENTS,
    extract_priority,
    extract_task_title,
    task_priority_for,
)
from .interfaces import ResponseGenerator, TaskStore
from .schema import ConversationEntry, Continuation, RequestContext, ResponseRequest

logger = logging.getLogger(__name__)

ABORTED = "[STOPPED]"
CLEARED_MESSAGE = "Conversation cleared. What would you like to talk about?"
SIGN_IN_MESSAGE = "Please sign in to manage tasks."
TASK_ERROR_MESSAGE = "Sorry, I encountered an error while handling your tasks."
ADD_TASK_PROMPT = "What task would you like me to add? Please say something like 'Add task: Buy groceries'"


@dataclass(frozen=True)
class DispatchResult:
    """
    振り分け結果

    Attributes:
        intent: 分類された意図
        text: 応答テキスト（停止時は ABORTED）
        record_context: 完了したやり取りとしてコンテキストを更新するか
        topic_hint: 継続リクエストの話題（応答が general と分類された場合に使う）
        failed: フォールバック文を返したか
    """
    intent: Intent
    text: str
    record_context: bool = True
    topic_hint: Optional[Topic] = None
    failed: bool = False

    @property
    def aborted(self) -> bool:
        return self.text == ABORTED


class CommandDispatcher:
    """
    1セッション分のコマンド振り分け

    Attributes:
        session_key (str): コンテキストを保持するセッション（ユーザー）キー
        user_id (str | None): タスク操作と応答生成に渡すユーザーID
    """
    def __init__(self, classifier: IntentClassifier, local: LocalResponder,
                 responder: ResponseGenerator, task_store: Optional[TaskStore],
                 context_store: ContextStore, log: ConversationLog,
                 session_key: str, user_id: Optional[str] = None,
                 fallback_message: str = "I'm experiencing some technical difficulties. Please try again."):
        self.classifier = classifier
        self.local = local
        self.responder = responder
        self.task_store = task_store
        self.context_store = context_store
        self.log = log
        self.session_key = session_key
        self.user_id = user_id
        self.fallback_message = fallback_message
        self.logger = logging.getLogger(__name__)

    async def dispatch(self, command: str, history: List[ConversationTurn],
                       intent: Optional[Intent] = None) -> DispatchResult:
        """
        コマンドを振り分けて応答を得る

        Args:
            command: 確定したコマンド
            history: コマンド確定前の直近の会話ターン
            intent: 分類済みの意図（省略時はここで分類）

        Returns:
            DispatchResult
        """
        if intent is None:
            intent = self.classifier.classify(command)
        self.logger.info(f"Dispatching '{command}' as {intent.name}")

        if intent is Intent.STOP:
            return DispatchResult(intent, ABORTED, record_context=False)

        if intent is Intent.CLEAR_CONVERSATION:
            self.log.clear()
            self.context_store.reset(self.session_key)
            return DispatchResult(intent, CLEARED_MESSAGE, record_context=False)

        if intent in LOCAL_INTENTS:
            return DispatchResult(intent, self.local.respond(intent))

        if intent in TASK_INTENTS:
            return DispatchResult(intent, await self._run_task(intent, command))

        snapshot = self.context_store.get(self.session_key)

        if intent is Intent.CONTINUATION and snapshot.last_topic in (Topic.QUOTE, Topic.JOKE):
            continuation = Continuation(topic=snapshot.last_topic.value, previous=snapshot.last_response_excerpt)
            return await self._generate(intent, command, snapshot, history, continuation)

        # 直前の話題がない継続コマンドは、会話履歴付きでそのまま転送する
        return await self._generate(intent, command, snapshot, history)

    async def _generate(self, intent: Intent, command: str, snapshot: ContextSnapshot,
                        history: List[ConversationTurn],
                        continuation: Optional[Continuation] = None) -> DispatchResult:
        request = ResponseRequest(
            command=command,
            user_id=self.user_id,
            context=RequestContext(
                last_topic=snapshot.last_topic.value,
                last_response=snapshot.last_response_excerpt,
                last_command=snapshot.last_command_text,
                full_conversation=[ConversationEntry(**turn.to_dict()) for turn in history],
            ),
            continuation=continuation,
        )
        try:
            reply = await self.responder.generate(request)
        except Exception as e:
            self.logger.error(f"Response generation failed: {e}")
            return DispatchResult(intent, self.fallback_message, record_context=False, failed=True)

        if not reply.response.strip():
            self.logger.error("Response generator returned an empty response")
            return DispatchResult(intent, self.fallback_message, record_context=False, failed=True)

        topic_hint = Topic(continuation.topic) if continuation else None
        return DispatchResult(intent, reply.response.strip(), topic_hint=topic_hint)

    async def _run_task(self, intent: Intent, command: str) -> str:
        if not self.user_id or self.task_store is None:
            return SIGN_IN_MESSAGE

        try:
            if intent is Intent.COMPLETE_ALL:
                priority = extract_priority(command)
                success = await self.task_store.complete_all(self.user_id, priority)
                label = f"{priority} " if priority else ""
                return (f"All {label}tasks have been marked as completed!" if success
                        else "Failed to complete tasks. Please try again.")

            if intent is Intent.DELETE_ALL:
                priority = extract_priority(command)
                success = await self.task_store.delete_all(self.user_id, priority)
                label = f"{priority} " if priority else ""
                return (f"All {label}tasks have been deleted!" if success
                        else "Failed to delete tasks. Please try again.")

            title = extract_task_title(command)
            if not title:
                return ADD_TASK_PROMPT
            priority = task_priority_for(command)
            success = await self.task_store.create_task(self.user_id, title, priority)
            article = "an" if priority[0] in "aeiou" else "a"
            return (f'Added "{title}" as {article} {priority} task!' if success
                    else "Failed to add task. Please try again.")
        except Exception as e:
            self.logger.error(f"Task operation error: {e}", exc_info=True)
            return TASK_ERROR_MESSAGE
