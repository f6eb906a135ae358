"""
音声対話オーケストレーター

音声認識の断片ストリームを、一貫した音声対話に変換します。

主要機能:
- ウェイクワードによる起動（休止中のみ）
- 無音デバウンスによるコマンド確定
- 応答中・発話中の割り込み（バージイン）
- 継続コマンド（"another one"）の文脈解決
- 単語表示 → 音声合成 → 再聴取の再生制御
- 無操作タイムアウトによる休止状態への復帰

並行処理モデル:
    すべて asyncio の単一スレッド上で動作します。並行性はタイマーと
    非同期I/O（認識イベント・ネットワーク応答・音声合成完了）の競合としてのみ
    表現されます。中断のたびにセッション世代を進め、古い世代のコールバックは
    状態を変更せずに破棄されます。遅れて届いたネットワーク応答が、ユーザーが
    すでに中断した会話を「復活」させることはありません。

状態遷移:
    DORMANT → LISTENING → COMMITTING → PROCESSING → SPEAKING → DORMANT →（再聴取）LISTENING
"""

import asyncio
import logging
from typing import Callable, Optional

from .config_models import DialogueConfig
from .context_store import ContextStore, ConversationLog, ConversationTurn, JsonConversationArchive, Role
from .debouncer import SilenceCommitDebouncer
from .dispatcher import CommandDispatcher
from .intents import Intent, IntentClassifier, KeywordIntentClassifier, LocalResponder
from .interfaces import (
    CaptureUnavailableError,
    ResponseGenerator,
    SpeechCapture,
    SpeechSynthesizer,
    TaskStore,
    TranscriptFragment,
)
from .interruption import BargeInClassifier, InterruptKind
from .playback import ResponsePlayback
from .state_machine import DialogueState, InputMode, StateTransition
from .timers import IDLE, RELISTEN, RESUBMIT, Generation, SessionTimers
from .wake_word import WakeWordGate

logger = logging.getLogger(__name__)

IDLE_STOP_MESSAGE = "I stopped listening due to inactivity. Say a wake word or press the microphone to start again."
CAPTURE_UNAVAILABLE_MESSAGE = "Voice input is unavailable. You can type your message instead."

TONE_START = "start"
TONE_STOP = "stop"


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class DialogueOrchestrator:
    """
    1つの認識ストリームに対する対話セッション

    Attributes:
        state (DialogueState): 現在の状態
        mode (InputMode): 入力モード（音声 / テキスト）
        generation (Generation): セッション世代
        timers (SessionTimers): 名前付きタイマー
        log (ConversationLog): 会話ログ
        context_store (ContextStore): セッションキーごとの対話コンテキスト
        session_key (str): このセッションのコンテキストキー
    """
    def __init__(self,
                 capture: SpeechCapture,
                 synthesizer: SpeechSynthesizer,
                 responder: ResponseGenerator,
                 task_store: Optional[TaskStore] = None,
                 *,
                 config: Optional[DialogueConfig] = None,
                 context_store: Optional[ContextStore] = None,
                 session_key: Optional[str] = None,
                 user_id: Optional[str] = None,
                 archive: Optional[JsonConversationArchive] = None,
                 classifier: Optional[IntentClassifier] = None,
                 local_responder: Optional[LocalResponder] = None,
                 mode: InputMode = InputMode.VOICE,
                 on_state_change: Optional[Callable[[DialogueState, DialogueState], None]] = None,
                 on_reveal: Optional[Callable[[str], None]] = None,
                 on_turn: Optional[Callable[[ConversationTurn], None]] = None,
                 on_tone: Optional[Callable[[str], None]] = None):
        """
        DialogueOrchestratorを初期化

        Args:
            capture: 音声認識アダプター
            synthesizer: 音声合成アダプター
            responder: 応答生成サービス
            task_store: タスクストア（省略時はタスク操作不可）
            config: 対話制御設定
            context_store: 対話コンテキストストア（複数セッションで共有可能、キーで分離）
            session_key: コンテキストキー（省略時は user_id、それもなければ "anonymous"）
            user_id: ユーザーID
            archive: 会話ログの永続化先
            classifier: 意図分類器（差し替え可能）
            local_responder: ローカル応答
            mode: 初期入力モード
            on_state_change: 状態遷移時のコールバック（旧状態, 新状態）
            on_reveal: 単語表示中テキストのコールバック
            on_turn: 会話ターン追加時のコールバック
            on_tone: 効果音（"start" / "stop"）のコールバック
        """
        self.logger = logging.getLogger(__name__)
        self.config = config or DialogueConfig()
        self.capture = capture
        self.state = DialogueState.DORMANT
        self.mode = mode
        self.user_id = user_id
        self.session_key = session_key or user_id or "anonymous"

        self.on_state_change = on_state_change
        self.on_tone = on_tone

        self.generation = Generation()
        self.timers = SessionTimers()

        cfg = self.config
        self.wake_gate = WakeWordGate(cfg.wake_phrases, cfg.wake_max_words)
        self.barge_in = BargeInClassifier(cfg.stop_words, cfg.supersede_min_chars)
        self.debouncer = SilenceCommitDebouncer(self.timers, cfg.silence_commit_delay, self._on_silence)
        self.classifier = classifier or KeywordIntentClassifier(cfg.continuation_phrases)
        self.context_store = context_store or ContextStore(cfg.excerpt_length)
        self.log = ConversationLog(cfg.display_log_limit, archive=archive, on_append=on_turn)
        self.dispatcher = CommandDispatcher(
            classifier=self.classifier,
            local=local_responder or LocalResponder(),
            responder=responder,
            task_store=task_store,
            context_store=self.context_store,
            log=self.log,
            session_key=self.session_key,
            user_id=user_id,
            fallback_message=cfg.fallback_message,
        )
        self.playback = ResponsePlayback(self.timers, synthesizer, cfg.word_reveal_interval, on_reveal)

        self._exchange_task: Optional[asyncio.Task] = None
        # interim 断片で起動した場合、その発話の final までは捨てる
        self._drop_until_final = False

    # ================================================================================
    # 状態
    # ================================================================================

    @property
    def transcript_buffer(self):
        return list(self.debouncer.buffer)

    @property
    def active_timers(self):
        return self.timers.armed()

    def set_state(self, new_state: DialogueState) -> bool:
        """
        状態遷移（検証付き）

        Returns:
            遷移した場合 True。同じ状態への遷移や不正な遷移は no-op で False
        """
        if new_state is self.state:
            return False
        if not StateTransition.is_valid_transition(self.state, new_state):
            allowed = [s.name for s in StateTransition.get_allowed_transitions(self.state)]
            self.logger.warning(
                f"Invalid state transition: {self.state.name} → {new_state.name} "
                f"(allowed: {allowed})"
            )
            return False

        old_state = self.state
        self.state = new_state
        self.logger.info(f"State transition: {old_state.name} → {new_state.name}")
        if self.on_state_change:
            self.on_state_change(old_state, new_state)
        return True

    def _tone(self, name: str) -> None:
        if self.on_tone:
            self.on_tone(name)

    # ================================================================================
    # 起動・モード切替
    # ================================================================================

    def activate(self) -> bool:
        """
        セッションを起動（明示操作またはウェイクワード）

        前のセッションのタイマーと処理中のリクエストをすべて破棄してから
        音声認識を開始します。

        Returns:
            聞き取りを開始した場合 True
        """
        if self.mode is InputMode.TEXT:
            self.logger.warning("Activation ignored in text mode")
            return False

        self._teardown()
        if not self._start_capture():
            return False

        self.set_state(DialogueState.LISTENING)
        self._tone(TONE_START)
        self._arm_idle()
        return True

    def listen_for_wake_word(self) -> bool:
        """休止状態のまま音声認識を開始し、ウェイクワードを待つ"""
        if self.mode is InputMode.TEXT:
            return False
        return self._start_capture()

    def set_mode(self, mode: InputMode) -> None:
        """
        入力モードを切り替える

        聞き取り・処理・発話中のすべての動作を中断し、休止状態に戻ります。
        """
        if mode is self.mode:
            return
        self.logger.info(f"Switching input mode: {self.mode.name} → {mode.name}")
        self.mode = mode
        self.abort()
        self.capture.stop()
        self.set_state(DialogueState.DORMANT)

    def _start_capture(self) -> bool:
        if self.capture.is_capturing:
            return True
        try:
            self.capture.start()
        except CaptureUnavailableError as e:
            self._degrade_to_text(e)
            return False
        return True

    def capture_failed(self, error: str) -> None:
        """音声認識側から利用不可（権限拒否など）を通知されたときに呼ぶ"""
        if self.mode is InputMode.TEXT:
            return
        self._degrade_to_text(CaptureUnavailableError(error))

    def _degrade_to_text(self, error: Exception) -> None:
        self.logger.warning(f"Speech capture unavailable, falling back to text mode: {error}")
        self.mode = InputMode.TEXT
        self._teardown()
        self.set_state(DialogueState.DORMANT)
        self.log.append(Role.SYSTEM, CAPTURE_UNAVAILABLE_MESSAGE)

    # ================================================================================
    # 入力
    # ================================================================================

    def handle_fragment(self, fragment: TranscriptFragment) -> None:
        """
        音声認識の断片を処理（到着順に呼ばれる）

        - DORMANT: ウェイクワード判定のみ
        - LISTENING: バッファに追加し、無音タイマーと無操作タイマーを再設定
        - PROCESSING / SPEAKING: デバウンスせず即座に割り込み判定
        """
        text = fragment.text.strip()
        if not text:
            return

        if self.state is DialogueState.DORMANT:
            if self.wake_gate.enabled_for(self.mode) and self.wake_gate.detect(text):
                self.logger.info(f"Wake word detected: '{text}'")
                # ウェイクワードを含む発話は最初のコマンドとして扱わない
                if self.activate() and not fragment.is_final:
                    self._drop_until_final = True
            return

        if self.state is DialogueState.LISTENING:
            if self._drop_until_final:
                self._drop_until_final = not fragment.is_final
                self.logger.debug(f"Dropping rest of wake utterance: '{text}'")
            else:
                self.debouncer.push(fragment, wrap=self.generation.guard)
            self._arm_idle()
            return

        if self.state in (DialogueState.PROCESSING, DialogueState.SPEAKING):
            self._handle_barge_in(fragment)

    def submit_text(self, text: str) -> None:
        """テキスト入力を確定済みコマンドとして処理（進行中の動作は中断）"""
        text = text.strip()
        if not text:
            return
        self.abort()
        self._commit(text)

    def _handle_barge_in(self, fragment: TranscriptFragment) -> None:
        text = fragment.text.strip()
        kind = self.barge_in.classify(text)
        if kind is InterruptKind.NONE:
            return

        self.logger.info(f"Barge-in ({kind.name}): '{text}'")
        self.abort()
        if kind is InterruptKind.SUPERSEDE:
            # 割り込み断片をバッファに置き、猶予中に届いた改訂（final）で上書きさせる
            self.debouncer.push(fragment, wrap=self.generation.guard)
            self.timers.arm(RESUBMIT, self.config.barge_in_grace_delay,
                            self.generation.guard(self._resubmit))

    def _resubmit(self) -> None:
        command = self.debouncer.flush()
        self.debouncer.cancel()
        if command is not None:
            self._commit(command)

    # ================================================================================
    # 確定・処理
    # ================================================================================

    def _on_silence(self) -> None:
        if self.state is not DialogueState.LISTENING:
            return
        command = self.debouncer.flush()
        if command is None:
            self.logger.debug("Silence timer fired with empty buffer, still listening")
            return
        self._commit(command)

    def _commit(self, command: str) -> None:
        if not self.set_state(DialogueState.COMMITTING):
            self.logger.warning(f"Cannot commit '{command}' from {self.state.name}")
            return
        self.logger.info(f"Committed command: '{command}'")
        self.timers.disarm(IDLE)
        self.set_state(DialogueState.PROCESSING)
        self._exchange_task = asyncio.create_task(self._run_exchange(command, self.generation.value))

    async def _run_exchange(self, command: str, generation: int) -> None:
        """
        1回のやり取り（振り分け → 表示 → 音声合成 → 再聴取予約）

        各 await の後で世代を確認し、古ければ何もせずに終了します。
        """
        try:
            history = self.log.recent(self.config.history_turns)
            intent = self.classifier.classify(command)
            if intent not in (Intent.STOP, Intent.CLEAR_CONVERSATION):
                self.log.append(Role.USER, command)

            result = await self.dispatcher.dispatch(command, history, intent)
            if not self.generation.is_current(generation):
                self.logger.debug(f"Discarding stale response for '{command}'")
                return

            if result.aborted:
                self.abort()
                return

            if result.record_context:
                self.context_store.update(self.session_key, result.text, command, result.topic_hint)

            self.set_state(DialogueState.SPEAKING)
            await self.playback.reveal(result.text, self.generation.guard)
            if not self.generation.is_current(generation):
                return

            self.log.append(Role.ASSISTANT, result.text)
            await self.playback.speak(result.text)
            if not self.generation.is_current(generation):
                return

            self._finish_exchange()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"Exchange failed for '{command}': {e}", exc_info=True)
            if self.generation.is_current(generation):
                self.abort()
        finally:
            if self._exchange_task is _current_task():
                self._exchange_task = None

    def _finish_exchange(self) -> None:
        self.capture.stop()
        self.set_state(DialogueState.DORMANT)
        if self.mode is InputMode.VOICE:
            self.timers.arm(RELISTEN, self.config.relisten_delay, self.generation.guard(self._relisten))

    def _relisten(self) -> None:
        if self.mode is not InputMode.VOICE or self.state is not DialogueState.DORMANT:
            return
        if not self._start_capture():
            return
        self.set_state(DialogueState.LISTENING)
        self._tone(TONE_START)
        self._arm_idle()

    # ================================================================================
    # 無操作タイムアウト
    # ================================================================================

    def _arm_idle(self) -> None:
        self.timers.arm(IDLE, self.config.idle_timeout, self.generation.guard(self._on_idle_timeout))

    def _on_idle_timeout(self) -> None:
        if self.state is not DialogueState.LISTENING:
            return
        self.logger.info(f"Inactivity timeout ({self.config.idle_timeout}s). Returning to dormant.")
        self.timers.disarm_all()
        self.debouncer.cancel()
        self.capture.stop()
        self.set_state(DialogueState.DORMANT)
        self.log.append(Role.SYSTEM, IDLE_STOP_MESSAGE)
        self._tone(TONE_STOP)

    # ================================================================================
    # 中断
    # ================================================================================

    def _teardown(self) -> None:
        """世代を進め、タイマー・バッファ・処理中のやり取り・再生をすべて破棄"""
        self.generation.bump()
        self.timers.disarm_all()
        self.debouncer.cancel()
        self._drop_until_final = False

        task = self._exchange_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        self._exchange_task = None

        if self.playback.cancel():
            self.logger.debug("Speech playback stopped")

    def _abort_target(self) -> DialogueState:
        if self.state is DialogueState.DORMANT:
            return DialogueState.DORMANT
        if (self.mode is InputMode.TEXT or self.config.require_reactivation
                or not self.capture.is_capturing):
            return DialogueState.DORMANT
        return DialogueState.LISTENING

    def abort(self) -> None:
        """
        進行中の動作をすべて中断（何度呼んでも同じ終状態）

        音声合成を止め、処理中のリクエストをキャンセルし、全タイマーを解除して
        LISTENING（または DORMANT）に戻ります。
        """
        interrupted = self.state in (DialogueState.COMMITTING, DialogueState.PROCESSING, DialogueState.SPEAKING)
        target = self._abort_target()
        self._teardown()
        self.set_state(target)
        if self.state is DialogueState.LISTENING:
            self._arm_idle()
        if interrupted:
            self._tone(TONE_STOP)

    def clear_conversation(self) -> None:
        """会話ログとコンテキストを消去（処理中・発話中のやり取りも破棄）"""
        self.abort()
        self.log.clear()
        self.context_store.reset(self.session_key)

    async def close(self) -> None:
        """セッションを破棄（画面遷移・終了時）"""
        self.logger.info("Closing dialogue session")
        task = self._exchange_task
        self._teardown()
        self.capture.stop()
        self.set_state(DialogueState.DORMANT)
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.log.archive is not None:
            await self.log.archive.flush()
