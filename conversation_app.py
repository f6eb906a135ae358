#!/usr/bin/env python3
"""
音声対話アプリケーション

ブラウザブリッジ（音声認識・音声合成を担当するページ）にWebSocketで接続し、
DialogueOrchestrator で音声対話を制御します。標準入力からテキストでも
話しかけられます。

動作フロー:
1. ブラウザブリッジに接続
2. assistant画面ではウェイクワード待ち、chat画面では即座に聞き取り開始
3. コマンドを確定して振り分け、応答を表示・読み上げ
4. 読み上げ後に再び聞き取り、10秒無操作で休止
5. Ctrl+C または /quit で終了

標準入力コマンド:
    /voice  音声入力モード
    /text   テキスト入力モード
    /listen 聞き取り開始
    /stop   進行中の動作を中断
    /clear  会話をクリア
    /quit   終了
    それ以外はテキストコマンドとして処理
"""

import asyncio
import logging
import sys

import config
from focusvoice.bridge_client import BridgeClient
from focusvoice.context_store import JsonConversationArchive
from focusvoice.logging_config import setup_logging
from focusvoice.orchestrator import DialogueOrchestrator
from focusvoice.responder_client import HttpResponseGenerator
from focusvoice.state_machine import InputMode
from focusvoice.task_client import HttpTaskStore

# ロギング初期化
setup_logging(config.LOG_DIR, config.LOG_LEVEL)
logger = logging.getLogger(__name__)


class ConversationApp:
    """
    音声対話アプリケーション管理クラス

    Attributes:
        bridge (BridgeClient): ブラウザブリッジクライアント
        orchestrator (DialogueOrchestrator): 対話セッション
        running (bool): 実行中フラグ
    """
    def __init__(self):
        self.logger = logging.getLogger(__name__)
        settings = config.app_config
        self.running = True

        self.bridge = BridgeClient(
            settings.bridge.url,
            on_fragment=self.handle_fragment,          # 認識断片受信時
            on_capture_error=self.handle_capture_error,  # 認識エラー時
            max_reconnect_attempts=settings.bridge.max_reconnect_attempts,
            reconnect_delay=settings.bridge.reconnect_delay,
        )

        self.archive = JsonConversationArchive(
            settings.paths.conversation_archive, settings.dialogue.persisted_log_limit
        )

        self.orchestrator = DialogueOrchestrator(
            capture=self.bridge,
            synthesizer=self.bridge,
            responder=HttpResponseGenerator(settings.responder.url, settings.responder.timeout),
            task_store=HttpTaskStore(settings.tasks.base_url, settings.tasks.timeout),
            config=settings.dialogue,
            user_id=settings.user_id,
            archive=self.archive,
            on_state_change=lambda old, new: self.logger.debug(f"UI state: {new.name.lower()}"),
            on_turn=lambda turn: print(f"{turn.role.value.capitalize()}: {turn.text}"),
            on_tone=lambda tone: self.logger.debug(f"Tone: {tone}"),
        )

    def handle_fragment(self, fragment):
        self.logger.debug(f"Fragment: {fragment.text!r} (final={fragment.is_final})")
        self.orchestrator.handle_fragment(fragment)

    def handle_capture_error(self, error):
        if not self.bridge.capture_supported:
            self.orchestrator.capture_failed(error)

    async def run(self):
        """
        アプリケーションのメインループ

        ブリッジに接続し、標準入力からのコマンドを処理します。
        """
        self.logger.info(f"Conversation App Started (surface={config.SURFACE})")

        try:
            await self.bridge.connect()
        except RuntimeError as e:
            self.logger.error(f"Failed to connect: {e}")
            self.orchestrator.capture_failed(str(e))

        if config.SURFACE == "chat":
            self.orchestrator.activate()
        else:
            self.orchestrator.listen_for_wake_word()

        loop = asyncio.get_running_loop()
        while self.running:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            self.handle_console_line(line.strip())

        await self.cleanup()

    def handle_console_line(self, line):
        if not line:
            return
        if line == "/quit":
            self.running = False
        elif line == "/voice":
            self.orchestrator.set_mode(InputMode.VOICE)
        elif line == "/text":
            self.orchestrator.set_mode(InputMode.TEXT)
        elif line == "/listen":
            self.orchestrator.activate()
        elif line == "/stop":
            self.orchestrator.abort()
        elif line == "/clear":
            self.orchestrator.clear_conversation()
        else:
            self.orchestrator.submit_text(line)

    async def cleanup(self):
        self.logger.info("Cleaning up conversation app...")
        await self.orchestrator.close()
        await self.bridge.close()
        self.archive.close()
        self.logger.info("Conversation app exited")


if __name__ == "__main__":
    app = ConversationApp()
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
    except Exception as e:
        logger.error(f"Application error: {e}", exc_info=True)
