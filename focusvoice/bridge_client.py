"""
ブラウザブリッジ WebSocketクライアント

音声認識と音声合成はブラウザページ側で動作し、このクライアントは
WebSocket経由でそのページと通信します。1本の接続で SpeechCapture と
SpeechSynthesizer の両方の契約を満たします。

イベントフロー:
    送信: capture.start / capture.stop / speech.speak / speech.stop
    受信: transcript / capture.started / capture.stopped / capture.error /
          speech.done / speech.error
"""

import asyncio
import itertools
import json
import logging
from typing import Callable, Dict, Optional, Tuple

import websockets

from .interfaces import CaptureUnavailableError, TranscriptFragment

logger = logging.getLogger(__name__)


class BridgeClient:
    """
    ブラウザブリッジ WebSocketクライアント

    Attributes:
        ws: WebSocket接続
        url (str): 接続URL
        on_fragment (callable): 認識断片（TranscriptFragment）を受け取るコールバック
        on_capture_error (callable): 認識エラー（str）を受け取るコールバック
        capture_supported (bool): ページ側で音声認識が使えるか
        max_reconnect_attempts (int): 最大再接続試行回数
        reconnect_delay (float): 再接続間隔（秒）
    """
    def __init__(self, url: str, on_fragment: Optional[Callable[[TranscriptFragment], None]] = None,
                 on_capture_error: Optional[Callable[[str], None]] = None,
                 max_reconnect_attempts: int = 3, reconnect_delay: float = 2.0):
        self.ws = None
        self.url = url
        self.on_fragment = on_fragment
        self.on_capture_error = on_capture_error
        self.capture_supported = True
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self.logger = logging.getLogger(__name__)

        self._capturing = False
        self._utterance_ids = itertools.count(1)
        self._pending_speech: Dict[int, Tuple[Callable[[], None], Callable[[Exception], None]]] = {}
        self._receive_task: Optional[asyncio.Task] = None

    async def connect(self):
        """
        ブリッジに接続（自動再接続付き）

        Raises:
            RuntimeError: 最大再接続試行回数を超えた場合
        """
        for attempt in range(1, self.max_reconnect_attempts + 1):
            try:
                self.ws = await websockets.connect(self.url)
                self._receive_task = asyncio.create_task(self.receive_loop())
                self.logger.info(f"Connected to speech bridge (attempt {attempt}/{self.max_reconnect_attempts})")
                return
            except (OSError, websockets.exceptions.WebSocketException) as e:
                self.logger.error(f"Connection attempt {attempt}/{self.max_reconnect_attempts} failed: {e}")
                if attempt < self.max_reconnect_attempts:
                    self.logger.info(f"Retrying in {self.reconnect_delay} seconds...")
                    await asyncio.sleep(self.reconnect_delay)
                else:
                    raise RuntimeError(
                        f"Failed to connect to speech bridge after {self.max_reconnect_attempts} attempts"
                    ) from e

    async def send_event(self, event):
        """
        イベントをブリッジに送信

        Note:
            ConnectionClosedOKは正常な切断として無視されます
        """
        if self.ws:
            try:
                await self.ws.send(json.dumps(event))
            except websockets.exceptions.ConnectionClosedOK:
                pass
            except websockets.exceptions.WebSocketException as e:
                self.logger.error(f"Error sending event {event.get('type')}: {e}")

    def _post(self, event):
        asyncio.get_running_loop().create_task(self.send_event(event))

    async def receive_loop(self):
        """
        WebSocketからイベントを受信し続けるループ

        Note:
            このメソッドはconnect()内で自動的にタスクとして起動されます
        """
        try:
            async for message in self.ws:
                try:
                    data = json.loads(message)
                except ValueError:
                    self.logger.warning(f"Ignoring non-JSON bridge message: {message!r}")
                    continue
                self.handle_event(data)
        except websockets.exceptions.ConnectionClosed:
            self.logger.info("Speech bridge connection closed")
        finally:
            self._capturing = False
            self._fail_pending_speech(ConnectionError("speech bridge disconnected"))

    def handle_event(self, data: dict) -> None:
        event_type = data.get("type")
        if event_type != "transcript":
            self.logger.debug(f"Received event: {event_type}")

        if event_type == "transcript":
            if self.on_fragment and self._capturing:
                self.on_fragment(TranscriptFragment(text=data.get("text", ""), is_final=bool(data.get("isFinal"))))

        elif event_type == "capture.started":
            self._capturing = True

        elif event_type == "capture.stopped":
            self._capturing = False

        elif event_type == "capture.error":
            error = data.get("error", "unknown")
            self.logger.error(f"Speech recognition error: {error}")
            self._capturing = False
            if error in ("not-allowed", "service-not-allowed", "unsupported"):
                self.capture_supported = False
            if self.on_capture_error:
                self.on_capture_error(error)

        elif event_type == "speech.done":
            callbacks = self._pending_speech.pop(data.get("id"), None)
            if callbacks:
                callbacks[0]()

        elif event_type == "speech.error":
            callbacks = self._pending_speech.pop(data.get("id"), None)
            if callbacks:
                callbacks[1](RuntimeError(data.get("error", "speech synthesis failed")))

    # ================================================================================
    # SpeechCapture
    # ================================================================================

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    def start(self) -> None:
        if self.ws is None or not self.capture_supported:
            raise CaptureUnavailableError("Speech recognition is not available on the bridge")
        if self._capturing:
            return
        self._capturing = True
        self._post({"type": "capture.start"})

    def stop(self) -> None:
        if not self._capturing:
            return
        self._capturing = False
        self._post({"type": "capture.stop"})

    # ================================================================================
    # SpeechSynthesizer
    # ================================================================================

    def speak(self, text: str, on_complete: Callable[[], None], on_error: Callable[[Exception], None]) -> None:
        if self.ws is None:
            on_error(ConnectionError("speech bridge is not connected"))
            return
        utterance_id = next(self._utterance_ids)
        self._pending_speech[utterance_id] = (on_complete, on_error)
        self._post({"type": "speech.speak", "id": utterance_id, "text": text})

    def stop_speaking(self) -> None:
        # 止めた発話の完了通知は呼ばない
        self._pending_speech.clear()
        self._post({"type": "speech.stop"})

    def _fail_pending_speech(self, error: Exception) -> None:
        pending = list(self._pending_speech.values())
        self._pending_speech.clear()
        for _, on_error in pending:
            on_error(error)

    async def close(self):
        """WebSocket接続を切断"""
        if self.ws:
            await self.ws.close()
        if self._receive_task is not None:
            await asyncio.gather(self._receive_task, return_exceptions=True)
