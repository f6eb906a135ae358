"""
focusvoice - 音声対話オーケストレーター

音声認識の断片ストリームを一貫した音声対話に変換するパッケージです。
ウェイクワード起動、無音デバウンスによるコマンド確定、発話中の割り込み、
継続コマンドの文脈解決、応答の表示と音声合成、無操作タイムアウトを
asyncio上のタイマー駆動ステートマシンとして実装しています。

主要モジュール:
- orchestrator: 対話セッション（状態遷移・タイマー・中断の統括）
- dispatcher: コマンドの分類と振り分け
- context_store: 対話コンテキストと会話ログ
- bridge_client: ブラウザ側の音声認識・音声合成とのWebSocketブリッジ
- responder_client / task_client: 応答生成サービスとタスクストアのHTTPクライアント

システムアーキテクチャ:
1. bridge_client が認識断片を受け取り orchestrator に渡す
2. orchestrator がコマンドを確定し dispatcher で振り分ける
3. 応答を単語ずつ表示してから bridge_client で読み上げ、再び聞き取りに戻る
"""

from .bridge_client import BridgeClient
from .config_models import AppConfig, DialogueConfig
from .orchestrator import DialogueOrchestrator
from .responder_client import HttpResponseGenerator
from .state_machine import DialogueState, InputMode
from .task_client import HttpTaskStore

__all__ = [
    'AppConfig',
    'BridgeClient',
    'DialogueConfig',
    'DialogueOrchestrator',
    'DialogueState',
    'HttpResponseGenerator',
    'HttpTaskStore',
    'InputMode',
]

__version__ = '1.0.0'
