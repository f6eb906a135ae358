"""
設定モデル - Pydanticベースの型安全な設定管理

このモジュールは、対話オーケストレーターの設定を型安全に管理します。
環境変数（.envファイル）から自動的に読み込まれ、デフォルト値とバリデーションを提供します。

タイマー値やキーワード集合はすべてここに集約し、呼び出しごとではなく
画面（surface）ごとに設定できるようにしています。
"""

from pathlib import Path
from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# 画面ごとの無音確定ディレイ（秒）
SURFACE_SILENCE_DELAYS = {
    "assistant": 3.0,  # フル音声アシスタント画面
    "chat": 1.5,       # チャット画面
}

FALLBACK_MESSAGE = "I'm experiencing some technical difficulties. Please try again."


class DialogueConfig(BaseModel):
    """
    対話制御設定

    Attributes:
        silence_commit_delay: 最後の断片からコマンド確定までの無音時間（秒）
        idle_timeout: 無操作で休止状態に戻るまでの時間（秒）
        word_reveal_interval: 単語ごとのテキスト表示間隔（秒）
        relisten_delay: 音声合成完了から再聴取までの待ち時間（秒）
        barge_in_grace_delay: 割り込み発話を再投入するまでの猶予（秒）
        require_reactivation: 停止系割り込み後に再アクティベーションを必須にするか
        wake_phrases: ウェイクフレーズ
        wake_max_words: ウェイク判定を行う断片の最大単語数
        stop_words: 停止系割り込みキーワード
        supersede_min_chars: 上書き系割り込みと判定する最小文字数（これより長い断片）
        continuation_phrases: 継続コマンドのフレーズ
        history_turns: 応答生成に渡す直近ターン数
        display_log_limit: メモリ上の会話ログ上限
        persisted_log_limit: 永続化する会話ログ上限
        excerpt_length: 直前応答の抜粋長
        fallback_message: 応答生成失敗時の固定文
    """
    silence_commit_delay: float = Field(default=SURFACE_SILENCE_DELAYS["assistant"], description="無音確定ディレイ（秒）")
    idle_timeout: float = Field(default=10.0, description="無操作タイムアウト（秒）")
    word_reveal_interval: float = Field(default=0.03, description="単語表示間隔（秒）")
    relisten_delay: float = Field(default=1.0, description="再聴取ディレイ（秒）")
    barge_in_grace_delay: float = Field(default=0.3, description="割り込み再投入ディレイ（秒）")
    require_reactivation: bool = Field(default=False, description="停止後に再アクティベーション必須")
    wake_phrases: List[str] = Field(
        default_factory=lambda: ["hello", "hey", "focusflow", "wake up", "assistant", "start listening"],
        description="ウェイクフレーズ"
    )
    wake_max_words: int = Field(default=4, description="ウェイク判定の最大単語数")
    stop_words: List[str] = Field(default_factory=lambda: ["stop", "cancel", "enough"], description="停止キーワード")
    supersede_min_chars: int = Field(default=5, description="上書き割り込みの最小文字数")
    continuation_phrases: List[str] = Field(
        default_factory=lambda: ["another one", "more", "again"],
        description="継続コマンドのフレーズ"
    )
    history_turns: int = Field(default=10, description="応答生成に渡す直近ターン数")
    display_log_limit: int = Field(default=50, description="メモリ上の会話ログ上限")
    persisted_log_limit: int = Field(default=100, description="永続化する会話ログ上限")
    excerpt_length: int = Field(default=100, description="直前応答の抜粋長")
    fallback_message: str = Field(default=FALLBACK_MESSAGE, description="応答生成失敗時の固定文")

    @classmethod
    def for_surface(cls, surface: str, **overrides) -> "DialogueConfig":
        """
        画面種別に応じた設定を生成

        Args:
            surface: "assistant" または "chat"
            **overrides: 個別に上書きする設定値

        Returns:
            DialogueConfig

        Raises:
            ValueError: 未知の画面種別の場合

        Examples:
            >>> DialogueConfig.for_surface("chat").silence_commit_delay
            1.5
        """
        if surface not in SURFACE_SILENCE_DELAYS:
            raise ValueError(f"Unknown surface: {surface}")
        overrides.setdefault("silence_commit_delay", SURFACE_SILENCE_DELAYS[surface])
        return cls(**overrides)


class ResponderConfig(BaseModel):
    """
    応答生成サービス設定

    Attributes:
        url: 応答生成エンドポイントURL
        timeout: HTTPタイムアウト（秒）
    """
    url: str = Field(default="http://localhost:3000/api/voice-command", description="応答生成エンドポイント")
    timeout: float = Field(default=30.0, description="HTTPタイムアウト（秒）")


class TaskStoreConfig(BaseModel):
    """タスクストア設定"""
    base_url: str = Field(default="http://localhost:3000/api/tasks", description="タスクAPIのベースURL")
    timeout: float = Field(default=10.0, description="HTTPタイムアウト（秒）")


class BridgeConfig(BaseModel):
    """
    ブラウザブリッジ設定

    音声認識と音声合成を担当するブラウザページとのWebSocket接続設定です。

    Attributes:
        url: WebSocket接続URL
        max_reconnect_attempts: 最大再接続試行回数
        reconnect_delay: 再接続間隔（秒）
    """
    url: str = Field(default="ws://localhost:8765/speech", description="WebSocket URL")
    max_reconnect_attempts: int = Field(default=3, description="最大再接続試行回数")
    reconnect_delay: float = Field(default=2.0, description="再接続間隔（秒）")


class PathsConfig(BaseModel):
    """
    ファイルパス設定

    Attributes:
        base_dir: プロジェクトルートディレクトリ
        log_dir: ログ出力ディレクトリ
        conversation_archive: 会話ログの保存先（JSON）
    """
    base_dir: Path = Field(default_factory=lambda: Path(__file__).parent.parent, description="ベースディレクトリ")
    log_dir: Optional[Path] = Field(default=None, description="ログディレクトリ")
    conversation_archive: Optional[Path] = Field(default=None, description="会話ログファイル")

    def __init__(self, **data):
        super().__init__(**data)
        # デフォルトパスを設定
        if self.log_dir is None:
            self.log_dir = self.base_dir / "logs"
        if self.conversation_archive is None:
            self.conversation_archive = self.base_dir / "data" / "conversation.json"


class AppConfig(BaseSettings):
    """
    アプリケーション全体設定

    環境変数から自動的に読み込まれる設定を管理します。
    .env ファイルからの読み込みに対応しています。
    ネストした設定は "__" 区切りで指定します（例: DIALOGUE__IDLE_TIMEOUT=15）。

    Attributes:
        user_id: 対話するユーザーID（未設定ならタスク操作は拒否）
        surface: 画面種別（"assistant" / "chat"）
        log_level: ログレベル名
        dialogue: 対話制御設定
        responder: 応答生成サービス設定
        tasks: タスクストア設定
        bridge: ブラウザブリッジ設定
        paths: ファイルパス設定

    Examples:
        >>> config = AppConfig(surface="chat")
        >>> config.dialogue.silence_commit_delay
        1.5
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    user_id: Optional[str] = Field(default=None, description="ユーザーID")
    surface: Literal["assistant", "chat"] = Field(default="assistant", description="画面種別")
    log_level: str = Field(default="INFO", description="ログレベル")

    # ネストされた設定
    dialogue: DialogueConfig = Field(default_factory=DialogueConfig, description="対話制御設定")
    responder: ResponderConfig = Field(default_factory=ResponderConfig, description="応答生成設定")
    tasks: TaskStoreConfig = Field(default_factory=TaskStoreConfig, description="タスクストア設定")
    bridge: BridgeConfig = Field(default_factory=BridgeConfig, description="ブリッジ設定")
    paths: PathsConfig = Field(default_factory=PathsConfig, description="パス設定")

    def __init__(self, **data):
        super().__init__(**data)
        # 無音ディレイが明示されていなければ画面種別から決める
        if "silence_commit_delay" not in self.dialogue.model_fields_set:
            self.dialogue.silence_commit_delay = SURFACE_SILENCE_DELAYS[self.surface]
