"""対話セッション状態管理

このモジュールは、音声対話セッションの状態遷移を明示的に管理します。
isListening / isProcessing / isSpeaking のようなフラグの組み合わせではなく、
単一の列挙型で状態を表現することで「聞きながら発話中」のような
ありえない組み合わせを排除します。
"""

from enum import Enum, auto
import logging

logger = logging.getLogger(__name__)


class DialogueState(Enum):
    """
    対話セッション状態定義

    Attributes:
        DORMANT: 休止中（ウェイクワード待ち、またはアイドル）
        LISTENING: 聞いている（ユーザー発話の断片を蓄積中）
        COMMITTING: 確定中（蓄積した断片をコマンド文字列に固定中）
        PROCESSING: 考え中（コマンドの分類・応答生成中）
        SPEAKING: 発話中（テキスト表示と音声合成の再生中）
    """
    DORMANT = auto()     # 休止中（ウェイクワード待ち）
    LISTENING = auto()   # 聞いている
    COMMITTING = auto()  # 確定中
    PROCESSING = auto()  # 考え中
    SPEAKING = auto()    # 発話中


class InputMode(Enum):
    """入力モード（音声とテキストは排他）"""
    VOICE = auto()
    TEXT = auto()


class StateTransition:
    """
    状態遷移管理

    対話セッションの状態遷移ルールを定義します。
    定義されていない遷移は呼び出し側で no-op として扱われ、例外にはなりません。
    """

    # 許可される状態遷移の定義
    # 各状態から遷移可能な状態のセット
    ALLOWED_TRANSITIONS = {
        DialogueState.DORMANT: {DialogueState.LISTENING, DialogueState.COMMITTING},
        DialogueState.LISTENING: {DialogueState.COMMITTING, DialogueState.DORMANT},
        DialogueState.COMMITTING: {DialogueState.PROCESSING, DialogueState.LISTENING, DialogueState.DORMANT},
        DialogueState.PROCESSING: {DialogueState.SPEAKING, DialogueState.LISTENING, DialogueState.DORMANT},
        DialogueState.SPEAKING: {DialogueState.LISTENING, DialogueState.DORMANT},
    }

    @classmethod
    def is_valid_transition(cls, from_state: DialogueState, to_state: DialogueState) -> bool:
        """
        状態遷移の妥当性チェック

        Args:
            from_state: 現在の状態
            to_state: 遷移先の状態

        Returns:
            True: 遷移可能, False: 遷移不可

        Examples:
            >>> StateTransition.is_valid_transition(DialogueState.DORMANT, DialogueState.LISTENING)
            True
            >>> StateTransition.is_valid_transition(DialogueState.DORMANT, DialogueState.SPEAKING)
            False
        """
        return to_state in cls.ALLOWED_TRANSITIONS.get(from_state, set())

    @classmethod
    def get_allowed_transitions(cls, from_state: DialogueState) -> set:
        """
        指定した状態から遷移可能な状態の一覧を取得

        Args:
            from_state: 現在の状態

        Returns:
            遷移可能な状態のセット
        """
        return cls.ALLOWED_TRANSITIONS.get(from_state, set())
