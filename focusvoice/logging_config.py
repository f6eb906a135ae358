"""ロギング設定

focusvoice のログをファイル（日次ローテーション）と標準出力に出します。
状態遷移・タイマー・割り込みのログは時系列で追えることが重要なため、
全ハンドラーで同じフォーマット（ミリ秒付き）を使います。
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Union

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "focusvoice.log"
BACKUP_DAYS = 7

# 接続ごと・リクエストごとに DEBUG/INFO を大量に出すライブラリ
NOISY_LOGGERS = ("websockets", "httpx", "httpcore")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(log_dir: Union[str, Path] = "logs", level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    ルートロガーを初期化

    何度呼んでもハンドラーは2つ（ファイル・標準出力）だけになります。

    Args:
        log_dir: ログ出力ディレクトリ（なければ作成）
        level: ログレベル（数値または "DEBUG" などの名前。不明な名前は INFO）

    Returns:
        ルートロガー

    Note:
        websockets / httpx のログは WARNING 以上に絞ります。
        ブリッジの断片受信やHTTP通信は focusvoice 側のログで追えるためです。
    """
    level = _resolve_level(level)
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = TimedRotatingFileHandler(
        log_path / LOG_FILE_NAME,
        when="midnight",
        backupCount=BACKUP_DAYS,
        encoding="utf-8",
    )
    console_handler = logging.StreamHandler(sys.stdout)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.info(f"Logging initialized (log_dir={log_path}, level={logging.getLevelName(level)})")
    return root_logger
