"""
設定ファイル - アプリケーション全体の設定を管理

.envファイルを読み込み、pydanticベースの AppConfig を生成します。
エントリースクリプトから使う値は定数としてもエクスポートしています。
"""

from dotenv import load_dotenv

from focusvoice.config_models import AppConfig

# 環境変数を.envファイルから読み込み
load_dotenv()

# グローバル設定インスタンス
app_config = AppConfig()

USER_ID = app_config.user_id
SURFACE = app_config.surface
LOG_DIR = str(app_config.paths.log_dir)
LOG_LEVEL = app_config.log_level
CONVERSATION_ARCHIVE_PATH = str(app_config.paths.conversation_archive)
