import logging
from logging.handlers import TimedRotatingFileHandler

import pytest

from focusvoice.logging_config import LOG_FILE_NAME, LOG_FORMAT, NOISY_LOGGERS, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    noisy = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}
    yield
    for name, noisy_level in noisy.items():
        logging.getLogger(name).setLevel(noisy_level)
    for handler in list(root.handlers):
        # setup_logging が追加したハンドラーだけを外す
        if handler.formatter is not None and handler.formatter._fmt == LOG_FORMAT:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_setup_logging_writes_rotating_file(tmp_path, restore_root_logger):
    log_dir = tmp_path / "logs"
    root = setup_logging(str(log_dir), logging.DEBUG)

    file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].backupCount == 7

    logging.getLogger("focusvoice.test").debug("hello from test")
    file_handlers[0].flush()
    assert "hello from test" in (log_dir / LOG_FILE_NAME).read_text()


def test_setup_logging_does_not_duplicate_handlers(tmp_path, restore_root_logger):
    setup_logging(str(tmp_path), logging.INFO)
    root = setup_logging(str(tmp_path), logging.INFO)
    assert len(root.handlers) == 2


def test_level_name_and_library_loggers(tmp_path, restore_root_logger):
    root = setup_logging(tmp_path, "debug")
    assert root.level == logging.DEBUG
    assert logging.getLogger("websockets").level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_name_falls_back_to_info(tmp_path, restore_root_logger):
    assert setup_logging(tmp_path, "chatty").level == logging.INFO
