"""
Tests for rate-limited logging.
"""
import logging
import time
from unittest.mock import MagicMock

from bridge_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


def _mock_logger(name="bridge_sdk.test"):
    mock_logger = MagicMock()
    mock_logger.name = name
    return mock_logger


def test_identical_messages_are_suppressed():
    mock_logger = _mock_logger()

    assert rate_limited_log("Waiting for wallet", level="warning", logger_instance=mock_logger)
    assert not rate_limited_log("Waiting for wallet", level="warning", logger_instance=mock_logger)

    mock_logger.warning.assert_called_once_with("Waiting for wallet")


def test_level_and_message_are_part_of_the_key():
    mock_logger = _mock_logger()

    rate_limited_log("Test message", level="warning", logger_instance=mock_logger)
    rate_limited_log("Test message", level="error", logger_instance=mock_logger)
    rate_limited_log("Different message", level="warning", logger_instance=mock_logger)

    mock_logger.error.assert_called_once_with("Test message")
    assert mock_logger.warning.call_count == 2


def test_loggers_are_limited_independently():
    first, second = _mock_logger("a"), _mock_logger("b")

    rate_limited_log("same", logger_instance=first)
    rate_limited_log("same", logger_instance=second)

    first.info.assert_called_once_with("same")
    second.info.assert_called_once_with("same")


def test_message_is_logged_again_after_interval():
    mock_logger = _mock_logger()

    rate_limited_log("tick", interval=1, logger_instance=mock_logger)
    time.sleep(1.1)
    rate_limited_log("tick", interval=1, logger_instance=mock_logger)

    assert mock_logger.info.call_count == 2


def test_reset_forgets_suppressed_messages():
    mock_logger = _mock_logger()

    rate_limited_log("tick", logger_instance=mock_logger)
    reset_rate_limits()
    rate_limited_log("tick", logger_instance=mock_logger)

    assert mock_logger.info.call_count == 2


def test_default_logger(caplog):
    with caplog.at_level(logging.INFO, logger="bridge_sdk._rate_limited_log"):
        rate_limited_log("from the default logger")
    assert "from the default logger" in caplog.text
