"""
Tests for LoggerManager.
"""

import pytest
from loguru import logger

from loopagent.utils.logger import LoggerManager


@pytest.fixture
def fresh_manager(monkeypatch):
    """A LoggerManager built from scratch, with only the SDK's handlers removed afterwards."""
    monkeypatch.setattr(LoggerManager, "_instance", None)
    monkeypatch.setattr(LoggerManager, "_initialized", False)
    monkeypatch.setenv("LOOPAGENT_LOG_LEVEL", "INFO")
    manager = LoggerManager()
    yield manager
    for handler_id in manager._handler_ids:
        logger.remove(handler_id)


class TestLoggerManager:
    def test_host_sinks_survive_initialization(self, monkeypatch):
        messages = []
        sink_id = logger.add(lambda m: messages.append(str(m)), format="{message}")
        monkeypatch.setattr(LoggerManager, "_instance", None)
        monkeypatch.setattr(LoggerManager, "_initialized", False)
        monkeypatch.setenv("LOOPAGENT_LOG_LEVEL", "SILENT")
        try:
            manager = LoggerManager()
            manager.get_logger("host").warning("still here")
            manager.set_level("SILENT")
            manager.get_logger("host").warning("and here")
        finally:
            logger.remove(sink_id)

        assert [m.strip() for m in messages] == ["still here", "and here"]

    def test_set_level_replaces_own_handlers(self, fresh_manager):
        before = list(fresh_manager._handler_ids)

        fresh_manager.set_level("debug")

        assert fresh_manager.log_level == "DEBUG"
        assert len(fresh_manager._handler_ids) == len(before)
        assert set(fresh_manager._handler_ids).isdisjoint(before)

    def test_silent_installs_nothing(self, fresh_manager):
        fresh_manager.set_level("SILENT")
        assert fresh_manager._handler_ids == []
