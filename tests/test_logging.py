"""Tests for setup_logging."""
import logging

import pytest

from climagen import setup_logging


@pytest.fixture
def root_logger():
    """Restore the root logger's handlers and level after the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:

    def test_file_logging_keeps_existing_handlers(self, root_logger, tmp_path):
        before = list(root_logger.handlers)
        path = tmp_path / "experiment.log"

        setup_logging(filename=str(path))
        logging.getLogger("climagen.test").info("hello file")

        assert all(h in root_logger.handlers for h in before)
        file_handlers = [h for h in root_logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        file_handlers[0].flush()
        assert "hello file" in path.read_text()

    def test_same_file_is_not_added_twice(self, root_logger, tmp_path):
        path = str(tmp_path / "experiment.log")

        setup_logging(filename=path)
        setup_logging(filename=path)

        assert sum(isinstance(h, logging.FileHandler) for h in root_logger.handlers) == 1

    def test_level_is_applied(self, root_logger):
        setup_logging(level=logging.DEBUG)
        assert root_logger.level == logging.DEBUG
