"""
Unit tests for logging setup.
"""

import logging

import pytest

from vocab_lab.logging_config import KEEP_LOG_FILES, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:

    def test_creates_run_log(self, tmp_path, restore_root_logger):
        run_log = setup_logging(log_file=str(tmp_path / "logs" / "vocab.log"))
        logging.getLogger("vocab_lab.test").debug("detail line")

        assert run_log.parent == tmp_path / "logs"
        assert run_log.name.startswith("vocab_")
        assert "detail line" in run_log.read_text(encoding="utf-8")

    def test_prunes_old_logs(self, tmp_path, restore_root_logger):
        for i in range(KEEP_LOG_FILES + 2):
            (tmp_path / f"vocab_2020010{i}_000000.log").write_text("old")

        run_log = setup_logging(log_file=str(tmp_path / "vocab.log"))
        remaining = sorted(p.name for p in tmp_path.glob("vocab_*.log"))

        assert len(remaining) == KEEP_LOG_FILES
        assert run_log.name in remaining
        # Newest old logs survive
        assert "vocab_20200106_000000.log" in remaining
        assert "vocab_20200100_000000.log" not in remaining
