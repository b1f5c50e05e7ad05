"""Tests for logging setup."""

import logging

from h5p_player.logging_config import LOGGER_NAME, _rotate_log_if_needed, setup_logging


class TestSetupLogging:
    """Test setup_logging function."""

    def test_stream_only(self):
        """Test default setup logs to stderr only."""
        logger = setup_logging(level="debug")

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_log_file_created(self, tmp_path):
        """Test a log directory adds a file handler."""
        log_dir = tmp_path / "logs"

        logger = setup_logging(log_dir)
        logger.info("hello from test")
        for handler in logger.handlers:
            handler.flush()

        log_file = log_dir / "h5p_player.log"
        assert log_file.exists()
        assert "hello from test" in log_file.read_text()
        assert len(logger.handlers) == 2

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        """Test calling setup twice does not duplicate handlers."""
        setup_logging(tmp_path)
        logger = setup_logging(tmp_path)

        assert len(logger.handlers) == 2

    def test_child_loggers_propagate(self):
        """Test module loggers inherit the package configuration."""
        setup_logging(level="WARNING")

        assert logging.getLogger("h5p_player.workers.sync").getEffectiveLevel() == logging.WARNING


class TestRotateLog:
    """Test startup log rotation."""

    def test_missing_file(self, tmp_path):
        """Test rotation of a missing file is a no-op."""
        _rotate_log_if_needed(tmp_path / "app.log")
        assert list(tmp_path.iterdir()) == []

    def test_small_file_not_rotated(self, tmp_path):
        """Test files under the limit stay in place."""
        log_file = tmp_path / "app.log"
        log_file.write_text("small")

        _rotate_log_if_needed(log_file, max_bytes=100)

        assert log_file.read_text() == "small"

    def test_large_file_rotated(self, tmp_path):
        """Test files over the limit shift into numbered backups."""
        log_file = tmp_path / "app.log"
        log_file.write_text("x" * 200)
        (tmp_path / "app.log.1").write_text("older")

        _rotate_log_if_needed(log_file, max_bytes=100, backup_count=3)

        assert not log_file.exists()
        assert (tmp_path / "app.log.1").read_text() == "x" * 200
        assert (tmp_path / "app.log.2").read_text() == "older"

    def test_oldest_backup_dropped(self, tmp_path):
        """Test the backup count is not exceeded."""
        log_file = tmp_path / "app.log"
        log_file.write_text("x" * 200)
        for i in (1, 2):
            (tmp_path / f"app.log.{i}").write_text(f"backup {i}")

        _rotate_log_if_needed(log_file, max_bytes=100, backup_count=2)

        assert sorted(p.name for p in tmp_path.iterdir()) == ["app.log.1", "app.log.2"]
        assert (tmp_path / "app.log.2").read_text() == "backup 1"
