import logging

import pytest

from marker2pitch.core.logging_config import LoggingConfig


@pytest.fixture
def clean_logging():
    LoggingConfig.reset()
    yield
    LoggingConfig.reset()


class TestLoggingConfig:
    def test_run_log_written_to_directory(self, tmp_path, clean_logging):
        log_file = LoggingConfig.setup_logging(log_to_file=True, log_level=logging.INFO,
                                               log_dir=str(tmp_path))

        logging.getLogger("marker2pitch.tracking.test").info("[GRID] hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.startswith(str(tmp_path))
        assert "[GRID] hello" in open(log_file, encoding="utf-8").read()

    def test_second_setup_is_noop(self, tmp_path, clean_logging):
        first = LoggingConfig.setup_logging(log_dir=str(tmp_path))
        second = LoggingConfig.setup_logging(log_dir=str(tmp_path / "other"))

        assert first == second

    def test_debug_opens_package_loggers(self, clean_logging):
        LoggingConfig.setup_logging(log_to_file=False, log_level=logging.DEBUG)

        assert logging.getLogger("marker2pitch.detection").level == logging.DEBUG
        assert logging.getLogger("cv2").level == logging.ERROR

    def test_set_module_level(self, clean_logging):
        LoggingConfig.set_module_level("marker2pitch.audio", logging.ERROR)
        assert logging.getLogger("marker2pitch.audio").level == logging.ERROR
        LoggingConfig.set_module_level("marker2pitch.audio", logging.INFO)
