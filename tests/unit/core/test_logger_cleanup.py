"""Tests for logger cleanup cascade via BaseCloseable."""

import pytest

from histfmt.core.log import ConsoleSink, FileSink, Logger, OTLPSink


def make_logger(tmp_path):
    logger = Logger(
        console=ConsoleSink(enabled=False),
        file=FileSink(enabled=True, path=str(tmp_path / "test.log")),
        otlp=OTLPSink(enabled=False),
    )
    logger.setup(log_root=tmp_path, run_name="test")
    return logger


def test_logger_closes_file_via_context_manager(tmp_path):
    logger = make_logger(tmp_path)
    assert not logger.file._file.closed

    with logger:
        logger.info("test message")

    assert logger.file._file.closed
    assert "test message" in (tmp_path / "test.log").read_text()


def test_logger_closes_on_exception(tmp_path):
    logger = make_logger(tmp_path)

    with pytest.raises(ValueError), logger:
        logger.info("before exception")
        raise ValueError("test exception")

    assert logger.file._file.closed


def test_config_cascade_closes_logger(tmp_path):
    """Config.close() reaches the sinks of its logger."""
    from histfmt.core.config import Config

    config = Config(
        log_root=tmp_path,
        logger=Logger(
            console=ConsoleSink(enabled=False),
            file=FileSink(enabled=True, path=str(tmp_path / "cfg.log")),
        ),
    )
    assert not config.logger.file._file.closed

    config.close()

    assert config.logger.file._file.closed


def test_close_twice_is_harmless(tmp_path):
    logger = make_logger(tmp_path)
    logger.close()
    logger.close()
