"""Test log level filtering, especially spew level."""

import tempfile
from pathlib import Path

import pytest

from histfmt.core.log import (
    LEVELS,
    ConsoleSink,
    FileSink,
    OTLPSink,
    level_name,
    setup_logger,
)


@pytest.fixture
def temp_log_dir():
    """Create temporary directory for log files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def emit_all(logger):
    logger.spew("SPEW message")
    logger.trace("TRACE message")
    logger.debug("DEBUG message")
    logger.info("INFO message")
    logger.warn("WARN message")
    logger.error("ERROR message")
    logger.close()


def file_logger(temp_log_dir, name, level):
    log_file = temp_log_dir / name
    logger = setup_logger(
        log_root=temp_log_dir,
        run_name="test",
        console=ConsoleSink(enabled=False),
        otlp=OTLPSink(enabled=False),
        file=FileSink(enabled=True, level=level, path=str(log_file)),
    )
    return logger, log_file


@pytest.mark.parametrize(
    "level, included, excluded",
    [
        ("spew", ["SPEW", "TRACE", "DEBUG", "INFO"], []),
        ("trace", ["TRACE", "DEBUG", "INFO"], ["SPEW"]),
        ("debug", ["DEBUG", "INFO", "WARN"], ["SPEW", "TRACE"]),
        ("info", ["INFO", "WARN", "ERROR"], ["SPEW", "TRACE", "DEBUG"]),
        ("error", ["ERROR"], ["DEBUG", "INFO", "WARN"]),
    ],
)
def test_file_level_filtering(temp_log_dir, level, included, excluded):
    logger, log_file = file_logger(temp_log_dir, f"{level}.log", level)
    emit_all(logger)

    content = log_file.read_text()
    for name in included:
        assert f"{name} message" in content
    for name in excluded:
        assert f"{name} message" not in content


def test_sink_inherits_logger_level(temp_log_dir):
    log_file = temp_log_dir / "inherit.log"
    logger = setup_logger(
        log_root=temp_log_dir,
        run_name="test",
        console=ConsoleSink(enabled=False),
        file=FileSink(enabled=True, path=str(log_file)),
        level="warn",
    )
    emit_all(logger)

    content = log_file.read_text()
    assert "INFO message" not in content
    assert "WARN message" in content


def test_log_by_level_name(temp_log_dir):
    logger, log_file = file_logger(temp_log_dir, "named.log", "trace")
    logger.log("spew", "named spew")
    logger.log("trace", "named trace")
    logger.log("info", "named info")
    logger.close()

    content = log_file.read_text()
    assert "named spew" not in content
    assert "named trace" in content
    assert "named info" in content


def test_level_name_round_trips():
    for name, number in LEVELS.items():
        assert level_name(number) == name


def test_default_file_path_uses_run_name(temp_log_dir):
    logger = setup_logger(
        log_root=temp_log_dir,
        run_name="myrepo",
        console=ConsoleSink(enabled=False),
        file=FileSink(enabled=True),
    )
    logger.info("where am I")
    logger.close()

    log_file = temp_log_dir / "myrepo" / "histfmt.log"
    assert "where am I" in log_file.read_text()
