import sys

import pytest
from loguru import logger

from modserver.logger import setup_logger


@pytest.fixture(autouse=True)
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_log_file_keeps_debug_below_console_level(tmp_path):
    log_file = tmp_path / "run.log"
    setup_logger(level="WARNING", log_file=log_file, enqueue=False)

    logger.debug("[解析] lithium 0.11.2")
    logger.remove()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert any("DEBUG" in line and "[解析] lithium 0.11.2" in line for line in lines)


def test_log_file_is_overwritten_per_run(tmp_path):
    log_file = tmp_path / "run.log"
    log_file.write_text("stale\n", encoding="utf-8")

    setup_logger(log_file=log_file, enqueue=False)
    logger.info("fresh")
    logger.remove()

    content = log_file.read_text(encoding="utf-8")
    assert "stale" not in content
    assert "fresh" in content


def test_debug_env_selects_debug_level(tmp_path, monkeypatch):
    monkeypatch.setenv("MODSERVER_DEBUG", "1")
    log_file = tmp_path / "run.log"
    setup_logger(log_file=log_file, enqueue=False)
    logger.remove()

    assert "DEBUG 模式已启用" in log_file.read_text(encoding="utf-8")
