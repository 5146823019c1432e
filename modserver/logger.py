"""
日志模块

控制台日志写到 stderr；可选的运行日志文件记录完整的 DEBUG 输出，
包括依赖解析过程中的 [解析]、[冲突]、[缺失] 等标签行，便于事后排查。
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logger(
    level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
    enqueue: bool = True,
) -> None:
    """
    配置日志输出

    Args:
        level: 控制台日志级别，缺省时由 MODSERVER_DEBUG 环境变量决定
        log_file: 运行日志文件路径，每次运行覆盖写入，始终记录 DEBUG 级别
        enqueue: 是否通过队列写入（线程安全）
    """
    if level is None:
        level = "DEBUG" if os.environ.get("MODSERVER_DEBUG", "0") == "1" else "INFO"
    debug = level == "DEBUG"

    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        enqueue=enqueue,
        colorize=True,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            format=FILE_FORMAT,
            level="DEBUG",
            enqueue=enqueue,
            encoding="utf-8",
            mode="w",
        )
        logger.debug(f"运行日志写入: {path}")

    if debug:
        logger.debug("DEBUG 模式已启用")


__all__ = ["logger", "setup_logger"]
