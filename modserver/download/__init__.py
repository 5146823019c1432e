"""
ModServer 下载层

包含下载管理、任务队列、文件校验等功能。
"""

from modserver.download.manager import DownloadManager, DownloadStats
from modserver.download.queue import DownloadQueue, DownloadTask, Priority
from modserver.download.verifier import FileVerifier

__all__ = [
    "DownloadManager",
    "DownloadStats",
    "DownloadQueue",
    "DownloadTask",
    "Priority",
    "FileVerifier",
]
