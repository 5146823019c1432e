"""
下载任务队列

实现优先级队列、任务去重、队列状态监控。
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Dict, Optional
from enum import Enum


class Priority(Enum):
    """下载优先级"""

    HIGH = 0
    NORMAL = 1
    LOW = 2


@dataclass(order=True)
class DownloadTask:
    """下载任务（同一优先级内按入队顺序出队）"""

    priority: int
    sequence: int
    url: str = field(compare=False)
    filename: str = field(compare=False)
    download_dir: str = field(compare=False)
    hashes: Dict[str, str] = field(default_factory=dict, compare=False)
    category: str = field(default="mods", compare=False)


class DownloadQueue:
    """下载队列"""

    def __init__(self):
        self._queue: asyncio.PriorityQueue = asyncio.PriorityQueue()
        self._tasks: set[str] = set()  # 用于去重
        self._counter = itertools.count()
        self._total_queued = 0

    async def put(
        self,
        url: str,
        filename: str,
        download_dir: str,
        hashes: Optional[Dict[str, str]] = None,
        category: str = "mods",
        priority: Priority = Priority.NORMAL,
    ) -> bool:
        """
        添加任务到队列

        Returns:
            True 如果任务是新添加的，False 如果是重复任务
        """
        task_key = f"{url}:{filename}"

        if task_key in self._tasks:
            return False

        self._tasks.add(task_key)
        task = DownloadTask(
            priority=priority.value,
            sequence=next(self._counter),
            url=url,
            filename=filename,
            download_dir=download_dir,
            hashes=dict(hashes or {}),
            category=category,
        )
        await self._queue.put(task)
        self._total_queued += 1
        return True

    async def get(self) -> DownloadTask:
        """获取下一个任务"""
        return await self._queue.get()

    def task_done(self):
        """标记任务完成"""
        self._queue.task_done()

    def qsize(self) -> int:
        """获取队列大小"""
        return self._queue.qsize()

    def empty(self) -> bool:
        """检查队列是否为空"""
        return self._queue.empty()

    async def join(self):
        """等待所有任务完成"""
        await self._queue.join()

    def is_duplicate(self, url: str, filename: str) -> bool:
        """检查是否是重复任务"""
        return f"{url}:{filename}" in self._tasks

    def get_stats(self) -> dict:
        """获取队列统计"""
        return {
            "pending": self.qsize(),
            "total_queued": self._total_queued,
        }
