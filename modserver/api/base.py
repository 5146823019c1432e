from abc import ABC, abstractmethod
from typing import List, Optional

from modserver.models import ModInfo


class ModRegistry(ABC):
    """
    模组注册表能力接口

    解析器只通过这三个方法获取候选版本，不关心背后是内存、本地文件还是网络。
    返回 None（或抛出异常）都会被解析器视为“未找到”。
    """

    @abstractmethod
    async def get_mod(self, mod_id: str, version_expr: str) -> Optional[ModInfo]:
        """
        按 ID 和版本表达式获取匹配的模组版本。
        """
        pass

    @abstractmethod
    async def get_available_versions(self, mod_id: str) -> List[ModInfo]:
        """
        获取模组的所有可用版本。
        """
        pass

    @abstractmethod
    async def get_latest_version(self, mod_id: str) -> Optional[ModInfo]:
        """
        获取模组的最新正式版本。
        """
        pass
