"""
内存注册表

按 ID 与 provides 别名索引模组版本，既用于本地索引，也用作测试替身。
"""

from typing import Dict, Iterable, List, Optional

from modserver.api.base import ModRegistry
from modserver.exceptions import VersionSelectionError
from modserver.models import ModInfo
from modserver.services.version_selector import find_best_version, find_latest_version


class InMemoryRegistry(ModRegistry):
    """内存模组注册表"""

    def __init__(self, mods: Optional[Iterable[ModInfo]] = None):
        self._mods: Dict[str, List[ModInfo]] = {}
        self._provides: Dict[str, List[ModInfo]] = {}
        for mod in mods or []:
            self.add(mod)

    def add(self, mod: ModInfo) -> None:
        """注册一个模组版本"""
        self._mods.setdefault(mod.id, []).append(mod)
        for alias in mod.provides:
            if alias != mod.id:
                self._provides.setdefault(alias, []).append(mod)

    def __len__(self) -> int:
        return sum(len(versions) for versions in self._mods.values())

    def __contains__(self, mod_id: str) -> bool:
        return mod_id in self._mods or mod_id in self._provides

    @property
    def mod_ids(self) -> List[str]:
        return list(self._mods)

    def _candidates(self, mod_id: str) -> List[ModInfo]:
        # 直接 ID 优先，其次是 provides 别名
        return self._mods.get(mod_id) or self._provides.get(mod_id) or []

    async def get_mod(self, mod_id: str, version_expr: str) -> Optional[ModInfo]:
        candidates = self._candidates(mod_id)
        if not candidates:
            return None
        try:
            return find_best_version(candidates, [version_expr])
        except VersionSelectionError:
            return None

    async def get_available_versions(self, mod_id: str) -> List[ModInfo]:
        return list(self._candidates(mod_id))

    async def get_latest_version(self, mod_id: str) -> Optional[ModInfo]:
        return find_latest_version(self._candidates(mod_id))
