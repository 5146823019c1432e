"""
Modrinth 注册表

通过 ModrinthClient 查询项目与版本，并转换为解析器使用的 ModInfo。
项目和版本列表在实例内缓存，同一次运行中不会重复请求。
"""

from typing import Dict, List, Optional

from loguru import logger

from modserver.api.base import ModRegistry
from modserver.exceptions import InvalidVersionRangeError, VersionSelectionError
from modserver.models import ModInfo, ProjectInfo
from modserver.services.api_client import ModrinthClient
from modserver.services.manifest_parser import parse_modrinth_version
from modserver.services.version_matcher import VersionRange
from modserver.services.version_selector import find_best_version, find_latest_version


class ModrinthRegistry(ModRegistry):
    """基于 Modrinth API 的模组注册表"""

    def __init__(self, client: ModrinthClient, mc_version: str, mod_loader: str):
        self.client = client
        self.mc_version = mc_version
        self.mod_loader = mod_loader
        self._projects: Dict[str, Optional[ProjectInfo]] = {}
        self._versions: Dict[str, List[ModInfo]] = {}
        self._version_ids: Dict[str, Dict[str, ModInfo]] = {}

    async def _get_project(self, mod_id: str) -> Optional[ProjectInfo]:
        if mod_id not in self._projects:
            project = await self.client.get_project(mod_id)
            self._projects[mod_id] = project
            if project is not None:
                # slug 与 ID 指向同一项目
                self._projects[project.id] = project
                self._projects[project.name] = project
        return self._projects[mod_id]

    def _to_mod_info(self, project: ProjectInfo, data: dict) -> ModInfo:
        mod = parse_modrinth_version(data)
        mod.id = project.id
        mod.name = project.title or project.name
        mod.provides = [project.name] if project.name != project.id else []
        mod.side = project.side
        return mod

    async def _load_versions(self, project: ProjectInfo) -> List[ModInfo]:
        if project.id not in self._versions:
            raw_versions = await self.client.get_versions(
                project.id, self.mc_version, self.mod_loader
            )
            mods = []
            by_id = {}
            for data in raw_versions:
                mod = self._to_mod_info(project, data)
                mods.append(mod)
                by_id[data.get("id", "")] = mod
            self._versions[project.id] = mods
            self._version_ids[project.id] = by_id
            logger.debug(
                f"[Modrinth] {project.name}: {len(mods)} 个兼容版本 "
                f"({self.mc_version}, {self.mod_loader})"
            )
        return self._versions[project.id]

    async def get_mod(self, mod_id: str, version_expr: str) -> Optional[ModInfo]:
        project = await self._get_project(mod_id)
        if project is None:
            return None

        candidates = await self._load_versions(project)

        # 依赖声明中的 version_id 直接定位到具体版本
        by_id = self._version_ids.get(project.id, {})
        if version_expr in by_id:
            return by_id[version_expr]

        try:
            VersionRange.parse(version_expr)
        except InvalidVersionRangeError:
            return await self._get_version_by_id(project, version_expr)

        if not candidates:
            return None

        try:
            return find_best_version(candidates, [version_expr])
        except VersionSelectionError:
            # 版本号无法解析时，通配符退回到最新发布的版本
            if version_expr.strip() in ("", "*"):
                return candidates[0]
            return None

    async def _get_version_by_id(
        self, project: ProjectInfo, version_id: str
    ) -> Optional[ModInfo]:
        data = await self.client.get_version(version_id)
        if data is None or data.get("project_id") != project.id:
            return None
        return self._to_mod_info(project, data)

    async def get_available_versions(self, mod_id: str) -> List[ModInfo]:
        project = await self._get_project(mod_id)
        if project is None:
            return []
        return list(await self._load_versions(project))

    async def get_latest_version(self, mod_id: str) -> Optional[ModInfo]:
        candidates = await self.get_available_versions(mod_id)
        if not candidates:
            return None
        return find_latest_version(candidates) or candidates[0]
