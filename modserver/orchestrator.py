"""
主协调器

整合注册表、依赖解析与下载层，把整合包转换为服务端模组安装计划。
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
from loguru import logger

from modserver.api import InMemoryRegistry, LocalRegistry, ModRegistry, ModrinthRegistry
from modserver.download import DownloadManager
from modserver.exceptions import (
    ModServerError,
    UnresolvedDependencyError,
    VersionConflictError,
)
from modserver.models import (
    ModEntry,
    ModInfo,
    ResolutionResult,
    ResolvedMod,
    ServerPackConfig,
    SourceType,
)
from modserver.services import DependencyResolver, ModrinthClient, MrpackResolver


@dataclass
class InstallPlan:
    """服务端安装计划"""

    mc_version: str
    mod_loader: str
    resolution: ResolutionResult
    server_mods: List[ResolvedMod] = field(default_factory=list)
    skipped_client_mods: List[ResolvedMod] = field(default_factory=list)
    missing_requests: List[ModEntry] = field(default_factory=list)

    @property
    def install_order(self) -> List[str]:
        return [mod.id for mod in self.server_mods]

    def to_dict(self) -> Dict[str, Any]:
        resolution = self.resolution.to_dict()
        return {
            "minecraft": self.mc_version,
            "mod_loader": self.mod_loader,
            "install_order": self.install_order,
            "mods": [mod.to_dict() for mod in self.server_mods],
            "skipped_client_mods": [mod.id for mod in self.skipped_client_mods],
            "missing_requests": [
                {"id": entry.id, "version": entry.version}
                for entry in self.missing_requests
            ],
            "conflicts": resolution["conflicts"],
            "missing_deps": resolution["missing_deps"],
            "errors": resolution["errors"],
        }


class ServerPackOrchestrator:
    """ModServer 主协调器"""

    def __init__(
        self,
        config: ServerPackConfig,
        registry: Optional[ModRegistry] = None,
        download_manager: Optional[DownloadManager] = None,
    ):
        self.config = config
        self.registry = registry
        self.download_manager = download_manager
        self.client: Optional[ModrinthClient] = None
        self.plan: Optional[InstallPlan] = None

    def _on_download_progress(self, filename: str, percent: float):
        """下载进度回调"""
        logger.debug(f"[进度] {filename}: {percent:.1f}%")

    async def run(self, dry_run: bool = False) -> InstallPlan:
        """
        运行完整流程

        Args:
            dry_run: 只生成安装计划，不下载文件

        Raises:
            VersionConflictError: strict 模式下存在版本冲突
            UnresolvedDependencyError: strict 模式下存在缺失依赖
        """
        logger.info("开始生成服务端安装计划...")

        try:
            requested = await self._prepare_source()
            mods, missing_requests = await self._lookup_requested(requested)

            resolver = DependencyResolver(
                self.registry, include_optional=self.config.resolve.include_optional
            )
            result = await resolver.resolve(mods)
            self._report(result, missing_requests)
            self._check_strict(result, missing_requests)

            self.plan = self._build_plan(result, missing_requests)
            await self._write_plan(self.plan)

            if dry_run:
                logger.info("[干运行模式] 跳过下载")
            else:
                await self._download(self.plan)

            logger.success(
                f"完成! 服务端需要 {len(self.plan.server_mods)} 个模组"
            )
            return self.plan

        except ModServerError as e:
            logger.error(f"任务执行失败: {e}")
            raise
        finally:
            if self.client is not None:
                await self.client.close()

    async def _prepare_source(self) -> List[Tuple[ModEntry, Optional[ModInfo]]]:
        """
        根据来源构建注册表并返回请求列表

        本地目录与 mrpack 来源已经知道确切的模组版本，无需再查询。
        """
        source = self.config.source
        mc = self.config.minecraft

        if source.type == SourceType.LOCAL:
            local = LocalRegistry.from_directory(source.path)
            if self.registry is None:
                self.registry = local
            return [
                (ModEntry(id=mod.id, version=mod.version), mod)
                for mod_id in local.mod_ids
                for mod in await local.get_available_versions(mod_id)
            ]

        if source.type == SourceType.MRPACK:
            index = MrpackResolver.parse_file(source.path)
            if index.mc_version and index.mc_version != mc.version:
                logger.warning(
                    f"mrpack 的 Minecraft 版本 {index.mc_version} 与配置 {mc.version} 不一致"
                )
            if self.registry is None:
                self.registry = InMemoryRegistry(index.mods)
            return [
                (ModEntry(id=mod.id, version=mod.version), mod) for mod in index.mods
            ]

        if self.registry is None:
            self.client = ModrinthClient()
            self.registry = ModrinthRegistry(
                self.client, mc.version, mc.mod_loader.value
            )
        return [(entry, None) for entry in mc.mods]

    async def _lookup_requested(
        self, requested: List[Tuple[ModEntry, Optional[ModInfo]]]
    ) -> Tuple[List[ModInfo], List[ModEntry]]:
        """查询请求的模组，找不到的记为缺失请求"""
        logger.info(f"开始处理 {len(requested)} 个模组...")

        mods: List[ModInfo] = []
        missing: List[ModEntry] = []
        seen = set()

        for entry, known in requested:
            mod = known
            if mod is None:
                try:
                    mod = await self.registry.get_mod(entry.id, entry.version)
                except ModServerError as e:
                    logger.warning(f"查询模组 {entry.id} 失败: {e}")
                    mod = None

            if mod is None:
                logger.warning(f"无法找到模组: {entry.id} ({entry.version})")
                missing.append(entry)
                continue

            if mod.id in seen:
                logger.debug(f"模组 {mod.id} 已处理，跳过")
                continue
            seen.add(mod.id)
            mods.append(mod)

        return mods, missing

    def _report(self, result: ResolutionResult, missing_requests: List[ModEntry]):
        for conflict in result.conflicts:
            details = ", ".join(
                f"{by or '用户'} -> {version}"
                for by, version in zip(conflict.required_by, conflict.versions)
            )
            logger.warning(f"[冲突] {conflict.mod_id}: {details}")

        for dep in result.missing_deps:
            logger.warning(f"[缺失] {dep.mod_id} ({dep.version_expr})")

        for error in result.errors:
            logger.error(f"[解析] {error}")

        if missing_requests:
            logger.warning(
                f"跳过了 {len(missing_requests)} 个无法找到的模组: "
                f"{', '.join(entry.id for entry in missing_requests)}"
            )

    def _check_strict(self, result: ResolutionResult, missing_requests: List[ModEntry]):
        if not self.config.resolve.strict:
            return

        if result.has_conflicts:
            raise VersionConflictError(
                f"存在 {len(result.conflicts)} 个版本冲突",
                context={"conflicts": [c.to_dict() for c in result.conflicts]},
            )

        if result.has_missing_deps or missing_requests:
            raise UnresolvedDependencyError(
                "存在无法满足的依赖",
                context={
                    "missing_deps": [dep.to_dict() for dep in result.missing_deps],
                    "missing_requests": [entry.id for entry in missing_requests],
                },
            )

    def _build_plan(
        self, result: ResolutionResult, missing_requests: List[ModEntry]
    ) -> InstallPlan:
        plan = InstallPlan(
            mc_version=self.config.minecraft.version,
            mod_loader=self.config.minecraft.mod_loader.value,
            resolution=result,
            missing_requests=missing_requests,
        )

        for mod in result.resolved_mods:
            if self.config.resolve.server_only and not mod.mod_info.is_server_mod:
                logger.info(f"[客户端] 跳过仅客户端模组: {mod.id}")
                plan.skipped_client_mods.append(mod)
            else:
                plan.server_mods.append(mod)

        return plan

    async def _write_plan(self, plan: InstallPlan) -> str:
        output_dir = self.config.output.download_dir
        os.makedirs(output_dir, exist_ok=True)
        plan_path = os.path.join(output_dir, self.config.output.plan_file)

        async with aiofiles.open(plan_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(plan.to_dict(), indent=2, ensure_ascii=False))

        logger.success(f"安装计划已写入: {plan_path}")
        return plan_path

    async def _download(self, plan: InstallPlan):
        if self.download_manager is None:
            self.download_manager = DownloadManager(
                max_concurrent=self.config.max_concurrent,
                max_retries=self.config.max_retries,
                retry_delay=self.config.retry_delay,
                verify_checksums=self.config.verify_checksums,
                progress_callback=self._on_download_progress,
            )

        mods_dir = os.path.join(self.config.output.download_dir, "mods")
        for mod in plan.server_mods:
            if not mod.download_url:
                logger.warning(f"模组 {mod.id} 没有下载地址，跳过")
                continue
            await self.download_manager.enqueue(
                url=mod.download_url,
                filename=mod.file_name or os.path.basename(mod.download_url),
                download_dir=mods_dir,
                hashes=mod.mod_info.hashes,
            )

        logger.info(f"启动下载 ({self.download_manager.max_concurrent}并发)...")
        await self.download_manager.run()

        stats = self.download_manager.get_stats()
        logger.success(
            f"下载完成: {stats.completed} 成功, {stats.failed} 失败, {stats.skipped} 跳过"
        )

    def get_stats(self) -> dict:
        """获取运行统计"""
        if self.plan is None:
            return {"server_mods": 0, "skipped_client_mods": 0, "missing": 0}
        return {
            "server_mods": len(self.plan.server_mods),
            "skipped_client_mods": len(self.plan.skipped_client_mods),
            "missing": len(self.plan.missing_requests)
            + len(self.plan.resolution.missing_deps),
        }
