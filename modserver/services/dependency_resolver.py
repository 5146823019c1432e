"""
依赖处理服务

实现依赖图遍历、循环依赖检测、版本冲突记录以及安装顺序的拓扑排序。

每次 resolve 都使用独立的 ResolutionContext，遍历使用显式栈而不是递归，
解析器实例本身只保存最近一次结果的引用。
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from loguru import logger

from modserver.api.base import ModRegistry
from modserver.exceptions import CircularDependencyError, ResolutionError
from modserver.models import (
    Conflict,
    Dependency,
    ModInfo,
    ResolutionResult,
    ResolvedMod,
)
from modserver.services.version_matcher import Version


class ModState(Enum):
    """单个模组 ID 在一次解析中的状态（未出现在上下文中即为未访问）"""

    RESOLVING = "resolving"
    RESOLVED = "resolved"


@dataclass
class ModNode:
    """上下文中的模组节点：状态加来源信息"""

    mod: ModInfo
    state: ModState
    installed_by: str
    version_expr: str


@dataclass
class ResolutionContext:
    """一次 resolve 调用的工作状态"""

    nodes: Dict[str, ModNode] = field(default_factory=dict)
    resolved_order: List[str] = field(default_factory=list)
    conflicts: Dict[str, Conflict] = field(default_factory=dict)
    missing_deps: List[Dependency] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    # 依赖 ID -> 实际满足它的模组 ID（provides 别名）
    aliases: Dict[str, str] = field(default_factory=dict)

    def state_of(self, mod_id: str) -> Optional[ModState]:
        node = self.nodes.get(mod_id)
        return node.state if node else None

    def resolved_mods(self) -> Dict[str, ModNode]:
        return {mod_id: self.nodes[mod_id] for mod_id in self.resolved_order}


@dataclass
class _Frame:
    mod: ModInfo
    deps: Iterator[Dependency]


class DependencyResolver:
    """依赖解析器"""

    def __init__(self, registry: ModRegistry, include_optional: bool = False):
        self.registry = registry
        self.include_optional = include_optional
        self._last_context: Optional[ResolutionContext] = None

    async def resolve(self, mods: Sequence[ModInfo]) -> ResolutionResult:
        """
        解析依赖

        单个顶层模组的失败（循环依赖）会被收集，不影响其他顶层模组。

        Args:
            mods: 用户请求的模组列表

        Returns:
            按安装顺序排列的解析结果

        Raises:
            CircularDependencyError: 拓扑排序阶段仍存在环
            InvalidVersionError: 冲突检查时版本号无法解析
        """
        ctx = ResolutionContext()
        self._last_context = ctx

        for mod in mods:
            try:
                await self._resolve_branch(ctx, mod)
            except CircularDependencyError as e:
                logger.warning(f"[循环] 无法解析 {mod.id}: {e.message}")
                ctx.errors.append(
                    ResolutionError(
                        f"failed to resolve {mod.id}: {e.message}",
                        context={"mod_id": mod.id, "cause": e.to_dict()},
                    )
                )

        install_order = self._topological_sort(ctx)

        resolved_mods = []
        for mod_id in install_order:
            node = ctx.nodes[mod_id]
            resolved_mods.append(
                ResolvedMod(
                    mod_info=node.mod,
                    download_url=node.mod.download_url,
                    file_name=node.mod.file_name,
                    installed_by=node.installed_by,
                )
            )

        logger.debug(
            f"[解析] 完成: {len(resolved_mods)} 个模组, "
            f"{len(ctx.conflicts)} 个冲突, {len(ctx.missing_deps)} 个缺失依赖"
        )

        return ResolutionResult(
            resolved_mods=resolved_mods,
            conflicts=list(ctx.conflicts.values()),
            missing_deps=list(ctx.missing_deps),
            install_order=install_order,
            errors=list(ctx.errors),
        )

    async def _resolve_branch(self, ctx: ResolutionContext, root: ModInfo):
        """以深度优先顺序解析一个顶层模组及其依赖"""
        stack: List[_Frame] = []
        self._enter(ctx, stack, root, required_by="", version_expr=root.version)

        try:
            while stack:
                frame = stack[-1]
                dep = next(frame.deps, None)

                # 所有依赖处理完毕，标记为已解析
                if dep is None:
                    stack.pop()
                    self._complete(ctx, frame.mod)
                    continue

                if not dep.required and not self.include_optional:
                    continue

                dep_mod = await self._lookup(dep)
                if dep_mod is None:
                    # 可选依赖缺失时静默丢弃
                    if dep.required:
                        logger.warning(
                            f"[缺失] {frame.mod.id} 需要 {dep.mod_id} ({dep.version_expr})"
                        )
                        ctx.missing_deps.append(dep)
                    continue

                if dep_mod.id != dep.mod_id:
                    ctx.aliases.setdefault(dep.mod_id, dep_mod.id)

                self._enter(
                    ctx,
                    stack,
                    dep_mod,
                    required_by=frame.mod.id,
                    version_expr=dep.version_expr,
                )
        except CircularDependencyError:
            # 回滚整条分支：栈上的模组回到未访问状态
            for frame in stack:
                node = ctx.nodes.get(frame.mod.id)
                if node is not None and node.state == ModState.RESOLVING:
                    del ctx.nodes[frame.mod.id]
            raise

    def _enter(
        self,
        ctx: ResolutionContext,
        stack: List[_Frame],
        mod: ModInfo,
        required_by: str,
        version_expr: str,
    ):
        state = ctx.state_of(mod.id)

        if state == ModState.RESOLVING:
            path = [frame.mod.id for frame in stack] + [mod.id]
            raise CircularDependencyError(mod.id, path=path)

        if state == ModState.RESOLVED:
            self._check_version(ctx, ctx.nodes[mod.id], mod, required_by, version_expr)
            return

        logger.debug(f"[解析] {mod.id} {mod.version} (来自: {required_by or '用户'})")
        ctx.nodes[mod.id] = ModNode(
            mod=mod,
            state=ModState.RESOLVING,
            installed_by=required_by,
            version_expr=version_expr,
        )
        stack.append(_Frame(mod=mod, deps=iter(list(mod.dependencies))))

    def _complete(self, ctx: ResolutionContext, mod: ModInfo):
        ctx.nodes[mod.id].state = ModState.RESOLVED
        ctx.resolved_order.append(mod.id)

    def _check_version(
        self,
        ctx: ResolutionContext,
        existing: ModNode,
        mod: ModInfo,
        required_by: str,
        version_expr: str,
    ):
        """已解析的模组再次出现时检查版本，不同则记录冲突并保留先解析的版本"""
        existing_version = Version.parse(existing.mod.version)
        new_version = Version.parse(mod.version)
        if existing_version.compare(new_version) == 0:
            return

        logger.warning(
            f"[冲突] {mod.id}: {required_by or '用户'} 需要 {mod.version}, "
            f"已解析 {existing.mod.version} (来自: {existing.installed_by or '用户'})"
        )

        conflict = ctx.conflicts.get(mod.id)
        if conflict is None:
            conflict = Conflict(mod_id=mod.id)
            conflict.add(required_by, mod.version, version_expr)
            conflict.add(
                existing.installed_by, existing.mod.version, existing.version_expr
            )
            ctx.conflicts[mod.id] = conflict
        else:
            conflict.add(required_by, mod.version, version_expr)

    async def _lookup(self, dep: Dependency) -> Optional[ModInfo]:
        """向注册表查询依赖，任何异常都视为未找到"""
        try:
            return await self.registry.get_mod(dep.mod_id, dep.version_expr)
        except Exception as e:
            logger.debug(f"[查询] {dep.mod_id} ({dep.version_expr}) 失败: {e}")
            return None

    def _topological_sort(self, ctx: ResolutionContext) -> List[str]:
        """
        Kahn 算法排序已解析模组（依赖在前）

        入度为零的节点按解析完成顺序入队，队列先进先出，因此结果是确定的。
        """
        resolved = ctx.resolved_mods()
        in_degree: Dict[str, int] = {mod_id: 0 for mod_id in resolved}
        graph: Dict[str, List[str]] = {mod_id: [] for mod_id in resolved}

        for mod_id, node in resolved.items():
            for dep in node.mod.dependencies:
                dep_id = ctx.aliases.get(dep.mod_id, dep.mod_id)
                if dep_id in resolved:
                    graph[dep_id].append(mod_id)
                    in_degree[mod_id] += 1

        queue = deque(mod_id for mod_id, degree in in_degree.items() if degree == 0)
        ordered: List[str] = []
        while queue:
            current = queue.popleft()
            ordered.append(current)
            for dependent in graph[current]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(ordered) != len(resolved):
            remaining = [mod_id for mod_id in resolved if mod_id not in ordered]
            raise CircularDependencyError(remaining[0], path=remaining)

        return ordered

    def has_conflicts(self) -> bool:
        """最近一次解析是否存在版本冲突"""
        return self._last_context is not None and len(self._last_context.conflicts) > 0

    def has_missing_deps(self) -> bool:
        """最近一次解析是否存在缺失的必需依赖"""
        return (
            self._last_context is not None
            and len(self._last_context.missing_deps) > 0
        )

    def get_resolution_errors(self) -> List[Exception]:
        """最近一次解析中收集到的分支错误"""
        if self._last_context is None:
            return []
        return list(self._last_context.errors)
