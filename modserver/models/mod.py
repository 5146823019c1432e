"""
依赖解析数据模型

定义依赖声明、模组元数据、解析结果与版本冲突记录。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Side(Enum):
    """安装端"""

    CLIENT = "client"
    SERVER = "server"
    BOTH = "both"


@dataclass
class Dependency:
    """
    依赖声明

    version_expr 保持未解析的原始表达式，需要时再通过 VersionRange 解析。
    side 仅作为提示信息，不参与解析。
    """

    mod_id: str
    version_expr: str = "*"
    required: bool = True
    side: str = Side.BOTH.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mod_id": self.mod_id,
            "version_expr": self.version_expr,
            "required": self.required,
            "side": self.side,
        }


@dataclass
class ModInfo:
    """
    某个具体模组版本的元数据

    由注册表提供，解析器不会修改它。
    """

    id: str
    name: str
    version: str
    dependencies: List[Dependency] = field(default_factory=list)
    provides: List[str] = field(default_factory=list)
    download_url: str = ""
    file_name: str = ""
    hashes: Dict[str, str] = field(default_factory=dict)
    side: str = Side.BOTH.value

    @property
    def is_server_mod(self) -> bool:
        """是否需要安装到服务端"""
        return self.side != Side.CLIENT.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
            "provides": list(self.provides),
            "download_url": self.download_url,
            "file_name": self.file_name,
            "hashes": dict(self.hashes),
            "side": self.side,
        }


@dataclass
class ResolvedMod:
    """已被接受进入安装计划的模组"""

    mod_info: ModInfo
    download_url: str = ""
    file_name: str = ""
    installed_by: str = ""  # 空字符串表示用户直接请求

    @property
    def id(self) -> str:
        return self.mod_info.id

    @property
    def is_dependency(self) -> bool:
        return self.installed_by != ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.mod_info.id,
            "name": self.mod_info.name,
            "version": self.mod_info.version,
            "download_url": self.download_url,
            "file_name": self.file_name,
            "installed_by": self.installed_by,
            "side": self.mod_info.side,
        }


@dataclass
class Conflict:
    """同一模组 ID 被不同请求者解析到不同版本"""

    mod_id: str
    required_by: List[str] = field(default_factory=list)
    versions: List[str] = field(default_factory=list)
    version_exprs: List[str] = field(default_factory=list)

    def add(self, required_by: str, version: str, version_expr: str) -> None:
        """追加一次冲突记录（按发现顺序）"""
        self.required_by.append(required_by)
        self.versions.append(version)
        self.version_exprs.append(version_expr)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mod_id": self.mod_id,
            "required_by": list(self.required_by),
            "versions": list(self.versions),
            "version_exprs": list(self.version_exprs),
        }


@dataclass
class ResolutionResult:
    """
    一次解析的最终输出

    resolved_mods 与 install_order 顺序一致（依赖总在被依赖者之前）。
    即使解析成功，调用方仍需检查 conflicts 与 missing_deps。
    """

    resolved_mods: List[ResolvedMod] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    missing_deps: List[Dependency] = field(default_factory=list)
    install_order: List[str] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def has_missing_deps(self) -> bool:
        return len(self.missing_deps) > 0

    def get(self, mod_id: str) -> Optional[ResolvedMod]:
        """按 ID 查找已解析模组"""
        for mod in self.resolved_mods:
            if mod.id == mod_id:
                return mod
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "install_order": list(self.install_order),
            "resolved_mods": [mod.to_dict() for mod in self.resolved_mods],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "missing_deps": [dep.to_dict() for dep in self.missing_deps],
            "errors": [str(error) for error in self.errors],
        }
