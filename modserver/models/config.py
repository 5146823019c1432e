"""
配置数据模型

定义配置文件对应的数据类，并负责从字典构建与校验。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from modserver.exceptions import ConfigValidationError


class ModLoader(Enum):
    """模组加载器"""

    FORGE = "forge"
    NEOFORGE = "neoforge"
    FABRIC = "fabric"
    QUILT = "quilt"


class SourceType(Enum):
    """整合包来源"""

    MODRINTH = "modrinth"
    LOCAL = "local"
    MRPACK = "mrpack"


@dataclass
class ModEntry:
    """配置中的单个模组条目"""

    id: str
    version: str = "*"

    @classmethod
    def from_value(cls, value: Union[str, dict]) -> "ModEntry":
        if isinstance(value, str):
            if not value.strip():
                raise ConfigValidationError("模组 ID 不能为空")
            return cls(id=value.strip())

        if isinstance(value, dict):
            mod_id = value.get("id") or value.get("slug")
            if not mod_id:
                raise ConfigValidationError(
                    "模组条目缺少 id", context={"entry": value}
                )
            return cls(id=str(mod_id), version=str(value.get("version", "*")))

        raise ConfigValidationError(
            f"无效的模组条目类型: {type(value).__name__}", context={"entry": value}
        )


@dataclass
class MinecraftConfig:
    """Minecraft 相关配置"""

    version: str
    mod_loader: ModLoader
    mods: List[ModEntry] = field(default_factory=list)


@dataclass
class SourceConfig:
    """整合包来源配置"""

    type: SourceType = SourceType.MODRINTH
    path: Optional[str] = None


@dataclass
class OutputConfig:
    """输出配置"""

    download_dir: str = "server"
    plan_file: str = "install-plan.json"


@dataclass
class ResolveConfig:
    """依赖解析配置"""

    include_optional: bool = False
    strict: bool = False
    server_only: bool = True


@dataclass
class ServerPackConfig:
    """ModServer 完整配置"""

    minecraft: MinecraftConfig
    source: SourceConfig = field(default_factory=SourceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    resolve: ResolveConfig = field(default_factory=ResolveConfig)
    max_concurrent: int = 5
    max_retries: int = 3
    retry_delay: float = 1.0
    verify_checksums: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerPackConfig":
        """从字典构建配置，校验失败时抛出 ConfigValidationError"""
        if not isinstance(data, dict):
            raise ConfigValidationError("配置必须是一个字典")

        mc = data.get("minecraft")
        if not isinstance(mc, dict):
            raise ConfigValidationError("缺少 [minecraft] 配置段")

        version = mc.get("version")
        # 兼容列表形式，只取第一个版本
        if isinstance(version, list):
            version = version[0] if version else None
        if not version:
            raise ConfigValidationError("请配置 Minecraft 版本")

        loader_value = str(mc.get("mod_loader", "fabric")).lower()
        try:
            mod_loader = ModLoader(loader_value)
        except ValueError:
            raise ConfigValidationError(
                f"mod_loader 必须为 {'/'.join(l.value for l in ModLoader)}",
                context={"mod_loader": loader_value},
            )

        mods = [ModEntry.from_value(entry) for entry in mc.get("mods", [])]

        source_data = data.get("source", {}) or {}
        try:
            source_type = SourceType(str(source_data.get("type", "modrinth")).lower())
        except ValueError:
            raise ConfigValidationError(
                f"source.type 必须为 {'/'.join(s.value for s in SourceType)}",
                context={"type": source_data.get("type")},
            )
        source = SourceConfig(type=source_type, path=source_data.get("path"))

        if source.type != SourceType.MODRINTH and not source.path:
            raise ConfigValidationError(
                f"{source.type.value} 来源需要配置 source.path"
            )
        if source.type == SourceType.MODRINTH and not mods:
            raise ConfigValidationError("请配置至少一个模组")

        output_data = data.get("output", {}) or {}
        output = OutputConfig(
            download_dir=output_data.get("download_dir", "server"),
            plan_file=output_data.get("plan_file", "install-plan.json"),
        )

        resolve_data = data.get("resolve", {}) or {}
        resolve = ResolveConfig(
            include_optional=bool(resolve_data.get("include_optional", False)),
            strict=bool(resolve_data.get("strict", False)),
            server_only=bool(resolve_data.get("server_only", True)),
        )

        max_concurrent = data.get("max_concurrent", 5)
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ConfigValidationError(
                "max_concurrent 必须为正整数",
                context={"max_concurrent": max_concurrent},
            )

        return cls(
            minecraft=MinecraftConfig(
                version=str(version), mod_loader=mod_loader, mods=mods
            ),
            source=source,
            output=output,
            resolve=resolve,
            max_concurrent=max_concurrent,
            max_retries=int(data.get("max_retries", 3)),
            retry_delay=float(data.get("retry_delay", 1.0)),
            verify_checksums=bool(data.get("verify_checksums", True)),
        )
