"""
ModServer 数据模型包

包含配置模型、API 模型与依赖解析模型定义。
"""

from modserver.models.config import (
    ModLoader,
    SourceType,
    ModEntry,
    MinecraftConfig,
    SourceConfig,
    OutputConfig,
    ResolveConfig,
    ServerPackConfig,
)
from modserver.models.api import (
    ProjectType,
    ProjectInfo,
)
from modserver.models.mod import (
    Side,
    Dependency,
    ModInfo,
    ResolvedMod,
    Conflict,
    ResolutionResult,
)

__all__ = [
    # 配置模型
    "ModLoader",
    "SourceType",
    "ModEntry",
    "MinecraftConfig",
    "SourceConfig",
    "OutputConfig",
    "ResolveConfig",
    "ServerPackConfig",
    # API 模型
    "ProjectType",
    "ProjectInfo",
    # 解析模型
    "Side",
    "Dependency",
    "ModInfo",
    "ResolvedMod",
    "Conflict",
    "ResolutionResult",
]
