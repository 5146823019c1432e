"""
API 数据模型

定义 Modrinth API 相关的数据类，主要是项目信息。
"""

from dataclasses import dataclass
from enum import Enum
from typing import List

from modserver.models.mod import Side


class ProjectType(Enum):
    """项目类型"""

    MOD = "mod"
    MODPACK = "modpack"
    RESOURCE_PACK = "resourcepack"
    SHADER = "shader"
    DATAPACK = "datapack"
    PLUGIN = "plugin"


@dataclass
class ProjectInfo:
    """
    模组项目信息。
    """

    id: str
    name: str
    title: str
    description: str
    project_type: str
    versions: List[str]
    client_side: str = "required"
    server_side: str = "required"

    @property
    def side(self) -> str:
        """根据 client_side/server_side 推断安装端"""
        if self.server_side == "unsupported":
            return Side.CLIENT.value
        if self.client_side == "unsupported":
            return Side.SERVER.value
        return Side.BOTH.value

    @classmethod
    def from_modrinth(cls, data: dict) -> "ProjectInfo":
        return cls(
            id=data["id"],
            name=data.get("slug", data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            project_type=data.get("project_type", ProjectType.MOD.value),
            versions=data.get("versions", []),
            client_side=data.get("client_side", "required"),
            server_side=data.get("server_side", "required"),
        )

