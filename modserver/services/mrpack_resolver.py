"""
mrpack 解析服务

负责从 .mrpack 文件中提取整合包元数据与模组文件列表。
"""

import io
import json
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from modserver.exceptions import MrpackError
from modserver.models import ModInfo, Side
from modserver.services.manifest_parser import split_jar_filename

INDEX_FILE = "modrinth.index.json"

# modrinth.index.json 中 dependencies 的键 -> 加载器
LOADER_KEYS = {
    "fabric-loader": "fabric",
    "quilt-loader": "quilt",
    "forge": "forge",
    "neoforge": "neoforge",
}


@dataclass
class ModpackIndex:
    """mrpack 索引内容"""

    name: str
    version: str
    mc_version: str
    mod_loader: Optional[str] = None
    loader_version: Optional[str] = None
    mods: List[ModInfo] = field(default_factory=list)


def _env_side(env: Optional[dict]) -> str:
    env = env or {}
    if env.get("server") == "unsupported":
        return Side.CLIENT.value
    if env.get("client") == "unsupported":
        return Side.SERVER.value
    return Side.BOTH.value


class MrpackResolver:
    """.mrpack 文件解析器"""

    @staticmethod
    def parse_bytes(content_bytes: bytes) -> ModpackIndex:
        """
        解析 mrpack 字节流

        Args:
            content_bytes: .mrpack 文件的二进制内容

        Raises:
            MrpackError: 不是有效的 zip，或缺少 / 无法解析 modrinth.index.json
        """
        try:
            with zipfile.ZipFile(io.BytesIO(content_bytes)) as z:
                if INDEX_FILE not in z.namelist():
                    raise MrpackError(f"mrpack 文件中缺少 {INDEX_FILE}")
                index_data = json.loads(z.read(INDEX_FILE).decode("utf-8"))
        except zipfile.BadZipFile as e:
            raise MrpackError(f"无效的 mrpack 文件: {e}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MrpackError(f"{INDEX_FILE} 解析失败: {e}")

        return MrpackResolver.parse_index(index_data)

    @staticmethod
    def parse_index(index_data: dict) -> ModpackIndex:
        """将 modrinth.index.json 的内容转换为 ModpackIndex"""
        dependencies = index_data.get("dependencies", {}) or {}

        mod_loader = None
        loader_version = None
        for key, loader in LOADER_KEYS.items():
            if key in dependencies:
                mod_loader = loader
                loader_version = dependencies[key]
                break

        index = ModpackIndex(
            name=index_data.get("name", ""),
            version=index_data.get("versionId", ""),
            mc_version=dependencies.get("minecraft", ""),
            mod_loader=mod_loader,
            loader_version=loader_version,
        )

        for file_entry in index_data.get("files", []):
            path = file_entry.get("path", "")
            # 资源包、光影包等不属于服务端模组
            if not path.startswith("mods/"):
                continue

            file_name = path.split("/")[-1]
            mod_id, version = split_jar_filename(file_name)
            downloads = file_entry.get("downloads") or []
            index.mods.append(
                ModInfo(
                    id=mod_id,
                    name=mod_id,
                    version=version,
                    download_url=downloads[0] if downloads else "",
                    file_name=file_name,
                    hashes=dict(file_entry.get("hashes") or {}),
                    side=_env_side(file_entry.get("env")),
                )
            )

        logger.info(
            f"成功从 mrpack 解析了 {len(index.mods)} 个模组 "
            f"(共 {len(index_data.get('files', []))} 个文件引用)"
        )
        return index

    @staticmethod
    def parse_file(path: str) -> ModpackIndex:
        """
        读取并解析本地 .mrpack 文件

        Raises:
            MrpackError: 文件不存在或内容无效
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise MrpackError(f"mrpack 文件不存在: {path}", context={"path": path})
        return MrpackResolver.parse_bytes(file_path.read_bytes())
