"""
本地注册表

扫描目录中的模组 jar，从元数据文件中读取 ID、版本和依赖声明。
"""

import hashlib
import json
import os
import zipfile
from pathlib import Path
from typing import List, Optional

from loguru import logger

from modserver.api.memory import InMemoryRegistry
from modserver.exceptions import ConfigParseError
from modserver.models import ModInfo
from modserver.services.manifest_parser import (
    parse_fabric_mod_json,
    parse_forge_mods_toml,
    split_jar_filename,
)

FABRIC_METADATA = ("fabric.mod.json", "quilt.mod.json")
FORGE_METADATA = ("META-INF/neoforge.mods.toml", "META-INF/mods.toml")


def read_jar_metadata(jar_path: str) -> List[ModInfo]:
    """
    读取单个 jar 的模组元数据

    一个 jar 可能声明多个模组（mods.toml）；无法读取元数据时根据文件名推断。
    """
    file_name = os.path.basename(jar_path)
    mods: List[ModInfo] = []

    try:
        with zipfile.ZipFile(jar_path) as jar:
            names = set(jar.namelist())

            for meta_name in FABRIC_METADATA:
                if meta_name in names:
                    data = json.loads(jar.read(meta_name).decode("utf-8"))
                    # quilt.mod.json 把字段放在 quilt_loader 下
                    if meta_name == "quilt.mod.json" and "quilt_loader" in data:
                        data = _flatten_quilt(data["quilt_loader"])
                    mods.append(parse_fabric_mod_json(data))
                    break

            if not mods:
                for meta_name in FORGE_METADATA:
                    if meta_name in names:
                        text = jar.read(meta_name).decode("utf-8")
                        mods.extend(parse_forge_mods_toml(text))
                        break
    except (zipfile.BadZipFile, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"[本地] 无法读取 {file_name} 的元数据: {e}")
    except ConfigParseError as e:
        logger.warning(f"[本地] {file_name}: {e.message}")

    # Forge 的 ${file.jarVersion} 占位符需要用文件名中的版本替换
    mod_id, file_version = split_jar_filename(file_name)
    for mod in mods:
        if not mod.version or mod.version.startswith("${"):
            mod.version = file_version

    if not mods:
        mods.append(ModInfo(id=mod_id, name=mod_id, version=file_version))

    return mods


def _flatten_quilt(loader: dict) -> dict:
    metadata = loader.get("metadata", {}) or {}
    depends = {}
    for dep in loader.get("depends", []) or []:
        if isinstance(dep, str):
            depends[dep] = "*"
        elif isinstance(dep, dict) and dep.get("id"):
            if dep.get("optional"):
                continue
            depends[dep["id"]] = dep.get("versions", "*")
    return {
        "id": loader.get("id", ""),
        "name": metadata.get("name"),
        "version": loader.get("version", ""),
        "provides": [
            p if isinstance(p, str) else p.get("id", "")
            for p in loader.get("provides", []) or []
        ],
        "depends": depends,
    }


def _hash_file(path: str):
    sha1 = hashlib.sha1()
    sha512 = hashlib.sha512()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha1.update(chunk)
            sha512.update(chunk)
    return {"sha1": sha1.hexdigest(), "sha512": sha512.hexdigest()}


class LocalRegistry(InMemoryRegistry):
    """本地目录模组注册表"""

    def __init__(self, directory: Optional[str] = None):
        super().__init__()
        self.directory = directory

    @classmethod
    def from_directory(cls, directory: str) -> "LocalRegistry":
        """
        扫描目录下的所有 jar 文件

        Raises:
            ConfigParseError: 目录不存在
        """
        path = Path(directory)
        if not path.is_dir():
            raise ConfigParseError(
                f"本地模组目录不存在: {directory}", context={"path": directory}
            )

        registry = cls(str(path))
        for jar_path in sorted(path.glob("*.jar")):
            hashes = _hash_file(str(jar_path))
            for mod in read_jar_metadata(str(jar_path)):
                mod.file_name = jar_path.name
                mod.download_url = jar_path.resolve().as_uri()
                mod.hashes = dict(hashes)
                registry.add(mod)
                logger.debug(f"[本地] {jar_path.name}: {mod.id} {mod.version}")

        logger.info(f"[本地] 从 {directory} 读取了 {len(registry)} 个模组")
        return registry
