"""
ModServer 服务层

包含业务逻辑服务：版本匹配、版本选择、依赖声明解析、API 客户端、依赖处理、mrpack 解析。
"""

from modserver.services.version_matcher import (
    Version,
    VersionRange,
    VersionMatcher,
    parse_version,
    parse_version_range,
)
from modserver.services.version_selector import find_best_version, find_latest_version
from modserver.services.manifest_parser import (
    parse_modrinth_version,
    parse_fabric_mod_json,
    parse_forge_mods_toml,
    normalize_fabric_version,
    maven_range_to_expr,
    extract_mod_id_from_filename,
)
from modserver.services.api_client import ModrinthClient
from modserver.services.dependency_resolver import DependencyResolver
from modserver.services.mrpack_resolver import MrpackResolver, ModpackIndex

__all__ = [
    "Version",
    "VersionRange",
    "VersionMatcher",
    "parse_version",
    "parse_version_range",
    "find_best_version",
    "find_latest_version",
    "parse_modrinth_version",
    "parse_fabric_mod_json",
    "parse_forge_mods_toml",
    "normalize_fabric_version",
    "maven_range_to_expr",
    "extract_mod_id_from_filename",
    "ModrinthClient",
    "DependencyResolver",
    "MrpackResolver",
    "ModpackIndex",
]
