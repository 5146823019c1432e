"""
依赖声明解析服务

将各生态的依赖声明（Modrinth 版本数据、fabric.mod.json、Forge/NeoForge mods.toml）
转换为统一的 Dependency / ModInfo 结构，版本表达式统一转换为:
    *  X.Y.Z  >=X  >X  <=X  <X  A-B  以及逗号组合
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union

import toml
from loguru import logger

from modserver.exceptions import ConfigParseError
from modserver.models import Dependency, ModInfo, Side

# 加载器、游戏本体和运行时不作为模组依赖处理
SYSTEM_DEPENDENCIES = frozenset(
    {
        "fabricloader",
        "fabric",
        "quilt_loader",
        "minecraft",
        "java",
        "forge",
        "neoforge",
    }
)

_FABRIC_WILDCARD_RE = re.compile(r"^(\d+)(?:\.(\d+))?\.[xX*]$")
_VERSION_PREFIXES = ("v", "V", "mc", "MC")


def _primary_file(files: List[dict]) -> Optional[dict]:
    if not files:
        return None
    for file in files:
        if file.get("primary", False):
            return file
    return files[0]


def parse_modrinth_version(data: Dict[str, Any]) -> ModInfo:
    """
    解析 Modrinth 版本数据

    dependency_type 为 required 的是必需依赖，其余均视为可选。
    """
    mod = ModInfo(
        id=data.get("project_id", ""),
        name=data.get("name", ""),
        version=data.get("version_number", ""),
    )

    for dep in data.get("dependencies", []):
        project_id = dep.get("project_id")
        if not project_id:
            logger.debug(f"[解析] 跳过没有 project_id 的依赖: {dep}")
            continue
        mod.dependencies.append(
            Dependency(
                mod_id=project_id,
                version_expr=dep.get("version_id") or "*",
                required=dep.get("dependency_type") == "required",
            )
        )

    primary = _primary_file(data.get("files", []))
    if primary:
        mod.download_url = primary.get("url", "")
        mod.file_name = primary.get("filename", "")
        mod.hashes = dict(primary.get("hashes") or {})

    return mod


def normalize_fabric_version(expr: Union[str, List[str], None]) -> str:
    """将 Fabric 版本表达式转换为统一格式"""
    if expr is None:
        return "*"

    # 列表表示“任一满足”，无法用交集表达
    if isinstance(expr, list):
        if len(expr) == 1:
            return normalize_fabric_version(expr[0])
        logger.debug(f"[解析] 不支持的 Fabric 多选版本表达式: {expr}")
        return "*"

    expr = expr.strip()
    if expr in ("", "*"):
        return "*"

    # ">=x.y.z <a.b.c" 形式
    parts = expr.split()
    if len(parts) == 2:
        return ",".join(normalize_fabric_version(part) for part in parts)

    if expr.startswith((">=", ">", "<=", "<")):
        return expr

    if expr.startswith("="):
        return expr[1:].strip()

    if expr.startswith("^"):
        base = expr[1:].strip()
        numbers = _leading_numbers(base)
        if numbers is None:
            return expr
        major = numbers[0]
        return f">={base},<{major + 1}.0.0"

    if expr.startswith("~"):
        base = expr[1:].strip()
        numbers = _leading_numbers(base)
        if numbers is None:
            return expr
        major, minor = numbers[0], numbers[1]
        return f">={base},<{major}.{minor + 1}.0"

    match = _FABRIC_WILDCARD_RE.match(expr)
    if match:
        major = int(match.group(1))
        if match.group(2) is None:
            return f">={major}.0.0,<{major + 1}.0.0"
        minor = int(match.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    return expr


def _leading_numbers(version: str) -> Optional[Tuple[int, int]]:
    match = re.match(r"^(\d+)(?:\.(\d+))?", version)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2) or 0)


def parse_fabric_mod_json(data: Dict[str, Any]) -> ModInfo:
    """
    解析 fabric.mod.json（quilt.mod.json 的 fabric 兼容字段同样适用）

    depends 为必需依赖，recommends 为可选依赖。
    """
    provides = data.get("provides") or []
    mod = ModInfo(
        id=data.get("id", ""),
        name=data.get("name") or data.get("id", ""),
        version=data.get("version", ""),
        provides=[p for p in provides if isinstance(p, str)],
        side=_fabric_environment(data.get("environment")),
    )

    for field_name, required in (("depends", True), ("recommends", False)):
        for mod_id, version_expr in (data.get(field_name) or {}).items():
            if mod_id in SYSTEM_DEPENDENCIES:
                continue
            mod.dependencies.append(
                Dependency(
                    mod_id=mod_id,
                    version_expr=normalize_fabric_version(version_expr),
                    required=required,
                )
            )

    return mod


def _fabric_environment(environment: Optional[str]) -> str:
    if environment == "client":
        return Side.CLIENT.value
    if environment == "server":
        return Side.SERVER.value
    return Side.BOTH.value


def maven_range_to_expr(expr: str) -> str:
    """
    将 Maven 版本区间转换为统一格式

    [1.0,2.0) -> >=1.0,<2.0
    [1.0,)    -> >=1.0
    (,2.0]    -> <=2.0
    [1.0]     -> 1.0
    """
    expr = (expr or "").replace(" ", "")
    if expr == "":
        return "*"

    if not expr.startswith(("[", "(")):
        return expr

    if len(expr) < 2:
        return "*"

    min_inclusive = expr[0] == "["
    max_inclusive = expr[-1] == "]"
    inner = expr[1:-1]

    parts = inner.split(",")
    if len(parts) != 2:
        if len(parts) == 1 and parts[0]:
            return parts[0]
        return "*"

    constraints = []
    if parts[0]:
        constraints.append((">=" if min_inclusive else ">") + parts[0])
    if parts[1]:
        constraints.append(("<=" if max_inclusive else "<") + parts[1])

    return ",".join(constraints) or "*"


def _forge_side(side: Optional[str]) -> str:
    side = (side or "BOTH").lower()
    if side in (Side.CLIENT.value, Side.SERVER.value):
        return side
    return Side.BOTH.value


def _forge_required(dep: Dict[str, Any]) -> bool:
    # NeoForge 使用 type = "required"，旧版 Forge 使用 mandatory = true
    if "type" in dep:
        return str(dep["type"]).lower() == "required"
    return bool(dep.get("mandatory", False))


def parse_forge_mods_toml(text: str) -> List[ModInfo]:
    """
    解析 Forge / NeoForge 的 mods.toml

    Raises:
        ConfigParseError: TOML 格式错误
    """
    try:
        data = toml.loads(text)
    except toml.TomlDecodeError as e:
        raise ConfigParseError(f"mods.toml 解析失败: {e}")

    dependencies = data.get("dependencies", {}) or {}
    mods = []
    for entry in data.get("mods", []):
        mod_id = entry.get("modId", "")
        if not mod_id:
            continue

        mod = ModInfo(
            id=mod_id,
            name=entry.get("displayName", mod_id),
            version=str(entry.get("version", "")),
        )
        for dep in dependencies.get(mod_id, []):
            dep_id = dep.get("modId", "")
            if not dep_id or dep_id in SYSTEM_DEPENDENCIES:
                continue
            mod.dependencies.append(
                Dependency(
                    mod_id=dep_id,
                    version_expr=maven_range_to_expr(dep.get("versionRange", "")),
                    required=_forge_required(dep),
                    side=_forge_side(dep.get("side")),
                )
            )
        mods.append(mod)

    return mods


def _looks_like_version(text: str) -> bool:
    if not text:
        return False
    if text[0].isdigit():
        return True
    for prefix in _VERSION_PREFIXES:
        if text.startswith(prefix) and len(text) > len(prefix):
            return text[len(prefix)].isdigit()
    return False


def split_jar_filename(filename: str) -> Tuple[str, str]:
    """
    从 jar 文件名拆分模组 ID 与版本

    sodium-fabric-0.5.3.jar -> ("sodium-fabric", "0.5.3")
    无法识别版本时版本为 0.0.0
    """
    name = filename[:-4] if filename.endswith(".jar") else filename

    for sep in ("-", "_"):
        idx = name.rfind(sep)
        if idx == -1:
            continue
        # 从最左侧开始找第一个像版本号的分段
        segments = name.split(sep)
        for i in range(1, len(segments)):
            rest = sep.join(segments[i:])
            if _looks_like_version(rest):
                version = rest
                for prefix in _VERSION_PREFIXES:
                    if version.startswith(prefix) and version[len(prefix):][:1].isdigit():
                        version = version[len(prefix):]
                        break
                return sep.join(segments[:i]), version

    return name, "0.0.0"


def extract_mod_id_from_filename(filename: str) -> str:
    """从 jar 文件名提取模组 ID"""
    return split_jar_filename(filename)[0]
