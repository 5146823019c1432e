"""
最佳版本选择

在候选版本中选出同时满足所有约束的最高版本。
"""

from typing import List, Optional, Sequence

from modserver.exceptions import InvalidVersionError, VersionSelectionError
from modserver.models import ModInfo
from modserver.services.version_matcher import Version, VersionRange


def _try_parse(version_str: str) -> Optional[Version]:
    try:
        return Version.parse(version_str)
    except InvalidVersionError:
        return None


def find_best_version(
    candidates: Sequence[ModInfo],
    constraints: Sequence[str],
) -> ModInfo:
    """
    选出满足全部约束的最高版本

    Args:
        candidates: 候选模组版本
        constraints: 版本范围表达式列表（取交集）

    Returns:
        最高的兼容版本；版本相同时保留先出现的候选

    Raises:
        VersionSelectionError: 没有候选版本，或没有版本满足所有约束
        InvalidVersionRangeError: 约束表达式无法解析
    """
    if not candidates:
        raise VersionSelectionError("no versions available")

    ranges = [VersionRange.parse(expr) for expr in constraints]

    compatible: List[tuple[ModInfo, Version]] = []
    for mod in candidates:
        version = _try_parse(mod.version)
        if version is None:
            continue
        if all(vr.matches(version) for vr in ranges):
            compatible.append((mod, version))

    if not compatible:
        raise VersionSelectionError(
            "no version satisfies all constraints",
            context={
                "constraints": list(constraints),
                "available": [mod.version for mod in candidates],
            },
        )

    best, best_version = compatible[0]
    for mod, version in compatible[1:]:
        if version.compare(best_version) > 0:
            best, best_version = mod, version

    return best


def find_latest_version(candidates: Sequence[ModInfo]) -> Optional[ModInfo]:
    """返回最高的正式版；没有正式版时返回最高的预发布版"""
    parsed = [(mod, _try_parse(mod.version)) for mod in candidates]
    parsed = [(mod, version) for mod, version in parsed if version is not None]
    if not parsed:
        return None

    stable = [item for item in parsed if not item[1].is_prerelease]
    pool = stable or parsed

    best, best_version = pool[0]
    for mod, version in pool[1:]:
        if version.compare(best_version) > 0:
            best, best_version = mod, version
    return best
