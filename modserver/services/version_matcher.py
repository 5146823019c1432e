"""
版本匹配服务

实现版本号解析与比较、版本范围表达式解析以及范围匹配。

支持的范围表达式:
    *                   任意版本
    1.0.0               精确版本
    >=1.0.0 / >1.0.0    下界
    <=2.0.0 / <2.0.0    上界
    1.0.0-2.0.0         闭区间（两端都必须是完整的 X.Y.Z）
    >=1.0.0,<2.0.0      逗号组合，各子句取交集
"""

import functools
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from modserver.exceptions import InvalidVersionError, InvalidVersionRangeError

_NUMERIC_RE = re.compile(r"[0-9]+")
_HYPHEN_RANGE_RE = re.compile(r"^\d+\.\d+\.\d+-\d+\.\d+\.\d+$")

# 顺序很重要：两字符运算符必须先于单字符运算符匹配
_OPERATORS = (
    (">=", "min", True),
    (">", "min", False),
    ("<=", "max", True),
    ("<", "max", False),
)


def _parse_segment(segment: str, name: str, raw: str) -> int:
    if not _NUMERIC_RE.fullmatch(segment):
        raise InvalidVersionError(
            f"无效的 {name} 版本号: {segment!r}",
            context={"version": raw, "segment": segment},
        )
    return int(segment)


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """
    语义化版本（宽松）

    major/minor/patch 缺省为 0；prerelease 保留分隔符（"-beta.1"、"+build"）。
    raw 仅用于展示，不参与比较。
    """

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    raw: str = field(default="", compare=False)

    @classmethod
    def parse(cls, version_str: str) -> "Version":
        """
        解析版本字符串

        Raises:
            InvalidVersionError: 空字符串或数字段无法解析
        """
        if not version_str:
            raise InvalidVersionError("版本号不能为空")

        cleaned = version_str
        if cleaned[0] in ("v", "V"):
            cleaned = cleaned[1:]

        prerelease = ""
        match = re.search(r"[-+]", cleaned)
        if match:
            prerelease = cleaned[match.start():]
            cleaned = cleaned[: match.start()]

        parts = cleaned.split(".")
        major = _parse_segment(parts[0], "major", version_str)
        minor = _parse_segment(parts[1], "minor", version_str) if len(parts) > 1 else 0
        patch = _parse_segment(parts[2], "patch", version_str) if len(parts) > 2 else 0

        return cls(
            major=major,
            minor=minor,
            patch=patch,
            prerelease=prerelease,
            raw=version_str,
        )

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease != ""

    def compare(self, other: "Version") -> int:
        """比较两个版本，返回 -1 / 0 / 1"""
        left = (self.major, self.minor, self.patch)
        right = (other.major, other.minor, other.patch)
        if left != right:
            return -1 if left < right else 1

        # 正式版高于预发布版
        if not self.prerelease and other.prerelease:
            return 1
        if self.prerelease and not other.prerelease:
            return -1

        # 两者都有后缀时按字节序比较
        left_pre = self.prerelease.encode("utf-8")
        right_pre = other.prerelease.encode("utf-8")
        if left_pre < right_pre:
            return -1
        if left_pre > right_pre:
            return 1
        return 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __str__(self) -> str:
        if self.raw:
            return self.raw
        return f"{self.major}.{self.minor}.{self.patch}{self.prerelease}"


def parse_version(version_str: str) -> Version:
    """解析版本字符串，等价于 Version.parse"""
    return Version.parse(version_str)


@dataclass
class VersionRange:
    """
    已解析的版本约束

    同时设置上下界时要求下界不大于上界；引擎不做校验，倒置的范围不匹配任何版本。
    """

    min_version: Optional[Version] = None
    max_version: Optional[Version] = None
    min_inclusive: bool = False
    max_inclusive: bool = False
    exact_version: Optional[Version] = None
    any_version: bool = False

    @classmethod
    def parse(cls, expr: str) -> "VersionRange":
        """
        解析版本范围表达式

        Raises:
            InvalidVersionRangeError: 表达式中的版本号无法解析
        """
        expr = (expr or "").strip()

        if expr == "" or expr == "*":
            return cls(any_version=True)

        if "," in expr:
            # 各子句分别设置上下界；同一边界被多个子句设置时以最后一个为准
            merged = cls()
            for clause in expr.split(","):
                sub = cls.parse(clause.strip())
                if sub.min_version is not None:
                    merged.min_version = sub.min_version
                    merged.min_inclusive = sub.min_inclusive
                if sub.max_version is not None:
                    merged.max_version = sub.max_version
                    merged.max_inclusive = sub.max_inclusive
            return merged

        if _HYPHEN_RANGE_RE.match(expr):
            low, high = expr.split("-", 1)
            return cls(
                min_version=_parse_bound(low, expr),
                max_version=_parse_bound(high, expr),
                min_inclusive=True,
                max_inclusive=True,
            )

        for op, side, inclusive in _OPERATORS:
            if expr.startswith(op):
                bound = _parse_bound(expr[len(op):].strip(), expr)
                if side == "min":
                    return cls(min_version=bound, min_inclusive=inclusive)
                return cls(max_version=bound, max_inclusive=inclusive)

        return cls(exact_version=_parse_bound(expr, expr))

    @property
    def is_empty(self) -> bool:
        """没有任何约束且不是通配符（不匹配任何版本）"""
        return (
            not self.any_version
            and self.exact_version is None
            and self.min_version is None
            and self.max_version is None
        )

    def matches(self, version: Version) -> bool:
        """检查版本是否满足该范围"""
        if self.any_version:
            return True

        if self.exact_version is not None:
            return version.compare(self.exact_version) == 0

        if self.is_empty:
            return False

        if self.min_version is not None:
            cmp = version.compare(self.min_version)
            if cmp < 0 or (cmp == 0 and not self.min_inclusive):
                return False

        if self.max_version is not None:
            cmp = version.compare(self.max_version)
            if cmp > 0 or (cmp == 0 and not self.max_inclusive):
                return False

        return True

    def matches_string(self, version_str: str) -> bool:
        """检查版本字符串是否满足该范围，无法解析的版本视为不满足"""
        try:
            version = Version.parse(version_str)
        except InvalidVersionError:
            return False
        return self.matches(version)

    def __str__(self) -> str:
        if self.any_version:
            return "*"
        if self.exact_version is not None:
            return str(self.exact_version)

        parts = []
        if self.min_version is not None:
            op = ">=" if self.min_inclusive else ">"
            parts.append(f"{op}{self.min_version}")
        if self.max_version is not None:
            op = "<=" if self.max_inclusive else "<"
            parts.append(f"{op}{self.max_version}")
        return ",".join(parts)


def _parse_bound(token: str, expr: str) -> Version:
    try:
        return Version.parse(token)
    except InvalidVersionError as e:
        raise InvalidVersionRangeError(
            f"无效的版本范围 {expr!r}: {e.message}",
            context={"expr": expr, "token": token},
        ) from e


def parse_version_range(expr: str) -> VersionRange:
    """解析版本范围表达式，等价于 VersionRange.parse"""
    return VersionRange.parse(expr)


class VersionMatcher:
    """版本匹配器"""

    def matches(self, version: str, expr: str) -> bool:
        """
        检查版本是否满足表达式

        Args:
            version: 要检查的版本
            expr: 版本范围表达式

        Returns:
            是否匹配（无法解析的版本返回 False）

        Raises:
            InvalidVersionRangeError: 表达式无法解析
        """
        return VersionRange.parse(expr).matches_string(version)

    def satisfies_all(self, version: str, exprs: Iterable[str]) -> bool:
        """检查版本是否同时满足所有表达式"""
        ranges = [VersionRange.parse(expr) for expr in exprs]
        return all(vr.matches_string(version) for vr in ranges)
