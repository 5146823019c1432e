"""
ModServer 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional
import aiohttp


class ModServerError(Exception):
    """ModServer 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(ModServerError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class APIError(ModServerError):
    """API 相关错误"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        response: Optional[aiohttp.ClientResponse] = None,
    ):
        super().__init__(message, code, context)
        self.response = response
        if response is not None:
            self.context["status_code"] = response.status
            self.context["url"] = str(response.url)

    def _get_default_code(self) -> str:
        return "E200"


class APIRateLimitError(APIError):
    """API 速率限制"""

    def _get_default_code(self) -> str:
        return "E429"


class APIServerError(APIError):
    """API 服务器错误"""

    def _get_default_code(self) -> str:
        return "E500"


class DownloadError(ModServerError):
    """下载相关错误"""

    def _get_default_code(self) -> str:
        return "E300"


class DownloadNetworkError(DownloadError):
    """下载网络错误"""

    def _get_default_code(self) -> str:
        return "E301"


class DownloadChecksumError(DownloadError):
    """下载校验错误"""

    def _get_default_code(self) -> str:
        return "E302"


class DownloadFileError(DownloadError):
    """下载文件操作错误"""

    def _get_default_code(self) -> str:
        return "E303"


class PackagerError(ModServerError):
    """整合包相关错误"""

    def _get_default_code(self) -> str:
        return "E400"


class MrpackError(PackagerError):
    """Mrpack 解析错误"""

    def _get_default_code(self) -> str:
        return "E401"


class VersionError(ModServerError):
    """版本相关错误"""

    def _get_default_code(self) -> str:
        return "E600"


class InvalidVersionError(VersionError):
    """版本号格式错误"""

    def _get_default_code(self) -> str:
        return "E601"


class InvalidVersionRangeError(VersionError):
    """版本范围表达式错误"""

    def _get_default_code(self) -> str:
        return "E602"


class ResolutionError(ModServerError):
    """依赖解析错误"""

    def _get_default_code(self) -> str:
        return "E700"


class CircularDependencyError(ResolutionError):
    """循环依赖"""

    def __init__(
        self,
        mod_id: str,
        path: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.mod_id = mod_id
        self.path = list(path or [])
        message = f"检测到循环依赖: {mod_id}"
        if self.path:
            message += f" ({' -> '.join(self.path)})"
        super().__init__(
            message,
            context={"mod_id": mod_id, "path": self.path, **(context or {})},
        )

    def _get_default_code(self) -> str:
        return "E701"


class UnresolvedDependencyError(ResolutionError):
    """存在无法满足的必需依赖"""

    def _get_default_code(self) -> str:
        return "E702"


class VersionConflictError(ResolutionError):
    """存在版本冲突"""

    def _get_default_code(self) -> str:
        return "E703"


class VersionSelectionError(ResolutionError):
    """没有可用或满足约束的版本"""

    def _get_default_code(self) -> str:
        return "E704"


__all__ = [
    # 基础异常
    "ModServerError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # API 异常
    "APIError",
    "APIRateLimitError",
    "APIServerError",
    # 下载异常
    "DownloadError",
    "DownloadNetworkError",
    "DownloadChecksumError",
    "DownloadFileError",
    # 整合包异常
    "PackagerError",
    "MrpackError",
    # 版本异常
    "VersionError",
    "InvalidVersionError",
    "InvalidVersionRangeError",
    # 解析异常
    "ResolutionError",
    "CircularDependencyError",
    "UnresolvedDependencyError",
    "VersionConflictError",
    "VersionSelectionError",
]
