"""
ModServer 注册表层

解析器通过 ModRegistry 接口获取模组版本，这里提供内存、本地目录与 Modrinth 三种实现。
"""

from modserver.api.base import ModRegistry
from modserver.api.memory import InMemoryRegistry
from modserver.api.local import LocalRegistry
from modserver.api.modrinth import ModrinthRegistry

__all__ = [
    "ModRegistry",
    "InMemoryRegistry",
    "LocalRegistry",
    "ModrinthRegistry",
]
