"""
API 客户端

Modrinth v2 API 的异步客户端，只负责请求与状态码映射，不做版本选择。
"""

import json
from typing import List, Optional

import aiohttp
from loguru import logger

from modserver.models import ProjectInfo
from modserver.exceptions import APIError, APIRateLimitError, APIServerError


MODRINTH_BASE_URL = "https://api.modrinth.com/v2"


class ModrinthClient:
    """Modrinth API 客户端"""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = MODRINTH_BASE_URL,
    ):
        self._session = session
        self._owned_session = session is None
        self.base_url = base_url.rstrip("/")

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _request(self, endpoint: str, params: Optional[dict] = None):
        """
        发送 API 请求

        Returns:
            JSON 响应，404 时返回 None

        Raises:
            APIRateLimitError: 429
            APIServerError: 5xx
            APIError: 其他非 200 状态码或网络错误
        """
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"[请求] GET {url} {params or ''}")
        try:
            async with self.session.get(url, params=params) as response:
                if response.status == 200:
                    return await response.json()
                elif response.status == 404:
                    return None
                elif response.status == 429:
                    raise APIRateLimitError("API 请求过于频繁", response=response)
                elif response.status >= 500:
                    raise APIServerError(
                        f"API 服务端错误 (状态码: {response.status})",
                        response=response,
                    )
                else:
                    raise APIError(
                        f"API 请求失败 (状态码: {response.status})",
                        response=response,
                    )
        except aiohttp.ClientError as e:
            raise APIError(f"API 请求失败: {e}", context={"url": url})

    async def get_project(self, idx: str) -> Optional[ProjectInfo]:
        """获取项目信息（idx 可以是 ID 或 slug）"""
        response = await self._request(f"/project/{idx}")
        if response is None:
            return None
        return ProjectInfo.from_modrinth(response)

    async def get_versions(
        self,
        idx: str,
        mc_version: Optional[str] = None,
        mod_loader: Optional[str] = None,
    ) -> List[dict]:
        """
        获取项目的版本列表（Modrinth 按发布时间倒序返回）

        Returns:
            原始版本数据列表，项目不存在时为空列表
        """
        params = {}
        if mc_version:
            params["game_versions"] = json.dumps([mc_version])
        if mod_loader:
            params["loaders"] = json.dumps([mod_loader])

        response = await self._request(f"/project/{idx}/version", params or None)
        return response or []

    async def get_version(self, version_id: str) -> Optional[dict]:
        """按版本 ID 获取单个版本"""
        return await self._request(f"/version/{version_id}")

    async def close(self):
        """关闭客户端"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
