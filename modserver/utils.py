import json
from pathlib import Path
from typing import Optional

import aiohttp
import toml
import yaml

from modserver.exceptions import ConfigParseError

CONFIG_FORMATS = {
    ".toml": "toml",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def parse_config_text(text: str, format: str) -> dict:
    """按格式解析配置文本"""
    try:
        if format == "toml":
            data = toml.loads(text)
        elif format == "json":
            data = json.loads(text)
        elif format == "yaml":
            data = yaml.safe_load(text)
        else:
            raise ConfigParseError(f"不支持的配置文件格式: {format}")
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"配置文件解析失败: {e}", context={"format": format})

    if not isinstance(data, dict):
        raise ConfigParseError("配置文件顶层必须是表/对象", context={"format": format})
    return data


def load_config(config_path: str) -> dict:
    """
    加载本地配置文件（按后缀识别 toml/json/yaml）

    Raises:
        ConfigParseError: 文件不存在、格式不支持或内容无法解析
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigParseError(f"配置文件不存在: {config_path}")

    format = CONFIG_FORMATS.get(path.suffix.lower())
    if format is None:
        raise ConfigParseError(f"不支持的配置文件格式: {path.suffix}")

    return parse_config_text(path.read_text(encoding="utf-8"), format)


async def fetch_config(
    url: str, format: str, session: Optional[aiohttp.ClientSession] = None
) -> Optional[dict]:
    """获取远程配置，非 200 响应返回 None"""
    owned = session is None
    session = session or aiohttp.ClientSession()
    try:
        async with session.get(url) as response:
            if response.status != 200:
                return None
            return parse_config_text(await response.text(), format)
    finally:
        if owned:
            await session.close()
