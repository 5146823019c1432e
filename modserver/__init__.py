"""
ModServer - 将客户端整合包转换为服务端模组集合
"""

from modserver.logger import setup_logger

__version__ = "0.1.0"

__all__ = ["__version__", "setup_logger"]
