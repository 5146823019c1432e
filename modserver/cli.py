"""
CLI 模块

命令行接口实现。
"""

import asyncio
from typing import Optional

import click
from loguru import logger

from modserver import __version__
from modserver.exceptions import ModServerError
from modserver.logger import setup_logger
from modserver.models import ServerPackConfig
from modserver.orchestrator import ServerPackOrchestrator
from modserver.utils import load_config


async def run_async(
    config_path: str,
    dry_run: bool = False,
    include_optional: bool = False,
    strict: bool = False,
):
    """异步运行"""
    try:
        config = ServerPackConfig.from_dict(load_config(config_path))
        if include_optional:
            config.resolve.include_optional = True
        if strict:
            config.resolve.strict = True

        logger.info(f"  Minecraft 版本: {config.minecraft.version}")
        logger.info(f"  模组加载器: {config.minecraft.mod_loader.value}")
        logger.info(f"  来源: {config.source.type.value}")

        orchestrator = ServerPackOrchestrator(config)
        await orchestrator.run(dry_run=dry_run)

        stats = orchestrator.get_stats()
        logger.success(f"完成! 服务端模组 {stats['server_mods']} 个")
        if stats["skipped_client_mods"]:
            logger.info(f"跳过了 {stats['skipped_client_mods']} 个仅客户端模组")
        if stats["missing"]:
            logger.warning(f"有 {stats['missing']} 个模组或依赖无法找到")

    except ModServerError as e:
        logger.error(f"运行失败: {e}")
        raise click.ClickException(str(e))


@click.command()
@click.argument("config", type=click.Path(exists=True), default="modserver.toml")
@click.option("--dry-run", is_flag=True, help="干运行模式（只生成安装计划，不下载）")
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option("--include-optional", is_flag=True, help="同时解析可选依赖")
@click.option("--strict", is_flag=True, help="存在冲突或缺失依赖时失败")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="同时将 DEBUG 级别的运行日志写入该文件",
)
@click.version_option(version=__version__)
def main(
    config: str,
    dry_run: bool,
    debug: bool,
    include_optional: bool,
    strict: bool,
    log_file: Optional[str],
):
    """ModServer - 将 Minecraft 整合包转换为服务端模组集"""
    if debug or log_file:
        setup_logger(level="DEBUG" if debug else None, log_file=log_file)

    try:
        asyncio.run(run_async(config, dry_run, include_optional, strict))
    finally:
        # 等待队列中的日志写完
        logger.complete()


if __name__ == "__main__":
    main()
