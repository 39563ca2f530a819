"""Azure Suite 插件 — 本地运行入口.

模拟脚本宿主的启动流程：
1. 加载配置
2. 加载插件并注册服务（依赖注入）
3. 按配置初始化 facade，输出一份资源清单
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# 确保项目根目录在 sys.path 中
_project_root = Path(__file__).resolve().parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from azure_suite.config.settings import AppConfig, load_config  # noqa: E402
from azure_suite.keyvault.base import SecretStore  # noqa: E402
from azure_suite.plugin import (  # noqa: E402
    AzureSuitePlugin,
    ServiceRegistry,
    discover_plugins,
)
from azure_suite.resources.base import ResourceClient  # noqa: E402
from azure_suite.tables.base import TableStore  # noqa: E402


def _setup_logging(level: str) -> None:
    """配置日志."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=(
            "%(asctime)s | %(levelname)-7s | %(name)-25s | %(message)s"
        ),
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # 降低第三方库日志级别
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("azure.identity").setLevel(logging.WARNING)
    logging.getLogger("uamqp").setLevel(logging.WARNING)


async def _report(services: ServiceRegistry, config: AppConfig) -> None:
    """输出已配置 facade 的清单."""
    logger = logging.getLogger("azure-suite")

    if config.keyvault is not None:
        names = await services.get(SecretStore).list_secrets()
        logger.info("Key Vault: %d 个密钥", len(names))

    if config.servicebus is not None:
        logger.info("Service Bus: 已配置队列 %s", config.servicebus.queue_name)

    if config.tables is not None:
        tables = await services.get(TableStore).list_tables()
        logger.info("Table Storage: %s", ", ".join(tables))

    resources = services.get(ResourceClient)
    if not config.resources.subscription_id:
        for sub in await resources.list_subscriptions():
            logger.info("订阅: %s (%s)", sub.display_name, sub.subscription_id)
        return

    for location, count in sorted(
        (await resources.count_resources_by_location()).items()
    ):
        logger.info("区域 %-20s %d 个资源", location, count)

    if config.resources.resource_group and config.resources.export_path:
        await resources.save_resources_to_json_file(
            config.resources.resource_group, config.resources.export_path
        )


async def main() -> None:
    """主入口 — 组装依赖并运行."""
    # 1. 加载配置
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    config = load_config(config_path)

    # 2. 配置日志
    _setup_logging(config.logging.level)
    logger = logging.getLogger("azure-suite")

    # 3. 加载插件（未安装 entry point 时直接使用本包的插件）
    plugins = discover_plugins() or [AzureSuitePlugin()]
    services = ServiceRegistry()
    for plugin in plugins:
        plugin.initialize(config.model_dump())
        plugin.register_services(services)
        plugin.execute()

    # 4. 按配置初始化 facade，运行并确保关闭
    try:
        for plugin in plugins:
            await plugin.configure_services(services)
        await _report(services, config)
    finally:
        await services.aclose()
        logger.info("已关闭")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
