"""脚本宿主插件入口 — 注册 Azure facade 服务.

宿主通过 entry point 组 ``scriptrunner.plugins`` 发现插件，
调用 ``initialize`` 传入配置，再调用 ``register_services``
把各个 facade 以单例形式注册到服务容器中。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, TypeVar

from pydantic import ValidationError

from azure_suite.common.errors import InvalidArgumentError
from azure_suite.config.settings import AppConfig
from azure_suite.keyvault.base import SecretStore
from azure_suite.keyvault.client import KeyVaultSecretStore
from azure_suite.resources.base import ResourceClient
from azure_suite.resources.client import AzureResourceClient
from azure_suite.servicebus.base import QueueClient
from azure_suite.servicebus.client import ServiceBusQueueClient
from azure_suite.tables.base import TableStore
from azure_suite.tables.client import AzureTableStore

logger = logging.getLogger(__name__)

PLUGIN_ENTRY_POINT_GROUP = "scriptrunner.plugins"

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class PluginMetadata:
    """插件元数据，供宿主展示和校验."""

    name: str
    description: str
    author: str
    version: str
    services: tuple[str, ...] = field(default_factory=tuple)


class ServiceRegistry:
    """最小的单例服务容器.

    服务按接口类型注册工厂，首次 ``get`` 时创建实例并缓存。
    """

    def __init__(self) -> None:
        self._factories: dict[type, Callable[[], Any]] = {}
        self._instances: dict[type, Any] = {}

    def add_singleton(self, interface: type[T], factory: Callable[[], T]) -> None:
        if interface in self._factories:
            logger.warning("服务 %s 已注册，将被覆盖", interface.__name__)
            self._instances.pop(interface, None)
        self._factories[interface] = factory

    def get(self, interface: type[T]) -> T:
        """获取服务实例.

        Raises:
            KeyError: 服务未注册。
        """
        if interface not in self._instances:
            try:
                factory = self._factories[interface]
            except KeyError:
                raise KeyError(f"服务未注册: {interface.__name__}") from None
            self._instances[interface] = factory()
        return self._instances[interface]

    @property
    def registered(self) -> list[type]:
        return list(self._factories)

    async def aclose(self) -> None:
        """关闭所有已创建的服务实例."""
        instances = list(self._instances.values())
        self._instances.clear()
        for instance in instances:
            close = getattr(instance, "close", None)
            if close is not None:
                await close()


class AzureSuitePlugin:
    """Azure Suite 插件.

    提供四个 facade：
    - SecretStore    → KeyVaultSecretStore
    - QueueClient    → ServiceBusQueueClient
    - TableStore     → AzureTableStore
    - ResourceClient → AzureResourceClient
    """

    metadata = PluginMetadata(
        name="Azure Suite Plugin",
        description="为脚本宿主提供 Key Vault、Service Bus、Table Storage 和资源管理客户端",
        author="Peter van de Pas",
        version="1.0.2",
        services=("SecretStore", "QueueClient", "TableStore", "ResourceClient"),
    )

    def __init__(self) -> None:
        self._config = AppConfig()

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self, configuration: Mapping[str, Any]) -> None:
        """校验宿主传入的配置.

        Args:
            configuration: 与 AppConfig 结构相同的字典，所有段均可省略。

        Raises:
            InvalidArgumentError: 配置校验失败。
        """
        try:
            self._config = AppConfig.model_validate(dict(configuration))
        except ValidationError as e:
            logger.error("插件配置校验失败: %s", e)
            raise InvalidArgumentError(f"插件配置无效: {e}") from e

        configured = [
            section
            for section in ("keyvault", "servicebus", "tables")
            if getattr(self._config, section) is not None
        ]
        if self._config.resources.subscription_id:
            configured.append("resources")
        logger.info(
            "%s 已初始化, 已配置的服务: %s",
            self.name,
            ", ".join(configured) or "无",
        )

    def execute(self) -> None:
        logger.info("%s 已执行", self.name)

    def register_services(self, services: ServiceRegistry) -> None:
        services.add_singleton(SecretStore, KeyVaultSecretStore)
        services.add_singleton(QueueClient, ServiceBusQueueClient)
        services.add_singleton(TableStore, AzureTableStore)
        services.add_singleton(ResourceClient, AzureResourceClient)
        logger.debug("已注册服务: %s", ", ".join(self.metadata.services))

    async def configure_services(self, services: ServiceRegistry) -> None:
        """按 initialize 收到的配置初始化已注册的 facade.

        未配置的段会被跳过，对应 facade 保持未配置状态，
        脚本仍可自行调用 initialize / setup。
        """
        config = self._config
        if config.keyvault is not None:
            await services.get(SecretStore).initialize(config.keyvault.vault_url)

        if config.servicebus is not None:
            services.get(QueueClient).setup(
                config.servicebus.connection_string,
                config.servicebus.queue_name,
                config.servicebus.content_type,
            )

        if config.tables is not None:
            await services.get(TableStore).initialize(
                config.tables.connection_string, config.tables.table_name
            )

        if config.resources.subscription_id:
            await services.get(ResourceClient).set_subscription_context(
                config.resources.subscription_id
            )
        logger.info("%s 已按配置初始化服务", self.name)


def discover_plugins(group: str = PLUGIN_ENTRY_POINT_GROUP) -> list[Any]:
    """从 entry point 加载并实例化所有插件.

    加载失败的插件会被记录并跳过，不影响其他插件。
    """
    plugins = []
    for ep in entry_points(group=group):
        try:
            plugin_cls = ep.load()
            plugins.append(plugin_cls())
        except Exception:
            logger.warning("加载插件失败: %s", ep.name, exc_info=True)
            continue
        logger.info("已加载插件: %s", ep.name)
    return plugins
