"""Azure 资源管理客户端 — Adapter 模式.

将 azure-mgmt-resource（aio）适配为 ResourceClient 接口：
订阅列举与上下文切换、资源组/资源查询、按区域统计以及 JSON 导出。
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from azure.identity.aio import DefaultAzureCredential
from azure.mgmt.resource.resources.aio import ResourceManagementClient
from azure.mgmt.resource.subscriptions.aio import SubscriptionClient

from azure_suite.common.errors import require_text
from azure_suite.common.state import Configured
from azure_suite.resources.base import ResourceClient
from azure_suite.resources.models import (
    AzureResource,
    ResourceGroup,
    Subscription,
    resources_to_json,
)

logger = logging.getLogger(__name__)

SubscriptionClientFactory = Callable[[Any], Any]
ManagementClientFactory = Callable[[Any, str], Any]


@dataclass(slots=True)
class _SubscriptionContext:
    """当前订阅及其对应的管理客户端."""

    subscription: Subscription
    client: Any


def _to_subscription(raw: Any) -> Subscription:
    state = raw.state
    return Subscription(
        subscription_id=raw.subscription_id or "",
        display_name=raw.display_name or "",
        state=str(getattr(state, "value", state) or ""),
    )


def _to_resource_group(raw: Any) -> ResourceGroup:
    return ResourceGroup(
        name=raw.name or "",
        resource_id=raw.id or "",
        location=raw.location or "",
        tags=dict(raw.tags or {}),
    )


class AzureResourceClient(ResourceClient):
    """Azure 资源管理适配器.

    职责：
    - 管理凭据、订阅客户端和当前订阅上下文
    - 把 SDK 的资源模型转换为 AzureResource 值对象
    - 跨资源组扫描（非原子，中途失败会直接抛出）

    使用方式：
        client = AzureResourceClient()
        await client.set_subscription_context(subscription_id)
        counts = await client.count_resources_by_location()
    """

    def __init__(
        self,
        credential: Any | None = None,
        *,
        subscription_client_factory: SubscriptionClientFactory = SubscriptionClient,
        management_client_factory: ManagementClientFactory = ResourceManagementClient,
    ) -> None:
        self._credential = credential
        self._owns_credential = credential is None
        self._subscription_client_factory = subscription_client_factory
        self._management_client_factory = management_client_factory
        self._subscription_client: Any | None = None
        self._context: Configured[_SubscriptionContext] = Configured(
            "订阅上下文", "set_subscription_context()"
        )

    @property
    def current_subscription(self) -> Subscription | None:
        context = self._context.peek()
        return context.subscription if context else None

    # ── 订阅 ──────────────────────────────────────────────────

    async def list_subscriptions(self) -> list[Subscription]:
        try:
            subscriptions = [
                _to_subscription(raw)
                async for raw in self._subscriptions().subscriptions.list()
            ]
        except Exception:
            logger.error("列出订阅失败", exc_info=True)
            raise
        logger.debug("共列出 %d 个订阅", len(subscriptions))
        return subscriptions

    async def set_subscription_context(self, subscription_id: str) -> None:
        """设置订阅上下文.

        Raises:
            InvalidArgumentError: subscription_id 为空。
            azure.core.exceptions.ResourceNotFoundError: 订阅不存在或不可见。
        """
        require_text(subscription_id, "subscription_id")
        try:
            raw = await self._subscriptions().subscriptions.get(subscription_id)
            client = self._management_client_factory(
                self._get_credential(), subscription_id
            )
        except Exception:
            logger.error("设置订阅上下文失败: %s", subscription_id, exc_info=True)
            raise

        subscription = _to_subscription(raw)
        previous = self._context.configure(
            _SubscriptionContext(subscription=subscription, client=client)
        )
        if previous is not None:
            await previous.client.close()
        logger.info(
            "订阅上下文: %s (%s)",
            subscription.display_name,
            subscription.subscription_id,
        )

    # ── 资源组 ────────────────────────────────────────────────

    async def get_resource_groups_by_tag(
        self, tag_name: str, tag_value: str
    ) -> list[ResourceGroup]:
        """按标签筛选资源组（值区分大小写，精确匹配）."""
        client = self._context.require().client
        require_text(tag_name, "tag_name")
        try:
            groups = [
                _to_resource_group(rg)
                async for rg in client.resource_groups.list()
                if (rg.tags or {}).get(tag_name) == tag_value
            ]
        except Exception:
            logger.error(
                "按标签查询资源组失败: %s=%s", tag_name, tag_value, exc_info=True
            )
            raise
        return groups

    # ── 资源 ──────────────────────────────────────────────────

    async def get_resources_in_resource_group(
        self, resource_group_name: str
    ) -> list[AzureResource]:
        """列出资源组内的资源.

        每条记录的资源组名从资源 ID 中解析，不沿用调用方传入的名称。

        Raises:
            azure.core.exceptions.ResourceNotFoundError: 资源组不存在。
        """
        client = self._context.require().client
        require_text(resource_group_name, "resource_group_name")
        try:
            group = await client.resource_groups.get(resource_group_name)
            resources = [
                AzureResource.from_generic(resource)
                async for resource in client.resources.list_by_resource_group(
                    group.name
                )
            ]
        except Exception:
            logger.error(
                "列出资源组资源失败: %s", resource_group_name, exc_info=True
            )
            raise
        logger.debug(
            "资源组 %s 共 %d 个资源", resource_group_name, len(resources)
        )
        return resources

    async def get_resources_in_resource_group_as_json(
        self, resource_group_name: str
    ) -> str:
        resources = await self.get_resources_in_resource_group(resource_group_name)
        return resources_to_json(resources)

    async def save_resources_to_json_file(
        self, resource_group_name: str, file_path: str | Path
    ) -> None:
        """导出资源组内的资源到 UTF-8 JSON 文件（整体覆盖）."""
        text = await self.get_resources_in_resource_group_as_json(
            resource_group_name
        )
        path = Path(file_path)
        try:
            path.write_text(text, encoding="utf-8")
        except OSError:
            logger.error("写入 JSON 文件失败: %s", path, exc_info=True)
            raise
        logger.info("资源清单已写入: %s", path)

    async def get_resources_by_type(self, resource_type: str) -> list[AzureResource]:
        client = self._context.require().client
        require_text(resource_type, "resource_type")
        try:
            resources = [
                AzureResource.from_generic(resource)
                async for resource in self._scan_resources(client)
                if resource.type == resource_type
            ]
        except Exception:
            logger.error("按类型查询资源失败: %s", resource_type, exc_info=True)
            raise
        return resources

    async def get_resources_by_tags(
        self, tags: Mapping[str, str]
    ) -> list[AzureResource]:
        """筛选同时满足所有标签键值对的资源."""
        client = self._context.require().client
        wanted = dict(tags)
        try:
            resources = [
                AzureResource.from_generic(resource)
                async for resource in self._scan_resources(client)
                if _has_tags(resource.tags or {}, wanted)
            ]
        except Exception:
            logger.error("按标签查询资源失败: %s", wanted, exc_info=True)
            raise
        return resources

    async def count_resources_by_location(self) -> dict[str, int]:
        client = self._context.require().client
        counts: Counter[str] = Counter()
        try:
            async for resource in self._scan_resources(client):
                counts[resource.location] += 1
        except Exception:
            logger.error("按区域统计资源失败", exc_info=True)
            raise
        return dict(counts)

    async def list_resource_providers(self) -> list[str]:
        client = self._context.require().client
        try:
            namespaces = [
                provider.namespace async for provider in client.providers.list()
            ]
        except Exception:
            logger.error("列出资源提供程序失败", exc_info=True)
            raise
        return namespaces

    async def resource_exists(
        self, resource_group_name: str, resource_name: str
    ) -> bool:
        resources = await self.get_resources_in_resource_group(resource_group_name)
        return any(resource.name == resource_name for resource in resources)

    async def close(self) -> None:
        """关闭管理客户端、订阅客户端以及自己创建的凭据."""
        context = self._context.reset()
        if context is not None:
            await context.client.close()
        if self._subscription_client is not None:
            await self._subscription_client.close()
            self._subscription_client = None
        if self._owns_credential and self._credential is not None:
            await self._credential.close()
            self._credential = None
        logger.debug("资源管理客户端已关闭")

    # ── 内部 ──────────────────────────────────────────────────

    def _get_credential(self) -> Any:
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return self._credential

    def _subscriptions(self) -> Any:
        if self._subscription_client is None:
            self._subscription_client = self._subscription_client_factory(
                self._get_credential()
            )
        return self._subscription_client

    @staticmethod
    async def _scan_resources(client: Any) -> AsyncIterator[Any]:
        """遍历订阅下每个资源组中的每个资源."""
        async for group in client.resource_groups.list():
            async for resource in client.resources.list_by_resource_group(
                group.name
            ):
                yield resource


def _has_tags(actual: Mapping[str, str], wanted: Mapping[str, str]) -> bool:
    return all(
        key in actual and actual[key] == value for key, value in wanted.items()
    )
