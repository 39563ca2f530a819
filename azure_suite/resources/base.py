"""资源管理接口 — 供脚本宿主依赖的抽象."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

from azure_suite.resources.models import AzureResource, ResourceGroup, Subscription


class ResourceClient(ABC):
    """资源管理 facade 接口.

    除 list_subscriptions / set_subscription_context 外，
    所有操作都要求先设置订阅上下文。
    """

    @property
    @abstractmethod
    def current_subscription(self) -> Subscription | None:
        """当前订阅上下文，未设置时为 None."""

    @abstractmethod
    async def list_subscriptions(self) -> list[Subscription]:
        """列出当前身份可见的所有订阅."""

    @abstractmethod
    async def set_subscription_context(self, subscription_id: str) -> None:
        """设置订阅上下文."""

    @abstractmethod
    async def get_resource_groups_by_tag(
        self, tag_name: str, tag_value: str
    ) -> list[ResourceGroup]:
        """按标签精确匹配资源组."""

    @abstractmethod
    async def get_resources_in_resource_group(
        self, resource_group_name: str
    ) -> list[AzureResource]:
        """列出资源组内的资源."""

    @abstractmethod
    async def get_resources_in_resource_group_as_json(
        self, resource_group_name: str
    ) -> str:
        """以 JSON 导出资源组内的资源."""

    @abstractmethod
    async def save_resources_to_json_file(
        self, resource_group_name: str, file_path: str | Path
    ) -> None:
        """将资源组内的资源写入 JSON 文件."""

    @abstractmethod
    async def get_resources_by_type(self, resource_type: str) -> list[AzureResource]:
        """在整个订阅中按资源类型筛选."""

    @abstractmethod
    async def get_resources_by_tags(
        self, tags: Mapping[str, str]
    ) -> list[AzureResource]:
        """在整个订阅中筛选同时满足所有标签的资源."""

    @abstractmethod
    async def count_resources_by_location(self) -> dict[str, int]:
        """按区域统计资源数量."""

    @abstractmethod
    async def list_resource_providers(self) -> list[str]:
        """列出资源提供程序命名空间."""

    @abstractmethod
    async def resource_exists(
        self, resource_group_name: str, resource_name: str
    ) -> bool:
        """判断资源组内是否存在指定名称的资源."""

    @abstractmethod
    async def close(self) -> None:
        """释放资源."""
