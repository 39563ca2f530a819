"""数据模型 — Azure 资源管理相关的值对象."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

UNKNOWN_RESOURCE_GROUP = "Unknown"

# /subscriptions/{id}/resourceGroups/{name}/providers/... 按 "/" 切分后第 4 段
_RESOURCE_GROUP_SEGMENT = 4


@dataclass(frozen=True, slots=True)
class AzureResource:
    """一个通用资源."""

    name: str
    resource_id: str
    resource_type: str
    location: str
    resource_group_name: str  # 从 resource_id 解析，而非调用方传入

    @classmethod
    def from_generic(cls, resource: Any) -> AzureResource:
        """从 SDK 的 GenericResourceExpanded 构造."""
        resource_id = str(resource.id or "")
        return cls(
            name=resource.name or "",
            resource_id=resource_id,
            resource_type=str(resource.type or ""),
            location=resource.location or "",
            resource_group_name=resource_group_from_id(resource_id),
        )

    def to_dict(self) -> dict[str, str]:
        """按固定字段顺序导出，键名与宿主脚本使用的 JSON 保持一致."""
        return {
            "Name": self.name,
            "ResourceId": self.resource_id,
            "ResourceType": self.resource_type,
            "Location": self.location,
            "ResourceGroupName": self.resource_group_name,
        }


@dataclass(frozen=True, slots=True)
class Subscription:
    """订阅基本信息."""

    subscription_id: str
    display_name: str
    state: str


@dataclass(frozen=True, slots=True)
class ResourceGroup:
    """资源组基本信息."""

    name: str
    resource_id: str
    location: str
    tags: dict[str, str] = field(default_factory=dict)


def resource_group_from_id(resource_id: str) -> str:
    """从资源 ID 中提取资源组名，无法提取时返回 "Unknown"."""
    parts = resource_id.split("/")
    if len(parts) > _RESOURCE_GROUP_SEGMENT and parts[_RESOURCE_GROUP_SEGMENT]:
        return parts[_RESOURCE_GROUP_SEGMENT]
    return UNKNOWN_RESOURCE_GROUP


def resources_to_json(resources: Iterable[AzureResource]) -> str:
    """序列化为带缩进的 JSON 数组."""
    return json.dumps(
        [resource.to_dict() for resource in resources],
        indent=2,
        ensure_ascii=False,
    )
