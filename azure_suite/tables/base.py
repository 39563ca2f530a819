"""表存储接口 — 供脚本宿主依赖的抽象."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any


class TableStore(ABC):
    """键值实体表的 facade 接口.

    两级配置相互独立：
    - 账户连接（initialize）: list_tables / set_table 需要
    - 当前表（set_table）: 所有实体操作需要
    """

    @abstractmethod
    async def initialize(
        self, connection_string: str, table_name: str | None = None
    ) -> None:
        """建立账户级连接，可同时选择表."""

    @abstractmethod
    async def list_tables(self) -> list[str]:
        """列出账户下所有表名."""

    @abstractmethod
    def set_table(self, table_name: str) -> None:
        """切换当前表."""

    @abstractmethod
    async def upsert_entity(self, entity: Mapping[str, Any]) -> None:
        """按 PartitionKey + RowKey 创建或整体替换实体."""

    @abstractmethod
    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        """删除实体."""

    @abstractmethod
    async def get_entity(
        self, partition_key: str, row_key: str
    ) -> dict[str, Any] | None:
        """读取实体，不存在时返回 None."""

    @abstractmethod
    async def query_entities(
        self,
        query_filter: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """按过滤表达式查询实体."""

    @abstractmethod
    async def check_entities_exist(self, row_keys: Sequence[str]) -> list[str]:
        """返回在当前表中存在的 RowKey."""

    @abstractmethod
    async def close(self) -> None:
        """释放资源."""
