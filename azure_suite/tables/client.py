"""Azure Table Storage 客户端 — Adapter 模式.

将 azure-data-tables（aio）适配为 TableStore 接口。
过滤表达式语法由 Table 服务定义，本模块原样透传，例如：

    await store.query_entities("PartitionKey eq 'orders'")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import UpdateMode
from azure.data.tables.aio import TableClient, TableServiceClient

from azure_suite.common.errors import require_text
from azure_suite.common.state import Configured
from azure_suite.tables.base import TableStore

logger = logging.getLogger(__name__)

TableServiceFactory = Callable[[str], Any]

# check_entities_exist 使用参数化查询，由 SDK 负责转义
_ROW_KEY_FILTER = "RowKey eq @row_key"


class AzureTableStore(TableStore):
    """Azure Table Storage 适配器.

    使用方式：
        store = AzureTableStore()
        await store.initialize(conn_str, "orders")
        await store.upsert_entity({"PartitionKey": "p", "RowKey": "1"})
    """

    def __init__(
        self,
        *,
        service_factory: TableServiceFactory = TableServiceClient.from_connection_string,
    ) -> None:
        self._service_factory = service_factory
        self._service: Configured[TableServiceClient] = Configured(
            "Table Storage 账户连接", "initialize()"
        )
        self._table: Configured[TableClient] = Configured(
            "Table Storage 数据表", "initialize(connection_string, table_name) 或 set_table()"
        )

    async def initialize(
        self, connection_string: str, table_name: str | None = None
    ) -> None:
        """建立账户级连接.

        Args:
            connection_string: 存储账户连接串。
            table_name:        可选，提供时等同于随后调用 set_table。

        Raises:
            InvalidArgumentError: 连接串或表名为空，此时原有连接保持不变。
        """
        require_text(connection_string, "connection_string")
        if table_name is not None:
            require_text(table_name, "table_name")
        try:
            service = self._service_factory(connection_string)
        except Exception:
            logger.error("初始化 Table Storage 连接失败", exc_info=True)
            raise

        await self._close_clients()
        self._service.configure(service)
        logger.debug("Table Storage 账户连接已建立")

        if table_name is not None:
            self.set_table(table_name)

    async def list_tables(self) -> list[str]:
        service = self._service.require()
        try:
            names = [table.name async for table in service.list_tables()]
        except Exception:
            logger.error("列出数据表失败", exc_info=True)
            raise
        logger.debug("共列出 %d 张表", len(names))
        return names

    def set_table(self, table_name: str) -> None:
        """切换当前表（只需要账户连接，不会发起网络请求）."""
        service = self._service.require()
        require_text(table_name, "table_name")
        self._table.configure(service.get_table_client(table_name))
        logger.info("当前表: %s", table_name)

    async def upsert_entity(self, entity: Mapping[str, Any]) -> None:
        table = self._table.require()
        try:
            await table.upsert_entity(entity, mode=UpdateMode.REPLACE)
        except Exception:
            logger.error(
                "写入实体失败: pk=%s rk=%s",
                entity.get("PartitionKey"),
                entity.get("RowKey"),
                exc_info=True,
            )
            raise

    async def delete_entity(self, partition_key: str, row_key: str) -> None:
        """删除实体.

        实体不存在时的行为由 SDK/服务决定，本方法原样抛出，
        与 get_entity 不同，不会吸收 not-found。
        """
        table = self._table.require()
        try:
            await table.delete_entity(partition_key, row_key)
        except Exception:
            logger.error(
                "删除实体失败: pk=%s rk=%s", partition_key, row_key, exc_info=True
            )
            raise

    async def get_entity(
        self, partition_key: str, row_key: str
    ) -> dict[str, Any] | None:
        """读取实体.

        "某个键是否存在"属于常规查询，因此服务返回 not-found 时
        返回 None 而不是抛出异常。这是本插件唯一吸收 not-found 的地方。
        """
        table = self._table.require()
        try:
            entity = await table.get_entity(partition_key, row_key)
        except ResourceNotFoundError:
            logger.debug("实体不存在: pk=%s rk=%s", partition_key, row_key)
            return None
        except Exception:
            logger.error(
                "读取实体失败: pk=%s rk=%s", partition_key, row_key, exc_info=True
            )
            raise
        return dict(entity)

    async def query_entities(
        self,
        query_filter: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """按过滤表达式查询实体（分页一次性取完）."""
        table = self._table.require()
        try:
            entities = [
                dict(entity)
                async for entity in table.query_entities(
                    query_filter, parameters=dict(parameters or {})
                )
            ]
        except Exception:
            logger.error("查询实体失败: filter=%s", query_filter, exc_info=True)
            raise
        return entities

    async def check_entities_exist(self, row_keys: Sequence[str]) -> list[str]:
        """逐个 RowKey 查询，返回至少匹配一行的键（保持输入顺序）.

        每个键一次往返，服务端没有批量判断存在的接口。
        """
        self._table.require()
        found: list[str] = []
        for row_key in row_keys:
            matches = await self.query_entities(
                _ROW_KEY_FILTER, parameters={"row_key": row_key}
            )
            if matches:
                found.append(row_key)
        logger.debug("存在性检查: %d/%d 个键存在", len(found), len(row_keys))
        return found

    async def close(self) -> None:
        await self._close_clients()
        logger.debug("Table Storage 客户端已关闭")

    async def _close_clients(self) -> None:
        table = self._table.reset()
        service = self._service.reset()
        if table is not None:
            await table.close()
        if service is not None:
            await service.close()
