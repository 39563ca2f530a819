"""消息队列接口 — 供脚本宿主依赖的抽象."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any


class QueueClient(ABC):
    """消息队列 facade 接口.

    属性包（property bag）中的键值会附加到之后发送的每一条消息上，
    直到被移除或清空。
    """

    @abstractmethod
    def setup(
        self,
        connection_string: str,
        queue_name: str,
        content_type: str = "application/json",
    ) -> None:
        """配置连接串、目标队列和消息内容类型."""

    @abstractmethod
    def switch_queue(self, queue_name: str) -> None:
        """切换目标队列，无需重新提供连接串."""

    @property
    @abstractmethod
    def properties(self) -> Mapping[str, Any]:
        """当前属性包的只读视图."""

    @abstractmethod
    def add_or_update_property(self, key: str, value: Any) -> None:
        """添加或更新一个消息属性."""

    @abstractmethod
    def remove_property(self, key: str) -> bool:
        """移除一个消息属性，返回是否存在."""

    @abstractmethod
    def clear_properties(self) -> None:
        """清空属性包."""

    @abstractmethod
    async def send_message(self, body: str, session_id: str | None = None) -> None:
        """发送单条消息."""

    @abstractmethod
    async def send_batch(
        self, bodies: Sequence[str], session_id: str | None = None
    ) -> int:
        """按传输层容量分批发送，返回实际发送的批次数."""

    @abstractmethod
    async def send_scheduled_message(
        self,
        body: str,
        schedule_time_utc: datetime,
        session_id: str | None = None,
    ) -> int:
        """发送定时消息，返回序列号."""

    @abstractmethod
    async def cancel_scheduled_message(self, sequence_number: int) -> None:
        """取消尚未投递的定时消息."""

    @abstractmethod
    async def receive_messages(
        self,
        max_messages: int = 10,
        session_id: str | None = None,
        max_wait_time: float | None = None,
    ) -> list[Any]:
        """接收最多 max_messages 条消息，无消息时返回空列表."""

    @abstractmethod
    async def complete_message(self, message: Any) -> None:
        """确认（完成）一条已接收的消息."""

    @abstractmethod
    async def close(self) -> None:
        """释放资源."""
