"""Azure Service Bus 队列客户端 — Adapter 模式.

将 azure-servicebus（aio）适配为 QueueClient 接口。
传输层使用 AMQP over WebSockets。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable

from azure.servicebus import ServiceBusMessage, ServiceBusReceivedMessage, TransportType
from azure.servicebus.aio import ServiceBusClient, ServiceBusReceiver
from azure.servicebus.exceptions import MessageSizeExceededError

from azure_suite.common.errors import InvalidArgumentError, require_text
from azure_suite.common.state import Configured
from azure_suite.servicebus.base import QueueClient

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"

_MISSING = object()

ServiceBusClientFactory = Callable[[str], Any]


def _default_client_factory(connection_string: str) -> ServiceBusClient:
    return ServiceBusClient.from_connection_string(
        connection_string,
        transport_type=TransportType.AmqpOverWebsocket,
    )


@dataclass(frozen=True, slots=True)
class _QueueTarget:
    """setup 之后的连接配置."""

    connection_string: str
    queue_name: str
    content_type: str = DEFAULT_CONTENT_TYPE


class ServiceBusQueueClient(QueueClient):
    """Azure Service Bus 队列适配器.

    职责：
    - 保存连接配置和属性包
    - 构造带内容类型、会话 ID、应用属性的消息
    - 维护接收器，保证在同一个接收器上完成消息

    使用方式：
        queue = ServiceBusQueueClient()
        queue.setup(conn_str, "orders")
        await queue.send_message('{"id": 1}')
    """

    def __init__(
        self,
        *,
        client_factory: ServiceBusClientFactory = _default_client_factory,
        max_wait_time: float = 5,
    ) -> None:
        self._client_factory = client_factory
        self._max_wait_time = max_wait_time
        self._target: Configured[_QueueTarget] = Configured(
            "Service Bus 队列", "setup()"
        )
        self._properties: dict[str, Any] = {}
        # 按连接串缓存的客户端
        self._clients: dict[str, Any] = {}
        # 键为 (连接串, 队列名, 会话 ID)
        self._receivers: dict[
            tuple[str, str, str | None], ServiceBusReceiver
        ] = {}
        # id(消息) -> (消息, 接收它的接收器)，complete 后移除
        self._deliveries: dict[int, tuple[Any, ServiceBusReceiver]] = {}
        # setup 换连接串后被替换下来、等待关闭的接收器和客户端
        self._retired: list[Any] = []

    # ── 配置 ──────────────────────────────────────────────────

    def setup(
        self,
        connection_string: str,
        queue_name: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> None:
        """配置 Service Bus 连接.

        Args:
            connection_string: Service Bus 连接串。
            queue_name:        目标队列名。
            content_type:      消息内容类型，为空时使用 application/json。

        Raises:
            InvalidArgumentError: 连接串或队列名为空。
        """
        require_text(connection_string, "connection_string")
        require_text(queue_name, "queue_name")
        previous = self._target.configure(
            _QueueTarget(
                connection_string=connection_string,
                queue_name=queue_name,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
            )
        )
        if previous is not None and previous.connection_string != connection_string:
            self._retire_connection(previous.connection_string)
        logger.info("Service Bus 已配置: queue=%s", queue_name)

    def switch_queue(self, queue_name: str) -> None:
        """切换目标队列.

        Raises:
            NotConfiguredError: 未调用 setup。
            InvalidArgumentError: 队列名为空。
        """
        target = self._target.require()
        require_text(queue_name, "queue_name")
        self._target.configure(replace(target, queue_name=queue_name))
        logger.info("切换队列: %s -> %s", target.queue_name, queue_name)

    # ── 属性包 ────────────────────────────────────────────────

    @property
    def properties(self) -> Mapping[str, Any]:
        return MappingProxyType(self._properties)

    def add_or_update_property(self, key: str, value: Any) -> None:
        require_text(key, "key")
        self._properties[key] = value

    def remove_property(self, key: str) -> bool:
        return self._properties.pop(key, _MISSING) is not _MISSING

    def clear_properties(self) -> None:
        self._properties.clear()

    # ── 发送 ──────────────────────────────────────────────────

    async def send_message(self, body: str, session_id: str | None = None) -> None:
        target = await self._ready()
        message = self._build_message(target, body, session_id)
        try:
            async with self._client(target).get_queue_sender(
                target.queue_name
            ) as sender:
                await sender.send_messages(message)
        except Exception:
            logger.error(
                "发送消息失败: queue=%s session=%s",
                target.queue_name,
                session_id,
                exc_info=True,
            )
            raise
        logger.debug("消息已发送: queue=%s", target.queue_name)

    async def send_batch(
        self, bodies: Sequence[str], session_id: str | None = None
    ) -> int:
        """分批发送消息.

        批次边界由传输层决定：当批次拒绝继续添加时，
        先发送当前批次，再从被拒绝的消息开始新批次。
        前面批次发送成功后，后续批次失败不会回滚。

        Returns:
            实际发送的批次数。

        Raises:
            MessageSizeExceededError: 单条消息超过空批次的容量。
        """
        target = await self._ready()
        if not bodies:
            return 0

        sent_batches = 0
        index = 0
        try:
            async with self._client(target).get_queue_sender(
                target.queue_name
            ) as sender:
                while index < len(bodies):
                    batch = await sender.create_message_batch()
                    added = 0
                    while index < len(bodies):
                        message = self._build_message(
                            target, bodies[index], session_id
                        )
                        try:
                            batch.add_message(message)
                        except MessageSizeExceededError:
                            if added == 0:
                                raise
                            break
                        added += 1
                        index += 1

                    await sender.send_messages(batch)
                    sent_batches += 1
                    logger.debug(
                        "批次 %d 已发送, 消息数=%d", sent_batches, added
                    )
        except Exception:
            logger.error(
                "批量发送失败: queue=%s 已发送批次=%d 已发送消息=%d/%d",
                target.queue_name,
                sent_batches,
                index,
                len(bodies),
                exc_info=True,
            )
            raise

        logger.info(
            "批量发送完成: queue=%s 消息=%d 批次=%d",
            target.queue_name,
            len(bodies),
            sent_batches,
        )
        return sent_batches

    async def send_scheduled_message(
        self,
        body: str,
        schedule_time_utc: datetime,
        session_id: str | None = None,
    ) -> int:
        """发送定时消息，到达指定 UTC 时间后才可见.

        不带时区的 datetime 视为 UTC。

        Returns:
            定时消息的序列号，可用于 cancel_scheduled_message。
        """
        target = await self._ready()
        if schedule_time_utc.tzinfo is None:
            schedule_time_utc = schedule_time_utc.replace(tzinfo=timezone.utc)
        else:
            schedule_time_utc = schedule_time_utc.astimezone(timezone.utc)

        message = self._build_message(target, body, session_id)
        try:
            async with self._client(target).get_queue_sender(
                target.queue_name
            ) as sender:
                sequence_numbers = await sender.schedule_messages(
                    message, schedule_time_utc
                )
        except Exception:
            logger.error(
                "发送定时消息失败: queue=%s at=%s",
                target.queue_name,
                schedule_time_utc.isoformat(),
                exc_info=True,
            )
            raise

        logger.debug(
            "定时消息已提交: queue=%s at=%s seq=%s",
            target.queue_name,
            schedule_time_utc.isoformat(),
            sequence_numbers,
        )
        return sequence_numbers[0]

    async def cancel_scheduled_message(self, sequence_number: int) -> None:
        target = await self._ready()
        try:
            async with self._client(target).get_queue_sender(
                target.queue_name
            ) as sender:
                await sender.cancel_scheduled_messages(sequence_number)
        except Exception:
            logger.error(
                "取消定时消息失败: queue=%s seq=%d",
                target.queue_name,
                sequence_number,
                exc_info=True,
            )
            raise
        logger.debug("定时消息已取消: seq=%d", sequence_number)

    # ── 接收 ──────────────────────────────────────────────────

    async def receive_messages(
        self,
        max_messages: int = 10,
        session_id: str | None = None,
        max_wait_time: float | None = None,
    ) -> list[ServiceBusReceivedMessage]:
        """接收消息.

        提供 session_id 时使用会话接收器，否则使用队列接收器。
        每条消息都记住接收它的接收器，complete_message 在该接收器上完成。

        Args:
            max_messages:  最多接收的消息数，必须大于 0。
            session_id:    会话 ID，为空时使用队列接收器。
            max_wait_time: 本次等待消息的秒数，为空时使用构造时的默认值。

        Returns:
            最多 max_messages 条消息；队列为空时返回空列表。
        """
        target = await self._ready()
        if max_messages < 1:
            raise InvalidArgumentError("max_messages 必须大于 0")
        if max_wait_time is None:
            max_wait_time = self._max_wait_time

        try:
            receiver = self._receiver(target, session_id)
            messages = await receiver.receive_messages(
                max_message_count=max_messages,
                max_wait_time=max_wait_time,
            )
        except Exception:
            logger.error(
                "接收消息失败: queue=%s session=%s",
                target.queue_name,
                session_id,
                exc_info=True,
            )
            raise

        result = list(messages or [])
        for message in result:
            self._deliveries[id(message)] = (message, receiver)
        logger.debug("接收到 %d 条消息: queue=%s", len(result), target.queue_name)
        return result

    async def complete_message(self, message: ServiceBusReceivedMessage) -> None:
        """在接收该消息的接收器上完成它.

        接收后切换队列不影响完成操作；setup 换到其他连接串后，
        旧连接上收到的消息已随接收器关闭，无法再完成。

        Raises:
            InvalidArgumentError: 消息不是由当前客户端接收的，或已完成。
        """
        await self._ready()
        delivery = self._deliveries.get(id(message))
        if delivery is None or delivery[0] is not message:
            raise InvalidArgumentError("消息不是由当前客户端接收的，或已完成")

        receiver = delivery[1]
        try:
            await receiver.complete_message(message)
        except Exception:
            logger.error(
                "完成消息失败: session=%s",
                getattr(message, "session_id", None),
                exc_info=True,
            )
            raise
        del self._deliveries[id(message)]
        logger.debug("消息已完成")

    async def close(self) -> None:
        """关闭所有接收器和客户端."""
        self._retired.extend(self._receivers.values())
        self._retired.extend(self._clients.values())
        self._receivers.clear()
        self._clients.clear()
        self._deliveries.clear()
        await self._close_retired()
        logger.debug("Service Bus 客户端已关闭")

    # ── 内部 ──────────────────────────────────────────────────

    async def _ready(self) -> _QueueTarget:
        """检查已配置，并关闭 setup 替换下来的旧连接."""
        target = self._target.require()
        await self._close_retired()
        return target

    def _retire_connection(self, connection_string: str) -> None:
        """把某个连接串的接收器和客户端移入待关闭列表."""
        stale = [key for key in self._receivers if key[0] == connection_string]
        receivers = {id(self._receivers[key]) for key in stale}
        for key in stale:
            self._retired.append(self._receivers.pop(key))
        client = self._clients.pop(connection_string, None)
        if client is not None:
            self._retired.append(client)
        self._deliveries = {
            key: delivery
            for key, delivery in self._deliveries.items()
            if id(delivery[1]) not in receivers
        }
        logger.debug("旧连接的 %d 个接收器将被关闭", len(stale))

    async def _close_retired(self) -> None:
        # 接收器先于其所属客户端加入列表，按顺序关闭
        retired, self._retired = self._retired, []
        for handle in retired:
            await handle.close()

    def _client(self, target: _QueueTarget) -> Any:
        client = self._clients.get(target.connection_string)
        if client is None:
            client = self._client_factory(target.connection_string)
            self._clients[target.connection_string] = client
        return client

    def _receiver(
        self, target: _QueueTarget, session_id: str | None
    ) -> ServiceBusReceiver:
        key = (target.connection_string, target.queue_name, session_id)
        receiver = self._receivers.get(key)
        if receiver is None:
            client = self._client(target)
            if session_id is None:
                receiver = client.get_queue_receiver(target.queue_name)
            else:
                receiver = client.get_queue_receiver(
                    target.queue_name, session_id=session_id
                )
            self._receivers[key] = receiver
        return receiver

    def _build_message(
        self, target: _QueueTarget, body: str, session_id: str | None
    ) -> ServiceBusMessage:
        """构造消息：内容类型、会话 ID、当前属性包的快照."""
        return ServiceBusMessage(
            body,
            content_type=target.content_type,
            session_id=session_id or None,
            application_properties=dict(self._properties) or None,
        )

