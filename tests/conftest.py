"""测试替身 — 模拟各 Azure SDK 客户端，通过 facade 的工厂参数注入."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from azure.core.exceptions import ResourceNotFoundError
from azure.servicebus.exceptions import MessageSizeExceededError


async def _aiter(items):
    for item in list(items):
        yield item


class RecordingFactory:
    """记录调用次数的工厂."""

    def __init__(self, product: Any) -> None:
        self.product = product
        self.calls: list[tuple[tuple, dict]] = []

    def __call__(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return self.product


# ── Key Vault ────────────────────────────────────────────────


class FakeSecretClient:
    def __init__(self) -> None:
        self.secrets: dict[str, str] = {}
        self.deleted: dict[str, str] = {}
        self.calls: list[str] = []
        self.delete_gate: asyncio.Event | None = None
        self.closed = False

    def list_properties_of_secrets(self):
        self.calls.append("list")
        return _aiter(SimpleNamespace(name=name) for name in self.secrets)

    async def get_secret(self, name):
        self.calls.append("get")
        if name not in self.secrets:
            raise ResourceNotFoundError(f"secret {name} not found")
        return SimpleNamespace(name=name, value=self.secrets[name])

    async def set_secret(self, name, value):
        self.calls.append("set")
        self.secrets[name] = value
        return SimpleNamespace(name=name, value=value)

    async def delete_secret(self, name):
        self.calls.append("delete")
        if name not in self.secrets:
            raise ResourceNotFoundError(f"secret {name} not found")
        # 删除操作在 gate 放行之前不会到达终态
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        self.deleted[name] = self.secrets.pop(name)
        return SimpleNamespace(name=name)

    async def purge_deleted_secret(self, name):
        self.calls.append("purge")
        if name not in self.deleted:
            raise ResourceNotFoundError(f"deleted secret {name} not found")
        del self.deleted[name]

    async def recover_deleted_secret(self, name):
        self.calls.append("recover")
        if name not in self.deleted:
            raise ResourceNotFoundError(f"deleted secret {name} not found")
        self.secrets[name] = self.deleted.pop(name)
        return SimpleNamespace(name=name)

    async def close(self):
        self.closed = True


# ── Service Bus ──────────────────────────────────────────────


class FakeMessageBatch:
    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        self.messages: list[Any] = []

    def add_message(self, message) -> None:
        if len(self.messages) >= self.capacity:
            raise MessageSizeExceededError(message="batch is full")
        self.messages.append(message)


class FakeSender:
    def __init__(self, bus: FakeServiceBusClient, queue_name: str) -> None:
        self.bus = bus
        self.queue_name = queue_name

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def create_message_batch(self):
        return FakeMessageBatch(self.bus.batch_capacity)

    async def send_messages(self, message):
        if isinstance(message, FakeMessageBatch):
            self.bus.sent_batches.append(list(message.messages))
        else:
            self.bus.sent.append((self.queue_name, message))

    async def schedule_messages(self, message, schedule_time_utc):
        self.bus.scheduled.append((message, schedule_time_utc))
        return [len(self.bus.scheduled)]

    async def cancel_scheduled_messages(self, sequence_numbers):
        self.bus.cancelled.append(sequence_numbers)


class FakeReceiver:
    def __init__(self, queue_name: str, session_id: str | None, messages) -> None:
        self.queue_name = queue_name
        self.session_id = session_id
        self.pending = list(messages)
        self.completed: list[Any] = []
        self.wait_times: list[Any] = []
        self.closed = False

    async def receive_messages(self, max_message_count=None, max_wait_time=None):
        self.wait_times.append(max_wait_time)
        taken = self.pending[:max_message_count]
        self.pending = self.pending[max_message_count:]
        return taken

    async def complete_message(self, message):
        self.completed.append(message)

    async def close(self):
        self.closed = True


class FakeServiceBusClient:
    def __init__(self, batch_capacity: int = 100) -> None:
        self.batch_capacity = batch_capacity
        self.sent: list[tuple[str, Any]] = []
        self.sent_batches: list[list[Any]] = []
        self.scheduled: list[tuple[Any, Any]] = []
        self.cancelled: list[Any] = []
        self.inbox: dict[tuple[str, str | None], list[Any]] = {}
        self.receivers: list[FakeReceiver] = []
        self.closed = False

    def get_queue_sender(self, queue_name):
        return FakeSender(self, queue_name)

    def get_queue_receiver(self, queue_name, session_id=None, **kwargs):
        receiver = FakeReceiver(
            queue_name, session_id, self.inbox.get((queue_name, session_id), [])
        )
        self.receivers.append(receiver)
        return receiver

    async def close(self):
        self.closed = True


# ── Table Storage ────────────────────────────────────────────

_PARAMETER_FIELDS = {"row_key": "RowKey", "pk": "PartitionKey"}


class FakeTableClient:
    def __init__(self, table_name: str) -> None:
        self.table_name = table_name
        self.entities: dict[tuple[str, str], dict] = {}
        self.queries: list[tuple[str, dict]] = []
        self.upserts: list[tuple[dict, Any]] = []
        self.closed = False

    async def upsert_entity(self, entity, mode=None):
        self.upserts.append((dict(entity), mode))
        self.entities[(entity["PartitionKey"], entity["RowKey"])] = dict(entity)

    async def delete_entity(self, partition_key, row_key):
        if (partition_key, row_key) not in self.entities:
            raise ResourceNotFoundError("entity not found")
        del self.entities[(partition_key, row_key)]

    async def get_entity(self, partition_key, row_key):
        try:
            return dict(self.entities[(partition_key, row_key)])
        except KeyError:
            raise ResourceNotFoundError("entity not found") from None

    def query_entities(self, query_filter, parameters=None):
        parameters = parameters or {}
        self.queries.append((query_filter, dict(parameters)))
        matches = [
            entity
            for entity in self.entities.values()
            if all(
                entity.get(_PARAMETER_FIELDS[name]) == value
                for name, value in parameters.items()
            )
        ]
        return _aiter(matches)

    async def close(self):
        self.closed = True


class FakeTableServiceClient:
    def __init__(self, table_names=("orders",)) -> None:
        self.tables = {name: FakeTableClient(name) for name in table_names}
        self.closed = False

    def list_tables(self):
        return _aiter(SimpleNamespace(name=name) for name in self.tables)

    def get_table_client(self, table_name):
        return self.tables.setdefault(table_name, FakeTableClient(table_name))

    async def close(self):
        self.closed = True


# ── Resource Manager ─────────────────────────────────────────


def make_resource(name, group, location, resource_type="Microsoft.Web/sites", tags=None):
    return SimpleNamespace(
        id=f"/subscriptions/S/resourceGroups/{group}/providers/{resource_type}/{name}",
        name=name,
        type=resource_type,
        location=location,
        tags=tags,
    )


class _FakeSubscriptionOps:
    def __init__(self, subscriptions) -> None:
        self.subscriptions = subscriptions

    def list(self):
        return _aiter(self.subscriptions)

    async def get(self, subscription_id):
        for sub in self.subscriptions:
            if sub.subscription_id == subscription_id:
                return sub
        raise ResourceNotFoundError(f"subscription {subscription_id} not found")


class FakeSubscriptionClient:
    def __init__(self, subscriptions) -> None:
        self.subscriptions = _FakeSubscriptionOps(subscriptions)
        self.closed = False

    async def close(self):
        self.closed = True


class _FakeResourceGroupOps:
    def __init__(self, groups) -> None:
        self.groups = groups

    def list(self):
        return _aiter(self.groups)

    async def get(self, name):
        # 资源组名不区分大小写
        for group in self.groups:
            if group.name.lower() == name.lower():
                return group
        raise ResourceNotFoundError(f"resource group {name} not found")


class _FakeResourceOps:
    def __init__(self, resources_by_group) -> None:
        self.resources_by_group = resources_by_group
        self.listed_groups: list[str] = []

    def list_by_resource_group(self, name):
        self.listed_groups.append(name)
        for group, resources in self.resources_by_group.items():
            if group.lower() == name.lower():
                return _aiter(resources)
        return _aiter([])


class _FakeProviderOps:
    def __init__(self, namespaces) -> None:
        self.namespaces = namespaces

    def list(self):
        return _aiter(SimpleNamespace(namespace=ns) for ns in self.namespaces)


class FakeResourceManagementClient:
    def __init__(self, groups, resources_by_group, namespaces=()) -> None:
        self.resource_groups = _FakeResourceGroupOps(groups)
        self.resources = _FakeResourceOps(resources_by_group)
        self.providers = _FakeProviderOps(list(namespaces))
        self.closed = False

    async def close(self):
        self.closed = True


# ── fixtures ─────────────────────────────────────────────────


@pytest.fixture
def secret_client():
    return FakeSecretClient()


@pytest.fixture
def bus_client():
    return FakeServiceBusClient(batch_capacity=2)


@pytest.fixture
def bus_namespaces():
    """两个独立命名空间的客户端，按连接串分发."""
    return {
        "Endpoint=sb://a.servicebus.windows.net/": FakeServiceBusClient(),
        "Endpoint=sb://b.servicebus.windows.net/": FakeServiceBusClient(),
    }


@pytest.fixture
def table_service():
    return FakeTableServiceClient()


@pytest.fixture
def subscription_client():
    return FakeSubscriptionClient(
        [
            SimpleNamespace(
                subscription_id="S", display_name="Production", state="Enabled"
            ),
            SimpleNamespace(
                subscription_id="T", display_name="Test", state="Disabled"
            ),
        ]
    )


@pytest.fixture
def management_client():
    groups = [
        SimpleNamespace(
            name="rg1",
            id="/subscriptions/S/resourceGroups/rg1",
            location="eastus",
            tags={"env": "prod"},
        ),
        SimpleNamespace(
            name="rg2",
            id="/subscriptions/S/resourceGroups/rg2",
            location="westus",
            tags={"env": "Prod"},
        ),
    ]
    resources = {
        "rg1": [
            make_resource("web1", "rg1", "eastus", tags={"team": "a", "tier": "1"}),
            make_resource(
                "db1", "rg1", "eastus", "Microsoft.Sql/servers", tags={"team": "a"}
            ),
            make_resource("web2", "rg1", "westus"),
        ],
        "rg2": [
            make_resource("web3", "rg2", "eastus", tags={"team": "b", "tier": "1"}),
            make_resource("db2", "rg2", "westus", "Microsoft.Sql/servers"),
        ],
    }
    return FakeResourceManagementClient(
        groups, resources, namespaces=["Microsoft.Web", "Microsoft.Sql"]
    )


@pytest.fixture
def recording_factory():
    return RecordingFactory
