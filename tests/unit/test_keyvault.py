"""KeyVaultSecretStore 测试."""

import asyncio

import pytest
from azure.core.exceptions import ResourceNotFoundError

from azure_suite.common.errors import InvalidArgumentError, NotConfiguredError
from azure_suite.keyvault.client import KeyVaultSecretStore

_CREDENTIAL = object()


async def _ready_store(secret_client, recording_factory):
    factory = recording_factory(secret_client)
    store = KeyVaultSecretStore(_CREDENTIAL, client_factory=factory)
    await store.initialize("https://vault.example.net/")
    return store, factory


@pytest.mark.asyncio
async def test_operations_before_initialize_never_build_a_client(
    secret_client, recording_factory
):
    factory = recording_factory(secret_client)
    store = KeyVaultSecretStore(_CREDENTIAL, client_factory=factory)

    for call in (
        store.list_secrets(),
        store.get_secret("a"),
        store.set_secret("a", "b"),
        store.delete_secret("a"),
        store.purge_secret("a"),
        store.recover_secret("a"),
    ):
        with pytest.raises(NotConfiguredError):
            await call

    assert factory.calls == []
    assert secret_client.calls == []


@pytest.mark.asyncio
async def test_initialize_passes_url_and_credential(secret_client, recording_factory):
    _, factory = await _ready_store(secret_client, recording_factory)

    assert factory.calls == [
        ((), {"vault_url": "https://vault.example.net/", "credential": _CREDENTIAL})
    ]


@pytest.mark.asyncio
async def test_initialize_rejects_empty_url(secret_client, recording_factory):
    store = KeyVaultSecretStore(
        _CREDENTIAL, client_factory=recording_factory(secret_client)
    )

    with pytest.raises(InvalidArgumentError):
        await store.initialize("")


@pytest.mark.asyncio
async def test_set_get_and_list(secret_client, recording_factory):
    store, _ = await _ready_store(secret_client, recording_factory)

    await store.set_secret("db-password", "hunter2")
    await store.set_secret("api-key", "k")

    assert await store.get_secret("db-password") == "hunter2"
    assert await store.list_secrets() == ["db-password", "api-key"]


@pytest.mark.asyncio
async def test_get_missing_secret_propagates_not_found(secret_client, recording_factory):
    store, _ = await _ready_store(secret_client, recording_factory)

    with pytest.raises(ResourceNotFoundError):
        await store.get_secret("missing")


@pytest.mark.asyncio
async def test_get_secret_without_value_raises(secret_client, recording_factory):
    store, _ = await _ready_store(secret_client, recording_factory)
    secret_client.secrets["empty"] = None

    with pytest.raises(ValueError, match="empty"):
        await store.get_secret("empty")


@pytest.mark.asyncio
async def test_delete_waits_for_terminal_state_then_purge_succeeds(
    secret_client, recording_factory
):
    store, _ = await _ready_store(secret_client, recording_factory)
    secret_client.secrets["x"] = "v"
    secret_client.delete_gate = asyncio.Event()

    task = asyncio.create_task(store.delete_secret("x"))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert not task.done()
    assert "x" not in secret_client.deleted

    secret_client.delete_gate.set()
    await task
    assert "x" in secret_client.deleted

    await store.purge_secret("x")
    assert secret_client.deleted == {}


@pytest.mark.asyncio
async def test_delete_then_recover_restores_secret(secret_client, recording_factory):
    store, _ = await _ready_store(secret_client, recording_factory)
    secret_client.secrets["x"] = "v"

    await store.delete_secret("x")
    await store.recover_secret("x")

    assert secret_client.secrets == {"x": "v"}


@pytest.mark.asyncio
async def test_reinitialize_closes_previous_client(recording_factory):
    first_closed = []

    class _Client:
        def __init__(self, tag):
            self.tag = tag

        async def close(self):
            first_closed.append(self.tag)

    clients = iter([_Client("first"), _Client("second")])
    store = KeyVaultSecretStore(
        _CREDENTIAL, client_factory=lambda **kwargs: next(clients)
    )

    await store.initialize("https://a.vault.azure.net/")
    await store.initialize("https://b.vault.azure.net/")

    assert first_closed == ["first"]


@pytest.mark.asyncio
async def test_close_does_not_close_injected_credential(secret_client, recording_factory):
    store, _ = await _ready_store(secret_client, recording_factory)

    await store.close()

    assert secret_client.closed
    with pytest.raises(NotConfiguredError):
        await store.list_secrets()


@pytest.mark.asyncio
async def test_instances_do_not_share_clients(secret_client, recording_factory):
    first = KeyVaultSecretStore(
        _CREDENTIAL, client_factory=recording_factory(secret_client)
    )
    second = KeyVaultSecretStore(
        _CREDENTIAL, client_factory=recording_factory(secret_client)
    )

    await first.initialize("https://a.vault.azure.net/")

    with pytest.raises(NotConfiguredError):
        await second.get_secret("a")
