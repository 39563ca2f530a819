"""Azure Key Vault 密钥存储 — Adapter 模式.

将 Azure Key Vault SDK（aio）适配为 SecretStore 接口，
使脚本不依赖具体的密钥存储实现。

@see https://refactoring.guru/design-patterns/adapter
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from azure.identity.aio import DefaultAzureCredential
from azure.keyvault.secrets.aio import SecretClient

from azure_suite.common.errors import require_text
from azure_suite.common.state import Configured
from azure_suite.keyvault.base import SecretStore

logger = logging.getLogger(__name__)

SecretClientFactory = Callable[..., Any]


class KeyVaultSecretStore(SecretStore):
    """Azure Key Vault 密钥适配器.

    默认使用 DefaultAzureCredential，支持多种认证方式:
    - 本地开发: Azure CLI / VS Code 登录
    - 生产环境: Managed Identity / 环境变量

    客户端由实例自己持有，多个实例之间互不影响。
    """

    def __init__(
        self,
        credential: Any | None = None,
        *,
        client_factory: SecretClientFactory = SecretClient,
    ) -> None:
        """创建未初始化的密钥存储.

        Args:
            credential:     认证凭据；为空时在 initialize 时创建
                            DefaultAzureCredential 并由本实例负责关闭。
            client_factory: SecretClient 构造器，测试时可替换。
        """
        self._credential = credential
        self._owns_credential = credential is None
        self._client_factory = client_factory
        self._client: Configured[SecretClient] = Configured(
            "Key Vault 客户端", "initialize()"
        )

    async def initialize(self, vault_url: str) -> None:
        """初始化 Key Vault 客户端.

        重复调用会关闭并替换之前的客户端。

        Raises:
            InvalidArgumentError: vault_url 为空。
        """
        require_text(vault_url, "vault_url")
        try:
            if self._credential is None:
                self._credential = DefaultAzureCredential()
            client = self._client_factory(
                vault_url=vault_url,
                credential=self._credential,
            )
        except Exception:
            logger.error("初始化 Key Vault 客户端失败: %s", vault_url, exc_info=True)
            raise

        previous = self._client.configure(client)
        if previous is not None:
            await previous.close()
        logger.debug("Key Vault 客户端已初始化: %s", vault_url)

    async def list_secrets(self) -> list[str]:
        """列出所有密钥名称（分页一次性取完）."""
        client = self._client.require()
        try:
            names = [
                props.name
                async for props in client.list_properties_of_secrets()
            ]
        except Exception:
            logger.error("列出密钥失败", exc_info=True)
            raise

        logger.debug("共列出 %d 个密钥", len(names))
        return names

    async def get_secret(self, name: str) -> str:
        """从 Key Vault 获取密钥值.

        Args:
            name: 密钥名称。

        Returns:
            密钥的字符串值。

        Raises:
            NotConfiguredError: 未调用 initialize。
            azure.core.exceptions.ResourceNotFoundError: 密钥不存在。
            ValueError: 密钥存在但值为空。
            azure.core.exceptions.HttpResponseError: Key Vault 访问失败。
        """
        client = self._client.require()
        require_text(name, "name")
        logger.debug("正在从 Key Vault 获取密钥: %s", name)
        try:
            secret = await client.get_secret(name)
        except Exception:
            logger.error("获取密钥失败: %s", name, exc_info=True)
            raise

        if secret.value is None:
            raise ValueError(f"Key Vault 密钥 '{name}' 的值为空")

        return secret.value

    async def set_secret(self, name: str, value: str) -> None:
        client = self._client.require()
        require_text(name, "name")
        try:
            await client.set_secret(name, value)
        except Exception:
            logger.error("设置密钥失败: %s", name, exc_info=True)
            raise
        logger.debug("密钥 %s 已设置", name)

    async def delete_secret(self, name: str) -> None:
        """软删除密钥.

        aio SDK 的 delete_secret 会轮询直到删除到达终态，
        因此返回后紧接着的 purge/recover 一定能看到已删除状态。
        """
        client = self._client.require()
        require_text(name, "name")
        try:
            await client.delete_secret(name)
        except Exception:
            logger.error("删除密钥失败: %s", name, exc_info=True)
            raise
        logger.debug("密钥 %s 已删除，处于软删除状态", name)

    async def purge_secret(self, name: str) -> None:
        client = self._client.require()
        require_text(name, "name")
        try:
            await client.purge_deleted_secret(name)
        except Exception:
            logger.error("清除密钥失败: %s", name, exc_info=True)
            raise
        logger.debug("密钥 %s 已永久清除", name)

    async def recover_secret(self, name: str) -> None:
        """恢复已软删除的密钥.

        调用方不应假设返回后密钥立即可读。
        """
        client = self._client.require()
        require_text(name, "name")
        try:
            await client.recover_deleted_secret(name)
        except Exception:
            logger.error("恢复密钥失败: %s", name, exc_info=True)
            raise
        logger.debug("密钥 %s 已恢复", name)

    async def close(self) -> None:
        """释放 Key Vault 客户端资源."""
        client = self._client.reset()
        if client is not None:
            await client.close()
        if self._owns_credential and self._credential is not None:
            await self._credential.close()
            self._credential = None
        logger.debug("Key Vault 客户端已关闭")
