"""密钥存储接口 — 供脚本宿主依赖的抽象.

脚本只依赖 SecretStore，具体实现（Azure Key Vault 或测试替身）
由插件在注册服务时决定。
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SecretStore(ABC):
    """远程密钥库的 facade 接口.

    除 ``initialize`` 外的所有操作都要求先完成初始化。
    """

    @abstractmethod
    async def initialize(self, vault_url: str) -> None:
        """连接到指定的密钥库.

        Args:
            vault_url: 密钥库 URL（如 https://xxx.vault.azure.net/）。
        """

    @abstractmethod
    async def list_secrets(self) -> list[str]:
        """返回所有密钥名称."""

    @abstractmethod
    async def get_secret(self, name: str) -> str:
        """读取密钥当前值."""

    @abstractmethod
    async def set_secret(self, name: str, value: str) -> None:
        """创建或更新密钥."""

    @abstractmethod
    async def delete_secret(self, name: str) -> None:
        """软删除密钥，删除到达终态后才返回."""

    @abstractmethod
    async def purge_secret(self, name: str) -> None:
        """永久清除已软删除的密钥."""

    @abstractmethod
    async def recover_secret(self, name: str) -> None:
        """恢复已软删除的密钥."""

    @abstractmethod
    async def close(self) -> None:
        """释放资源."""
