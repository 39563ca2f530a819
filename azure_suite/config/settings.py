"""配置管理 — 加载 YAML 配置文件或环境变量.

使用 pydantic 进行配置校验，
确保必填项不为空、类型正确。每个 Azure 服务的配置都是可选的，
只初始化配置了的 facade。

支持两种配置方式：
1. YAML 文件（本地开发）
2. 环境变量（Azure 部署）
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

_ENV_TRIGGERS = (
    "KEYVAULT_URL",
    "SERVICEBUS_CONNECTION_STRING",
    "TABLES_CONNECTION_STRING",
    "AZURE_SUBSCRIPTION_ID",
)


def _reject_placeholder(v: str, what: str) -> str:
    if "your_" in v or not v.strip():
        raise ValueError(f"请填入真实的 {what}")
    return v.strip()


class KeyVaultConfig(BaseModel):
    """Azure Key Vault 配置."""

    vault_url: str

    @field_validator("vault_url")
    @classmethod
    def not_placeholder(cls, v: str) -> str:
        return _reject_placeholder(v, "Key Vault URL")


class ServiceBusConfig(BaseModel):
    """Azure Service Bus 配置."""

    connection_string: str
    queue_name: str
    content_type: str = "application/json"

    @field_validator("connection_string")
    @classmethod
    def not_placeholder(cls, v: str) -> str:
        return _reject_placeholder(v, "Service Bus 连接串")


class TableStorageConfig(BaseModel):
    """Azure Table Storage 配置."""

    connection_string: str
    table_name: str | None = None

    @field_validator("connection_string")
    @classmethod
    def not_placeholder(cls, v: str) -> str:
        return _reject_placeholder(v, "存储账户连接串")


class ResourceManagerConfig(BaseModel):
    """Azure 资源管理配置."""

    subscription_id: str | None = None
    resource_group: str | None = None  # 导出清单的资源组
    export_path: str | None = None  # 资源清单 JSON 输出路径


class LoggingConfig(BaseModel):
    """日志配置."""

    level: str = "INFO"


class AppConfig(BaseModel):
    """应用总配置."""

    keyvault: KeyVaultConfig | None = None
    servicebus: ServiceBusConfig | None = None
    tables: TableStorageConfig | None = None
    resources: ResourceManagerConfig = ResourceManagerConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """加载配置文件或从环境变量构建配置.

    优先级：
    1. 任一服务的环境变量存在 → 从环境变量加载
    2. 指定路径的配置文件
    3. config/config.yaml
    4. config.yaml

    Args:
        config_path: 配置文件路径（可选）。

    Returns:
        AppConfig 对象。
    """
    # 优先从环境变量加载（Azure 部署场景）
    if any(os.getenv(name) for name in _ENV_TRIGGERS):
        return _load_from_env()

    # 本地开发：从 YAML 文件加载
    search_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
    ]

    if config_path:
        path = Path(config_path)
    else:
        path = None
        for sp in search_paths:
            if sp.exists():
                path = sp
                break

    if path is None or not path.exists():
        print(
            "❌ 找不到配置文件！请复制 config/config.example.yaml "
            "为 config/config.yaml 并填入你的信息。"
        )
        sys.exit(1)

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        return AppConfig(**raw)
    except Exception as e:
        print(f"❌ 配置文件校验失败: {e}")
        sys.exit(1)


def _load_from_env() -> AppConfig:
    """从环境变量加载配置（Azure 部署用）.

    环境变量映射：
    - KEYVAULT_URL
    - SERVICEBUS_CONNECTION_STRING / SERVICEBUS_QUEUE_NAME / SERVICEBUS_CONTENT_TYPE
    - TABLES_CONNECTION_STRING / TABLES_TABLE_NAME
    - AZURE_SUBSCRIPTION_ID / AZURE_RESOURCE_GROUP / RESOURCES_EXPORT_PATH
    - LOG_LEVEL
    """
    keyvault = None
    if os.getenv("KEYVAULT_URL"):
        keyvault = KeyVaultConfig(vault_url=os.environ["KEYVAULT_URL"])

    servicebus = None
    if os.getenv("SERVICEBUS_CONNECTION_STRING"):
        servicebus = ServiceBusConfig(
            connection_string=os.environ["SERVICEBUS_CONNECTION_STRING"],
            queue_name=os.environ["SERVICEBUS_QUEUE_NAME"],
            content_type=os.getenv("SERVICEBUS_CONTENT_TYPE", "application/json"),
        )

    tables = None
    if os.getenv("TABLES_CONNECTION_STRING"):
        tables = TableStorageConfig(
            connection_string=os.environ["TABLES_CONNECTION_STRING"],
            table_name=os.getenv("TABLES_TABLE_NAME"),
        )

    return AppConfig(
        keyvault=keyvault,
        servicebus=servicebus,
        tables=tables,
        resources=ResourceManagerConfig(
            subscription_id=os.getenv("AZURE_SUBSCRIPTION_ID"),
            resource_group=os.getenv("AZURE_RESOURCE_GROUP"),
            export_path=os.getenv("RESOURCES_EXPORT_PATH"),
        ),
        logging=LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
        ),
    )
