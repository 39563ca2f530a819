"""插件异常定义.

只定义本插件自己产生的两类错误：
- NotConfiguredError: 在 setup/initialize 之前调用了数据操作
- InvalidArgumentError: 必填字符串参数为空

资源不存在、远端调用失败等错误直接使用 Azure SDK 的
``azure.core.exceptions``（如 ResourceNotFoundError），原样向上抛出。
"""

from __future__ import annotations


class AzureSuiteError(Exception):
    """Azure Suite 插件异常基类."""


class NotConfiguredError(AzureSuiteError, RuntimeError):
    """操作前未完成必要的配置（编程错误，而非环境错误）."""


class InvalidArgumentError(AzureSuiteError, ValueError):
    """必填参数为空或格式不正确."""


def require_text(value: str | None, field: str) -> str:
    """校验必填字符串参数.

    Args:
        value: 参数值。
        field: 参数名，用于错误信息。

    Returns:
        原样返回的参数值。

    Raises:
        InvalidArgumentError: 参数为 None 或只包含空白。
    """
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"参数 '{field}' 不能为空")
    return value
