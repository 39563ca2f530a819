"""配置槽 — 两态状态机 {UNCONFIGURED, READY}.

每个 facade 把"是否已配置"放进一个 Configured 槽中，
数据操作统一通过 ``require()`` 取值，未配置时立即抛出
NotConfiguredError，不会触达任何网络调用。
"""

from __future__ import annotations

from enum import Enum
from typing import Generic, TypeVar

from azure_suite.common.errors import NotConfiguredError

T = TypeVar("T")


class SlotState(str, Enum):
    """配置槽状态."""

    UNCONFIGURED = "unconfigured"
    READY = "ready"


class Configured(Generic[T]):
    """持有一个配置值的槽.

    使用方式：
        slot = Configured("Key Vault 客户端", "initialize()")
        slot.configure(client)
        client = slot.require()
    """

    def __init__(self, subject: str, setup_hint: str) -> None:
        """初始化空槽.

        Args:
            subject:    被配置对象的描述，用于错误信息。
            setup_hint: 应先调用的方法，用于错误信息。
        """
        self._subject = subject
        self._setup_hint = setup_hint
        self._value: T | None = None

    @property
    def state(self) -> SlotState:
        if self._value is None:
            return SlotState.UNCONFIGURED
        return SlotState.READY

    @property
    def is_ready(self) -> bool:
        return self._value is not None

    def configure(self, value: T) -> T | None:
        """切换到 READY 状态，返回被替换掉的旧值（可能为 None）."""
        previous = self._value
        self._value = value
        return previous

    def reset(self) -> T | None:
        """回到 UNCONFIGURED 状态，返回原值."""
        previous = self._value
        self._value = None
        return previous

    def peek(self) -> T | None:
        """读取当前值，不做状态检查."""
        return self._value

    def require(self) -> T:
        """读取当前值.

        Raises:
            NotConfiguredError: 槽处于 UNCONFIGURED 状态。
        """
        if self._value is None:
            raise NotConfiguredError(
                f"{self._subject} 未配置，请先调用 {self._setup_hint}"
            )
        return self._value
