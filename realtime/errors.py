"""
realtime/errors.py

实时层错误分类 - 每类错误只对触发它的那一条事件生效，
以 error 事件回报给发起连接，不影响连接本身和其他连接。
"""
from typing import Any, Dict, Optional


class ChatError(Exception):
    """
    实时层错误基类

    Attributes:
        message: 面向客户端的可读错误信息
        detail: 仅用于日志的附加信息
    """

    kind = "chat_error"

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(ChatError):
    """输入格式错误或不完整（含菜品不可售），发生在任何持久化之前"""

    kind = "validation_error"


class PersistenceError(ChatError):
    """存储读写失败；进行中的事务在抛出前已回滚"""

    kind = "persistence_error"


class AuthenticationError(ChatError):
    """凭证校验失败，或在认证前发送了业务事件"""

    kind = "authentication_error"


__all__ = [
    "ChatError",
    "ValidationError",
    "PersistenceError",
    "AuthenticationError",
]
