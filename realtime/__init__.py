"""
realtime - 实时通讯框架层

独立于具体业务领域，包含：
- identity: 参与者身份 (id, role) 与频道寻址
- connection: 双向连接接口
- presence: 在线注册表（身份 -> 连接集合，频道成员关系）
- delivery: 投递/扇出（单身份推送、频道广播，尽力而为）
- workflow: 创建流程状态机
- errors: 错误分类

使用方式:
    >>> from realtime import PresenceRegistry, Dispatcher, Identity, Role
    >>> registry = PresenceRegistry()
    >>> dispatcher = Dispatcher(registry)
"""
from realtime.identity import Identity, Role, STAFF_CHANNEL
from realtime.connection import IConnection, next_connection_id
from realtime.presence import PresenceRegistry
from realtime.delivery import Dispatcher, Target
from realtime.workflow import CreationWorkflow, WorkflowState, InvalidTransition
from realtime.errors import (
    ChatError,
    ValidationError,
    PersistenceError,
    AuthenticationError,
)

__all__ = [
    "Identity",
    "Role",
    "STAFF_CHANNEL",
    "IConnection",
    "next_connection_id",
    "PresenceRegistry",
    "Dispatcher",
    "Target",
    "CreationWorkflow",
    "WorkflowState",
    "InvalidTransition",
    "ChatError",
    "ValidationError",
    "PersistenceError",
    "AuthenticationError",
]
