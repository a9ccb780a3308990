"""
realtime/presence.py

在线注册表 - 记录身份与活跃连接的映射，以及连接加入的频道

并发约束：
    注册表只在事件循环线程中被修改，且每个修改方法内部没有 await，
    因此在单线程事件循环下无需加锁。若改为多线程直接调用，
    必须在外部加互斥锁。
"""
from typing import Dict, FrozenSet, List, Optional, Set
import logging

from realtime.connection import IConnection
from realtime.identity import Identity, STAFF_CHANNEL

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    在线注册表

    一个身份可以同时持有多个连接（多设备），是否强制单设备登录由上层决定。

    使用方式：
    1. 认证成功后：registry.register(identity, connection)
    2. 投递时查询：registry.lookup(identity) / registry.members("staff")
    3. 连接断开时：registry.unregister(connection)
    """

    def __init__(self):
        self._by_identity: Dict[Identity, Set[IConnection]] = {}
        self._by_connection: Dict[IConnection, Identity] = {}
        self._channels: Dict[str, Set[IConnection]] = {}
        self._joined: Dict[IConnection, Set[str]] = {}

    def register(self, identity: Identity, connection: IConnection) -> None:
        """
        登记连接代表的身份，并加入身份频道（role:id）；员工额外加入 staff 广播频道

        同一连接重新认证为其他身份时，先移除旧登记。
        """
        current = self._by_connection.get(connection)
        if current is not None and current != identity:
            self.unregister(connection)

        self._by_connection[connection] = identity
        self._by_identity.setdefault(identity, set()).add(connection)

        self._join(connection, identity.address)
        if identity.is_staff:
            self._join(connection, STAFF_CHANNEL)

        logger.info(
            f"Connection {connection.connection_id} registered as {identity} "
            f"({len(self._by_identity[identity])} live)"
        )

    def unregister(self, connection: IConnection) -> bool:
        """
        移除连接的登记（幂等）

        Returns:
            True 表示本次调用确实移除了登记；重复调用返回 False
        """
        identity = self._by_connection.pop(connection, None)
        if identity is None:
            return False

        connections = self._by_identity.get(identity)
        if connections is not None:
            connections.discard(connection)
            if not connections:
                del self._by_identity[identity]

        for channel in self._joined.pop(connection, set()):
            members = self._channels.get(channel)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._channels[channel]

        logger.info(f"Connection {connection.connection_id} ({identity}) unregistered")
        return True

    def lookup(self, identity: Identity) -> FrozenSet[IConnection]:
        """返回身份的全部活跃连接（离线时为空集合）"""
        return frozenset(self._by_identity.get(identity, ()))

    def identity_of(self, connection: IConnection) -> Optional[Identity]:
        """返回连接已认证的身份，未认证返回 None"""
        return self._by_connection.get(connection)

    def members(self, channel: str) -> FrozenSet[IConnection]:
        """返回频道内的全部连接"""
        return frozenset(self._channels.get(channel, ()))

    def channels_of(self, connection: IConnection) -> FrozenSet[str]:
        """返回连接已加入的频道"""
        return frozenset(self._joined.get(connection, ()))

    def is_online(self, identity: Identity) -> bool:
        return identity in self._by_identity

    def online_identities(self) -> List[Identity]:
        """当前在线身份列表（用于调试）"""
        return list(self._by_identity.keys())

    def __len__(self) -> int:
        return len(self._by_connection)

    def _join(self, connection: IConnection, channel: str) -> None:
        self._channels.setdefault(channel, set()).add(connection)
        self._joined.setdefault(connection, set()).add(channel)
