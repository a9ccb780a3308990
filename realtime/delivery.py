"""
realtime/delivery.py

投递/扇出层 - (目标选择器, 事件名, 载荷) -> 零到多次连接推送

语义：尽力而为、至多一次。不跟踪回执，不重试，不排队。
目标离线不是错误，对方下次连接时通过历史记录拉取。
"""
from typing import Any, Iterable, Union
import asyncio
import logging

from realtime.connection import IConnection
from realtime.identity import Identity
from realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)

# 目标选择器：单个身份，或频道名（如 "staff"）
Target = Union[Identity, str]


class Dispatcher:
    """
    基于在线注册表的事件投递器

    单个连接推送失败只记录日志，不影响其余连接的投递
    """

    def __init__(self, registry: PresenceRegistry):
        self._registry = registry

    async def send(self, identity: Identity, event: str, data: Any) -> int:
        """
        推送给某个身份的全部活跃连接

        Returns:
            实际推送成功的连接数（离线为 0）
        """
        connections = self._registry.lookup(identity)
        if not connections:
            logger.debug(f"{event} not delivered live: {identity} is offline")
            return 0
        return await self._fan_out(connections, event, data)

    async def broadcast(self, channel: str, event: str, data: Any) -> int:
        """推送给频道内全部连接"""
        connections = self._registry.members(channel)
        if not connections:
            logger.debug(f"{event} not delivered live: channel {channel} is empty")
            return 0
        return await self._fan_out(connections, event, data)

    async def deliver(self, target: Target, event: str, data: Any) -> int:
        """按目标选择器投递"""
        if isinstance(target, Identity):
            return await self.send(target, event, data)
        return await self.broadcast(target, event, data)

    async def _fan_out(self, connections: Iterable[IConnection], event: str, data: Any) -> int:
        results = await asyncio.gather(
            *(self._send_one(conn, event, data) for conn in connections)
        )
        delivered = sum(1 for ok in results if ok)
        logger.debug(f"{event} delivered to {delivered}/{len(results)} connections")
        return delivered

    @staticmethod
    async def _send_one(connection: IConnection, event: str, data: Any) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to deliver {event} to connection {connection.connection_id}: {e}"
            )
            return False
