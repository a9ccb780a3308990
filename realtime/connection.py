"""
连接接口 - 域无关的双向连接抽象

app 层通过实现 IConnection 对接具体传输（WebSocket 等），
在线注册表与投递层只依赖这个接口。
"""
import itertools
from abc import ABC, abstractmethod
from typing import Any

_connection_ids = itertools.count(1)


def next_connection_id() -> int:
    """分配进程内唯一的连接编号"""
    return next(_connection_ids)


class IConnection(ABC):
    """双向连接接口

    实现类必须保证对象按身份比较（默认 __eq__/__hash__），
    注册表以连接对象本身作为键。
    """

    @property
    @abstractmethod
    def connection_id(self) -> int:
        """连接编号，仅用于日志"""

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        """向对端推送一个事件

        Args:
            event: 事件名，如 'new_message'
            data: 可 JSON 序列化的载荷
        """

    @property
    def is_open(self) -> bool:
        """连接是否仍可写；默认视为可写"""
        return True
