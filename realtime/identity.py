"""
realtime/identity.py

参与者身份 - (id, role) 二元组，既是在线注册表的键，也是投递寻址方式 (role:id)
"""
from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """参与者角色"""
    GUEST = "guest"    # 客人
    STAFF = "staff"    # 员工


# 全体员工广播频道
STAFF_CHANNEL = "staff"


@dataclass(frozen=True)
class Identity:
    """
    参与者身份（会话内不可变）

    Attributes:
        user_id: 用户ID（客人ID或员工ID）
        role: 角色
    """

    user_id: int
    role: Role

    @property
    def address(self) -> str:
        """身份专属频道名，如 'guest:7'"""
        return f"{self.role.value}:{self.user_id}"

    @property
    def is_staff(self) -> bool:
        return self.role == Role.STAFF

    @classmethod
    def of(cls, user_id: int, role) -> "Identity":
        """从原始值构造身份，role 可为字符串"""
        return cls(user_id=int(user_id), role=Role(role))

    def __str__(self) -> str:
        return self.address
