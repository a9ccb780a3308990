"""
认证模块
签发/校验 JWT，向实时层和 REST 层提供已认证的身份 (user_id, role)
"""
import logging
from datetime import datetime, timedelta, UTC
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from hotel_api.config import settings
from realtime.errors import AuthenticationError
from realtime.identity import Identity, Role

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(user_id: int, role: Role, expires_hours: Optional[int] = None) -> str:
    """创建 JWT token"""
    hours = expires_hours if expires_hours is not None else settings.ACCESS_TOKEN_EXPIRE_HOURS
    expire = datetime.now(UTC) + timedelta(hours=hours)
    to_encode = {
        "sub": str(user_id),
        "role": role.value if isinstance(role, Role) else str(role),
        "exp": expire
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _identity_from_token(token: str) -> Identity:
    """解码 token 并构造身份；任何失败抛出 AuthenticationError"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return Identity.of(payload.get("sub"), payload.get("role"))
    except (JWTError, TypeError, ValueError) as e:
        raise AuthenticationError("Authentication failed", detail={"reason": str(e)})


def decode_token(token: str) -> Identity:
    """解码 JWT token（REST 层使用，失败返回 401）"""
    try:
        return _identity_from_token(token)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )


def authenticate_socket(user_id: int, role: Role, token: str) -> Identity:
    """
    校验实时连接的 authenticate 握手

    token 中的身份必须与客户端声明的 userId/userType 一致

    Raises:
        AuthenticationError: token 无效、过期或与声明身份不符
    """
    identity = _identity_from_token(token)
    claimed = Identity.of(user_id, role)
    if identity != claimed:
        logger.warning(f"Token identity {identity} does not match claimed {claimed}")
        raise AuthenticationError("Authentication failed")
    return identity


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """获取当前登录身份"""
    return decode_token(credentials.credentials)


async def require_staff(identity: Identity = Depends(get_current_identity)) -> Identity:
    """仅员工可访问"""
    if not identity.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="权限不足"
        )
    return identity
