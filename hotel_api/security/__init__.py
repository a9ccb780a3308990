# Security module
from hotel_api.security.auth import (
    create_access_token, decode_token, authenticate_socket,
    get_current_identity, require_staff
)

__all__ = [
    'create_access_token', 'decode_token', 'authenticate_socket',
    'get_current_identity', 'require_staff'
]
