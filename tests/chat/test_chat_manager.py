"""
聊天连接管理测试（不经过 WebSocket，直接驱动 handle_frame）
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from hotel_api.services.chat_manager import ChatManager
from realtime.identity import Identity, Role

from conftest import GUEST_ID, STAFF_ID


@pytest.fixture
def manager(session_factory):
    return ChatManager(session_factory)


def _auth_frame(user_id, user_type, token):
    return {"event": "authenticate", "data": {"userId": user_id, "userType": user_type, "token": token}}


class TestChatManager:
    """连接管理测试"""

    def test_authenticate_registers_and_sends_history(self, manager, make_connection, guest_token):
        conn = make_connection()
        asyncio.run(manager.handle_frame(conn, _auth_frame(GUEST_ID, "guest", guest_token)))

        assert conn.events() == ["authenticated", "chat_history"]
        assert conn.payloads("chat_history") == [[]]
        assert manager.registry.identity_of(conn) == Identity(GUEST_ID, Role.GUEST)

    def test_failed_authentication_leaves_connection_unregistered(self, manager, make_connection, guest_token):
        conn = make_connection()
        asyncio.run(manager.handle_frame(conn, _auth_frame(STAFF_ID, "staff", guest_token)))

        assert conn.sent == [
            ("authenticated", {"status": "failure"}),
            ("error", {"message": "Authentication failed"}),
        ]
        assert manager.registry.identity_of(conn) is None

    def test_failed_reauthentication_revokes_registration(
        self, manager, make_connection, staff_token, guest_token
    ):
        """测试已认证连接再次认证失败后撤销原有登记"""
        conn = make_connection()

        async def scenario():
            await manager.handle_frame(conn, _auth_frame(STAFF_ID, "staff", staff_token))
            await manager.handle_frame(conn, _auth_frame(GUEST_ID, "staff", guest_token))
            await manager.handle_frame(conn, {
                "event": "private_message",
                "data": {"receiverId": GUEST_ID, "receiverType": "guest", "message": "hi"},
            })

        asyncio.run(scenario())

        assert manager.registry.identity_of(conn) is None
        assert not manager.registry.is_online(Identity(STAFF_ID, Role.STAFF))
        assert manager.registry.members("staff") == frozenset()
        assert conn.sent[-3:] == [
            ("authenticated", {"status": "failure"}),
            ("error", {"message": "Authentication failed"}),
            ("error", {"message": "Not authenticated"}),
        ]

    def test_unexpected_error_reported_as_internal(self, manager, make_connection, guest_token):
        """测试未预期异常只回报给本连接"""
        conn = make_connection()

        async def scenario():
            await manager.handle_frame(conn, _auth_frame(GUEST_ID, "guest", guest_token))
            with patch.object(
                manager.coordinator, "send_message", AsyncMock(side_effect=RuntimeError("bug"))
            ):
                await manager.handle_frame(conn, {
                    "event": "private_message",
                    "data": {"receiverId": STAFF_ID, "receiverType": "staff", "message": "hi"},
                })

        asyncio.run(scenario())

        assert conn.sent[-1] == ("error", {"message": "Internal server error"})
        assert manager.registry.is_online(Identity(GUEST_ID, Role.GUEST))

    def test_disconnect_twice(self, manager, make_connection, staff_token):
        """测试重复断开不报错"""
        conn = make_connection()
        asyncio.run(manager.handle_frame(conn, _auth_frame(STAFF_ID, "staff", staff_token)))

        manager.disconnect(conn)
        manager.disconnect(conn)

        assert len(manager.registry) == 0

    def test_error_report_to_dead_connection_is_swallowed(self, manager, make_connection):
        """测试向已失效连接回报错误时不再抛出"""
        conn = make_connection(fail=True)
        asyncio.run(manager.handle_frame(conn, {"event": "nope", "data": {}}))
        assert conn.sent == []
