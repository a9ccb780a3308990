"""
聊天连接管理 - WebSocket 连接生命周期与入站事件分发

每个连接：
    connect -> authenticate（登记在线、返回历史）-> 业务事件 -> 断开（注销，仅一次）

每条事件的错误只回报给该连接，不会中断连接，也不影响其他连接。
"""
from typing import Any, Callable, Optional
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketState

from hotel_api.models.events import (
    InboundEvent, OutboundEvent, parse_frame,
    AuthenticatePayload, AuthenticatedPayload, ErrorPayload,
)
from hotel_api.security.auth import authenticate_socket
from hotel_api.services.chat_coordinator import ChatCoordinator
from hotel_api.services.chat_repository import ChatRepository
from realtime.connection import IConnection, next_connection_id
from realtime.delivery import Dispatcher
from realtime.errors import AuthenticationError, ChatError, ValidationError
from realtime.identity import Identity
from realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class WebSocketConnection(IConnection):
    """WebSocket 连接适配，帧格式 {"event": ..., "data": ...}"""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket
        self._id = next_connection_id()

    @property
    def connection_id(self) -> int:
        return self._id

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, event: str, data: Any) -> None:
        await self._websocket.send_json({"event": event, "data": data})

    async def receive(self) -> Any:
        """
        读取一帧（文本帧或二进制帧均按 UTF-8 JSON 解析）

        Raises:
            WebSocketDisconnect: 对端断开
            ValidationError: 帧内容不是合法 JSON
        """
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes")
        if raw is None:
            raise ValidationError("Malformed frame: empty frame")
        try:
            return json.loads(raw)
        except ValueError:
            raise ValidationError("Malformed frame: invalid JSON")


class ChatManager:
    """
    聊天管理器 - 持有在线注册表、投递器与协调器

    每个应用实例一个，在 lifespan 中创建并挂到 app.state.chat_manager
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.registry = PresenceRegistry()
        self.dispatcher = Dispatcher(self.registry)
        if session_factory is None:
            self.repository = ChatRepository()
        else:
            self.repository = ChatRepository(session_factory)
        self.coordinator = ChatCoordinator(self.repository, self.dispatcher)

    # ============== 连接生命周期 ==============

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """WebSocket 主循环；断开时在唯一的出口处注销"""
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        logger.info(f"New client connected: connection {connection.connection_id}")
        try:
            while True:
                try:
                    frame = await connection.receive()
                except ValidationError as e:
                    await self._report(connection, e)
                    continue
                await self.handle_frame(connection, frame)
        except WebSocketDisconnect:
            pass
        finally:
            self.disconnect(connection)

    def disconnect(self, connection: IConnection) -> None:
        """连接断开：注销在线登记（幂等）"""
        self.registry.unregister(connection)
        logger.info(f"Client disconnected: connection {connection.connection_id}")

    # ============== 事件分发 ==============

    async def handle_frame(self, connection: IConnection, frame: Any) -> None:
        """处理一帧入站事件；错误只回报给本连接"""
        try:
            event, payload = parse_frame(frame)
            if event == InboundEvent.AUTHENTICATE:
                await self.authenticate(connection, payload)
                return

            identity = self.registry.identity_of(connection)
            if identity is None:
                raise AuthenticationError("Not authenticated")

            if event == InboundEvent.PRIVATE_MESSAGE:
                await self.coordinator.send_message(identity, payload)
            elif event == InboundEvent.SERVICE_REQUEST:
                await self.coordinator.create_service_request(identity, payload)
            elif event == InboundEvent.FOOD_ORDER:
                await self.coordinator.create_food_order(identity, payload)
        except ChatError as e:
            await self._report(connection, e)
        except Exception as e:
            logger.error(
                f"Unhandled error on connection {connection.connection_id}: {e}",
                exc_info=True
            )
            await self._report(connection, ChatError("Internal server error"))

    async def authenticate(self, connection: IConnection, payload: AuthenticatePayload) -> Identity:
        """
        authenticate 握手：校验 token -> 登记在线 -> 确认 -> 推送历史记录

        认证失败时连接处于未登记状态（已认证的连接会撤销原有登记），
        仅本连接收到 authenticated{status: failure}
        """
        try:
            identity = authenticate_socket(payload.user_id, payload.user_type, payload.token)
        except AuthenticationError:
            self.registry.unregister(connection)
            await connection.send(
                OutboundEvent.AUTHENTICATED.value,
                AuthenticatedPayload(status="failure").to_wire(),
            )
            raise

        self.registry.register(identity, connection)
        await connection.send(
            OutboundEvent.AUTHENTICATED.value,
            AuthenticatedPayload(status="success").to_wire(),
        )

        history = await self.coordinator.get_history(identity)
        await connection.send(
            OutboundEvent.CHAT_HISTORY.value,
            [message.to_wire() for message in history],
        )
        return identity

    async def _report(self, connection: IConnection, error: ChatError) -> None:
        logger.info(
            f"Reporting {error.kind} to connection {connection.connection_id}: {error.message}"
        )
        try:
            await connection.send(OutboundEvent.ERROR.value, ErrorPayload(message=error.message).to_wire())
        except Exception as e:
            logger.warning(f"Failed to report error to connection {connection.connection_id}: {e}")
