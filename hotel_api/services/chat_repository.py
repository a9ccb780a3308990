"""
聊天持久化网关 - 聊天消息/服务请求/点餐订单的读写

事务约定：
    每个工作单元（单次读、单次写、整个事务）使用独立 Session，
    在线程池中一次执行完毕；所有工作单元经同一把 asyncio.Lock 串行化，
    因此多个事务的 begin/commit/rollback 不会在共享连接上交错。
"""
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar
import asyncio
import logging

from sqlalchemy import insert, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from hotel_api.database import SessionLocal
from hotel_api.models.chat import (
    ChatMessage, ChatServiceRequest, FoodMenuItem, FoodOrder, FoodOrderItem,
    MessageType, MessageStatus, ServiceRequestStatus, FoodOrderStatus,
)
from hotel_api.models.events import ChatMessageOut
from realtime.errors import PersistenceError
from realtime.identity import Identity, Role

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MenuSnapshot:
    """菜品当前价格与可售状态"""
    item_id: int
    name: str
    price: Decimal
    available: bool


@dataclass(frozen=True)
class ResolvedLine:
    """已解析价格的订单行（price 为价格快照）"""
    item_id: int
    quantity: int
    price: Decimal
    notes: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class ChatRepository:
    """聊天持久化网关"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    # ============== 事务块 ==============

    @contextmanager
    def transaction_scope(self, error_message: str = "Database operation failed") -> Iterator[Session]:
        """
        事务块：正常退出时提交，任何异常时回滚

        SQLAlchemy 错误在回滚后转换为 PersistenceError
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Transaction rolled back: {error_message}: {e}", exc_info=True)
            raise PersistenceError(error_message, detail={"error": str(e)}) from e
        except Exception:
            session.rollback()
            logger.error(f"Transaction rolled back: {error_message}", exc_info=True)
            raise
        finally:
            session.close()

    async def run(self, work: Callable[[Session], T], error_message: str) -> T:
        """在线程池中以事务块执行 work(session)，工作单元之间串行"""
        def _execute() -> T:
            with self.transaction_scope(error_message) as session:
                return work(session)

        async with self._lock:
            return await run_in_threadpool(_execute)

    # ============== 读取 ==============

    async def get_history(self, identity: Identity, limit: int = 50) -> List[ChatMessageOut]:
        """身份作为发送方或接收方的最近 limit 条消息，最新在前"""
        def _work(session: Session) -> List[ChatMessageOut]:
            role = identity.role.value
            rows = session.query(ChatMessage).filter(
                or_(
                    and_(ChatMessage.sender_id == identity.user_id, ChatMessage.sender_type == role),
                    and_(ChatMessage.receiver_id == identity.user_id, ChatMessage.receiver_type == role),
                )
            ).order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit).all()
            return [ChatMessageOut.from_model(row) for row in rows]

        return await self.run(_work, "Failed to load chat history")

    async def get_menu_item(self, item_id: int) -> Optional[MenuSnapshot]:
        """读取菜品价格快照，不存在返回 None"""
        def _work(session: Session) -> Optional[MenuSnapshot]:
            item = session.get(FoodMenuItem, item_id)
            if item is None:
                return None
            return MenuSnapshot(
                item_id=item.id,
                name=item.name,
                price=Decimal(item.price),
                available=bool(item.availability),
            )

        return await self.run(_work, "Failed to look up menu item")

    # ============== 写入 ==============

    async def create_message(
        self,
        sender: Identity,
        receiver: Identity,
        body: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> int:
        """写入一条聊天消息（单条插入），返回消息 ID"""
        def _work(session: Session) -> int:
            return self._insert_message(
                session, sender.user_id, sender.role, receiver.user_id, receiver.role, body, message_type
            )

        message_id = await self.run(_work, "Failed to save message")
        logger.info(f"Chat message {message_id} saved: {sender} -> {receiver}")
        return message_id

    async def create_service_request(
        self,
        sender_id: int,
        service_type: str,
        notes: Optional[str],
        body: str,
        staff_sentinel_id: int = 0,
    ) -> Tuple[int, int]:
        """
        同一事务内写入服务请求消息及其服务请求记录

        Returns:
            (message_id, request_id)
        """
        def _work(session: Session) -> Tuple[int, int]:
            message_id = self._insert_message(
                session, sender_id, Role.GUEST, staff_sentinel_id, Role.STAFF,
                body, MessageType.SERVICE_REQUEST,
            )
            request_id = self._insert_service_request(session, message_id, service_type, notes)
            return message_id, request_id

        message_id, request_id = await self.run(_work, "Failed to create service request")
        logger.info(f"Service request {request_id} (message {message_id}) committed for guest {sender_id}")
        return message_id, request_id

    async def create_food_order(
        self,
        booking_id: int,
        guest_id: int,
        room_id: int,
        total_amount: Decimal,
        notes: Optional[str],
        lines: List[ResolvedLine],
    ) -> int:
        """同一事务内写入订单及全部订单行，返回订单 ID"""
        def _work(session: Session) -> int:
            order = FoodOrder(
                booking_id=booking_id,
                guest_id=guest_id,
                room_id=room_id,
                status=FoodOrderStatus.PENDING.value,
                total_amount=total_amount,
                notes=notes,
            )
            session.add(order)
            session.flush()
            self._insert_order_items(session, order.id, lines)
            return order.id

        order_id = await self.run(_work, "Failed to create food order")
        logger.info(f"Food order {order_id} committed: {len(lines)} lines, total {total_amount}")
        return order_id

    # ============== 单步插入 ==============

    @staticmethod
    def _insert_message(
        session: Session,
        sender_id: int,
        sender_role: Role,
        receiver_id: int,
        receiver_role: Role,
        body: str,
        message_type: MessageType,
    ) -> int:
        msg = ChatMessage(
            sender_id=sender_id,
            sender_type=sender_role.value,
            receiver_id=receiver_id,
            receiver_type=receiver_role.value,
            message=body,
            message_type=message_type.value,
            status=MessageStatus.SENT.value,
        )
        session.add(msg)
        session.flush()
        return msg.id

    @staticmethod
    def _insert_service_request(
        session: Session, message_id: int, service_type: str, notes: Optional[str]
    ) -> int:
        request = ChatServiceRequest(
            message_id=message_id,
            service_type=service_type,
            status=ServiceRequestStatus.PENDING.value,
            notes=notes,
        )
        session.add(request)
        session.flush()
        return request.id

    @staticmethod
    def _insert_order_items(session: Session, order_id: int, lines: List[ResolvedLine]) -> None:
        """参数化批量插入订单行"""
        session.execute(
            insert(FoodOrderItem),
            [
                {
                    "order_id": order_id,
                    "item_id": line.item_id,
                    "quantity": line.quantity,
                    "price": line.price,
                    "notes": line.notes,
                }
                for line in lines
            ],
        )
