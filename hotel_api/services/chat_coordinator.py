"""
消息/订单协调器 - 校验入站事件、事务写入、计算订单金额、决定投递目标

服务请求与点餐共用创建流程状态机：
    validating -> persisting -> {committed -> notified} | {aborted}
aborted 只通知发起方（由调用方把异常回报给发起连接），不广播。
"""
from datetime import datetime, UTC
from decimal import Decimal
from typing import List, Optional
import asyncio
import json
import logging

from hotel_api.config import settings
from hotel_api.models.events import (
    OutboundEvent,
    PrivateMessagePayload, ServiceRequestPayload, FoodOrderPayload, FoodOrderLine,
    ChatMessageOut, MessageEnvelope,
    ServiceRequestNotice, ServiceRequestCreated,
    FoodOrderLineOut, FoodOrderNotice, FoodOrderCreated,
)
from hotel_api.models.chat import MessageType, ServiceRequestStatus, FoodOrderStatus
from hotel_api.services.chat_repository import ChatRepository, ResolvedLine
from realtime.delivery import Dispatcher
from realtime.errors import ChatError, ValidationError
from realtime.identity import Identity, Role, STAFF_CHANNEL
from realtime.workflow import CreationWorkflow, WorkflowState

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ChatCoordinator:
    """消息/订单协调器"""

    def __init__(
        self,
        repository: ChatRepository,
        dispatcher: Dispatcher,
        history_limit: Optional[int] = None,
        staff_sentinel_id: Optional[int] = None,
    ):
        self._repository = repository
        self._dispatcher = dispatcher
        self._history_limit = history_limit if history_limit is not None else settings.CHAT_HISTORY_LIMIT
        self._staff_sentinel_id = (
            staff_sentinel_id if staff_sentinel_id is not None else settings.STAFF_SENTINEL_ID
        )

    # ============== 历史记录 ==============

    async def get_history(self, identity: Identity) -> List[ChatMessageOut]:
        """最近的聊天记录（发送或接收），最新在前"""
        return await self._repository.get_history(identity, self._history_limit)

    # ============== 私聊消息 ==============

    async def send_message(self, sender: Identity, payload: PrivateMessagePayload) -> MessageEnvelope:
        """写入消息后推送给接收方（若在线），并向发送方确认"""
        self._check_sender(sender, payload.sender_id, payload.sender_type)
        receiver = Identity(user_id=payload.receiver_id, role=payload.receiver_type)

        message_id = await self._repository.create_message(
            sender, receiver, payload.message, payload.message_type
        )

        envelope = MessageEnvelope(
            message_id=message_id,
            sender_id=sender.user_id,
            sender_type=sender.role,
            receiver_id=receiver.user_id,
            receiver_type=receiver.role,
            message=payload.message,
            message_type=payload.message_type,
            timestamp=_now_iso(),
        )
        data = envelope.to_wire()
        await self._dispatcher.send(receiver, OutboundEvent.NEW_MESSAGE.value, data)
        await self._dispatcher.send(sender, OutboundEvent.MESSAGE_SENT.value, data)
        return envelope

    # ============== 服务请求 ==============

    async def create_service_request(
        self, sender: Identity, payload: ServiceRequestPayload
    ) -> ServiceRequestCreated:
        """客人发起服务请求：消息与服务请求同事务写入，提交后通知全体员工"""
        workflow = CreationWorkflow("service_request")
        try:
            if sender.role != Role.GUEST:
                raise ValidationError("Only guests can create service requests")
            self._check_sender(sender, payload.sender_id, None)
        except ValidationError as e:
            workflow.abort(e.message)
            raise

        body = json.dumps({
            "type": MessageType.SERVICE_REQUEST.value,
            "serviceType": payload.service_type,
            "notes": payload.notes,
        })

        workflow.transition_to(WorkflowState.PERSISTING)
        try:
            message_id, request_id = await self._repository.create_service_request(
                sender.user_id, payload.service_type, payload.notes, body, self._staff_sentinel_id
            )
        except ChatError as e:
            workflow.abort(e.message)
            raise
        workflow.transition_to(WorkflowState.COMMITTED)

        notice = ServiceRequestNotice(
            message_id=message_id,
            request_id=request_id,
            sender_id=sender.user_id,
            service_type=payload.service_type,
            notes=payload.notes,
            timestamp=_now_iso(),
        )
        await self._dispatcher.broadcast(
            STAFF_CHANNEL, OutboundEvent.NEW_SERVICE_REQUEST.value, notice.to_wire()
        )

        created = ServiceRequestCreated(
            message_id=message_id,
            request_id=request_id,
            service_type=payload.service_type,
            status=ServiceRequestStatus.PENDING.value,
        )
        await self._dispatcher.send(
            sender, OutboundEvent.SERVICE_REQUEST_CREATED.value, created.to_wire()
        )
        workflow.transition_to(WorkflowState.NOTIFIED)
        return created

    # ============== 点餐 ==============

    async def create_food_order(self, requester: Identity, payload: FoodOrderPayload) -> FoodOrderCreated:
        """
        点餐：并发查询价格（任一不可售即整体中止）-> 计算总额 -> 订单与订单行同事务写入
        -> 通知全体员工并向下单方确认
        """
        workflow = CreationWorkflow("food_order")
        try:
            if requester.role == Role.GUEST and payload.guest_id != requester.user_id:
                raise ValidationError("Guests can only order for themselves")
            lines = await self._resolve_lines(payload.items)
        except ChatError as e:
            workflow.abort(e.message)
            raise

        total = sum((line.subtotal for line in lines), Decimal("0"))

        workflow.transition_to(WorkflowState.PERSISTING)
        try:
            order_id = await self._repository.create_food_order(
                payload.booking_id, payload.guest_id, payload.room_id, total, payload.notes, lines
            )
        except ChatError as e:
            workflow.abort(e.message)
            raise
        workflow.transition_to(WorkflowState.COMMITTED)

        notice = FoodOrderNotice(
            order_id=order_id,
            booking_id=payload.booking_id,
            guest_id=payload.guest_id,
            room_id=payload.room_id,
            items=[
                FoodOrderLineOut(
                    item_id=line.item_id,
                    quantity=line.quantity,
                    price=float(line.price),
                    notes=line.notes,
                )
                for line in lines
            ],
            total_amount=float(total),
            notes=payload.notes,
            timestamp=_now_iso(),
        )
        await self._dispatcher.broadcast(
            STAFF_CHANNEL, OutboundEvent.NEW_FOOD_ORDER.value, notice.to_wire()
        )

        created = FoodOrderCreated(
            order_id=order_id,
            status=FoodOrderStatus.PENDING.value,
            total_amount=float(total),
        )
        await self._dispatcher.send(
            requester, OutboundEvent.FOOD_ORDER_CREATED.value, created.to_wire()
        )
        workflow.transition_to(WorkflowState.NOTIFIED)
        return created

    async def _resolve_lines(self, items: List[FoodOrderLine]) -> List[ResolvedLine]:
        """
        并发解析每一行的价格快照；第一个失败立即中止，取消其余查询

        Raises:
            ValidationError: 菜品不存在或不可售
            PersistenceError: 查询失败
        """
        tasks = [asyncio.ensure_future(self._resolve_line(item)) for item in items]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        failures = [t.exception() for t in tasks if t in done and t.exception() is not None]
        if failures:
            raise failures[0]
        return [t.result() for t in tasks]

    async def _resolve_line(self, item: FoodOrderLine) -> ResolvedLine:
        snapshot = await self._repository.get_menu_item(item.item_id)
        if snapshot is None or not snapshot.available:
            raise ValidationError(f"Menu item {item.item_id} is not available")
        return ResolvedLine(
            item_id=item.item_id,
            quantity=item.quantity,
            price=snapshot.price,
            notes=item.notes,
        )

    @staticmethod
    def _check_sender(sender: Identity, sender_id: Optional[int], sender_type: Optional[Role]) -> None:
        """载荷中携带的发送方必须与连接的认证身份一致"""
        if sender_id is not None and sender_id != sender.user_id:
            raise ValidationError("Sender does not match the authenticated identity")
        if sender_type is not None and sender_type != sender.role:
            raise ValidationError("Sender does not match the authenticated identity")
