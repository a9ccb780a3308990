"""
实时事件定义 (Realtime Events)
每个入站/出站事件名对应一个固定字段的载荷模型；线上字段统一为 camelCase，
入站同时接受 snake_case。
"""
from enum import Enum
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from hotel_api.models.chat import ChatMessage, MessageType
from realtime.errors import ValidationError
from realtime.identity import Role


class InboundEvent(str, Enum):
    """客户端 -> 服务端事件"""
    AUTHENTICATE = "authenticate"
    PRIVATE_MESSAGE = "private_message"
    SERVICE_REQUEST = "service_request"
    FOOD_ORDER = "food_order"


class OutboundEvent(str, Enum):
    """服务端 -> 客户端事件"""
    AUTHENTICATED = "authenticated"
    CHAT_HISTORY = "chat_history"
    NEW_MESSAGE = "new_message"
    MESSAGE_SENT = "message_sent"
    NEW_SERVICE_REQUEST = "new_service_request"
    SERVICE_REQUEST_CREATED = "service_request_created"
    NEW_FOOD_ORDER = "new_food_order"
    FOOD_ORDER_CREATED = "food_order_created"
    FOOD_ORDER_STATUS = "food_order_status"
    ERROR = "error"


class EventModel(BaseModel):
    """事件载荷基类"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """序列化为线上格式（camelCase, JSON 兼容）"""
        return self.model_dump(mode="json", by_alias=True)


# ============== 入站载荷 ==============

class AuthenticatePayload(EventModel):
    user_id: int
    user_type: Role
    token: str = Field(..., min_length=1)


class PrivateMessagePayload(EventModel):
    # 发送方以连接的认证身份为准；若携带则必须一致
    sender_id: Optional[int] = None
    sender_type: Optional[Role] = None
    receiver_id: int
    receiver_type: Role
    message: str = Field(..., min_length=1)
    message_type: MessageType = MessageType.TEXT


class ServiceRequestPayload(EventModel):
    sender_id: Optional[int] = None
    service_type: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None


class FoodOrderLine(EventModel):
    item_id: int
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None


class FoodOrderPayload(EventModel):
    booking_id: int
    guest_id: int
    room_id: int
    items: List[FoodOrderLine] = Field(..., min_length=1)
    notes: Optional[str] = None


INBOUND_PAYLOADS: Dict[InboundEvent, Type[EventModel]] = {
    InboundEvent.AUTHENTICATE: AuthenticatePayload,
    InboundEvent.PRIVATE_MESSAGE: PrivateMessagePayload,
    InboundEvent.SERVICE_REQUEST: ServiceRequestPayload,
    InboundEvent.FOOD_ORDER: FoodOrderPayload,
}


# ============== 出站载荷 ==============

class AuthenticatedPayload(EventModel):
    status: str  # success|failure


class ChatMessageOut(EventModel):
    """历史记录中的一条消息"""
    message_id: int
    sender_id: int
    sender_type: str
    receiver_id: int
    receiver_type: str
    message: str
    message_type: str
    status: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, msg: ChatMessage) -> "ChatMessageOut":
        return cls(
            message_id=msg.id,
            sender_id=msg.sender_id,
            sender_type=msg.sender_type,
            receiver_id=msg.receiver_id,
            receiver_type=msg.receiver_type,
            message=msg.message,
            message_type=msg.message_type,
            status=msg.status,
            created_at=msg.created_at,
        )


class MessageEnvelope(EventModel):
    """new_message / message_sent 载荷"""
    message_id: int
    sender_id: int
    sender_type: Role
    receiver_id: int
    receiver_type: Role
    message: str
    message_type: MessageType
    timestamp: str


class ServiceRequestNotice(EventModel):
    """new_service_request 载荷（广播给全体员工）"""
    message_id: int
    request_id: int
    sender_id: int
    service_type: str
    notes: Optional[str] = None
    timestamp: str


class ServiceRequestCreated(EventModel):
    message_id: int
    request_id: int
    service_type: str
    status: str


class FoodOrderLineOut(EventModel):
    item_id: int
    quantity: int
    price: float  # 下单时的价格快照
    notes: Optional[str] = None


class FoodOrderNotice(EventModel):
    """new_food_order 载荷（广播给全体员工）"""
    order_id: int
    booking_id: int
    guest_id: int
    room_id: int
    items: List[FoodOrderLineOut]
    total_amount: float
    notes: Optional[str] = None
    timestamp: str


class FoodOrderCreated(EventModel):
    order_id: int
    status: str
    total_amount: float


class FoodOrderStatusNotice(EventModel):
    order_id: int
    status: str


class ErrorPayload(EventModel):
    message: str


# ============== 解析 ==============

def _describe(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{loc}: {first.get('msg', 'invalid value')}"


def parse_frame(frame: Any) -> Tuple[InboundEvent, EventModel]:
    """
    解析一帧入站消息 {"event": ..., "data": {...}}

    Raises:
        ValidationError: 帧格式错误、未知事件或载荷字段不合法
    """
    if not isinstance(frame, dict):
        raise ValidationError("Malformed frame: expected a JSON object")

    name = frame.get("event")
    try:
        event = InboundEvent(name)
    except ValueError:
        raise ValidationError(f"Unknown event: {name}")

    data = frame.get("data")
    if not isinstance(data, dict):
        raise ValidationError(f"Malformed {event.value} payload: expected an object")

    try:
        payload = INBOUND_PAYLOADS[event].model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {event.value} payload: {_describe(e)}")
    return event, payload
