"""
Pydantic 模式定义
用于 REST API 请求/响应验证
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict
from hotel_api.models.chat import FoodOrderStatus


# ============== 菜单 Schemas ==============

class MenuItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=50)


class MenuItemCreate(MenuItemBase):
    pass


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    availability: Optional[bool] = None


class MenuItemResponse(MenuItemBase):
    id: int
    availability: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 订单 Schemas ==============

class FoodOrderItemResponse(BaseModel):
    item_id: int
    name: Optional[str] = None
    quantity: int
    price: Decimal
    notes: Optional[str] = None


class FoodOrderResponse(BaseModel):
    id: int
    booking_id: int
    guest_id: int
    room_id: int
    status: FoodOrderStatus
    total_amount: Decimal
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[FoodOrderItemResponse] = []


class FoodOrderStatusUpdate(BaseModel):
    status: FoodOrderStatus


# ============== 聊天 Schemas ==============

class ChatHistoryItem(BaseModel):
    id: int
    sender_id: int
    sender_type: str
    receiver_id: int
    receiver_type: str
    message: str
    message_type: str
    status: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)
