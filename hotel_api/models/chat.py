"""
聊天与点餐 ORM 模型 - 聊天消息 + 服务请求 + 菜单 + 点餐订单
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Numeric
)
from sqlalchemy.orm import relationship
from hotel_api.database import Base


# ============== 枚举定义 ==============

class MessageType(str, Enum):
    """消息类型"""
    TEXT = "text"                          # 普通文本
    SERVICE_REQUEST = "service_request"    # 服务请求
    FOOD_ORDER = "food_order"              # 点餐


class MessageStatus(str, Enum):
    """消息状态（状态流转由外部 CRUD 层负责）"""
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class ServiceRequestStatus(str, Enum):
    """服务请求状态"""
    PENDING = "pending"        # 待处理
    ACCEPTED = "accepted"      # 已接单
    COMPLETED = "completed"    # 已完成
    CANCELLED = "cancelled"    # 已取消


class FoodOrderStatus(str, Enum):
    """点餐订单状态"""
    PENDING = "pending"        # 待确认
    CONFIRMED = "confirmed"    # 已确认
    PREPARING = "preparing"    # 制作中
    DELIVERED = "delivered"    # 已送达
    CANCELLED = "cancelled"    # 已取消


# ============== 表定义 ==============

class ChatMessage(Base):
    """聊天消息表（只增不改不删）"""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, nullable=False)
    sender_type = Column(String(10), nullable=False)                 # guest|staff
    receiver_id = Column(Integer, nullable=False)                     # 0 = 全体员工
    receiver_type = Column(String(10), nullable=False)               # guest|staff
    message = Column(Text, nullable=False)
    message_type = Column(String(20), nullable=False, default=MessageType.TEXT.value)
    status = Column(String(20), nullable=False, default=MessageStatus.SENT.value)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # 链接：服务请求消息对应一条服务请求
    service_request = relationship("ChatServiceRequest", back_populates="message", uselist=False)


class ChatServiceRequest(Base):
    """聊天发起的服务请求表（与父消息在同一事务中创建）"""
    __tablename__ = "chat_service_requests"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("chat_messages.id"), nullable=False, unique=True)
    service_type = Column(String(50), nullable=False)   # room_cleaning, maintenance, amenities ...
    status = Column(String(20), nullable=False, default=ServiceRequestStatus.PENDING.value)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    message = relationship("ChatMessage", back_populates="service_request")


class FoodMenuItem(Base):
    """菜单表"""
    __tablename__ = "food_menu"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    availability = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class FoodOrder(Base):
    """
    点餐订单表
    total_amount 为下单时按价格快照计算的金额，之后不随菜单价格变动
    booking/guest/room 归属外部 CRUD 层，这里只保存编号
    """
    __tablename__ = "food_orders"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, nullable=False, index=True)
    guest_id = Column(Integer, nullable=False, index=True)
    room_id = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=FoodOrderStatus.PENDING.value)
    total_amount = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    items = relationship("FoodOrderItem", back_populates="order", order_by="FoodOrderItem.id")


class FoodOrderItem(Base):
    """订单明细表（price 为下单时的价格快照）"""
    __tablename__ = "food_order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("food_orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("food_menu.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text)

    order = relationship("FoodOrder", back_populates="items")
    menu_item = relationship("FoodMenuItem")
