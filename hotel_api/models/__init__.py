# Chat Models
from hotel_api.models.chat import (
    ChatMessage, ChatServiceRequest, FoodMenuItem, FoodOrder, FoodOrderItem,
    MessageType, MessageStatus, ServiceRequestStatus, FoodOrderStatus
)

__all__ = [
    'ChatMessage', 'ChatServiceRequest', 'FoodMenuItem', 'FoodOrder', 'FoodOrderItem',
    'MessageType', 'MessageStatus', 'ServiceRequestStatus', 'FoodOrderStatus'
]
