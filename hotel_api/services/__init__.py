# Business Services
from hotel_api.services.chat_repository import ChatRepository
from hotel_api.services.chat_coordinator import ChatCoordinator
from hotel_api.services.chat_manager import ChatManager
from hotel_api.services.food_service import FoodService

__all__ = ['ChatRepository', 'ChatCoordinator', 'ChatManager', 'FoodService']
