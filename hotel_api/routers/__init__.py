# API Routers
from hotel_api.routers import chat, food

__all__ = ['chat', 'food']
