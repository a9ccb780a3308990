"""
聊天路由
WebSocket 实时通道 + 历史记录查询
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, status
from hotel_api.models.schemas import ChatHistoryItem
from hotel_api.security.auth import get_current_identity
from hotel_api.services.chat_manager import ChatManager
from realtime.errors import PersistenceError
from realtime.identity import Identity

router = APIRouter(tags=["聊天"])


def get_chat_manager(request: Request) -> ChatManager:
    """获取应用的聊天管理器"""
    return request.app.state.chat_manager


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    """实时聊天通道，帧格式 {"event": ..., "data": ...}"""
    manager: ChatManager = websocket.app.state.chat_manager
    await manager.handle_websocket(websocket)


@router.get("/chat/history", response_model=List[ChatHistoryItem])
async def get_chat_history(
    identity: Identity = Depends(get_current_identity),
    manager: ChatManager = Depends(get_chat_manager),
):
    """当前身份最近的聊天记录，最新在前"""
    try:
        history = await manager.coordinator.get_history(identity)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    return [
        ChatHistoryItem(
            id=m.message_id,
            sender_id=m.sender_id,
            sender_type=m.sender_type,
            receiver_id=m.receiver_id,
            receiver_type=m.receiver_type,
            message=m.message,
            message_type=m.message_type,
            status=m.status,
            created_at=m.created_at,
        )
        for m in history
    ]
