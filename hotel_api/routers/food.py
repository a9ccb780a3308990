"""
点餐路由
菜单管理与订单查询；订单状态变更后实时通知下单客人
"""
from typing import List
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from hotel_api.database import get_db
from hotel_api.models.events import OutboundEvent, FoodOrderStatusNotice
from hotel_api.models.schemas import (
    MenuItemCreate, MenuItemUpdate, MenuItemResponse,
    FoodOrderResponse, FoodOrderStatusUpdate,
)
from hotel_api.routers.chat import get_chat_manager
from hotel_api.security.auth import get_current_identity, require_staff
from hotel_api.services.chat_manager import ChatManager
from hotel_api.services.food_service import FoodService
from realtime.identity import Identity, Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/food", tags=["点餐"])


# ============== 菜单 ==============

@router.get("/menu", response_model=List[MenuItemResponse])
def list_menu(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """获取可售菜单"""
    return FoodService(db).get_menu()


@router.get("/menu/categories", response_model=List[str])
def list_categories(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """获取菜单分类"""
    return FoodService(db).get_categories()


@router.post("/menu", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
def create_menu_item(
    data: MenuItemCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_staff)
):
    """新增菜品"""
    return FoodService(db).create_menu_item(data)


@router.put("/menu/{item_id}", response_model=MenuItemResponse)
def update_menu_item(
    item_id: int,
    data: MenuItemUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_staff)
):
    """更新菜品"""
    try:
        return FoodService(db).update_menu_item(item_id, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ============== 订单 ==============

@router.get("/orders", response_model=List[FoodOrderResponse])
def list_orders(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """获取订单列表"""
    service = FoodService(db)
    return [service.to_response(o) for o in service.get_orders(identity)]


@router.get("/orders/{order_id}", response_model=FoodOrderResponse)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    """获取订单详情"""
    service = FoodService(db)
    order = service.get_order(order_id, identity)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return service.to_response(order)


@router.put("/orders/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: FoodOrderStatusUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_staff),
    manager: ChatManager = Depends(get_chat_manager),
):
    """更新订单状态，并实时通知下单客人"""
    service = FoodService(db)
    try:
        order = await run_in_threadpool(service.update_order_status, order_id, data.status)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    notice = FoodOrderStatusNotice(order_id=order.id, status=order.status)
    guest = Identity(user_id=order.guest_id, role=Role.GUEST)
    await manager.dispatcher.send(guest, OutboundEvent.FOOD_ORDER_STATUS.value, notice.to_wire())
    logger.info(f"Food order {order.id} status -> {order.status} by {identity}")
    return {"message": "Order status updated successfully"}
