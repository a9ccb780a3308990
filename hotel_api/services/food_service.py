"""
点餐 Service - 菜单管理 / 订单查询 / 订单状态更新
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from hotel_api.models.chat import FoodMenuItem, FoodOrder, FoodOrderItem, FoodOrderStatus
from hotel_api.models.schemas import MenuItemCreate, MenuItemUpdate
from realtime.identity import Identity, Role


class FoodService:
    NULLABLE_MENU_FIELDS = frozenset({"description"})

    def __init__(self, db: Session):
        self.db = db

    # =============== Menu ===============

    def get_menu(self) -> List[FoodMenuItem]:
        """可售菜品，按分类、名称排序"""
        return self.db.query(FoodMenuItem).filter(
            FoodMenuItem.availability == True,
        ).order_by(FoodMenuItem.category, FoodMenuItem.name).all()

    def get_categories(self) -> List[str]:
        rows = self.db.query(FoodMenuItem.category).distinct().order_by(FoodMenuItem.category).all()
        return [r[0] for r in rows]

    def get_menu_item(self, item_id: int) -> Optional[FoodMenuItem]:
        return self.db.query(FoodMenuItem).filter(FoodMenuItem.id == item_id).first()

    def create_menu_item(self, data: MenuItemCreate) -> FoodMenuItem:
        item = FoodMenuItem(**data.model_dump(), availability=True)
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_menu_item(self, item_id: int, data: MenuItemUpdate) -> FoodMenuItem:
        """
        部分更新；改价不影响已下订单的价格快照

        显式传入的 null 只对可空的 description 生效，其余字段忽略
        """
        update_data = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key in self.NULLABLE_MENU_FIELDS
        }
        if not update_data:
            raise ValueError("No update data provided")

        item = self.get_menu_item(item_id)
        if not item:
            raise LookupError("Menu item not found")

        for key, value in update_data.items():
            setattr(item, key, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    # =============== Orders ===============

    def get_orders(self, viewer: Identity) -> List[FoodOrder]:
        """员工可见全部订单，客人只可见自己的订单；最新在前"""
        query = self.db.query(FoodOrder).options(
            selectinload(FoodOrder.items).selectinload(FoodOrderItem.menu_item)
        )
        if viewer.role == Role.GUEST:
            query = query.filter(FoodOrder.guest_id == viewer.user_id)
        return query.order_by(FoodOrder.created_at.desc(), FoodOrder.id.desc()).all()

    def get_order(self, order_id: int, viewer: Optional[Identity] = None) -> Optional[FoodOrder]:
        order = self.db.query(FoodOrder).options(
            selectinload(FoodOrder.items).selectinload(FoodOrderItem.menu_item)
        ).filter(FoodOrder.id == order_id).first()
        if order and viewer and viewer.role == Role.GUEST and order.guest_id != viewer.user_id:
            return None
        return order

    def update_order_status(self, order_id: int, status: FoodOrderStatus) -> FoodOrder:
        order = self.db.query(FoodOrder).filter(FoodOrder.id == order_id).first()
        if not order:
            raise LookupError("Order not found")
        order.status = status.value
        self.db.commit()
        self.db.refresh(order)
        return order

    @staticmethod
    def to_response(order: FoodOrder) -> Dict[str, Any]:
        return {
            "id": order.id,
            "booking_id": order.booking_id,
            "guest_id": order.guest_id,
            "room_id": order.room_id,
            "status": order.status,
            "total_amount": order.total_amount,
            "notes": order.notes,
            "created_at": order.created_at,
            "items": [
                {
                    "item_id": line.item_id,
                    "name": line.menu_item.name if line.menu_item else None,
                    "quantity": line.quantity,
                    "price": line.price,
                    "notes": line.notes,
                }
                for line in order.items
            ],
        }
