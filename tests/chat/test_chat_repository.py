"""
聊天持久化网关测试
"""
import asyncio
import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from hotel_api.models.chat import ChatMessage, ChatServiceRequest, FoodOrder, FoodOrderItem
from hotel_api.services.chat_repository import ChatRepository, ResolvedLine
from realtime.errors import PersistenceError
from realtime.identity import Identity, Role


@pytest.fixture
def repository(session_factory):
    return ChatRepository(session_factory)


def _message(**overrides):
    values = dict(
        sender_id=7, sender_type="guest", receiver_id=1, receiver_type="staff",
        message="hi", message_type="text", status="sent",
    )
    values.update(overrides)
    return ChatMessage(**values)


class TestTransactionScope:
    """事务块测试"""

    def test_commits_on_success(self, repository, db_session):
        """测试正常退出时提交"""
        with repository.transaction_scope() as session:
            session.add(_message())

        assert db_session.query(ChatMessage).count() == 1

    def test_rolls_back_on_any_exception(self, repository, db_session):
        """测试非数据库异常同样回滚并原样抛出"""
        with pytest.raises(KeyError):
            with repository.transaction_scope() as session:
                session.add(_message())
                session.flush()
                raise KeyError("boom")

        assert db_session.query(ChatMessage).count() == 0

    def test_database_error_becomes_persistence_error(self, repository, db_session):
        """测试数据库错误转换为 PersistenceError"""
        with pytest.raises(PersistenceError) as exc_info:
            with repository.transaction_scope("Failed to save message") as session:
                session.add(_message())
                session.flush()
                # 违反外键约束
                session.add(FoodOrderItem(order_id=12345, item_id=67890, quantity=1, price=1))
                session.flush()

        assert exc_info.value.message == "Failed to save message"
        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert db_session.query(ChatMessage).count() == 0


class TestRepositoryOperations:
    """网关操作测试"""

    def test_create_message_returns_id(self, repository, db_session):
        """测试写入消息"""
        message_id = asyncio.run(repository.create_message(
            Identity(7, Role.GUEST), Identity(1, Role.STAFF), "hello"
        ))

        row = db_session.get(ChatMessage, message_id)
        assert row.sender_type == "guest"
        assert row.message == "hello"
        assert row.message_type == "text"

    def test_get_menu_item(self, repository, burger, soup):
        """测试读取菜品价格快照"""
        async def scenario():
            return (
                await repository.get_menu_item(burger.id),
                await repository.get_menu_item(soup.id),
                await repository.get_menu_item(999),
            )

        found, unavailable, missing = asyncio.run(scenario())

        assert found.price == Decimal("15.00")
        assert found.available is True
        assert unavailable.available is False
        assert missing is None

    def test_create_food_order_batch_inserts_lines(self, repository, db_session, burger, fries):
        """测试订单与订单行同事务写入"""
        lines = [
            ResolvedLine(item_id=burger.id, quantity=2, price=Decimal("15.00")),
            ResolvedLine(item_id=fries.id, quantity=1, price=Decimal("5.00"), notes="extra salt"),
        ]
        order_id = asyncio.run(repository.create_food_order(
            booking_id=3, guest_id=7, room_id=101,
            total_amount=Decimal("35.00"), notes=None, lines=lines,
        ))

        order = db_session.get(FoodOrder, order_id)
        assert order.total_amount == Decimal("35.00")
        items = sorted(order.items, key=lambda line: line.item_id)
        assert [(i.item_id, i.quantity, i.notes) for i in items] == [
            (burger.id, 2, None), (fries.id, 1, "extra salt"),
        ]

    def test_create_food_order_with_unknown_item_rolls_back(self, repository, db_session):
        """测试订单行外键失败时订单不落库"""
        lines = [ResolvedLine(item_id=999, quantity=1, price=Decimal("1.00"))]

        with pytest.raises(PersistenceError):
            asyncio.run(repository.create_food_order(
                booking_id=3, guest_id=7, room_id=101,
                total_amount=Decimal("1.00"), notes=None, lines=lines,
            ))

        assert db_session.query(FoodOrder).count() == 0

    def test_resolved_line_subtotal(self):
        line = ResolvedLine(item_id=1, quantity=3, price=Decimal("2.50"))
        assert line.subtotal == Decimal("7.50")


class OverlapTrackingFactory:
    """记录同时打开的 Session 数量的 Session 工厂"""

    def __init__(self, factory):
        self._factory = factory
        self._guard = threading.Lock()
        self.open = 0
        self.max_open = 0
        self.created = 0

    def __call__(self):
        session = self._factory()
        with self._guard:
            self.open += 1
            self.created += 1
            self.max_open = max(self.max_open, self.open)
        original_close = session.close

        def close():
            with self._guard:
                self.open -= 1
            original_close()

        session.close = close
        return session


class TestConcurrentUnitsOfWork:
    """并发工作单元串行化测试"""

    def test_concurrent_writes_never_share_a_transaction(self, session_factory, db_session, burger, fries):
        """测试并发写入时同一时刻只有一个 Session 打开，各订单明细互不混淆"""
        tracking = OverlapTrackingFactory(session_factory)
        repository = ChatRepository(tracking)

        first_lines = [
            ResolvedLine(item_id=burger.id, quantity=2, price=Decimal("15.00")),
            ResolvedLine(item_id=fries.id, quantity=1, price=Decimal("5.00")),
        ]
        second_lines = [ResolvedLine(item_id=fries.id, quantity=4, price=Decimal("5.00"))]

        async def scenario():
            return await asyncio.gather(
                repository.create_food_order(
                    booking_id=3, guest_id=7, room_id=101,
                    total_amount=Decimal("35.00"), notes="first", lines=first_lines,
                ),
                repository.create_food_order(
                    booking_id=4, guest_id=8, room_id=102,
                    total_amount=Decimal("20.00"), notes="second", lines=second_lines,
                ),
                repository.create_service_request(7, "housekeeping", None, "{}"),
                repository.get_menu_item(burger.id),
            )

        first_id, second_id, (message_id, request_id), snapshot = asyncio.run(scenario())

        assert tracking.created == 4
        assert tracking.max_open == 1
        assert tracking.open == 0

        db_session.expire_all()
        first = db_session.get(FoodOrder, first_id)
        second = db_session.get(FoodOrder, second_id)
        assert first.notes == "first"
        assert sorted((i.item_id, i.quantity) for i in first.items) == [(burger.id, 2), (fries.id, 1)]
        assert [(i.item_id, i.quantity) for i in second.items] == [(fries.id, 4)]
        assert db_session.get(ChatMessage, message_id).message_type == "service_request"
        assert db_session.get(ChatServiceRequest, request_id).message_id == message_id
        assert snapshot.price == Decimal("15.00")
