"""
Pytest 配置和共享 fixtures
"""
import pytest
from decimal import Decimal
from typing import Any, List, Tuple
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from hotel_api.database import Base, get_db
from hotel_api.models import chat  # noqa
from hotel_api.models.chat import FoodMenuItem
from hotel_api.main import create_app
from hotel_api.security.auth import create_access_token
from realtime.connection import IConnection, next_connection_id
from realtime.identity import Identity, Role


GUEST_ID = 7
OTHER_GUEST_ID = 8
STAFF_ID = 1
OTHER_STAFF_ID = 2


class RecordingConnection(IConnection):
    """记录所有推送的假连接"""

    def __init__(self, fail: bool = False):
        self._id = next_connection_id()
        self.sent: List[Tuple[str, Any]] = []
        self.fail = fail
        self.closed = False

    @property
    def connection_id(self) -> int:
        return self._id

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def send(self, event: str, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append((event, data))

    def events(self) -> List[str]:
        return [event for event, _ in self.sent]

    def payloads(self, event: str) -> List[Any]:
        return [data for name, data in self.sent if name == event]


@pytest.fixture
def make_connection():
    """创建假连接"""
    return RecordingConnection


# ============== 数据库 Fixtures ==============

@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """绑定内存数据库的 Session 工厂"""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """创建数据库会话"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def app(session_factory):
    """使用内存数据库的应用实例"""
    return create_app(session_factory=session_factory)


@pytest.fixture(scope="function")
def client(app, db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 身份相关 Fixtures ==============

@pytest.fixture
def guest_identity():
    return Identity(user_id=GUEST_ID, role=Role.GUEST)


@pytest.fixture
def staff_identity():
    return Identity(user_id=STAFF_ID, role=Role.STAFF)


@pytest.fixture
def guest_token():
    return create_access_token(GUEST_ID, Role.GUEST)


@pytest.fixture
def other_guest_token():
    return create_access_token(OTHER_GUEST_ID, Role.GUEST)


@pytest.fixture
def staff_token():
    return create_access_token(STAFF_ID, Role.STAFF)


@pytest.fixture
def other_staff_token():
    return create_access_token(OTHER_STAFF_ID, Role.STAFF)


@pytest.fixture
def guest_headers(guest_token):
    return {"Authorization": f"Bearer {guest_token}"}


@pytest.fixture
def staff_headers(staff_token):
    return {"Authorization": f"Bearer {staff_token}"}


# ============== 菜单 Fixtures ==============

def _add_menu_item(db_session, name, price, category, availability=True):
    item = FoodMenuItem(
        name=name,
        description=f"{name} description",
        price=Decimal(price),
        category=category,
        availability=availability,
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture
def burger(db_session):
    """单价 15 的可售菜品"""
    return _add_menu_item(db_session, "Burger", "15.00", "Main Course")


@pytest.fixture
def fries(db_session):
    """单价 5 的可售菜品"""
    return _add_menu_item(db_session, "Fries", "5.00", "Sides")


@pytest.fixture
def soup(db_session):
    """单价 5 的停售菜品"""
    return _add_menu_item(db_session, "Soup", "5.00", "Starters", availability=False)
