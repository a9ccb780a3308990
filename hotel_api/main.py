"""
酒店聊天服务主应用入口
客人与员工之间的实时聊天、服务请求与点餐通知
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from hotel_api.config import settings
from hotel_api.database import init_db
from hotel_api.routers import chat, food
from hotel_api.services.chat_manager import ChatManager

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(session_factory: Optional[Callable[[], Session]] = None) -> FastAPI:
    """
    创建应用

    Args:
        session_factory: 聊天持久化使用的 Session 工厂；为空时使用默认数据库并在启动时建表
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        # 启动时执行
        if session_factory is None:
            init_db()
        app.state.chat_manager = ChatManager(session_factory)
        logger.info(f"{settings.APP_NAME} started, realtime chat ready at /ws/chat")

        yield

        # 关闭时执行
        logger.info(
            f"{settings.APP_NAME} shutting down with "
            f"{len(app.state.chat_manager.registry)} live connections"
        )

    app = FastAPI(
        title=settings.APP_NAME,
        description="酒店客人与员工实时聊天、服务请求与点餐",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS 配置
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(chat.router)
    app.include_router(food.router)

    @app.get("/")
    def root():
        """根路径"""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "realtime": "/ws/chat"
        }

    @app.get("/health")
    def health_check():
        """健康检查"""
        return {"status": "healthy"}

    return app


# 创建应用
app = create_app()
