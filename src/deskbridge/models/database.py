"""数据库初始化和连接管理."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

logger = logging.getLogger(__name__)

# 全局引擎
_engine: Any = None


async def init_db(database_url: str) -> async_sessionmaker[AsyncSession]:
    """初始化数据库，创建所有表，返回会话工厂."""
    global _engine

    # 确保所有表模型已注册到 metadata
    import deskbridge.models  # noqa: F401

    if _engine is not None:
        await _engine.dispose()
    _engine = create_async_engine(database_url, echo=False)

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info(f"数据库已初始化: {database_url.split('://', 1)[0]}")
    return async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    """释放数据库连接."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
    _engine = None
