import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base

from game.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(
    db_url: str,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 10,
    command_timeout: int = 10,
) -> AsyncEngine:
    """Создать движок с настройками пула"""
    if db_url.startswith("sqlite"):
        # У sqlite нет пула соединений с этими параметрами
        return create_async_engine(db_url, echo=False, future=True)

    connect_args = {}
    if "+asyncpg" in db_url:
        connect_args["command_timeout"] = command_timeout

    return create_async_engine(
        db_url,
        echo=False,
        future=True,
        pool_size=pool_size,  # Размер пула
        max_overflow=max_overflow,  # Максимальное количество дополнительных соединений
        pool_timeout=pool_timeout,  # Сколько ждать свободное соединение
        pool_pre_ping=True,  # Проверять соединение перед использованием
        pool_recycle=3600,  # Пересоздавать соединение через час
        connect_args=connect_args,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def init_db(engine: AsyncEngine) -> None:
    """Создать таблицы, если их нет"""
    # Импорт регистрирует модели в Base.metadata
    import database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def transaction(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    """Одна транзакция: commit при успехе, rollback при любой ошибке.

    Сессия закрывается на всех путях выхода. Сбои хранилища превращаются
    в StoreUnavailable, доменные ошибки пробрасываются как есть.
    """
    try:
        async with session_factory() as session:
            async with session.begin():
                yield session
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
        logger.error(f"❌ Ошибка хранилища, транзакция откатана: {e!r}")
        raise StoreUnavailable(str(e)) from e
