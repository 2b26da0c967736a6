import os

# main.py создает Bot и движок при импорте
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST-token-for-pytest")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")

import random
from datetime import datetime

import pytest

from database import crud
from database.base import build_engine, build_session_factory, init_db, transaction
from database.models import User
from game.card_generator import CardDraft, CardGenerator
from game.economy import EconomyEngine
from game.pack_system import DEFAULT_CATALOG

NOW = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
async def async_engine(tmp_path):
    """SQLite в файле: у параллельных сессий свои соединения"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'economy.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return build_session_factory(async_engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog():
    return DEFAULT_CATALOG


@pytest.fixture
def economy(session_factory, catalog) -> EconomyEngine:
    return EconomyEngine(session_factory, catalog, CardGenerator(catalog, random.Random(42)))


@pytest.fixture
def add_cards(session_factory, catalog):
    """Положить пользователю карты заданных редкостей"""

    async def _add(owner_id: int, rarities):
        drafts = [CardDraft(rarity=r, income_per_hour=catalog.income_for(r)) for r in rarities]
        async with transaction(session_factory) as session:
            await crud.upsert_user(session, owner_id)
            return await crud.insert_cards(session, owner_id, drafts, created_at=NOW)

    return _add


@pytest.fixture
def give_coins(session_factory):
    async def _give(user_id: int, amount: int) -> int:
        async with transaction(session_factory) as session:
            await crud.upsert_user(session, user_id)
            return await crud.delta_balance(session, user_id, amount)

    return _give


@pytest.fixture
def read_user(session_factory):
    async def _read(user_id: int):
        async with session_factory() as session:
            return await session.get(User, user_id)

    return _read
