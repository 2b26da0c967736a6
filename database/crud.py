# database/crud.py
import enum
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.user import User, EPOCH
from database.models.card import Card
from game.card_generator import CardDraft

logger = logging.getLogger(__name__)

users_table = User.__table__
cards_table = Card.__table__


class TimestampField(str, enum.Enum):
    LAST_PACK = "last_pack_time"
    LAST_CLAIM = "last_claim_time"


def _insert_ignore(session: AsyncSession, table):
    """INSERT ... ON CONFLICT DO NOTHING для текущего диалекта"""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table).on_conflict_do_nothing()
    if dialect == "sqlite":
        return sqlite.insert(table).on_conflict_do_nothing()
    raise NotImplementedError(f"Диалект {dialect} не поддерживается")


# ===== ПОЛЬЗОВАТЕЛИ =====

async def upsert_user(session: AsyncSession, user_id: int, starting_coins: int = 0) -> bool:
    """Создать пользователя, если его нет. Возвращает True, если создан"""
    result = await session.execute(
        _insert_ignore(session, users_table).values(
            id=user_id,
            coins=starting_coins,
            last_pack_time=EPOCH,
            last_claim_time=EPOCH,
        )
    )
    created = result.rowcount == 1
    if created:
        logger.info(f"Created new user: id={user_id}")
    return created


# ===== БАЛАНС =====

async def get_balance(session: AsyncSession, user_id: int, for_update: bool = False) -> Optional[int]:
    query = select(User.coins).where(User.id == user_id)
    if for_update:
        query = query.with_for_update()
    return await session.scalar(query)


async def delta_balance(session: AsyncSession, user_id: int, amount: int) -> Optional[int]:
    """Изменить баланс на amount (может быть отрицательным).

    Обновление условное: баланс никогда не уходит ниже нуля.
    Возвращает новый баланс или None, если списание невозможно.
    """
    result = await session.execute(
        users_table.update()
        .where(users_table.c.id == user_id, users_table.c.coins + amount >= 0)
        .values(coins=users_table.c.coins + amount)
    )
    if result.rowcount != 1:
        return None
    return await get_balance(session, user_id)


# ===== ТАЙМЕРЫ =====

async def get_timestamp(
    session: AsyncSession,
    user_id: int,
    field: TimestampField,
    for_update: bool = False,
) -> Optional[datetime]:
    query = select(users_table.c[field.value]).where(users_table.c.id == user_id)
    if for_update:
        query = query.with_for_update()
    return await session.scalar(query)


async def set_timestamp(
    session: AsyncSession,
    user_id: int,
    field: TimestampField,
    value: datetime,
    expected: Optional[datetime] = None,
) -> bool:
    """Сдвинуть таймер вперед.

    Таймер только растет. Если передан expected, обновление пройдет
    только при совпадении текущего значения (иначе кто-то успел раньше).
    """
    column = users_table.c[field.value]
    query = users_table.update().where(users_table.c.id == user_id, column < value)
    if expected is not None:
        query = query.where(column == expected)

    result = await session.execute(query.values({column: value}))
    return result.rowcount == 1


# ===== КАРТЫ =====

async def insert_cards(
    session: AsyncSession,
    owner_id: int,
    drafts: Sequence[CardDraft],
    created_at: datetime,
) -> List[Card]:
    """Добавить карты пачкой. Атомарность обеспечивает транзакция вызывающего"""
    cards = [
        Card(
            owner_id=owner_id,
            rarity=draft.rarity,
            income_per_hour=draft.income_per_hour,
            created_at=created_at,
        )
        for draft in drafts
    ]
    session.add_all(cards)
    await session.flush()
    return cards


async def select_inventory(session: AsyncSession, user_id: int) -> List[Card]:
    result = await session.execute(
        select(Card)
        .where(Card.owner_id == user_id)
        .order_by(Card.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def total_income(session: AsyncSession, user_id: int) -> int:
    result = await session.scalar(
        select(func.coalesce(func.sum(Card.income_per_hour), 0))
        .where(Card.owner_id == user_id)
    )
    return int(result or 0)


async def lock_and_read_card(session: AsyncSession, card_id: int) -> Optional[Card]:
    """Прочитать карту с блокировкой строки до конца транзакции"""
    result = await session.execute(
        select(Card)
        .where(Card.id == card_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def reassign_card_owner(
    session: AsyncSession,
    card_id: int,
    new_owner: int,
    expected_owner: Optional[int] = None,
) -> bool:
    query = cards_table.update().where(cards_table.c.id == card_id)
    if expected_owner is not None:
        query = query.where(cards_table.c.owner_id == expected_owner)

    result = await session.execute(query.values(owner_id=new_owner))
    return result.rowcount == 1


# ===== ПАССИВНЫЙ ДОХОД =====

async def distribute_income(session: AsyncSession) -> int:
    """Начислить всем владельцам карт их доход в час одним UPDATE.

    Пользователи без карт не затрагиваются. Возвращает число начисленных.
    """
    owned = cards_table.c.owner_id == users_table.c.id
    income = (
        select(func.coalesce(func.sum(cards_table.c.income_per_hour), 0))
        .where(owned)
        .scalar_subquery()
    )
    result = await session.execute(
        users_table.update()
        .where(select(cards_table.c.id).where(owned).exists())
        .values(coins=users_table.c.coins + income)
    )
    return result.rowcount
