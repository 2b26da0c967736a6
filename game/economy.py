# game/economy.py
"""
Экономика: пачки, пассивный доход, передача карт.

Каждая операция выполняется в своей транзакции (database.base.transaction).
Инварианты держатся на блокировках строк и условных UPDATE, без глобальных
локов в приложении:

- баланс никогда не бывает отрицательным;
- покупка списывает ровно цену пачки;
- last_pack_time двигается только вперед и только вместе с выдачей карт;
- у карты всегда ровно один владелец.

Ленивый сбор (claim_lazy) и пакетное начисление (distribute_batch_income)
независимы. Игрок может получить доход по обоим каналам за один и тот же
час.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union

from sqlalchemy.ext.asyncio import async_sessionmaker

from database import crud
from database.base import transaction
from database.crud import TimestampField
from database.models.card import Card
from game.card_generator import CardGenerator
from game.exceptions import CooldownActive, InsufficientFunds, UnknownPack, CardNotFound, NotOwner
from game.pack_system import Catalog, PackId

logger = logging.getLogger(__name__)

MICROSECONDS_PER_HOUR = 3600 * 1_000_000


@dataclass(frozen=True)
class Inventory:
    cards: List[Card]
    income_per_hour: int
    balance: int


@dataclass(frozen=True)
class PurchaseResult:
    pack_id: PackId
    cards: List[Card]
    balance: int


@dataclass(frozen=True)
class ClaimResult:
    amount: int
    balance: int

    @property
    def claimed(self) -> bool:
        return self.amount > 0


def utc_naive(now: Optional[datetime] = None) -> datetime:
    """Время в UTC без tzinfo, в таком виде оно хранится в БД"""
    if now is None:
        now = datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now


def accrued_income(income_per_hour: int, elapsed: timedelta) -> int:
    """floor(income_per_hour * elapsed_seconds / 3600) в целых числах"""
    if elapsed <= timedelta(0):
        return 0
    return income_per_hour * (elapsed // timedelta(microseconds=1)) // MICROSECONDS_PER_HOUR


class EconomyEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        catalog: Catalog,
        generator: Optional[CardGenerator] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.generator = generator or CardGenerator(catalog)

    # ===== ПОЛЬЗОВАТЕЛИ =====

    async def ensure_user(self, user_id: int) -> bool:
        """Создать пользователя, если его нет. Повторный вызов ничего не меняет"""
        async with transaction(self.session_factory) as session:
            return await crud.upsert_user(session, user_id, self.catalog.starting_coins)

    async def get_balance(self, user_id: int) -> int:
        async with transaction(self.session_factory) as session:
            return await crud.get_balance(session, user_id) or 0

    # ===== ПАЧКИ =====

    def _cooldown_remaining(self, last_pack_time: datetime, now: datetime) -> Optional[timedelta]:
        elapsed = now - last_pack_time
        cooldown = self.catalog.free_pack_cooldown
        if elapsed < cooldown:
            return cooldown - elapsed
        return None

    async def open_free_pack(self, user_id: int, now: Optional[datetime] = None) -> List[Card]:
        now = utc_naive(now)
        pack = self.catalog.pack(self.catalog.free_pack)

        async with transaction(self.session_factory) as session:
            await crud.upsert_user(session, user_id, self.catalog.starting_coins)

            last = await crud.get_timestamp(session, user_id, TimestampField.LAST_PACK, for_update=True)
            remaining = self._cooldown_remaining(last, now)
            if remaining is not None:
                raise CooldownActive(remaining)

            if not await crud.set_timestamp(session, user_id, TimestampField.LAST_PACK, now, expected=last):
                # Параллельный запрос успел открыть пачку
                last = await crud.get_timestamp(session, user_id, TimestampField.LAST_PACK)
                raise CooldownActive(self._cooldown_remaining(last, now) or timedelta(0))

            drafts = self.generator.generate_cards(pack.cards_count)
            cards = await crud.insert_cards(session, user_id, drafts, created_at=now)

        logger.info(f"🎁 User {user_id} opened free pack: {[c.rarity for c in cards]}")
        return cards

    async def buy_pack(
        self,
        user_id: int,
        pack_id: Union[PackId, str],
        now: Optional[datetime] = None,
    ) -> PurchaseResult:
        now = utc_naive(now)
        pack_id = self.catalog.resolve_pack(pack_id)
        if pack_id == self.catalog.free_pack:
            # Бесплатная пачка только через кулдаун
            raise UnknownPack(pack_id)
        pack = self.catalog.pack(pack_id)

        async with transaction(self.session_factory) as session:
            await crud.upsert_user(session, user_id, self.catalog.starting_coins)

            balance = await crud.get_balance(session, user_id, for_update=True)
            if balance < pack.price:
                raise InsufficientFunds(balance, pack.price)

            new_balance = await crud.delta_balance(session, user_id, -pack.price)
            if new_balance is None:
                raise InsufficientFunds(await crud.get_balance(session, user_id), pack.price)

            drafts = self.generator.generate_cards(pack.cards_count)
            cards = await crud.insert_cards(session, user_id, drafts, created_at=now)

        logger.info(f"💰 User {user_id} bought {pack_id.value} for {pack.price}, balance={new_balance}")
        return PurchaseResult(pack_id=pack_id, cards=cards, balance=new_balance)

    # ===== ИНВЕНТАРЬ =====

    async def list_inventory(self, user_id: int) -> Inventory:
        async with transaction(self.session_factory) as session:
            cards = await crud.select_inventory(session, user_id)
            balance = await crud.get_balance(session, user_id) or 0

        return Inventory(
            cards=cards,
            income_per_hour=sum(c.income_per_hour for c in cards),
            balance=balance,
        )

    # ===== ДОХОД =====

    async def claim_lazy(self, user_id: int, now: Optional[datetime] = None) -> ClaimResult:
        """Собрать доход, накопленный с прошлого сбора.

        Если собирать нечего, last_claim_time не сдвигается.
        """
        now = utc_naive(now)

        async with transaction(self.session_factory) as session:
            await crud.upsert_user(session, user_id, self.catalog.starting_coins)

            last = await crud.get_timestamp(session, user_id, TimestampField.LAST_CLAIM, for_update=True)
            income = await crud.total_income(session, user_id)
            accrued = accrued_income(income, now - last)

            if accrued <= 0:
                return ClaimResult(amount=0, balance=await crud.get_balance(session, user_id))

            if not await crud.set_timestamp(session, user_id, TimestampField.LAST_CLAIM, now, expected=last):
                # Другой сбор уже сдвинул таймер
                return ClaimResult(amount=0, balance=await crud.get_balance(session, user_id))

            balance = await crud.delta_balance(session, user_id, accrued)

        logger.info(f"User {user_id} claimed {accrued} coins ({income}/h), balance={balance}")
        return ClaimResult(amount=accrued, balance=balance)

    async def distribute_batch_income(self) -> int:
        """Начислить часовой доход всем владельцам карт одним запросом"""
        async with transaction(self.session_factory) as session:
            credited = await crud.distribute_income(session)

        logger.info(f"✅ Hourly income distributed to {credited} users")
        return credited

    # ===== ОБМЕН =====

    async def transfer_card(self, from_id: int, to_id: int, card_id: int) -> Card:
        async with transaction(self.session_factory) as session:
            card = await crud.lock_and_read_card(session, card_id)
            if card is None:
                raise CardNotFound(card_id)
            if card.owner_id != from_id:
                raise NotOwner(card_id, from_id)

            await crud.upsert_user(session, to_id, self.catalog.starting_coins)

            if not await crud.reassign_card_owner(session, card_id, to_id, expected_owner=from_id):
                raise NotOwner(card_id, from_id)
            await session.refresh(card)

        logger.info(f"🔄 Card {card_id} transferred {from_id} -> {to_id}")
        return card
