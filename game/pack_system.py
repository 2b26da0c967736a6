# game/pack_system.py
import enum
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Union

from game.exceptions import UnknownPack


class PackId(str, enum.Enum):
    FREE = "pack_free"
    PACK_2 = "pack_2"
    PACK_3 = "pack_3"
    PACK_10 = "pack_10"


@dataclass(frozen=True)
class PackInfo:
    cards_count: int
    price: int


# Доход в час по редкости (строго возрастает)
RARITY_INCOME = {
    "common": 1,
    "rare": 3,
    "epic": 7,
    "legendary": 15,
}

RARITY_WEIGHTS = {
    "common": 70,
    "rare": 20,
    "epic": 8,
    "legendary": 2,
}

PACK_SETTINGS = {
    PackId.FREE: PackInfo(cards_count=5, price=0),
    PackId.PACK_2: PackInfo(cards_count=2, price=50),
    PackId.PACK_3: PackInfo(cards_count=3, price=100),
    PackId.PACK_10: PackInfo(cards_count=10, price=250),
}

FREE_PACK_COOLDOWN = timedelta(minutes=30)


@dataclass(frozen=True)
class Catalog:
    """Каталог редкостей и пачек.

    Создается один раз при старте и передается явно в генератор и экономику.
    Словари оборачиваются в MappingProxyType, чтобы каталог нельзя было
    изменить после создания.
    """

    rarity_income: Mapping[str, int]
    rarity_weights: Mapping[str, float]
    packs: Mapping[PackId, PackInfo]
    free_pack: PackId = PackId.FREE
    free_pack_cooldown: timedelta = FREE_PACK_COOLDOWN
    starting_coins: int = 0
    _rarities: tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "rarity_income", MappingProxyType(dict(self.rarity_income)))
        object.__setattr__(self, "rarity_weights", MappingProxyType(dict(self.rarity_weights)))
        object.__setattr__(self, "packs", MappingProxyType(dict(self.packs)))
        object.__setattr__(self, "_rarities", tuple(self.rarity_income))
        self._validate()

    def _validate(self):
        if len(self.rarity_income) < 4:
            raise ValueError("Нужно минимум 4 редкости")

        incomes = list(self.rarity_income.values())
        if any(b <= a for a, b in zip(incomes, incomes[1:])):
            raise ValueError("Доход по редкостям должен строго возрастать")

        if set(self.rarity_weights) != set(self.rarity_income):
            raise ValueError("Веса должны быть заданы для каждой редкости")
        if any(w < 0 for w in self.rarity_weights.values()):
            raise ValueError("Вес редкости не может быть отрицательным")
        if sum(self.rarity_weights.values()) <= 0:
            raise ValueError("Сумма весов должна быть положительной")

        free = self.packs.get(self.free_pack)
        if free is None or free.price != 0:
            raise ValueError("Бесплатная пачка должна быть в каталоге и стоить 0")
        if free.cards_count <= 0:
            raise ValueError("В бесплатной пачке должны быть карты")

        paid = sorted(
            (info for pid, info in self.packs.items() if pid != self.free_pack),
            key=lambda info: info.price,
        )
        if not paid:
            raise ValueError("Нужна хотя бы одна платная пачка")
        for prev, cur in zip(paid, paid[1:]):
            if cur.price <= prev.price or cur.cards_count <= prev.cards_count:
                raise ValueError("Платные пачки должны расти по цене и количеству карт")
        if paid[0].price <= 0 or paid[0].cards_count <= 0:
            raise ValueError("Платная пачка должна стоить больше 0 и содержать карты")

        if self.free_pack_cooldown < timedelta(0):
            raise ValueError("Кулдаун не может быть отрицательным")
        if self.starting_coins < 0:
            raise ValueError("Стартовый баланс не может быть отрицательным")

    @property
    def rarities(self) -> tuple:
        return self._rarities

    def income_for(self, rarity: str) -> int:
        return self.rarity_income[rarity]

    def weights(self) -> list:
        """Веса в порядке self.rarities"""
        return [self.rarity_weights[r] for r in self._rarities]

    def resolve_pack(self, pack_id: Union[PackId, str]) -> PackId:
        try:
            resolved = PackId(pack_id)
        except ValueError:
            raise UnknownPack(pack_id) from None
        if resolved not in self.packs:
            raise UnknownPack(pack_id)
        return resolved

    def pack(self, pack_id: Union[PackId, str]) -> PackInfo:
        return self.packs[self.resolve_pack(pack_id)]

    def shop_packs(self) -> list:
        """Платные пачки по возрастанию цены"""
        return sorted(
            ((pid, info) for pid, info in self.packs.items() if pid != self.free_pack),
            key=lambda item: item[1].price,
        )


DEFAULT_CATALOG = Catalog(
    rarity_income=RARITY_INCOME,
    rarity_weights=RARITY_WEIGHTS,
    packs=PACK_SETTINGS,
)
