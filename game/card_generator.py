# game/card_generator.py
import random
from dataclasses import dataclass
from typing import List, Sequence, TypeVar

from game.pack_system import Catalog

T = TypeVar("T")


@dataclass(frozen=True)
class CardDraft:
    """Сгенерированная карта без id и владельца"""

    rarity: str
    income_per_hour: int


def weighted_choice(items: Sequence[T], weights: Sequence[float], rng: random.Random) -> T:
    """Выбрать элемент с вероятностью weight / sum(weights)"""
    if not items or len(items) != len(weights):
        raise ValueError("items и weights должны быть непустыми и одной длины")

    total = sum(weights)
    if total <= 0:
        raise ValueError("Сумма весов должна быть положительной")

    r = rng.random() * total
    running = 0
    for item, weight in zip(items, weights):
        running += weight
        if running > r:
            return item

    # Округление на границе
    return items[-1]


class CardGenerator:
    def __init__(self, catalog: Catalog, rng: random.Random = None):
        self.catalog = catalog
        self.rng = rng or random.Random()

    def roll_rarity(self) -> str:
        return weighted_choice(self.catalog.rarities, self.catalog.weights(), self.rng)

    def generate_card(self) -> CardDraft:
        rarity = self.roll_rarity()
        return CardDraft(rarity=rarity, income_per_hour=self.catalog.income_for(rarity))

    def generate_cards(self, count: int) -> List[CardDraft]:
        # Каждая карта роллится независимо
        return [self.generate_card() for _ in range(count)]
