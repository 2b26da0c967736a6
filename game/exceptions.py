# game/exceptions.py
from datetime import timedelta


class EconomyError(Exception):
    """Базовая ошибка экономики"""


class CooldownActive(EconomyError):
    """Бесплатная пачка еще на кулдауне"""

    def __init__(self, remaining: timedelta):
        self.remaining = remaining
        super().__init__(f"Бесплатная пачка будет доступна через {remaining}")


class InsufficientFunds(EconomyError):
    def __init__(self, balance: int, cost: int):
        self.balance = balance
        self.cost = cost
        super().__init__(f"Недостаточно монет: нужно {cost}, у вас {balance}")


class UnknownPack(EconomyError):
    def __init__(self, pack_id):
        self.pack_id = pack_id
        super().__init__(f"Неизвестный тип пака: {pack_id!r}")


class CardNotFound(EconomyError):
    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(f"Карта {card_id} не найдена")


class NotOwner(EconomyError):
    def __init__(self, card_id: int, user_id: int):
        self.card_id = card_id
        self.user_id = user_id
        super().__init__(f"Карта {card_id} не принадлежит пользователю {user_id}")


class StoreUnavailable(EconomyError):
    """Хранилище недоступно или не ответило вовремя.

    Транзакция уже откатана, операцию можно повторить целиком.
    """
