# config.py
from datetime import timedelta

from pydantic_settings import BaseSettings

from game.pack_system import Catalog, PACK_SETTINGS, RARITY_INCOME, RARITY_WEIGHTS


class Settings(BaseSettings):
    DB_URL: str = "postgresql+asyncpg://localhost:5432/kami_economy"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 10  # Секунды ожидания соединения из пула
    DB_COMMAND_TIMEOUT: int = 10  # Таймаут запроса (только asyncpg)

    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_WEBHOOK_SECRET: str = "supersecret12345"
    WEBHOOK_URL: str = ""
    CRON_SECRET: str = "secret"

    # Экономика
    FREE_PACK_COOLDOWN_MINUTES: int = 30
    STARTING_COINS: int = 0

    class Config:
        env_file = ".env"

    def catalog(self) -> Catalog:
        """Собрать неизменяемый каталог из настроек"""
        return Catalog(
            rarity_income=RARITY_INCOME,
            rarity_weights=RARITY_WEIGHTS,
            packs=PACK_SETTINGS,
            free_pack_cooldown=timedelta(minutes=self.FREE_PACK_COOLDOWN_MINUTES),
            starting_coins=self.STARTING_COINS,
        )


settings = Settings()
