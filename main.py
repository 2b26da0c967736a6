import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from aiogram import Bot, Dispatcher
from aiogram.types import Update
from aiogram.client.default import DefaultBotProperties

from bot.handlers import router as main_router
from bot.keyboards import set_bot_commands
from config import settings
from database.base import build_engine, build_session_factory, init_db
from game.economy import EconomyEngine
from game.exceptions import StoreUnavailable

# ===== НАСТРОЙКА ЛОГГИРОВАНИЯ =====
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ===== БАЗА ДАННЫХ =====
engine = build_engine(
    settings.DB_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_timeout=settings.DB_POOL_TIMEOUT,
    command_timeout=settings.DB_COMMAND_TIMEOUT,
)
AsyncSessionLocal = build_session_factory(engine)

economy = EconomyEngine(AsyncSessionLocal, settings.catalog())

# ===== TELEGRAM БОТ =====
bot = Bot(token=settings.TELEGRAM_BOT_TOKEN,
          default=DefaultBotProperties(parse_mode="HTML"))

dp = Dispatcher(economy=economy)
dp.include_router(main_router)


def get_economy() -> EconomyEngine:
    return economy


# ===== FASTAPI ПРИЛОЖЕНИЕ =====
@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db(engine)

    if settings.WEBHOOK_URL:
        webhook_url = settings.WEBHOOK_URL.rstrip("/") + "/webhook"
        await bot.set_webhook(webhook_url, secret_token=settings.TELEGRAM_WEBHOOK_SECRET)
        await set_bot_commands(bot)
        logger.info(f"Webhook URL set to {webhook_url}")

    yield

    await bot.session.close()
    await engine.dispose()


app = FastAPI(title="Card Economy Bot",
              description="Карточная экономика для Telegram",
              version="1.0.0",
              lifespan=lifespan
             )


# ===== ЭНДПОИНТЫ =====
@app.get("/")
async def root():
    """Корневой эндпоинт"""
    return {
        "status": "online",
        "service": "Card Economy Bot",
        "version": "1.0.0",
        "health": "/health",
        "ping": "/ping"
    }


@app.get("/health")
async def health_check():
    """Проверка здоровья сервиса"""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "database": "connected",
            "timestamp": datetime.now().isoformat()
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "error": str(e),
            "timestamp": datetime.now().isoformat()
        }


@app.get("/ping")
async def ping():
    return {
        "status": "pong",
        "timestamp": datetime.now().isoformat(),
    }


@app.post("/webhook")
async def telegram_webhook(request: Request):
    """Прием обновлений от Telegram"""
    secret_token = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if secret_token != settings.TELEGRAM_WEBHOOK_SECRET:
        logger.warning(f"Неверный секретный токен: {secret_token}")
        raise HTTPException(status_code=403, detail="Forbidden")

    try:
        update_data = await request.json()
        update = Update(**update_data)

        await dp.feed_update(bot=bot, update=update)

        return {"status": "ok"}
    except Exception as e:
        logger.error(f"Ошибка обработки вебхука: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(e)}
        )


@app.post("/cron")
async def cron(secret: str = "", economy: EconomyEngine = Depends(get_economy)):
    """Почасовое начисление дохода (вызывается внешним планировщиком)"""
    if not secret or secret != settings.CRON_SECRET:
        logger.warning("Cron called with bad secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        credited = await economy.distribute_batch_income()
    except StoreUnavailable as e:
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(e)}
        )

    return {"status": "ok", "credited_users": credited}
