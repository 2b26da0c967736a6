# bot/keyboards.py
import enum

from aiogram import Bot
from aiogram.filters.callback_data import CallbackData
from aiogram.types import BotCommand, InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from game.pack_system import Catalog, PackId


class Action(str, enum.Enum):
    FREE_PACK = "free_pack"
    SHOP = "shop"
    INVENTORY = "inventory"
    CLAIM = "claim"
    BACK = "back"


class BuyPackCallback(CallbackData, prefix="buy"):
    pack_id: PackId


async def set_bot_commands(bot: Bot):
    """Установка команд бота в меню"""
    commands = [
        BotCommand(command="/start", description="🏠 Главное меню"),
        BotCommand(command="/balance", description="💰 Баланс"),
        BotCommand(command="/trade", description="🔄 Передать карту"),
    ]
    await bot.set_my_commands(commands)


def main_menu_keyboard() -> InlineKeyboardMarkup:
    """Главное меню"""
    builder = InlineKeyboardBuilder()
    builder.row(
        InlineKeyboardButton(text="🎁 Бесплатная пачка", callback_data=Action.FREE_PACK.value),
    )
    builder.row(
        InlineKeyboardButton(text="🛒 Магазин", callback_data=Action.SHOP.value),
        InlineKeyboardButton(text="🃏 Инвентарь", callback_data=Action.INVENTORY.value),
    )
    builder.row(
        InlineKeyboardButton(text="💰 Собрать доход", callback_data=Action.CLAIM.value),
    )
    return builder.as_markup()


def shop_keyboard(catalog: Catalog) -> InlineKeyboardMarkup:
    """Магазин: по кнопке на каждую платную пачку"""
    builder = InlineKeyboardBuilder()
    for pack_id, info in catalog.shop_packs():
        builder.row(
            InlineKeyboardButton(
                text=f"📦 Пачка x{info.cards_count} — {info.price}",
                callback_data=BuyPackCallback(pack_id=pack_id).pack(),
            )
        )
    builder.row(InlineKeyboardButton(text="« Назад", callback_data=Action.BACK.value))
    return builder.as_markup()
