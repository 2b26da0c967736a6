# bot/handlers.py
from datetime import timedelta
import logging

from aiogram import Router, F, types
from aiogram.filters import CommandStart, Command, CommandObject

from bot.keyboards import Action, BuyPackCallback, main_menu_keyboard, shop_keyboard
from game.economy import EconomyEngine
from game.exceptions import (
    CooldownActive,
    InsufficientFunds,
    UnknownPack,
    CardNotFound,
    NotOwner,
    StoreUnavailable,
)

router = Router()

logger = logging.getLogger(__name__)

STORE_ERROR_TEXT = "❌ Сервис временно недоступен. Попробуйте позже."


def format_remaining(remaining: timedelta) -> str:
    """12m 5s -> '12м 5с'"""
    total = max(int(remaining.total_seconds()), 0)
    return f"{total // 60}м {total % 60}с"


def format_cards(cards) -> str:
    return "\n".join(f"• {c.rarity} (+{c.income_per_hour}/ч)" for c in cards)


# ===== START =====
@router.message(CommandStart())
async def cmd_start(message: types.Message, economy: EconomyEngine):
    try:
        await economy.ensure_user(message.from_user.id)
    except StoreUnavailable:
        await message.answer(STORE_ERROR_TEXT)
        return

    await message.answer(
        "🎮 <b>Добро пожаловать!</b> Пользуйтесь меню ниже.",
        reply_markup=main_menu_keyboard(),
    )


# ===== ПАЧКИ =====
@router.callback_query(F.data == Action.FREE_PACK.value)
async def cb_free_pack(callback: types.CallbackQuery, economy: EconomyEngine):
    try:
        cards = await economy.open_free_pack(callback.from_user.id)
    except CooldownActive as e:
        await callback.message.answer(
            f"⏳ Бесплатная пачка будет доступна через {format_remaining(e.remaining)}"
        )
    except StoreUnavailable:
        await callback.message.answer(STORE_ERROR_TEXT)
    else:
        await callback.message.answer(
            f"<b>🎁 Вы открыли бесплатную пачку:</b>\n{format_cards(cards)}"
        )
    await callback.answer()


@router.callback_query(F.data == Action.SHOP.value)
async def cb_shop(callback: types.CallbackQuery, economy: EconomyEngine):
    await callback.message.answer(
        "<b>🛒 Магазин</b>", reply_markup=shop_keyboard(economy.catalog)
    )
    await callback.answer()


@router.callback_query(BuyPackCallback.filter())
async def cb_buy_pack(
    callback: types.CallbackQuery,
    callback_data: BuyPackCallback,
    economy: EconomyEngine,
):
    try:
        result = await economy.buy_pack(callback.from_user.id, callback_data.pack_id)
    except InsufficientFunds as e:
        await callback.message.answer(
            f"❌ Недостаточно монет: нужно <code>{e.cost}</code>, у вас <code>{e.balance}</code>"
        )
    except UnknownPack:
        await callback.message.answer("❌ Неизвестная пачка")
    except StoreUnavailable:
        await callback.message.answer(STORE_ERROR_TEXT)
    else:
        await callback.message.answer(
            f"<b>📦 Вы купили пачку:</b>\n{format_cards(result.cards)}\n\n"
            f"💰 Баланс: <code>{result.balance}</code>"
        )
    await callback.answer()


@router.callback_query(F.data.startswith(f"{BuyPackCallback.__prefix__}:"))
async def cb_buy_unknown(callback: types.CallbackQuery):
    # callback_data не разобралась в PackId
    logger.warning(f"Unknown pack callback: {callback.data}")
    await callback.answer("❌ Неизвестная пачка", show_alert=True)


# ===== ИНВЕНТАРЬ =====
@router.callback_query(F.data == Action.INVENTORY.value)
async def cb_inventory(callback: types.CallbackQuery, economy: EconomyEngine):
    try:
        await economy.ensure_user(callback.from_user.id)
        inventory = await economy.list_inventory(callback.from_user.id)
    except StoreUnavailable:
        await callback.message.answer(STORE_ERROR_TEXT)
        await callback.answer()
        return

    if not inventory.cards:
        await callback.message.answer("🃏 Инвентарь пуст")
    else:
        lines = "\n".join(
            f"ID:{c.id} - {c.rarity} (+{c.income_per_hour}/ч) - {c.created_at:%d.%m.%Y %H:%M}"
            for c in inventory.cards
        )
        await callback.message.answer(
            f"<b>🃏 Инвентарь:</b>\n{lines}\n\n"
            f"📈 Доход: <code>{inventory.income_per_hour}</code>/ч\n"
            f"💰 Баланс: <code>{inventory.balance}</code>"
        )
    await callback.answer()


# ===== ДОХОД =====
@router.callback_query(F.data == Action.CLAIM.value)
async def cb_claim(callback: types.CallbackQuery, economy: EconomyEngine):
    try:
        result = await economy.claim_lazy(callback.from_user.id)
    except StoreUnavailable:
        await callback.message.answer(STORE_ERROR_TEXT)
    else:
        if result.claimed:
            await callback.message.answer(
                f"💰 Вы собрали <code>{result.amount}</code> монет. "
                f"Баланс: <code>{result.balance}</code>"
            )
        else:
            await callback.message.answer("Пока нечего собирать")
    await callback.answer()


@router.callback_query(F.data == Action.BACK.value)
async def cb_back(callback: types.CallbackQuery):
    await callback.message.answer("🏠 Главное меню", reply_markup=main_menu_keyboard())
    await callback.answer()


# ===== ТЕКСТОВЫЕ КОМАНДЫ =====
@router.message(Command("trade"))
async def cmd_trade(message: types.Message, command: CommandObject, economy: EconomyEngine):
    """/trade <user_id> <card_id>"""
    parts = (command.args or "").split()
    if len(parts) != 2 or not all(p.isascii() and p.isdigit() for p in parts):
        await message.answer("Использование: /trade &lt;user_id&gt; &lt;card_id&gt;")
        return

    target, card_id = int(parts[0]), int(parts[1])
    try:
        await economy.ensure_user(message.from_user.id)
        await economy.transfer_card(message.from_user.id, target, card_id)
    except CardNotFound:
        await message.answer("❌ Обмен не удался: карта не найдена")
    except NotOwner:
        await message.answer("❌ Обмен не удался: это не ваша карта")
    except StoreUnavailable:
        await message.answer(STORE_ERROR_TEXT)
    else:
        await message.answer(f"✅ Карта {card_id} отправлена игроку {target}")


@router.message(Command("balance"))
async def cmd_balance(message: types.Message, economy: EconomyEngine):
    try:
        await economy.ensure_user(message.from_user.id)
        balance = await economy.get_balance(message.from_user.id)
    except StoreUnavailable:
        await message.answer(STORE_ERROR_TEXT)
        return

    await message.answer(f"💰 Баланс: <code>{balance}</code>")
