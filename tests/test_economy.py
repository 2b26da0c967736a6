"""Тесты операций экономики."""

from datetime import datetime, timedelta, timezone

import pytest

from database import crud
from database.models import EPOCH
from game.economy import EconomyEngine, accrued_income, utc_naive
from game.exceptions import CardNotFound, CooldownActive, InsufficientFunds, NotOwner, UnknownPack
from game.pack_system import PackId

NOW = datetime(2026, 1, 1, 12, 0, 0)


class TestHelpers:
    def test_utc_naive_converts_aware(self) -> None:
        aware = datetime(2026, 1, 1, 15, 0, tzinfo=timezone(timedelta(hours=3)))
        assert utc_naive(aware) == datetime(2026, 1, 1, 12, 0)

    def test_utc_naive_keeps_naive(self) -> None:
        assert utc_naive(NOW) == NOW

    def test_accrued_income_hour(self) -> None:
        assert accrued_income(12, timedelta(hours=1)) == 12

    def test_accrued_income_floors(self) -> None:
        # 7/ч за 10 минут = 1.166...
        assert accrued_income(7, timedelta(minutes=10)) == 1
        assert accrued_income(1, timedelta(minutes=59, seconds=59)) == 0

    def test_accrued_income_non_positive_elapsed(self) -> None:
        assert accrued_income(100, timedelta(0)) == 0
        assert accrued_income(100, timedelta(seconds=-30)) == 0


class TestEnsureUser:
    async def test_twice_is_noop(self, economy: EconomyEngine, read_user, give_coins) -> None:
        assert await economy.ensure_user(7) is True
        await give_coins(7, 40)
        before = await read_user(7)

        assert await economy.ensure_user(7) is False

        after = await read_user(7)
        assert (after.coins, after.last_pack_time, after.last_claim_time) == (
            before.coins,
            before.last_pack_time,
            before.last_claim_time,
        )
        assert after.coins == 40


class TestFreePack:
    async def test_new_user_gets_free_pack(self, economy: EconomyEngine, read_user) -> None:
        cards = await economy.open_free_pack(1, NOW)

        assert len(cards) == 5
        assert all(c.id is not None and c.owner_id == 1 for c in cards)
        user = await read_user(1)
        assert user.last_pack_time == NOW

    async def test_cooldown_reports_remaining(self, economy: EconomyEngine, read_user) -> None:
        await economy.open_free_pack(1, NOW)

        with pytest.raises(CooldownActive) as exc_info:
            await economy.open_free_pack(1, NOW + timedelta(minutes=10))

        assert exc_info.value.remaining == timedelta(minutes=20)
        assert len((await economy.list_inventory(1)).cards) == 5
        assert (await read_user(1)).last_pack_time == NOW

    async def test_available_after_cooldown(self, economy: EconomyEngine, read_user) -> None:
        await economy.open_free_pack(1, NOW)
        later = NOW + timedelta(minutes=30)

        cards = await economy.open_free_pack(1, later)

        assert len(cards) == 5
        assert len((await economy.list_inventory(1)).cards) == 10
        assert (await read_user(1)).last_pack_time == later

    async def test_clock_skew_keeps_cooldown(self, economy: EconomyEngine, read_user) -> None:
        await economy.open_free_pack(1, NOW)

        with pytest.raises(CooldownActive):
            await economy.open_free_pack(1, NOW - timedelta(hours=2))

        assert (await read_user(1)).last_pack_time == NOW

    async def test_does_not_charge(self, economy: EconomyEngine, give_coins) -> None:
        await give_coins(1, 10)
        await economy.open_free_pack(1, NOW)

        assert await economy.get_balance(1) == 10


class TestBuyPack:
    async def test_insufficient_funds(self, economy: EconomyEngine, give_coins) -> None:
        await economy.ensure_user(1)

        with pytest.raises(InsufficientFunds) as exc_info:
            await economy.buy_pack(1, PackId.PACK_2, NOW)

        assert (exc_info.value.balance, exc_info.value.cost) == (0, 50)
        inventory = await economy.list_inventory(1)
        assert inventory.balance == 0
        assert inventory.cards == []

    async def test_ten_card_pack_spends_everything(self, economy: EconomyEngine, give_coins, catalog) -> None:
        await give_coins(1, 250)

        result = await economy.buy_pack(1, "pack_10", NOW)

        assert result.pack_id is PackId.PACK_10
        assert result.balance == 0
        assert len(result.cards) == 10

        inventory = await economy.list_inventory(1)
        assert inventory.balance == 0
        assert len(inventory.cards) == 10
        for card in inventory.cards:
            assert card.rarity in catalog.rarities
            assert card.income_per_hour == catalog.income_for(card.rarity)

    async def test_deducts_exact_cost(self, economy: EconomyEngine, give_coins) -> None:
        await give_coins(1, 175)

        await economy.buy_pack(1, PackId.PACK_3, NOW)
        await economy.buy_pack(1, PackId.PACK_2, NOW)

        assert await economy.get_balance(1) == 25
        assert len((await economy.list_inventory(1)).cards) == 5

    async def test_unknown_pack(self, economy: EconomyEngine, give_coins) -> None:
        await give_coins(1, 1000)

        with pytest.raises(UnknownPack):
            await economy.buy_pack(1, "pack_999", NOW)

        assert await economy.get_balance(1) == 1000

    async def test_free_pack_not_for_sale(self, economy: EconomyEngine) -> None:
        with pytest.raises(UnknownPack):
            await economy.buy_pack(1, PackId.FREE, NOW)


class TestInventory:
    async def test_empty_for_unknown_user(self, economy: EconomyEngine) -> None:
        inventory = await economy.list_inventory(555)

        assert inventory.cards == []
        assert inventory.income_per_hour == 0
        assert inventory.balance == 0

    async def test_round_trip(self, economy: EconomyEngine) -> None:
        granted = await economy.open_free_pack(1, NOW)

        inventory = await economy.list_inventory(1)

        assert [(c.id, c.rarity, c.income_per_hour) for c in inventory.cards] == [
            (c.id, c.rarity, c.income_per_hour) for c in granted
        ]
        assert inventory.income_per_hour == sum(c.income_per_hour for c in granted)

    async def test_ascending_ids_across_packs(self, economy: EconomyEngine, add_cards) -> None:
        await add_cards(1, ["legendary"])
        await add_cards(2, ["common"])
        await add_cards(1, ["common", "rare"])

        cards = (await economy.list_inventory(1)).cards

        assert [c.rarity for c in cards] == ["legendary", "common", "rare"]
        assert [c.id for c in cards] == sorted(c.id for c in cards)


class TestClaimLazy:
    async def test_one_hour_of_income(self, economy: EconomyEngine, session_factory, add_cards, read_user) -> None:
        await add_cards(1, ["rare", "epic", "common", "common"])  # 3 + 7 + 1 + 1
        async with session_factory() as session:
            await crud.set_timestamp(session, 1, crud.TimestampField.LAST_CLAIM, NOW)
            await session.commit()

        later = NOW + timedelta(seconds=3600)
        result = await economy.claim_lazy(1, later)

        assert result.amount == 12
        assert result.balance == 12
        assert (await read_user(1)).last_claim_time == later

    async def test_nothing_to_claim_keeps_clock(self, economy: EconomyEngine, session_factory, add_cards, read_user) -> None:
        await add_cards(1, ["common"])
        async with session_factory() as session:
            await crud.set_timestamp(session, 1, crud.TimestampField.LAST_CLAIM, NOW)
            await session.commit()

        result = await economy.claim_lazy(1, NOW + timedelta(minutes=30))

        assert result.claimed is False
        assert result.amount == 0
        assert (await read_user(1)).last_claim_time == NOW

    async def test_no_cards(self, economy: EconomyEngine, read_user) -> None:
        result = await economy.claim_lazy(1, NOW)

        assert result.amount == 0
        assert (await read_user(1)).last_claim_time == EPOCH

    async def test_negative_elapsed(self, economy: EconomyEngine, session_factory, add_cards, read_user) -> None:
        await add_cards(1, ["legendary"])
        async with session_factory() as session:
            await crud.set_timestamp(session, 1, crud.TimestampField.LAST_CLAIM, NOW)
            await session.commit()

        result = await economy.claim_lazy(1, NOW - timedelta(hours=5))

        assert result.amount == 0
        assert (await read_user(1)).last_claim_time == NOW

    async def test_second_claim_only_counts_new_time(self, economy: EconomyEngine, session_factory, add_cards) -> None:
        await add_cards(1, ["epic"])
        async with session_factory() as session:
            await crud.set_timestamp(session, 1, crud.TimestampField.LAST_CLAIM, NOW)
            await session.commit()

        first = await economy.claim_lazy(1, NOW + timedelta(hours=2))
        second = await economy.claim_lazy(1, NOW + timedelta(hours=3))

        assert first.amount == 14
        assert second.amount == 7
        assert second.balance == 21

    async def test_first_claim_counts_from_epoch(self, economy: EconomyEngine, add_cards) -> None:
        await add_cards(1, ["common"])

        result = await economy.claim_lazy(1, datetime(1970, 1, 2))

        assert result.amount == 24


class TestBatchIncome:
    async def test_three_users(self, economy: EconomyEngine, add_cards, give_coins) -> None:
        await add_cards(1, ["common"])
        await economy.ensure_user(2)
        await add_cards(3, ["rare", "common", "common"])
        await give_coins(2, 10)

        credited = await economy.distribute_batch_income()

        assert credited == 2
        assert await economy.get_balance(1) == 1
        assert await economy.get_balance(2) == 10
        assert await economy.get_balance(3) == 5

    async def test_independent_from_lazy_claim(self, economy: EconomyEngine, session_factory, add_cards) -> None:
        """Оба канала начисляют доход за один и тот же час"""
        await add_cards(1, ["epic"])
        async with session_factory() as session:
            await crud.set_timestamp(session, 1, crud.TimestampField.LAST_CLAIM, NOW)
            await session.commit()

        await economy.distribute_batch_income()
        claim = await economy.claim_lazy(1, NOW + timedelta(hours=1))

        assert claim.amount == 7
        assert await economy.get_balance(1) == 14

    async def test_no_owners(self, economy: EconomyEngine) -> None:
        await economy.ensure_user(1)
        assert await economy.distribute_batch_income() == 0


class TestTransfer:
    async def test_transfer_moves_card(self, economy: EconomyEngine, add_cards) -> None:
        [card] = await add_cards(1, ["epic"])
        await economy.ensure_user(2)

        moved = await economy.transfer_card(1, 2, card.id)

        assert moved.owner_id == 2
        assert (await economy.list_inventory(1)).cards == []
        assert [c.id for c in (await economy.list_inventory(2)).cards] == [card.id]

    async def test_recipient_created(self, economy: EconomyEngine, add_cards, read_user) -> None:
        [card] = await add_cards(1, ["rare"])

        await economy.transfer_card(1, 77, card.id)

        recipient = await read_user(77)
        assert recipient is not None
        assert recipient.coins == 0

    async def test_card_not_found(self, economy: EconomyEngine) -> None:
        with pytest.raises(CardNotFound) as exc_info:
            await economy.transfer_card(1, 2, 12345)
        assert exc_info.value.card_id == 12345

    async def test_not_owner(self, economy: EconomyEngine, add_cards, read_user) -> None:
        [card] = await add_cards(1, ["legendary"])

        with pytest.raises(NotOwner):
            await economy.transfer_card(2, 3, card.id)

        assert [c.id for c in (await economy.list_inventory(1)).cards] == [card.id]
        # Получатель не создается при неудачном обмене
        assert await read_user(3) is None

    async def test_income_follows_card(self, economy: EconomyEngine, add_cards) -> None:
        [card] = await add_cards(1, ["legendary"])
        await economy.transfer_card(1, 2, card.id)

        await economy.distribute_batch_income()

        assert await economy.get_balance(1) == 0
        assert await economy.get_balance(2) == 15
