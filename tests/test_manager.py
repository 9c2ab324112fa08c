"""Tests for the BotManager registry."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest

from conftest import FakeLedger, FakeQuotes, FakeStore, JUP, USDC, RecordingNotifier
from swapbot.bot_state import BotStatus
from swapbot.config import EngineConfig, MultiTargetConfig, SinglePairConfig
from swapbot.errors import BotAlreadyRunningError, ConfigurationError
from swapbot.manager import BotManager
from swapbot.multi_bot import MultiBot
from swapbot.trade_bot import TradeBot


def _single(bot_id: str = "1", status: str = "inactive", **overrides: Any) -> SinglePairConfig:
    data = {
        "bot_id": bot_id,
        "input_token": "USDC",
        "output_token": "JUP",
        "input_amount": Decimal("1"),
        "first_trade_price": Decimal("1.005"),
        "target_gain_percentage": Decimal("1"),
        "status": status,
    }
    data.update(overrides)
    return SinglePairConfig(**data)


def _multi(bot_id: str = "2", status: str = "inactive") -> MultiTargetConfig:
    return MultiTargetConfig(
        bot_id=bot_id,
        held_token="USDC",
        held_amount=Decimal("100"),
        target_amounts={"JUP": Decimal("100"), "SOL": Decimal("0.5")},
        target_gain_percentage=Decimal("2"),
        status=status,
    )


@pytest.fixture
def manager(
    quotes: FakeQuotes,
    ledger: FakeLedger,
    store: FakeStore,
    notifier: RecordingNotifier,
    token_book,
) -> BotManager:
    return BotManager(
        wallet="test-wallet",
        ledger=ledger,
        quotes=quotes,
        store=store,
        notifier=notifier,
        tokens=token_book,
        engine=EngineConfig(check_interval_ms=60_000, quote_timeout_seconds=0.5),
    )


async def _wait_until(predicate: Any, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_registers_and_marks_active(
        self, manager: BotManager, store: FakeStore
    ) -> None:
        bot = await manager.start(_single())

        assert isinstance(bot, TradeBot)
        assert bot.status is BotStatus.RUNNING
        assert manager.is_running("1")
        assert store.configs["1"].status == "active"
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_start_multi(self, manager: BotManager) -> None:
        bot = await manager.start(_multi())
        assert isinstance(bot, MultiBot)
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_duplicate_start_rejected(self, manager: BotManager) -> None:
        first = await manager.start(_single())
        first.state.trade_count = 5

        with pytest.raises(BotAlreadyRunningError):
            await manager.start(_single(first_trade_price=Decimal("9")))

        assert manager.get("1") is first
        assert first.trade_count == 5
        assert first.threshold_amount == 1_005_000
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_start(self, manager: BotManager) -> None:
        results = await asyncio.gather(
            manager.start(_single()),
            manager.start(_single()),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BotAlreadyRunningError)]
        bots = [r for r in results if isinstance(r, TradeBot)]
        assert len(errors) == 1
        assert len(bots) == 1
        assert manager.running_ids == ["1"]
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_invalid_config_raises(self, manager: BotManager) -> None:
        with pytest.raises(ConfigurationError):
            await manager.start(_single(input_token="DOGE"))
        assert manager.running_ids == []

    @pytest.mark.asyncio
    async def test_init_failure_not_registered(
        self, manager: BotManager, ledger: FakeLedger
    ) -> None:
        ledger.resolve_error = ValueError("bad key")
        assert await manager.start(_single()) is None
        assert not manager.is_running("1")

    @pytest.mark.asyncio
    async def test_stop_unknown_is_noop(self, manager: BotManager) -> None:
        assert await manager.stop("nope") is False

    @pytest.mark.asyncio
    async def test_stop_terminates_and_marks_inactive(
        self, manager: BotManager, store: FakeStore
    ) -> None:
        bot = await manager.start(_single())

        assert await manager.stop("1") is True

        assert bot.status is BotStatus.TERMINATED
        assert not manager.is_running("1")
        assert store.configs["1"].status == "inactive"

    @pytest.mark.asyncio
    async def test_self_termination_unregisters(
        self, manager: BotManager, quotes: FakeQuotes, store: FakeStore
    ) -> None:
        quotes.set_price(USDC, JUP, 1_010_000)
        bot = await manager.start(_single(target_gain_percentage=None))

        await _wait_until(lambda: not manager.is_running("1"))

        assert bot.status is BotStatus.TERMINATED
        assert bot.trade_count == 1
        assert store.configs["1"].status == "inactive"
        assert store.configs["1"].input_token == "JUP"

    @pytest.mark.asyncio
    async def test_start_by_id(self, manager: BotManager, store: FakeStore) -> None:
        store.configs["1"] = _single()
        bot = await manager.start_by_id("1")
        assert bot is not None
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_start_by_unknown_id(self, manager: BotManager) -> None:
        with pytest.raises(ConfigurationError):
            await manager.start_by_id("404")

    @pytest.mark.asyncio
    async def test_resume_active_only(self, manager: BotManager, store: FakeStore) -> None:
        store.configs = {
            "1": _single("1", status="active"),
            "2": _multi("2", status="inactive"),
            "3": _single("3", status="active", output_token="DOGE"),
        }

        started = await manager.resume_active()

        assert started == 1
        assert manager.running_ids == ["1"]
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_stop_all(self, manager: BotManager) -> None:
        await manager.start(_single("1"))
        await manager.start(_multi("2"))

        await manager.stop_all()

        assert manager.running_ids == []


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_all_merges_live_status(
        self, manager: BotManager, store: FakeStore
    ) -> None:
        store.configs["2"] = _multi("2")
        await manager.start(_single("1"))

        rows = {row.bot_id: row for row in await manager.list_all()}

        assert rows["1"].running is True
        assert rows["1"].details["kind"] == "single"
        assert rows["2"].running is False
        assert rows["2"].details is None
        assert rows["2"].activity == "inactive"
        # read-only
        assert set(store.configs) == {"1", "2"}
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_get_status(self, manager: BotManager) -> None:
        assert manager.get_status("1") == {"bot_id": "1", "status": "stopped"}
        await manager.start(_single("1"))
        assert manager.get_status("1")["status"] == "running"
        await manager.stop_all()

    @pytest.mark.asyncio
    async def test_list_transactions_without_history(self, manager: BotManager) -> None:
        assert await manager.list_transactions() == []


class TestConfigManagement:
    @pytest.mark.asyncio
    async def test_update_config_stops_running_bot(
        self, manager: BotManager, store: FakeStore
    ) -> None:
        bot = await manager.start(_single("1"))

        await manager.update_config(_single("1", first_trade_price=Decimal("2")))

        assert bot.status is BotStatus.TERMINATED
        assert store.configs["1"].first_trade_price == Decimal("2")
        assert store.configs["1"].status == "inactive"

    @pytest.mark.asyncio
    async def test_delete_config(self, manager: BotManager, store: FakeStore) -> None:
        await manager.start(_single("1"))

        await manager.delete_config("1")

        assert not manager.is_running("1")
        assert "1" not in store.configs
