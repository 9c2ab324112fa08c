"""Tests for the YAML config store."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from swapbot.config import MultiTargetConfig, SinglePairConfig
from swapbot.errors import ConfigurationError, PersistenceError
from swapbot.store import YamlConfigStore


def _single(bot_id: str = "1") -> SinglePairConfig:
    return SinglePairConfig(
        bot_id=bot_id,
        input_token="SOL",
        output_token="USDC",
        input_amount=Decimal("1.5"),
        first_trade_price=Decimal("250.123456"),
        target_gain_percentage=Decimal("1.5"),
    )


def _multi(bot_id: str = "2") -> MultiTargetConfig:
    return MultiTargetConfig(
        bot_id=bot_id,
        held_token="USDC",
        held_amount=Decimal("100"),
        target_amounts={"JUP": Decimal("180"), "SOL": Decimal("0.7")},
        target_gain_percentage=Decimal("2"),
    )


class TestYamlConfigStore:
    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        assert await store.list_configs() == []

    @pytest.mark.asyncio
    async def test_save_and_load(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        await store.save_config("1", _single())
        await store.save_config("2", _multi())

        single = await store.load_config("1")
        multi = await store.load_config("2")

        assert isinstance(single, SinglePairConfig)
        assert single.first_trade_price == Decimal("250.123456")
        assert isinstance(multi, MultiTargetConfig)
        assert list(multi.target_amounts) == ["JUP", "SOL"]

    @pytest.mark.asyncio
    async def test_decimals_stored_as_strings(self, tmp_path: Path) -> None:
        path = tmp_path / "bots.yaml"
        store = YamlConfigStore(path)
        await store.save_config("1", _single())

        raw = yaml.safe_load(path.read_text())
        assert raw["bots"][0]["kind"] == "single"
        assert raw["bots"][0]["input_amount"] == "1.5"

    @pytest.mark.asyncio
    async def test_save_replaces_existing(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        await store.save_config("1", _single())
        updated = _single().model_copy(update={"input_token": "USDC", "output_token": "SOL"})
        await store.save_config("1", updated)

        configs = await store.list_configs()
        assert len(configs) == 1
        assert configs[0].input_token == "USDC"

    @pytest.mark.asyncio
    async def test_set_status(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        await store.save_config("1", _single())

        await store.set_status("1", "active")
        assert (await store.load_config("1")).status == "active"

        await store.set_status("unknown", "active")  # ignored

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        await store.save_config("1", _single())
        await store.save_config("2", _multi())

        await store.delete_config("1")

        assert [c.bot_id for c in await store.list_configs()] == ["2"]

    @pytest.mark.asyncio
    async def test_load_unknown(self, tmp_path: Path) -> None:
        store = YamlConfigStore(tmp_path / "bots.yaml")
        with pytest.raises(ConfigurationError):
            await store.load_config("1")

    @pytest.mark.asyncio
    async def test_invalid_entries_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "bots.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "bots": [
                        {"kind": "unknown", "bot_id": "x"},
                        _multi().model_dump(mode="json"),
                    ]
                }
            )
        )
        store = YamlConfigStore(path)

        assert [c.bot_id for c in await store.list_configs()] == ["2"]

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bots.yaml"
        path.write_text("bots: [unclosed")
        store = YamlConfigStore(path)

        with pytest.raises(PersistenceError):
            await store.list_configs()

    @pytest.mark.asyncio
    async def test_example_file_loads(self) -> None:
        example = Path(__file__).parent.parent / "configs" / "bots.example.yaml"
        configs = await YamlConfigStore(example).list_configs()

        assert [c.kind for c in configs] == ["single", "multi"]
