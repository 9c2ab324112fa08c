"""Shared test fixtures and in-memory collaborators for swapbot tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from swapbot.bot_state import BotStatus
from swapbot.config import EngineConfig, TokenConfig
from swapbot.errors import ConfigurationError, ProviderError, QuoteError
from swapbot.models import EXACT_IN, BlockhashInfo, QuoteResult, Token
from swapbot.tokens import TokenBook

WALLET_ADDRESS = "Wallet1111111111111111111111111111111111111"

SOL = Token(symbol="SOL", mint="So11111111111111111111111111111111111111112", decimals=9)
USDC = Token(symbol="USDC", mint="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", decimals=6)
JUP = Token(symbol="JUP", mint="JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", decimals=6)


class FakeQuotes:
    """Quote provider with a fixed price table."""

    def __init__(self) -> None:
        # (input_mint, output_mint) -> out_amount, or an exception to raise
        self.prices: dict[tuple[str, str], Any] = {}
        self.quote_calls: list[tuple[str, str, int]] = []
        self.submitted: list[QuoteResult] = []
        self.quote_delay = 0.0
        self.submit_error: Exception | None = None
        self.submit_gate: asyncio.Event | None = None

    def set_price(self, src: Token, dst: Token, out_amount: Any) -> None:
        self.prices[(src.mint, dst.mint)] = out_amount

    async def get_quote(
        self, input_mint: str, output_mint: str, amount: int, mode: str = EXACT_IN
    ) -> QuoteResult:
        self.quote_calls.append((input_mint, output_mint, amount))
        if self.quote_delay:
            await asyncio.sleep(self.quote_delay)
        out = self.prices.get((input_mint, output_mint))
        if out is None:
            raise QuoteError("no route")
        if isinstance(out, Exception):
            raise out
        return QuoteResult(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=amount,
            out_amount=out,
            mode=mode,
        )

    async def build_and_submit_swap(
        self, quote: QuoteResult, wallet_address: str, fee_account: str | None = None
    ) -> str:
        self.submitted.append(quote)
        if self.submit_gate is not None:
            await self.submit_gate.wait()
        if self.submit_error is not None:
            raise self.submit_error
        return f"sig{len(self.submitted)}"


class FakeLedger:
    def __init__(self) -> None:
        self.resolve_error: Exception | None = None
        self.token_account_failures = 0
        self.token_account_calls = 0
        self.confirm_result = True
        self.confirm_error: Exception | None = None
        self.received: int | None = None
        self.received_gate: asyncio.Event | None = None
        self.token_account_gate: asyncio.Event | None = None
        self.sent: list[bytes] = []

    async def resolve_wallet_address(self, wallet: Any) -> str:
        if self.resolve_error is not None:
            raise self.resolve_error
        return WALLET_ADDRESS

    async def get_token_account(self, owner: str, mint: str) -> str:
        self.token_account_calls += 1
        if self.token_account_gate is not None:
            await self.token_account_gate.wait()
        if self.token_account_failures > 0:
            self.token_account_failures -= 1
            raise ProviderError("rpc unavailable")
        return f"ata-{mint[:8]}"

    async def get_latest_blockhash(self) -> BlockhashInfo:
        return BlockhashInfo(blockhash="hash", valid_until_height=100)

    async def send_transaction(self, tx_bytes: bytes) -> str:
        self.sent.append(tx_bytes)
        return f"sent{len(self.sent)}"

    async def confirm_transaction(self, signature: str) -> bool:
        if self.confirm_error is not None:
            raise self.confirm_error
        return self.confirm_result

    async def get_received_amount(
        self, signature: str, owner: str, mint: str
    ) -> int | None:
        if self.received_gate is not None:
            await self.received_gate.wait()
        return self.received


class FakeStore:
    """In-memory ConfigStore."""

    def __init__(self, configs: list[Any] | None = None) -> None:
        self.configs: dict[str, Any] = {c.bot_id: c for c in configs or []}
        self.saved: list[Any] = []
        self.save_error: Exception | None = None

    async def load_config(self, bot_id: str) -> Any:
        if bot_id not in self.configs:
            raise ConfigurationError(f"No config found for bot {bot_id}")
        return self.configs[bot_id]

    async def save_config(self, bot_id: str, snapshot: Any) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(snapshot)
        self.configs[bot_id] = snapshot

    async def set_status(self, bot_id: str, status: str) -> None:
        if bot_id in self.configs:
            self.configs[bot_id] = self.configs[bot_id].model_copy(
                update={"status": status}
            )

    async def list_configs(self) -> list[Any]:
        return list(self.configs.values())

    async def delete_config(self, bot_id: str) -> None:
        self.configs.pop(bot_id, None)


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]


def make_running(bot: Any) -> Any:
    """Put a bot in RUNNING without starting its poll task."""
    bot.wallet_address = WALLET_ADDRESS
    bot.state.status = BotStatus.RUNNING
    return bot


@pytest.fixture
def token_book() -> TokenBook:
    return TokenBook(
        [
            TokenConfig(symbol=t.symbol, mint=t.mint, decimals=t.decimals)
            for t in (SOL, USDC, JUP)
        ]
    )


@pytest.fixture
def engine() -> EngineConfig:
    return EngineConfig(
        check_interval_ms=1000,
        quote_timeout_seconds=0.5,
        init_retries=3,
        retry_delay_seconds=0,
    )


@pytest.fixture
def quotes() -> FakeQuotes:
    return FakeQuotes()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def deps(
    quotes: FakeQuotes,
    ledger: FakeLedger,
    store: FakeStore,
    notifier: RecordingNotifier,
    engine: EngineConfig,
) -> dict[str, Any]:
    """Keyword arguments shared by every bot constructor."""
    return {
        "wallet": "test-wallet",
        "ledger": ledger,
        "quotes": quotes,
        "store": store,
        "notifier": notifier,
        "engine": engine,
    }
