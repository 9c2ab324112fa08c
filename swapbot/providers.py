"""Collaborator interfaces consumed by the trading engine.

The engine depends only on these protocols; ``jupiter``, ``ledger``,
``store`` and ``notifier`` provide the production implementations and the
tests provide fakes.
"""

from __future__ import annotations

from typing import Any, Protocol

from .config import BotActivity, MultiTargetConfig, SinglePairConfig
from .models import BlockhashInfo, QuoteResult

BotSnapshot = SinglePairConfig | MultiTargetConfig


class QuoteProvider(Protocol):
    async def get_quote(
        self, input_mint: str, output_mint: str, amount: int, mode: str = ...
    ) -> QuoteResult:
        """Price ``amount`` of ``input_mint`` into ``output_mint``.

        Raises QuoteError (or QuoteTimeoutError) on failure.
        """
        ...

    async def build_and_submit_swap(
        self,
        quote: QuoteResult,
        wallet_address: str,
        fee_account: str | None = None,
    ) -> str:
        """Build the swap for ``quote``, submit it, return its signature."""
        ...


class LedgerProvider(Protocol):
    async def resolve_wallet_address(self, wallet: Any) -> str: ...

    async def get_token_account(self, owner: str, mint: str) -> str: ...

    async def get_latest_blockhash(self) -> BlockhashInfo: ...

    async def send_transaction(self, tx_bytes: bytes) -> str:
        """Sign and send a provider-built transaction, return its signature."""
        ...

    async def confirm_transaction(self, signature: str) -> bool:
        """Wait for confirmation.

        Returns False when the transaction failed on chain and raises
        ConfirmationTimeoutError when the provider's deadline expires.
        """
        ...

    async def get_received_amount(
        self, signature: str, owner: str, mint: str
    ) -> int | None:
        """Units of ``mint`` credited to ``owner`` by the transaction."""
        ...


class ConfigStore(Protocol):
    async def load_config(self, bot_id: str) -> BotSnapshot: ...

    async def save_config(self, bot_id: str, snapshot: BotSnapshot) -> None: ...

    async def set_status(self, bot_id: str, status: BotActivity) -> None: ...

    async def list_configs(self) -> list[BotSnapshot]: ...

    async def delete_config(self, bot_id: str) -> None: ...


class NotificationSink(Protocol):
    async def emit(self, event: str, payload: dict[str, Any]) -> None: ...
