"""Jupiter swap API client (quote + swap transaction).

Jupiter picks the route. ``GET /quote`` prices a trade, ``POST /swap`` turns
that quote into an unsigned transaction, which is handed to the ledger for
signing and submission.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from .config import JupiterConfig
from .errors import QuoteError, QuoteTimeoutError, SwapExecutionError, SwapTimeoutError
from .models import EXACT_IN, QuoteResult, parse_quote
from .providers import LedgerProvider

logger = logging.getLogger(__name__)


class JupiterClient:
    """Quote provider backed by the Jupiter v1 swap API."""

    def __init__(
        self,
        config: JupiterConfig,
        sender: LedgerProvider | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._sender = sender
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._config.http_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    # --- Quote ---

    def quote_params(
        self, input_mint: str, output_mint: str, amount: int, mode: str = EXACT_IN
    ) -> dict[str, str]:
        cfg = self._config
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "swapMode": mode,
            "autoSlippage": "true" if cfg.auto_slippage else "false",
            "maxAutoSlippageBps": str(cfg.max_auto_slippage_bps),
        }
        if cfg.fee_account:
            params["platformFeeBps"] = str(cfg.platform_fee_bps)
        return params

    async def get_quote(
        self, input_mint: str, output_mint: str, amount: int, mode: str = EXACT_IN
    ) -> QuoteResult:
        if not input_mint or not output_mint:
            raise QuoteError("Input and output mints are required")
        if amount <= 0:
            raise QuoteError(f"Quote amount must be positive, got {amount}")

        params = self.quote_params(input_mint, output_mint, amount, mode)
        url = f"{self._config.base_url}/quote"
        try:
            resp = await self._get_client().get(url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise QuoteTimeoutError(f"Quote request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise QuoteError(
                f"Quote request failed with HTTP {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise QuoteError(f"Quote request failed: {e}") from e
        except ValueError as e:
            raise QuoteError(f"Quote response is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise QuoteError(f"Unexpected quote response: {data!r}")
        quote = parse_quote(data)
        logger.debug(
            "Quote %s -> %s: in=%d out=%d", input_mint, output_mint, quote.in_amount, quote.out_amount
        )
        return quote

    # --- Swap ---

    def swap_payload(
        self, quote: QuoteResult, wallet_address: str, fee_account: str | None = None
    ) -> dict[str, Any]:
        cfg = self._config
        payload: dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": wallet_address,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "dynamicSlippage": True,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": cfg.priority_max_lamports,
                    "priorityLevel": cfg.priority_level,
                }
            },
        }
        fee_account = fee_account or cfg.fee_account
        if fee_account:
            payload["feeAccount"] = fee_account
        return payload

    async def build_swap_transaction(
        self, quote: QuoteResult, wallet_address: str, fee_account: str | None = None
    ) -> bytes:
        """Ask Jupiter for the unsigned swap transaction."""
        if not wallet_address:
            raise SwapExecutionError("Wallet address is required to build a swap")

        payload = self.swap_payload(quote, wallet_address, fee_account)
        url = f"{self._config.base_url}/swap"
        try:
            resp = await self._get_client().post(url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise SwapTimeoutError(f"Swap request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise SwapExecutionError(
                f"Swap request failed with HTTP {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SwapExecutionError(f"Swap request failed: {e}") from e
        except ValueError as e:
            raise SwapExecutionError(f"Swap response is not JSON: {e}") from e

        tx_b64 = data.get("swapTransaction") if isinstance(data, dict) else None
        if not tx_b64:
            raise SwapExecutionError("Swap response has no swapTransaction")
        try:
            return base64.b64decode(tx_b64)
        except ValueError as e:
            raise SwapExecutionError(f"Invalid swapTransaction encoding: {e}") from e

    async def build_and_submit_swap(
        self, quote: QuoteResult, wallet_address: str, fee_account: str | None = None
    ) -> str:
        if self._sender is None:
            raise SwapExecutionError("No transaction sender configured")
        tx_bytes = await self.build_swap_transaction(quote, wallet_address, fee_account)
        logger.debug("Swap transaction built: %d bytes", len(tx_bytes))
        return await self._sender.send_transaction(tx_bytes)
