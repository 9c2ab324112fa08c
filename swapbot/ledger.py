"""Solana RPC ledger: wallet, token accounts, signing, submission, confirmation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import base58
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from solders.transaction_status import TransactionConfirmationStatus

from .config import RpcConfig
from .errors import (
    ConfigurationError,
    ConfirmationTimeoutError,
    ProviderError,
    SwapExecutionError,
)
from .models import BlockhashInfo

logger = logging.getLogger(__name__)

_ACCEPTED_STATUSES = {
    "processed": (
        TransactionConfirmationStatus.Processed,
        TransactionConfirmationStatus.Confirmed,
        TransactionConfirmationStatus.Finalized,
    ),
    "confirmed": (
        TransactionConfirmationStatus.Confirmed,
        TransactionConfirmationStatus.Finalized,
    ),
    "finalized": (TransactionConfirmationStatus.Finalized,),
}


def load_keypair(private_key: str) -> Keypair:
    """Parse a base58-encoded 64-byte secret key."""
    private_key = (private_key or "").strip()
    if not private_key:
        raise ConfigurationError("Wallet private key is empty")
    try:
        key_bytes = base58.b58decode(private_key)
    except ValueError as e:
        raise ConfigurationError(f"Wallet private key is not valid base58: {e}") from e
    if len(key_bytes) != 64:
        raise ConfigurationError(
            f"Wallet private key decoded to {len(key_bytes)} bytes, expected 64"
        )
    try:
        return Keypair.from_bytes(key_bytes)
    except ValueError as e:
        raise ConfigurationError(f"Invalid wallet private key: {e}") from e


class SolanaLedger:
    """Ledger provider backed by a Solana JSON-RPC endpoint."""

    def __init__(
        self,
        config: RpcConfig,
        keypair: Keypair,
        client: AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._keypair = keypair
        self._commitment = Commitment(config.commitment)
        self._client = client

    def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(self._config.url, commitment=self._commitment)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def resolve_wallet_address(self, wallet: Any) -> str:
        if isinstance(wallet, Keypair):
            return str(wallet.pubkey())
        return str(load_keypair(str(wallet)).pubkey())

    async def get_token_account(self, owner: str, mint: str) -> str:
        try:
            resp = await self._get_client().get_token_accounts_by_owner(
                Pubkey.from_string(owner), TokenAccountOpts(mint=Pubkey.from_string(mint))
            )
        except Exception as e:
            raise ProviderError(f"Token account lookup failed for {mint}: {e}") from e
        if not resp.value:
            raise ProviderError(f"No token account for mint {mint} owned by {owner}")
        return str(resp.value[0].pubkey)

    async def get_latest_blockhash(self) -> BlockhashInfo:
        try:
            resp = await self._get_client().get_latest_blockhash()
        except Exception as e:
            raise ProviderError(f"Failed to fetch latest blockhash: {e}") from e
        return BlockhashInfo(
            blockhash=str(resp.value.blockhash),
            valid_until_height=resp.value.last_valid_block_height,
        )

    async def send_transaction(self, tx_bytes: bytes) -> str:
        """Sign a provider-built transaction with the wallet and send it."""
        try:
            unsigned = VersionedTransaction.from_bytes(tx_bytes)
            signed = VersionedTransaction(unsigned.message, [self._keypair])
        except Exception as e:
            raise SwapExecutionError(f"Could not sign transaction: {e}") from e

        try:
            resp = await self._get_client().send_raw_transaction(
                bytes(signed),
                opts=TxOpts(skip_preflight=False, preflight_commitment=self._commitment),
            )
        except Exception as e:
            raise SwapExecutionError(f"Transaction submission failed: {e}") from e

        signature = str(resp.value)
        logger.info("Transaction sent: %s", signature)
        return signature

    async def confirm_transaction(self, signature: str) -> bool:
        """Poll signature status until confirmed, failed or timed out."""
        accepted = _ACCEPTED_STATUSES[self._config.commitment]
        sig = Signature.from_string(signature)
        deadline = time.monotonic() + self._config.confirm_timeout_seconds

        while time.monotonic() < deadline:
            try:
                resp = await self._get_client().get_signature_statuses([sig])
            except Exception as e:
                logger.warning("Signature status check failed for %s: %s", signature, e)
            else:
                status = resp.value[0] if resp.value else None
                if status is not None:
                    if status.err is not None:
                        logger.error("Transaction %s failed: %s", signature, status.err)
                        return False
                    if status.confirmation_status in accepted:
                        return True
            await asyncio.sleep(self._config.confirm_poll_seconds)

        raise ConfirmationTimeoutError(
            f"Transaction {signature} not confirmed after "
            f"{self._config.confirm_timeout_seconds:.0f}s"
        )

    async def get_received_amount(
        self, signature: str, owner: str, mint: str
    ) -> int | None:
        """Post minus pre token balance of ``owner`` for ``mint``."""
        try:
            resp = await self._get_client().get_transaction(
                Signature.from_string(signature),
                encoding="jsonParsed",
                commitment=self._commitment,
                max_supported_transaction_version=0,
            )
        except Exception as e:
            raise ProviderError(f"Failed to fetch transaction {signature}: {e}") from e

        if resp.value is None or resp.value.transaction.meta is None:
            return None
        meta = resp.value.transaction.meta
        pre = _token_balance(meta.pre_token_balances, owner, mint)
        post = _token_balance(meta.post_token_balances, owner, mint)
        if post is None:
            return None
        return post - (pre or 0)


def _token_balance(balances: Any, owner: str, mint: str) -> int | None:
    for balance in balances or []:
        if str(balance.mint) == mint and str(balance.owner) == owner:
            return int(balance.ui_token_amount.amount)
    return None
