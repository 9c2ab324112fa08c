"""Configuration models and YAML loader.

Two kinds of configuration live here:

* ``DaemonConfig``: process-wide settings (wallet, RPC, Jupiter, engine
  timings, token table, storage, event broadcast, Telegram, logging), loaded
  once from a YAML file at startup.
* ``BotConfig``: the persisted snapshot of one bot, a tagged union of
  ``SinglePairConfig`` and ``MultiTargetConfig`` discriminated by ``kind``.

Secrets can be provided via environment variables ``WALLET_PRIVATE_KEY``,
``SOLANA_RPC_URL``, ``TELEGRAM_BOT_TOKEN`` and ``TELEGRAM_CHAT_ID``.  Values
in the YAML file are used as fallback; env vars always take precedence.
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Literal, Union

import yaml
from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_JUPITER_URL = "https://lite-api.jup.ag/swap/v1"


class WalletConfig(BaseModel):
    private_key: str = ""  # base58 keypair

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_vars(cls, values: dict) -> dict:  # type: ignore[override]
        """Override the private key from the environment if set."""
        values = dict(values or {})
        env_key = os.environ.get("WALLET_PRIVATE_KEY")
        if env_key:
            values["private_key"] = env_key
        return values

    @model_validator(mode="after")
    def _check_required(self) -> "WalletConfig":
        if not self.private_key:
            raise ValueError(
                "private_key is required — set WALLET_PRIVATE_KEY env var "
                "or provide it in the YAML config"
            )
        return self


class RpcConfig(BaseModel):
    url: str = DEFAULT_RPC_URL
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    confirm_timeout_seconds: float = 60.0
    confirm_poll_seconds: float = 0.5

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_vars(cls, values: dict) -> dict:  # type: ignore[override]
        values = dict(values or {})
        env_url = os.environ.get("SOLANA_RPC_URL")
        if env_url:
            values["url"] = env_url
        return values


class JupiterConfig(BaseModel):
    base_url: str = DEFAULT_JUPITER_URL
    http_timeout_seconds: float = 15.0
    auto_slippage: bool = True
    max_auto_slippage_bps: int = 50
    platform_fee_bps: int = 10
    fee_account: str | None = None
    priority_max_lamports: int = 1_000_000
    priority_level: Literal["medium", "high", "veryHigh"] = "veryHigh"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class EngineConfig(BaseModel):
    check_interval_ms: int = Field(default=20_000, gt=0)
    quote_timeout_seconds: float = Field(default=10.0, gt=0)
    init_retries: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0)


class TokenConfig(BaseModel):
    symbol: str
    mint: str
    decimals: int = Field(ge=0, le=18)
    name: str | None = None


class StorageConfig(BaseModel):
    bots_file: str = "bots.yaml"
    history_db: str = "swaps.db"


class EventsConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 4000


class TelegramConfig(BaseModel):
    bot_token: str = ""
    chat_id: str = ""
    alert_cooldown_seconds: int = 300
    startup_notification: bool = True

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_vars(cls, values: dict) -> dict:  # type: ignore[override]
        """Override token / chat_id from env vars if set."""
        values = dict(values or {})
        env_token = os.environ.get("TELEGRAM_BOT_TOKEN")
        env_chat = os.environ.get("TELEGRAM_CHAT_ID")
        if env_token:
            values["bot_token"] = env_token
        if env_chat:
            values["chat_id"] = env_chat
        return values

    @model_validator(mode="after")
    def _check_required(self) -> "TelegramConfig":
        if not self.bot_token:
            raise ValueError(
                "bot_token is required — set TELEGRAM_BOT_TOKEN env var "
                "or provide it in the YAML config"
            )
        if not self.chat_id:
            raise ValueError(
                "chat_id is required — set TELEGRAM_CHAT_ID env var "
                "or provide it in the YAML config"
            )
        return self


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str | None = None


class DaemonConfig(BaseModel):
    wallet: WalletConfig
    tokens: list[TokenConfig]
    rpc: RpcConfig = Field(default_factory=RpcConfig)
    jupiter: JupiterConfig = JupiterConfig()
    engine: EngineConfig = EngineConfig()
    storage: StorageConfig = StorageConfig()
    events: EventsConfig = EventsConfig()
    telegram: TelegramConfig | None = None
    logging: LoggingConfig = LoggingConfig()


def load_config(path: str | Path) -> DaemonConfig:
    """Load and validate daemon configuration from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return DaemonConfig(**raw)


# ---------------------------------------------------------------------------
#  Bot snapshots
# ---------------------------------------------------------------------------

BotActivity = Literal["active", "inactive"]


class _BotConfigBase(BaseModel):
    bot_id: str
    check_interval_ms: int | None = None
    status: BotActivity = "inactive"

    @field_validator("bot_id", mode="before")
    @classmethod
    def coerce_bot_id(cls, v: object) -> str:
        return str(v).strip()


class SinglePairConfig(_BotConfigBase):
    """Round-trip bot: trade ``input_amount`` once ``first_trade_price`` is met.

    ``first_trade_price`` is the amount of ``output_token`` the current
    ``input_amount`` must fetch before the bot swaps.
    """

    kind: Literal["single"] = "single"
    input_token: str
    output_token: str
    input_amount: Decimal
    first_trade_price: Decimal
    target_gain_percentage: Decimal | None = None
    stop_loss_percentage: Decimal | None = None


class MultiTargetConfig(_BotConfigBase):
    """Rotation bot: hold ``held_token``, swap into the first met target."""

    kind: Literal["multi"] = "multi"
    held_token: str
    held_amount: Decimal
    target_amounts: dict[str, Decimal]
    target_gain_percentage: Decimal


BotConfig = Annotated[
    Union[SinglePairConfig, MultiTargetConfig], Field(discriminator="kind")
]

_bot_config_adapter = TypeAdapter(BotConfig)


def parse_bot_config(data: dict) -> SinglePairConfig | MultiTargetConfig:
    """Validate one raw snapshot dict into the right BotConfig variant."""
    return _bot_config_adapter.validate_python(data)
