"""YAML-file config store for bot snapshots.

The file holds one list under ``bots``; each entry is a ``BotConfig`` dumped
in JSON mode (decimals as strings so they round-trip exactly)::

    bots:
      - kind: single
        bot_id: "1"
        input_token: SOL
        ...
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import BotActivity, parse_bot_config
from .errors import ConfigurationError, PersistenceError
from .providers import BotSnapshot

logger = logging.getLogger(__name__)


class YamlConfigStore:
    """Config store persisting every bot snapshot to one YAML file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load_config(self, bot_id: str) -> BotSnapshot:
        async with self._lock:
            for config in self._read():
                if config.bot_id == bot_id:
                    return config
        raise ConfigurationError(f"No config found for bot {bot_id}")

    async def list_configs(self) -> list[BotSnapshot]:
        async with self._lock:
            return self._read()

    async def save_config(self, bot_id: str, snapshot: BotSnapshot) -> None:
        if snapshot.bot_id != bot_id:
            snapshot = snapshot.model_copy(update={"bot_id": bot_id})
        async with self._lock:
            configs = self._read()
            for i, config in enumerate(configs):
                if config.bot_id == bot_id:
                    configs[i] = snapshot
                    break
            else:
                configs.append(snapshot)
            self._write(configs)

    async def set_status(self, bot_id: str, status: BotActivity) -> None:
        async with self._lock:
            configs = self._read()
            for i, config in enumerate(configs):
                if config.bot_id == bot_id:
                    configs[i] = config.model_copy(update={"status": status})
                    self._write(configs)
                    return
        logger.warning("Cannot set status of unknown bot %s", bot_id)

    async def delete_config(self, bot_id: str) -> None:
        async with self._lock:
            configs = self._read()
            remaining = [c for c in configs if c.bot_id != bot_id]
            if len(remaining) != len(configs):
                self._write(remaining)

    # --- File I/O ---

    def _read(self) -> list[BotSnapshot]:
        if not self.path.exists():
            return []
        try:
            with open(self.path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Failed to read {self.path}: {e}") from e

        entries = raw.get("bots") if isinstance(raw, dict) else None
        configs: list[BotSnapshot] = []
        for entry in entries or []:
            try:
                configs.append(parse_bot_config(entry))
            except ValidationError as e:
                logger.error("Skipping invalid bot config in %s: %s", self.path, e)
        return configs

    def _write(self, configs: list[BotSnapshot]) -> None:
        data = {"bots": [c.model_dump(mode="json") for c in configs]}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                yaml.safe_dump(data, f, sort_keys=False)
            os.replace(tmp_path, self.path)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
