"""Static token table built from the daemon configuration."""

from __future__ import annotations

from collections.abc import Iterable

from .config import TokenConfig
from .errors import ConfigurationError
from .models import Token


class TokenBook:
    """Resolves tokens by symbol, name or mint address."""

    def __init__(self, tokens: Iterable[TokenConfig | Token]) -> None:
        self._by_mint: dict[str, Token] = {}
        self._by_alias: dict[str, Token] = {}
        for entry in tokens:
            token = Token(symbol=entry.symbol, mint=entry.mint, decimals=entry.decimals)
            self._by_mint[token.mint] = token
            self._by_alias[token.symbol.lower()] = token
            name = getattr(entry, "name", None)
            if name:
                self._by_alias.setdefault(name.lower(), token)

    def __len__(self) -> int:
        return len(self._by_mint)

    def resolve(self, key: str) -> Token:
        """Return the token for a mint, symbol or name (case-insensitive)."""
        key = key.strip()
        token = self._by_mint.get(key) or self._by_alias.get(key.lower())
        if token is None:
            raise ConfigurationError(f"Unknown token: {key}")
        return token
