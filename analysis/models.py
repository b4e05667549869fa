#!/usr/bin/env python3
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class Token:
    """A token from the configured token list."""
    symbol: str
    address: str

@dataclass
class Quote:
    """USD price of a token on one venue; ``usd_price`` is None when unavailable."""
    venue: str
    usd_price: Optional[float]

    @property
    def available(self) -> bool:
        return self.usd_price is not None and self.usd_price > 0

@dataclass
class ArbitrageOpportunity:
    """A cross-venue price divergence, valid only for the scan cycle that produced it."""
    token: Token
    low_venue: str
    high_venue: str
    low_price: float
    high_price: float
    arbitrage_pct: float
    net_arbitrage_pct: float

    @property
    def symbol(self) -> str:
        return self.token.symbol

    @property
    def token_address(self) -> str:
        return self.token.address
