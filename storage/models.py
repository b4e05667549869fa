"""Dataclasses representing stored trade records."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(ISO_FORMAT)


def _parse_time(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass(slots=True)
class TradeRecord:
    token_address: str
    exchange: str
    buy_hash: str
    sell_hash: str
    buy_price: float
    sell_price: float
    profit_or_loss: float
    profit_or_loss_percentage: float
    open_time: datetime
    close_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "exchange": self.exchange,
            "buyHash": self.buy_hash,
            "sellHash": self.sell_hash,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "profitOrLoss": self.profit_or_loss,
            "profitOrLossPercentage": self.profit_or_loss_percentage,
            "openTime": _format_time(self.open_time),
            "closeTime": _format_time(self.close_time),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TradeRecord":
        return cls(
            token_address=payload["tokenAddress"],
            exchange=payload.get("exchange", ""),
            buy_hash=payload.get("buyHash", ""),
            sell_hash=payload.get("sellHash", ""),
            buy_price=float(payload["buyPrice"]),
            sell_price=float(payload["sellPrice"]),
            profit_or_loss=float(payload["profitOrLoss"]),
            profit_or_loss_percentage=float(payload["profitOrLossPercentage"]),
            open_time=_parse_time(payload["openTime"]),
            close_time=_parse_time(payload["closeTime"]),
        )


@dataclass(slots=True)
class PendingClose:
    """Tokens held outside the position book that still need a manual close."""
    token_address: str
    symbol: str
    sell_venue: str
    amount: float
    buy_price: float
    buy_hash: str
    open_time: datetime
    failed_at: datetime
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "symbol": self.symbol,
            "sellVenue": self.sell_venue,
            "amount": self.amount,
            "buyPrice": self.buy_price,
            "buyHash": self.buy_hash,
            "openTime": _format_time(self.open_time),
            "failedAt": _format_time(self.failed_at),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PendingClose":
        return cls(
            token_address=payload["tokenAddress"],
            symbol=payload.get("symbol", ""),
            sell_venue=payload.get("sellVenue", ""),
            amount=float(payload.get("amount", 0.0)),
            buy_price=float(payload.get("buyPrice", 0.0)),
            buy_hash=payload.get("buyHash", ""),
            open_time=_parse_time(payload["openTime"]),
            failed_at=_parse_time(payload["failedAt"]),
            reason=payload.get("reason"),
        )
