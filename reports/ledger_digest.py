"""Periodic digest of the trade ledger, pushed to the operator's Telegram chat."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from storage import PendingClose, TradeLedger, TradeRecord


@dataclass
class TokenRollup:
    token_address: str
    trades: int = 0
    wins: int = 0
    losses: int = 0
    net_profit: float = 0.0
    best_pct: Optional[float] = None
    worst_pct: Optional[float] = None

    def record(self, trade: TradeRecord) -> None:
        self.trades += 1
        self.net_profit += trade.profit_or_loss
        if trade.profit_or_loss > 0:
            self.wins += 1
        else:
            self.losses += 1
        pct = trade.profit_or_loss_percentage
        self.best_pct = pct if self.best_pct is None else max(self.best_pct, pct)
        self.worst_pct = pct if self.worst_pct is None else min(self.worst_pct, pct)


@dataclass
class LedgerDigest:
    generated_at: datetime
    trades: List[TradeRecord]
    pending_closes: List[PendingClose]
    rollups: List[TokenRollup] = field(default_factory=list)
    text: str = ""

    @property
    def total_profit(self) -> float:
        return sum(t.profit_or_loss for t in self.trades)

    @property
    def has_content(self) -> bool:
        return bool(self.trades or self.pending_closes)

    def ledger_json(self) -> str:
        """The full ledger exactly as stored on disk."""
        return json.dumps([t.to_dict() for t in self.trades], indent=2)


class LedgerDigestBuilder:
    """Summarises every recorded trade plus any positions awaiting manual reconciliation."""

    def __init__(self, ledger: TradeLedger) -> None:
        self._ledger = ledger

    async def build(self, *, max_tokens: int = 5) -> LedgerDigest:
        generated_at = datetime.now(timezone.utc)
        trades = await self._ledger.fetch_trades()
        pending = await self._ledger.fetch_pending_closes()

        digest = LedgerDigest(generated_at=generated_at, trades=trades, pending_closes=pending)
        rollups = self._aggregate(trades)
        digest.rollups = sorted(rollups.values(), key=lambda r: (-r.net_profit, -r.trades))[:max_tokens]
        digest.text = self._render(digest)
        return digest

    @staticmethod
    def _aggregate(trades: List[TradeRecord]) -> Dict[str, TokenRollup]:
        rollups: Dict[str, TokenRollup] = {}
        for trade in trades:
            key = trade.token_address.lower()
            rollups.setdefault(key, TokenRollup(token_address=trade.token_address)).record(trade)
        return rollups

    def _render(self, digest: LedgerDigest) -> str:
        header = f"Daily Trades Report • {digest.generated_at.strftime('%d %b %Y %H:%M')} UTC"
        if not digest.has_content:
            return f"{header}\nNo trades recorded yet."

        wins = sum(1 for t in digest.trades if t.profit_or_loss > 0)
        lines = [
            header,
            f"Trades: {len(digest.trades)} | Wins: {wins} | Losses: {len(digest.trades) - wins} | Net: {_format_usd(digest.total_profit)}",
        ]

        for rollup in digest.rollups:
            lines.append(
                f"{_short(rollup.token_address)}: {rollup.trades} trades, net {_format_usd(rollup.net_profit)}, "
                f"best {_format_pct(rollup.best_pct)}, worst {_format_pct(rollup.worst_pct)}"
            )

        if digest.trades:
            last = digest.trades[-1]
            lines.append(
                f"Last close: {_short(last.token_address)} on {last.exchange} at "
                f"{last.close_time.strftime('%Y-%m-%d %H:%M')} ({_format_pct(last.profit_or_loss_percentage)})"
            )

        if digest.pending_closes:
            lines.append(f"⚠️ Pending closes needing reconciliation: {len(digest.pending_closes)}")
            for pending in digest.pending_closes:
                lines.append(
                    f"  {pending.symbol or _short(pending.token_address)} amount {pending.amount:.6f} "
                    f"on {pending.sell_venue}: {pending.reason or 'unknown error'}"
                )

        return "\n".join(lines)


def _short(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _format_usd(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _format_pct(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}%"


__all__ = [
    "LedgerDigest",
    "LedgerDigestBuilder",
    "TokenRollup",
]
