"""Storage package providing persistence utilities for closed trades."""

from .models import PendingClose, TradeRecord
from .trade_ledger import TradeLedger

__all__ = ["PendingClose", "TradeLedger", "TradeRecord"]
