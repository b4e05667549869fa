"""Append-only JSON ledger of closed trades, plus the list of positions whose close failed."""
from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from constants import C_RED, C_RESET, DEFAULT_PENDING_CLOSES_FILE, DEFAULT_TRADES_FILE
from storage.models import PendingClose, TradeRecord

T = TypeVar("T")


class TradeLedger:
    """Provides async-friendly helpers for persisting closed trades.

    Each write reads the whole file, appends one entry and rewrites it. Read and
    write failures are printed and swallowed so they never interrupt trading.
    """

    def __init__(
        self,
        trades_path: Path | str = Path(DEFAULT_TRADES_FILE),
        pending_path: Path | str = Path(DEFAULT_PENDING_CLOSES_FILE),
    ) -> None:
        self.trades_path = Path(trades_path)
        self.pending_path = Path(pending_path)
        self._lock = threading.Lock()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def append(self, record: TradeRecord) -> bool:
        return await self._run(self._append_sync, self.trades_path, record.to_dict())

    async def fetch_trades(self, limit: Optional[int] = None) -> list[TradeRecord]:
        rows = await self._run(self._read_sync, self.trades_path)
        records: list[TradeRecord] = []
        for row in rows:
            try:
                records.append(TradeRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as exc:
                print(f"{C_RED}Skipping malformed trade entry: {exc}{C_RESET}")
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    async def record_pending_close(self, pending: PendingClose) -> bool:
        return await self._run(self._append_sync, self.pending_path, pending.to_dict())

    async def fetch_pending_closes(self) -> list[PendingClose]:
        rows = await self._run(self._read_sync, self.pending_path)
        pending: list[PendingClose] = []
        for row in rows:
            try:
                pending.append(PendingClose.from_dict(row))
            except (KeyError, TypeError, ValueError) as exc:
                print(f"{C_RED}Skipping malformed pending close entry: {exc}{C_RESET}")
        return pending

    def _read_sync(self, path: Path) -> list[dict]:
        with self._lock:
            return self._load(path) or []

    def _append_sync(self, path: Path, entry: dict) -> bool:
        with self._lock:
            entries = self._load(path)
            if entries is None:
                print(f"{C_RED}Refusing to rewrite unreadable file {path}; entry not recorded: {entry}{C_RESET}")
                return False
            entries.append(entry)
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
            except OSError as exc:
                print(f"{C_RED}Error writing {path}: {exc}{C_RESET}")
                return False
        print(f"Entry written to {path} successfully.")
        return True

    @staticmethod
    def _load(path: Path) -> Optional[list[dict]]:
        try:
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text("[]", encoding="utf-8")
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as exc:
            print(f"{C_RED}Error reading {path}: {exc}{C_RESET}")
            return None
        if not isinstance(data, list):
            print(f"{C_RED}Unexpected content in {path}; expected a list of entries.{C_RESET}")
            return None
        return data

    async def close(self) -> None:
        return None
