"""Drives one arbitrage opportunity through open, monitor and close."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from analysis.models import ArbitrageOpportunity
from constants import (
    C_BLUE,
    C_GREEN,
    C_RED,
    C_RESET,
    C_YELLOW,
    CHECK_INTERVAL_SECONDS,
    CLOSE_PROFIT_THRESHOLD_PCT,
    MAX_HOLD_SECONDS,
)
from services.price_oracle import PriceOracle
from services.trade_executor import TradeDirection, TradeExecutor
from storage import PendingClose, TradeLedger, TradeRecord
from trading.positions import Position, PositionBook, PositionExistsError, PositionState


class CloseReason(str, Enum):
    TIMEOUT = "timeout"
    PROFIT = "profit"


@dataclass
class CloseSignal:
    reason: CloseReason
    elapsed: float
    last_price: Optional[float] = None
    profit_pct: Optional[float] = None


def _utc(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, timezone.utc)


class PositionLifecycleManager:
    """Owns the position book and moves each token through NONE -> OPENING -> OPEN -> CLOSING -> CLOSED.

    Opportunities must be handed over one at a time: the whole wallet balance goes
    into each trade, so a second position cannot be funded while one is open.
    """

    def __init__(
        self,
        price_oracle: PriceOracle,
        trade_executor: TradeExecutor,
        ledger: TradeLedger,
        *,
        book: Optional[PositionBook] = None,
        check_interval: float = CHECK_INTERVAL_SECONDS,
        max_hold: float = MAX_HOLD_SECONDS,
        close_profit_threshold: float = CLOSE_PROFIT_THRESHOLD_PCT,
        max_slippage_pct: float = 0.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.price_oracle = price_oracle
        self.trade_executor = trade_executor
        self.ledger = ledger
        self.book = book if book is not None else PositionBook()
        self.check_interval = check_interval
        self.max_hold = max_hold
        self.close_profit_threshold = close_profit_threshold
        self.max_slippage_pct = max_slippage_pct
        self._clock = clock
        self._sleep = sleep

    async def process(self, opp: ArbitrageOpportunity) -> Optional[TradeRecord]:
        """Runs the full lifecycle for one opportunity and returns the ledger record, if any."""
        print(f"Arbitrage opportunity found for {C_YELLOW}{opp.symbol}{C_RESET}: {opp.net_arbitrage_pct:.2f}% net")
        position = await self.open_position(opp)
        if position is None:
            print(f"{C_YELLOW}Failed to open trade for {opp.symbol}. Skipping...{C_RESET}")
            return None

        try:
            signal = await self.monitor(position)
            return await self.close_position(position, signal, fallback_price=opp.high_price)
        except asyncio.CancelledError:
            token_address = position.token_address
            if self.book.state(token_address) in (PositionState.OPEN, PositionState.CLOSING):
                self.book.close(token_address)
                print(f"{C_RED}Shutdown while holding {position.symbol}; recording it as pending close.{C_RESET}")
                await self.ledger.record_pending_close(
                    self._pending_close(position, "Shutdown while position open")
                )
            raise

    async def open_position(self, opp: ArbitrageOpportunity) -> Optional[Position]:
        token_address = opp.token_address
        try:
            self.book.reserve(token_address)
        except PositionExistsError as exc:
            print(f"{C_YELLOW}Ignoring opportunity for {opp.symbol}: {exc}{C_RESET}")
            return None

        position: Optional[Position] = None
        submitted = False
        result = None
        amount = 0.0
        try:
            amount_in = await self.trade_executor.get_trade_amount()
            if amount_in <= 0:
                print(f"{C_RED}No base balance available to open a trade for {opp.symbol}.{C_RESET}")
                return None

            print(f"Attempting to open trade on {C_BLUE}{opp.low_venue}{C_RESET} for token {token_address}...")
            min_out = await self._min_amount_out(TradeDirection.OPEN, amount_in, opp.low_price)
            submitted = True
            result = await self.trade_executor.execute(
                opp.low_venue, token_address, TradeDirection.OPEN, amount_in, min_out
            )
            if not result.confirmed:
                print(f"{C_RED}Opening trade for {opp.symbol} did not confirm: {result.reason}{C_RESET}")
                return None

            amount = result.amount_out
            if amount <= 0:
                amount = await self.trade_executor.get_balance(token_address)
            if amount <= 0:
                print(f"{C_RED}Opening trade {result.tx_hash} confirmed but the received amount of {opp.symbol} is unknown.{C_RESET}")
                await self.ledger.record_pending_close(
                    self._unopened_pending_close(opp, result.tx_hash, 0.0, "Received amount unknown after opening trade")
                )
                return None

            # Execution-time price, not the scan quote.
            unit_price = await self.price_oracle.get_price(token_address, opp.low_venue)
            if unit_price is None:
                print(f"{C_YELLOW}Could not re-query {opp.low_venue} price for {opp.symbol}; using scan price {opp.low_price}.{C_RESET}")
                unit_price = opp.low_price

            position = Position(
                token_address=token_address,
                symbol=opp.symbol,
                buy_venue=opp.low_venue,
                sell_venue=opp.high_venue,
                amount=amount,
                buy_price=unit_price * amount,
                buy_tx_hash=result.tx_hash,
                buy_block_number=result.block_number,
                opened_at=self._clock(),
            )
            self.book.open(token_address, position)
            print(
                f"{C_GREEN}Trade opened for {opp.symbol} on {opp.low_venue}: {amount:.6f} tokens, "
                f"cost ${position.buy_price:.2f}, tx {result.tx_hash}{C_RESET}"
            )
            return position
        except asyncio.CancelledError:
            if submitted and position is None and (result is None or result.confirmed):
                print(f"{C_RED}Shutdown while opening trade for {opp.symbol}; recording it as pending close.{C_RESET}")
                await self.ledger.record_pending_close(
                    self._unopened_pending_close(
                        opp, result.tx_hash if result else "", amount, "Shutdown while opening trade"
                    )
                )
            raise
        finally:
            if position is None and self.book.state(token_address) is PositionState.OPENING:
                self.book.release(token_address)

    async def monitor(self, position: Position) -> CloseSignal:
        """Polls the sell venue until the hold timeout or the profit target fires."""
        last_price: Optional[float] = None
        while True:
            elapsed = self._clock() - position.opened_at
            if elapsed >= self.max_hold:
                print(f"Closing trade for {position.symbol} after {elapsed / 60:.0f} minutes (timeout).")
                return CloseSignal(CloseReason.TIMEOUT, elapsed, last_price)

            print(f"Checking profit condition for {position.symbol}...")
            price = await self.price_oracle.get_price(position.token_address, position.sell_venue)
            if price is None:
                print(f"{C_YELLOW}No {position.sell_venue} price for {position.symbol}; skipping profit check.{C_RESET}")
            else:
                last_price = price
                profit_pct = position.profit_percent(price)
                print(f"Current profit for {position.symbol}: {profit_pct:.2f}%")
                if profit_pct >= self.close_profit_threshold:
                    print(f"Closing trade for {position.symbol} at {profit_pct:.2f}% profit.")
                    return CloseSignal(CloseReason.PROFIT, elapsed, price, profit_pct)

            print(f"Waiting {self.check_interval / 60:.1f} minutes before next profit check.")
            await self._sleep(self.check_interval)

    async def close_position(
        self,
        position: Position,
        signal: CloseSignal,
        *,
        fallback_price: Optional[float] = None,
    ) -> Optional[TradeRecord]:
        token_address = position.token_address
        self.book.begin_close(token_address)

        expected_price = signal.last_price or fallback_price
        min_out = 0.0
        if expected_price:
            min_out = await self._min_amount_out(TradeDirection.CLOSE, position.amount, expected_price)
        result = await self.trade_executor.execute(
            position.sell_venue, token_address, TradeDirection.CLOSE, position.amount, min_out
        )

        # The position leaves the book whether or not the close confirmed.
        self.book.close(token_address)
        close_time = self._clock()

        if not result.confirmed:
            print(f"{C_RED}Closing trade for {position.symbol} failed: {result.reason}. Recording it as pending close.{C_RESET}")
            await self.ledger.record_pending_close(
                self._pending_close(position, result.reason)
            )
            return None

        unit_price = await self.price_oracle.get_price(token_address, position.sell_venue)
        if unit_price is None:
            unit_price = expected_price or 0.0
            print(f"{C_YELLOW}Could not re-query {position.sell_venue} price for {position.symbol}; using {unit_price}.{C_RESET}")

        sell_value = unit_price * position.amount
        profit_or_loss = sell_value - position.buy_price
        record = TradeRecord(
            token_address=token_address,
            exchange=position.sell_venue,
            buy_hash=position.buy_tx_hash,
            sell_hash=result.tx_hash,
            buy_price=position.buy_price,
            sell_price=sell_value,
            profit_or_loss=profit_or_loss,
            profit_or_loss_percentage=round(profit_or_loss / position.buy_price * 100, 2),
            open_time=_utc(position.opened_at),
            close_time=_utc(close_time),
        )

        color = C_GREEN if profit_or_loss > 0 else C_RED
        outcome = "profit" if profit_or_loss > 0 else "loss"
        print(
            f"{color}Trade closed for {position.symbol} ({signal.reason.value}) with {outcome} of "
            f"{profit_or_loss:.2f} ({record.profit_or_loss_percentage:.2f}%){C_RESET}"
        )
        await self.ledger.append(record)
        return record

    def _pending_close(self, position: Position, reason: Optional[str]) -> PendingClose:
        return PendingClose(
            token_address=position.token_address,
            symbol=position.symbol,
            sell_venue=position.sell_venue,
            amount=position.amount,
            buy_price=position.buy_price,
            buy_hash=position.buy_tx_hash,
            open_time=_utc(position.opened_at),
            failed_at=_utc(self._clock()),
            reason=reason,
        )

    def _unopened_pending_close(
        self, opp: ArbitrageOpportunity, buy_hash: Optional[str], amount: float, reason: str
    ) -> PendingClose:
        """Tokens may have been bought but no Position exists to track them."""
        now = _utc(self._clock())
        return PendingClose(
            token_address=opp.token_address,
            symbol=opp.symbol,
            sell_venue=opp.high_venue,
            amount=amount,
            buy_price=opp.low_price * amount,
            buy_hash=buy_hash or "",
            open_time=now,
            failed_at=now,
            reason=reason,
        )

    async def _min_amount_out(self, direction: TradeDirection, amount_in: float, token_price: float) -> float:
        """Lowest acceptable swap output for the configured slippage; 0 disables the check."""
        if self.max_slippage_pct <= 0:
            return 0.0
        weth_usd = await self.price_oracle.get_weth_usd_price()
        if not weth_usd or not token_price:
            print(f"{C_YELLOW}Missing prices for slippage bound; submitting without minimum output.{C_RESET}")
            return 0.0
        if direction is TradeDirection.OPEN:
            expected = amount_in * weth_usd / token_price
        else:
            expected = amount_in * token_price / weth_usd
        return expected * (1 - self.max_slippage_pct / 100)
