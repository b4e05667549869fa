# scheduler.py
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from analysis.models import ArbitrageOpportunity
from constants import C_RED, C_RESET, CYCLE_DELAY_SECONDS
from scanner import OpportunityScanner
from storage import TradeRecord
from trading.lifecycle import PositionLifecycleManager


class ArbitrageScheduler:
    """Runs scan cycles forever: scan, trade each opportunity to completion, wait, repeat."""

    def __init__(
        self,
        scanner: OpportunityScanner,
        lifecycle: PositionLifecycleManager,
        *,
        cycle_delay: float = CYCLE_DELAY_SECONDS,
        status: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.scanner = scanner
        self.lifecycle = lifecycle
        self.cycle_delay = cycle_delay
        self.status = status if status is not None else {}
        self.status.setdefault('cycles_completed', 0)
        self._sleep = sleep

    async def start(self, max_cycles: Optional[int] = None):
        """The main application loop; ``max_cycles`` bounds it for one-shot runs."""
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            print("\n" + "=" * 50)
            print("Starting new arbitrage scan cycle...")
            try:
                await self.run_cycle()
                self.status['last_error'] = None
            except Exception as e:
                print(f"{C_RED}Error during scan cycle: {e}{C_RESET}")
                self.status['last_error'] = str(e)

            cycles += 1
            self.status['cycles_completed'] += 1
            print(f"Cycle complete. Waiting {self.cycle_delay} seconds...")
            print("=" * 50)
            if max_cycles is None or cycles < max_cycles:
                await self._sleep(self.cycle_delay)

    async def run_cycle(self) -> List[TradeRecord]:
        opportunities = await self.scanner.scan()
        self.status['last_scan_time'] = time.strftime('%Y-%m-%d %H:%M:%S')
        self.status['found_last_scan'] = len(opportunities)
        if not opportunities:
            return []
        return await self._process_opportunities(opportunities)

    async def _process_opportunities(self, opportunities: List[ArbitrageOpportunity]) -> List[TradeRecord]:
        """Handles opportunities strictly one after another; each runs until its position closes."""
        records: List[TradeRecord] = []
        for opp in opportunities:
            self.status['active_symbol'] = opp.symbol
            try:
                record = await self.lifecycle.process(opp)
            finally:
                self.status['active_symbol'] = None
            if record:
                records.append(record)
        return records
