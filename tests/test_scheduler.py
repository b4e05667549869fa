import pytest

from analysis.models import ArbitrageOpportunity, Token
from constants import SUSHISWAP, UNISWAP
from scheduler import ArbitrageScheduler


def _opportunity(symbol):
    return ArbitrageOpportunity(
        token=Token(symbol, f"0x{symbol.lower()}"),
        low_venue=SUSHISWAP,
        high_venue=UNISWAP,
        low_price=100.0,
        high_price=105.0,
        arbitrage_pct=4.878,
        net_arbitrage_pct=3.878,
    )


class FakeScanner:
    def __init__(self, batches):
        self.batches = list(batches)
        self.calls = 0

    async def scan(self):
        self.calls += 1
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        return batch


class FakeLifecycle:
    def __init__(self, events):
        self.events = events

    async def process(self, opp):
        self.events.append(("start", opp.symbol))
        self.events.append(("end", opp.symbol))
        return f"record-{opp.symbol}"


class RecordingSleep:
    def __init__(self, events):
        self.events = events

    async def __call__(self, seconds):
        self.events.append(("sleep", seconds))


@pytest.mark.asyncio
async def test_opportunities_are_processed_one_after_another():
    events = []
    scanner = FakeScanner([[_opportunity("LINK"), _opportunity("AAVE")]])
    scheduler = ArbitrageScheduler(scanner, FakeLifecycle(events), sleep=RecordingSleep(events))

    records = await scheduler.run_cycle()

    assert records == ["record-LINK", "record-AAVE"]
    assert events == [
        ("start", "LINK"),
        ("end", "LINK"),
        ("start", "AAVE"),
        ("end", "AAVE"),
    ]
    assert scheduler.status["found_last_scan"] == 2
    assert scheduler.status["active_symbol"] is None


@pytest.mark.asyncio
async def test_scenario_e_empty_scan_waits_then_scans_again():
    events = []
    scanner = FakeScanner([[], []])
    scheduler = ArbitrageScheduler(scanner, FakeLifecycle(events), cycle_delay=10, sleep=RecordingSleep(events))

    await scheduler.start(max_cycles=2)

    assert scanner.calls == 2
    assert events == [("sleep", 10)]
    assert scheduler.status["cycles_completed"] == 2
    assert scheduler.status["found_last_scan"] == 0


@pytest.mark.asyncio
async def test_cycle_error_is_reported_and_loop_continues(capsys):
    events = []
    scanner = FakeScanner([RuntimeError("boom"), [_opportunity("LINK")]])
    scheduler = ArbitrageScheduler(scanner, FakeLifecycle(events), cycle_delay=10, sleep=RecordingSleep(events))

    await scheduler.start(max_cycles=2)

    assert "Error during scan cycle: boom" in capsys.readouterr().out
    assert scanner.calls == 2
    assert ("start", "LINK") in events
    assert scheduler.status["last_error"] is None
    assert scheduler.status["cycles_completed"] == 2


@pytest.mark.asyncio
async def test_lifecycle_failure_surfaces_as_cycle_error():
    class ExplodingLifecycle:
        async def process(self, opp):
            raise RuntimeError("rpc down")

    events = []
    scheduler = ArbitrageScheduler(FakeScanner([[_opportunity("LINK")]]), ExplodingLifecycle(), sleep=RecordingSleep(events))

    await scheduler.start(max_cycles=1)

    assert scheduler.status["last_error"] == "rpc down"
    assert scheduler.status["active_symbol"] is None
    assert events == []
