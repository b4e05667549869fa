import asyncio
import json

import pytest

from analysis.analyzer import OpportunityAnalyzer
from analysis.models import Token
from constants import SUSHISWAP, UNISWAP
from scanner import OpportunityScanner, read_tokens_from_file


class FakeOracle:
    def __init__(self, prices):
        self.prices = prices
        self.calls = []

    async def get_price(self, token_address, venue):
        self.calls.append((token_address, venue))
        await asyncio.sleep(0)
        return self.prices.get((token_address, venue))


def _write_tokens(path, entries):
    path.write_text(json.dumps({"data": entries}))
    return path


def test_read_tokens_from_file(tmp_path):
    path = _write_tokens(tmp_path / "data.json", [
        {"symbol": "LINK", "token": "0xlink"},
        {"symbol": "AAVE", "token": "0xaave"},
    ])

    tokens = read_tokens_from_file(path)

    assert tokens == [Token("LINK", "0xlink"), Token("AAVE", "0xaave")]


def test_read_tokens_missing_file_returns_empty(tmp_path, capsys):
    assert read_tokens_from_file(tmp_path / "absent.json") == []
    assert "Error reading tokens from file" in capsys.readouterr().out


def test_read_tokens_skips_malformed_entries(tmp_path):
    path = _write_tokens(tmp_path / "data.json", [{"symbol": "LINK"}, {"symbol": "UNI", "token": "0xuni"}])
    path_without_data = tmp_path / "other.json"
    path_without_data.write_text(json.dumps({"tokens": []}))

    assert read_tokens_from_file(path) == [Token("UNI", "0xuni")]
    assert read_tokens_from_file(path_without_data) == []


@pytest.mark.parametrize("payload", [{"data": 5}, {"data": None}, {"data": "LINK"}, [1, 2]])
def test_read_tokens_rejects_non_list_data(tmp_path, capsys, payload):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(payload))

    assert read_tokens_from_file(path) == []
    assert "expected a 'data' list" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_scan_with_malformed_token_file_returns_nothing(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"data": 5}))
    oracle = FakeOracle({})
    scanner = OpportunityScanner(oracle, OpportunityAnalyzer(), path)

    assert await scanner.scan() == []
    assert oracle.calls == []


@pytest.mark.asyncio
async def test_scan_fetches_both_venues_and_filters(tmp_path):
    path = _write_tokens(tmp_path / "data.json", [
        {"symbol": "LINK", "token": "0xlink"},
        {"symbol": "AAVE", "token": "0xaave"},
        {"symbol": "UNI", "token": "0xuni"},
    ])
    oracle = FakeOracle({
        ("0xlink", SUSHISWAP): 100.0, ("0xlink", UNISWAP): 105.0,
        ("0xaave", SUSHISWAP): 100.0, ("0xaave", UNISWAP): 100.5,
        ("0xuni", SUSHISWAP): 9.0,
    })
    scanner = OpportunityScanner(oracle, OpportunityAnalyzer(), path)

    opportunities = await scanner.scan()

    assert [o.symbol for o in opportunities] == ["LINK"]
    assert opportunities[0].low_venue == SUSHISWAP
    assert len(oracle.calls) == 6
    assert {venue for _, venue in oracle.calls} == {SUSHISWAP, UNISWAP}


@pytest.mark.asyncio
async def test_scan_preserves_token_list_order():
    tokens = [Token("B", "0xb"), Token("A", "0xa"), Token("C", "0xc")]
    oracle = FakeOracle({
        ("0xa", SUSHISWAP): 10.0, ("0xa", UNISWAP): 11.0,
        ("0xb", SUSHISWAP): 22.0, ("0xb", UNISWAP): 20.0,
        ("0xc", SUSHISWAP): 5.0, ("0xc", UNISWAP): 5.5,
    })
    scanner = OpportunityScanner(oracle, OpportunityAnalyzer())

    opportunities = await scanner.scan(tokens)

    assert [o.symbol for o in opportunities] == ["B", "A", "C"]


@pytest.mark.asyncio
async def test_scan_without_token_file_returns_nothing(tmp_path):
    oracle = FakeOracle({})
    scanner = OpportunityScanner(oracle, OpportunityAnalyzer(), tmp_path / "missing.json")

    assert await scanner.scan() == []
    assert oracle.calls == []
