import aiohttp
import pytest

from constants import MORALIS_UNISWAP_EXCHANGE, POLYGON_CHAIN_HEX, SUSHISWAP, UNISWAP, WETH_ADDRESS
from services.price_oracle import PriceOracle

TOKEN = "0x53E0bca35eC356BD5ddDFebbD1Fc0fD03FaBad39"
SUBGRAPH = "https://subgraph.example/sushiswap"


class FakeResponse:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.error:
            raise self.error

    async def json(self):
        return self.payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


def _oracle(session=None):
    return PriceOracle(session or FakeSession([]), "key", SUBGRAPH, retries=3, retry_delay=0)


def _route(responses):
    """Fake ``_request`` that answers by (method, exchange param or subgraph)."""
    calls = []

    async def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        if method == "POST":
            return responses.get("subgraph")
        params = kwargs.get("params", {})
        if WETH_ADDRESS in url:
            return responses.get("weth")
        return responses.get(params.get("exchange", "default"))

    return fake_request, calls


@pytest.mark.asyncio
async def test_uniswap_price_comes_from_moralis_uniswap_exchange(monkeypatch):
    oracle = _oracle()
    fake_request, calls = _route({MORALIS_UNISWAP_EXCHANGE: {"usdPrice": 14.25}})
    monkeypatch.setattr(oracle, "_request", fake_request)

    price = await oracle.get_price(TOKEN, UNISWAP)

    assert price == 14.25
    method, url, kwargs = calls[0]
    assert method == "GET"
    assert url.endswith(f"/erc20/{TOKEN}/price")
    assert kwargs["params"] == {"chain": POLYGON_CHAIN_HEX, "exchange": MORALIS_UNISWAP_EXCHANGE}
    assert kwargs["headers"]["X-API-Key"] == "key"


@pytest.mark.asyncio
async def test_sushiswap_price_is_relative_price_times_weth_usd(monkeypatch):
    oracle = _oracle()
    fake_request, calls = _route({
        "subgraph": {"data": {"pairs": [{"token0Price": "0.005"}]}},
        "weth": {"usdPrice": 2000.0},
    })
    monkeypatch.setattr(oracle, "_request", fake_request)

    price = await oracle.get_price(TOKEN, SUSHISWAP)

    assert price == pytest.approx(10.0)
    subgraph_call = next(c for c in calls if c[0] == "POST")
    assert subgraph_call[1] == SUBGRAPH
    query = subgraph_call[2]["json"]["query"]
    assert WETH_ADDRESS.lower() in query
    assert TOKEN.lower() in query


@pytest.mark.asyncio
@pytest.mark.parametrize("responses", [
    {"subgraph": {"data": {"pairs": []}}, "weth": {"usdPrice": 2000.0}},
    {"subgraph": {"data": {"pairs": [{"token0Price": "0.005"}]}}, "weth": None},
    {"subgraph": None, "weth": {"usdPrice": 2000.0}},
])
async def test_sushiswap_price_unavailable_when_any_leg_missing(monkeypatch, responses):
    oracle = _oracle()
    fake_request, _ = _route(responses)
    monkeypatch.setattr(oracle, "_request", fake_request)

    assert await oracle.get_price(TOKEN, SUSHISWAP) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [None, {}, {"usdPrice": None}, {"usdPrice": "abc"}, {"usdPrice": 0}, {"usdPrice": -1}])
async def test_unusable_uniswap_payloads_are_unavailable(monkeypatch, payload):
    oracle = _oracle()
    fake_request, _ = _route({MORALIS_UNISWAP_EXCHANGE: payload})
    monkeypatch.setattr(oracle, "_request", fake_request)

    assert await oracle.get_price(TOKEN, UNISWAP) is None


@pytest.mark.asyncio
async def test_unknown_venue_and_unexpected_errors_return_none(monkeypatch):
    oracle = _oracle()

    async def boom(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(oracle, "_request", boom)

    assert await oracle.get_price(TOKEN, "Curve") is None
    assert await oracle.get_price(TOKEN, UNISWAP) is None


@pytest.mark.asyncio
async def test_request_retries_then_succeeds():
    session = FakeSession([
        FakeResponse(error=aiohttp.ClientError("503")),
        FakeResponse(payload={"usdPrice": 1.5}),
    ])
    oracle = _oracle(session)

    assert await oracle.get_uniswap_price(TOKEN) == 1.5
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_request_gives_up_after_retries(capsys):
    session = FakeSession([FakeResponse(error=aiohttp.ClientError("down")) for _ in range(3)])
    oracle = _oracle(session)

    assert await oracle.get_uniswap_price(TOKEN) is None
    assert len(session.calls) == 3
    assert "after 3 attempts" in capsys.readouterr().out
