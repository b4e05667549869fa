import pytest

from analysis.analyzer import OpportunityAnalyzer, arbitrage_percentage
from analysis.models import Quote, Token
from constants import SUSHISWAP, UNISWAP

TOKEN = Token(symbol='LINK', address='0x53e0bca35ec356bd5dddfebbd1fc0fd03fabad39')


@pytest.fixture
def analyzer():
    return OpportunityAnalyzer()


def _quotes(sushi, uni):
    return [Quote(SUSHISWAP, sushi), Quote(UNISWAP, uni)]


def test_scenario_a_qualifies_and_buys_on_cheaper_venue(analyzer):
    opp = analyzer.evaluate(TOKEN, _quotes(100.0, 105.0))

    assert opp is not None
    assert opp.arbitrage_pct == pytest.approx(4.878, abs=1e-3)
    assert opp.net_arbitrage_pct == pytest.approx(3.878, abs=1e-3)
    assert opp.low_venue == SUSHISWAP
    assert opp.high_venue == UNISWAP
    assert opp.low_price == 100.0
    assert opp.high_price == 105.0


def test_scenario_b_small_spread_is_rejected(analyzer):
    assert arbitrage_percentage(100.0, 100.5) == pytest.approx(0.4988, abs=1e-4)
    assert analyzer.net_arbitrage_percentage(100.0, 100.5) < 0
    assert analyzer.evaluate(TOKEN, _quotes(100.0, 100.5)) is None


@pytest.mark.parametrize("a,b", [(100.0, 105.0), (0.5, 0.61), (1234.5, 1300.0), (3.0, 2.0)])
def test_net_arbitrage_is_symmetric(analyzer, a, b):
    assert analyzer.net_arbitrage_percentage(a, b) == pytest.approx(analyzer.net_arbitrage_percentage(b, a))

    forward = analyzer.evaluate(TOKEN, _quotes(a, b))
    backward = analyzer.evaluate(TOKEN, _quotes(b, a))
    assert (forward is None) == (backward is None)
    if forward:
        assert forward.net_arbitrage_pct == pytest.approx(backward.net_arbitrage_pct)
        assert forward.low_price == backward.low_price
        assert forward.low_venue != backward.low_venue


def test_exact_threshold_does_not_qualify():
    # No cost and a 3.0 threshold: a spread of exactly 3% sits on the boundary.
    analyzer = OpportunityAnalyzer(transaction_cost_pct=0.0, min_net_profit_pct=3.0)
    low, high = 98.5, 101.5
    assert arbitrage_percentage(low, high) == 3.0

    assert analyzer.evaluate(TOKEN, _quotes(low, high)) is None


def test_default_costs_boundary_is_exclusive(analyzer):
    # 4% gross minus the 1% transaction cost lands exactly on the 3% minimum.
    assert analyzer.net_arbitrage_percentage(98.0, 102.0) == 3.0
    assert analyzer.evaluate(TOKEN, _quotes(98.0, 102.0)) is None


def test_just_above_threshold_qualifies(analyzer):
    assert analyzer.evaluate(TOKEN, _quotes(100.0, 104.2)) is not None


@pytest.mark.parametrize("sushi,uni", [(None, 105.0), (100.0, None), (None, None), (0.0, 105.0)])
def test_unavailable_quotes_exclude_token(analyzer, sushi, uni):
    assert analyzer.evaluate(TOKEN, _quotes(sushi, uni)) is None


def test_equal_prices_never_qualify(analyzer):
    assert analyzer.evaluate(TOKEN, _quotes(50.0, 50.0)) is None


def test_find_opportunities_keeps_input_order(analyzer):
    tokens = [Token('AAA', '0xa'), Token('BBB', '0xb'), Token('CCC', '0xc'), Token('DDD', '0xd')]
    quotes_by_token = [
        (tokens[0], _quotes(100.0, 110.0)),
        (tokens[1], _quotes(100.0, 100.1)),
        (tokens[2], _quotes(120.0, 100.0)),
        (tokens[3], _quotes(None, 100.0)),
    ]

    opportunities = analyzer.find_opportunities(quotes_by_token)

    assert [o.symbol for o in opportunities] == ['AAA', 'CCC']
    assert opportunities[1].low_venue == UNISWAP
