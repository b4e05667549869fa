#!/usr/bin/env python3
from typing import List, Optional, Sequence, Tuple

from analysis.models import ArbitrageOpportunity, Quote, Token
from constants import MIN_NET_PROFIT_PCT, TRANSACTION_COST_PCT


def arbitrage_percentage(price_a: float, price_b: float) -> float:
    """Spread between two prices relative to their midpoint, in percent."""
    midpoint = (price_a + price_b) / 2
    return abs(price_a - price_b) / midpoint * 100


class OpportunityAnalyzer:
    def __init__(
        self,
        transaction_cost_pct: float = TRANSACTION_COST_PCT,
        min_net_profit_pct: float = MIN_NET_PROFIT_PCT,
    ):
        self.transaction_cost_pct = transaction_cost_pct
        self.min_net_profit_pct = min_net_profit_pct

    def net_arbitrage_percentage(self, price_a: float, price_b: float) -> float:
        return arbitrage_percentage(price_a, price_b) - self.transaction_cost_pct

    def evaluate(self, token: Token, quotes: Sequence[Quote]) -> Optional[ArbitrageOpportunity]:
        """Scores one token's venue quotes; returns an opportunity only above the net threshold."""
        available = [q for q in quotes if q.available]
        if len(available) != 2:
            return None

        first, second = available
        if first.usd_price == second.usd_price:
            return None

        low, high = (first, second) if first.usd_price < second.usd_price else (second, first)
        gross_pct = arbitrage_percentage(low.usd_price, high.usd_price)
        net_pct = gross_pct - self.transaction_cost_pct

        if not net_pct > self.min_net_profit_pct:
            return None

        return ArbitrageOpportunity(
            token=token,
            low_venue=low.venue,
            high_venue=high.venue,
            low_price=low.usd_price,
            high_price=high.usd_price,
            arbitrage_pct=gross_pct,
            net_arbitrage_pct=net_pct,
        )

    def find_opportunities(self, quotes_by_token: Sequence[Tuple[Token, Sequence[Quote]]]) -> List[ArbitrageOpportunity]:
        """Analyzes quotes for every token and returns qualifying opportunities in input order."""
        opportunities: List[ArbitrageOpportunity] = []
        for token, quotes in quotes_by_token:
            opportunity = self.evaluate(token, quotes)
            if opportunity:
                opportunities.append(opportunity)
        return opportunities
