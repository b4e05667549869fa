# scanner.py
import asyncio
import json
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from analysis.analyzer import OpportunityAnalyzer
from analysis.models import ArbitrageOpportunity, Quote, Token
from constants import C_BLUE, C_RED, C_RESET, C_YELLOW, DEFAULT_TOKENS_FILE, VENUES
from services.price_oracle import PriceOracle


def read_tokens_from_file(path: Path | str = DEFAULT_TOKENS_FILE) -> List[Token]:
    """Reads the ``data`` list of ``{symbol, token}`` entries; any problem yields an empty list."""
    path = Path(path)
    print(f"Reading tokens from {path}...")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"{C_RED}Error reading tokens from file: {e}{C_RESET}")
        return []

    entries = payload.get('data') if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        print(f"{C_RED}Error reading tokens from file: expected a 'data' list in {path}{C_RESET}")
        return []

    tokens: List[Token] = []
    for entry in entries:
        try:
            tokens.append(Token(symbol=str(entry['symbol']), address=str(entry['token'])))
        except (KeyError, TypeError):
            print(f"{C_YELLOW}Skipping malformed token entry: {entry}{C_RESET}")
    print(f"Tokens read successfully: {', '.join(t.symbol for t in tokens) or 'none'}")
    return tokens


class OpportunityScanner:
    def __init__(
        self,
        price_oracle: PriceOracle,
        analyzer: OpportunityAnalyzer,
        tokens_file: Path | str = DEFAULT_TOKENS_FILE,
        venues: Sequence[str] = VENUES,
    ):
        self.price_oracle = price_oracle
        self.analyzer = analyzer
        self.tokens_file = tokens_file
        self.venues = tuple(venues)

    def load_tokens(self) -> List[Token]:
        return read_tokens_from_file(self.tokens_file)

    async def fetch_quotes(self, token: Token) -> Tuple[Token, List[Quote]]:
        """Fetches the token's price on every venue concurrently."""
        print(f"Fetching prices for {C_YELLOW}{token.symbol}{C_RESET}...")
        prices = await asyncio.gather(
            *(self.price_oracle.get_price(token.address, venue) for venue in self.venues)
        )
        quotes = [Quote(venue=venue, usd_price=price) for venue, price in zip(self.venues, prices)]
        summary = ", ".join(f"{q.venue}: {q.usd_price}" for q in quotes)
        print(f"Prices for {token.symbol}: {summary}")
        return token, quotes

    async def scan(self, tokens: Optional[Sequence[Token]] = None) -> List[ArbitrageOpportunity]:
        """Returns qualifying opportunities in token-list order."""
        if tokens is None:
            tokens = self.load_tokens()
        if not tokens:
            print(f"{C_YELLOW}No tokens found. Please check your tokens file.{C_RESET}")
            return []

        results = await asyncio.gather(*(self.fetch_quotes(token) for token in tokens))
        opportunities = self.analyzer.find_opportunities(results)

        for opp in opportunities:
            self._print_opportunity(opp)
        print(f"Scan complete. Found {len(opportunities)} arbitrage opportunities above {self.analyzer.min_net_profit_pct}% net profit.")
        return opportunities

    def _print_opportunity(self, opp: ArbitrageOpportunity):
        """Formats and prints a single opportunity to the console."""
        print(f"OPPORTUNITY: {opp.symbol} | Buy {C_BLUE}{opp.low_venue}{C_RESET} @ ${opp.low_price:.6f}"
              f" -> Sell {C_BLUE}{opp.high_venue}{C_RESET} @ ${opp.high_price:.6f}"
              f" | Net: {opp.net_arbitrage_pct:.2f}%")
