#!/usr/bin/env python3
import os
import argparse
from typing import NamedTuple
import constants

class AppConfig(NamedTuple):
    """Typed configuration object."""
    tokens_file: str
    trades_file: str
    pending_closes_file: str
    transaction_cost_pct: float
    min_net_profit_pct: float
    close_profit_threshold_pct: float
    check_interval: int
    max_hold: int
    cycle_delay: int
    trade_max_slippage: float
    digest_interval: int
    telegram_enabled: bool
    show_trades: bool
    trades_limit: int
    rpc_url: str | None
    private_key: str | None
    moralis_api_key: str | None
    subgraph_url: str | None
    telegram_bot_token: str | None
    telegram_chat_id: str | None


def load_config() -> AppConfig:
    """
    Parses command-line arguments and loads environment variables to create a configuration object.
    """
    parser = argparse.ArgumentParser(
        description="Trade SushiSwap/Uniswap price divergences on Polygon with one open position at a time.",
        epilog="Example: ./main.py --tokens-file data.json --telegram-enabled"
    )
    parser.add_argument('--tokens-file', default=constants.DEFAULT_TOKENS_FILE, help=f'Token list JSON file (default: {constants.DEFAULT_TOKENS_FILE}).')
    parser.add_argument('--trades-file', default=constants.DEFAULT_TRADES_FILE, help=f'Trade ledger JSON file (default: {constants.DEFAULT_TRADES_FILE}).')
    parser.add_argument('--pending-closes-file', default=constants.DEFAULT_PENDING_CLOSES_FILE, help=f'File recording positions whose closing trade failed (default: {constants.DEFAULT_PENDING_CLOSES_FILE}).')
    parser.add_argument('--transaction-cost', type=float, default=constants.TRANSACTION_COST_PCT, help='Round-trip transaction cost percentage subtracted from the spread (default: 1.0).')
    parser.add_argument('--min-net-profit', type=float, default=constants.MIN_NET_PROFIT_PCT, help='Net arbitrage percentage an opportunity must exceed (default: 3.0).')
    parser.add_argument('--close-profit', type=float, default=constants.CLOSE_PROFIT_THRESHOLD_PCT, help='Profit percentage that closes an open position (default: 3.0).')
    parser.add_argument('--check-interval', type=int, default=constants.CHECK_INTERVAL_SECONDS, help='Seconds between price checks while a position is open (default: 600).')
    parser.add_argument('--max-hold', type=int, default=constants.MAX_HOLD_SECONDS, help='Seconds after which an open position is closed regardless of profit (default: 3600).')
    parser.add_argument('--cycle-delay', type=int, default=constants.CYCLE_DELAY_SECONDS, help='Seconds to wait between scan cycles (default: 10).')
    parser.add_argument('--trade-max-slippage', type=float, default=0.0, help='Maximum allowed slippage percentage per swap; 0 disables the minimum-output check (default: 0).')
    parser.add_argument('--digest-interval', type=int, default=constants.DIGEST_INTERVAL_SECONDS, help='Seconds between trade ledger digests (default: 86400).')
    parser.add_argument('--telegram-enabled', action='store_true', help='Enable Telegram commands and the ledger digest.')
    parser.add_argument('--show-trades', action='store_true', help='Display recorded trades and exit.')
    parser.add_argument('--trades-limit', type=int, default=20, help='Number of recent trades to display (default: 20).')

    args = parser.parse_args()

    # Load from environment
    rpc_url = os.environ.get(constants.RPC_URL_ENV_VAR)
    private_key = os.environ.get(constants.PRIVATE_KEY_ENV_VAR)
    moralis_api_key = os.environ.get(constants.MORALIS_API_KEY_ENV_VAR)
    graph_api_key = os.environ.get(constants.GRAPH_API_KEY_ENV_VAR)
    subgraph_url = os.environ.get(constants.SUBGRAPH_URL_ENV_VAR)
    if not subgraph_url and graph_api_key:
        subgraph_url = constants.SUSHISWAP_SUBGRAPH_URL_TEMPLATE.format(api_key=graph_api_key)
    telegram_bot_token = os.environ.get(constants.TELEGRAM_BOT_TOKEN_ENV_VAR)
    telegram_chat_id = os.environ.get(constants.TELEGRAM_CHAT_ID_ENV_VAR)

    if not args.show_trades:
        if not rpc_url:
            print(f"{constants.C_RED}{constants.RPC_URL_ENV_VAR} environment variable not set; a Polygon RPC endpoint is required.{constants.C_RESET}")
            exit(1)
        if not private_key:
            print(f"{constants.C_RED}{constants.PRIVATE_KEY_ENV_VAR} environment variable not set; required to sign swaps.{constants.C_RESET}")
            exit(1)
        if not moralis_api_key:
            print(f"{constants.C_RED}{constants.MORALIS_API_KEY_ENV_VAR} environment variable not set. Get it from https://admin.moralis.io{constants.C_RESET}")
            exit(1)
        if not subgraph_url:
            print(f"{constants.C_RED}Neither {constants.GRAPH_API_KEY_ENV_VAR} nor {constants.SUBGRAPH_URL_ENV_VAR} is set; SushiSwap prices need The Graph gateway. Get a key from https://thegraph.com/studio{constants.C_RESET}")
            exit(1)

    if args.telegram_enabled and not (telegram_bot_token and telegram_chat_id):
        print(f"{constants.C_RED}Telegram is enabled, but {constants.TELEGRAM_BOT_TOKEN_ENV_VAR} or {constants.TELEGRAM_CHAT_ID_ENV_VAR} are not set.{constants.C_RESET}")
        exit(1)

    if args.trade_max_slippage < 0:
        parser.error('--trade-max-slippage must not be negative.')

    return AppConfig(
        tokens_file=args.tokens_file,
        trades_file=args.trades_file,
        pending_closes_file=args.pending_closes_file,
        transaction_cost_pct=args.transaction_cost,
        min_net_profit_pct=args.min_net_profit,
        close_profit_threshold_pct=args.close_profit,
        check_interval=args.check_interval,
        max_hold=args.max_hold,
        cycle_delay=args.cycle_delay,
        trade_max_slippage=args.trade_max_slippage,
        digest_interval=args.digest_interval,
        telegram_enabled=args.telegram_enabled,
        show_trades=args.show_trades,
        trades_limit=args.trades_limit,
        rpc_url=rpc_url,
        private_key=private_key,
        moralis_api_key=moralis_api_key,
        subgraph_url=subgraph_url,
        telegram_bot_token=telegram_bot_token,
        telegram_chat_id=telegram_chat_id,
    )
