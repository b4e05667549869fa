#!/usr/bin/env python3
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

import aiohttp
from telegram import BotCommand
from telegram.ext import Application, CommandHandler, ContextTypes
from telegram.error import TimedOut, TelegramError

import constants
from analysis.analyzer import OpportunityAnalyzer
from bot.handlers import help_command, positions_command, status_command, trades_command
from config import AppConfig, load_config
from reports.ledger_digest import LedgerDigestBuilder
from scanner import OpportunityScanner
from scheduler import ArbitrageScheduler
from services.price_oracle import PriceOracle
from services.trade_executor import TradeExecutor
from storage import TradeLedger
from trading.lifecycle import PositionLifecycleManager


def build_components(config: AppConfig, session: aiohttp.ClientSession, status: Dict[str, Any]) -> Dict[str, Any]:
    """Creates the oracle, executor, ledger and trading loop; exits when the chain client cannot start."""
    price_oracle = PriceOracle(session, config.moralis_api_key, config.subgraph_url)
    try:
        trade_executor = TradeExecutor(rpc_url=config.rpc_url, private_key=config.private_key)
        print(f"Trade executor initialized for wallet {trade_executor.wallet_address}.")
    except Exception as exc:
        print(f"{constants.C_RED}Failed to initialise trade executor: {exc}{constants.C_RESET}")
        exit(1)

    ledger = TradeLedger(config.trades_file, config.pending_closes_file)
    lifecycle = PositionLifecycleManager(
        price_oracle,
        trade_executor,
        ledger,
        check_interval=config.check_interval,
        max_hold=config.max_hold,
        close_profit_threshold=config.close_profit_threshold_pct,
        max_slippage_pct=config.trade_max_slippage,
    )
    scanner = OpportunityScanner(
        price_oracle,
        OpportunityAnalyzer(config.transaction_cost_pct, config.min_net_profit_pct),
        config.tokens_file,
    )
    scheduler = ArbitrageScheduler(scanner, lifecycle, cycle_delay=config.cycle_delay, status=status)
    return {
        'price_oracle': price_oracle,
        'trade_executor': trade_executor,
        'ledger': ledger,
        'position_book': lifecycle.book,
        'digest_builder': LedgerDigestBuilder(ledger),
        'scheduler': scheduler,
    }


async def deliver_ledger_digest(bot, chat_id: str, builder: LedgerDigestBuilder) -> bool:
    """Sends the digest text and the full ledger file; failures are reported and swallowed."""
    try:
        digest = await builder.build()
    except Exception as exc:  # pragma: no cover
        print(f"{constants.C_RED}Ledger digest generation failed: {exc}{constants.C_RESET}")
        return False

    try:
        await bot.send_message(chat_id=chat_id, text=digest.text)
        if digest.trades:
            await bot.send_document(
                chat_id=chat_id,
                document=digest.ledger_json().encode('utf-8'),
                filename=constants.DEFAULT_TRADES_FILE,
            )
    except (TimedOut, TelegramError) as exc:
        print(f"{constants.C_RED}Error sending daily trades report: {exc}{constants.C_RESET}")
        return False

    print(f"{constants.C_GREEN}Daily trades report sent at {datetime.now(timezone.utc).isoformat()}{constants.C_RESET}")
    return True


async def run_ledger_digest(context: ContextTypes.DEFAULT_TYPE) -> None:
    application = context.application
    config: AppConfig | None = application.bot_data.get('config')
    builder: LedgerDigestBuilder | None = application.bot_data.get('digest_builder')
    if not builder or not config:
        return
    await deliver_ledger_digest(application.bot, config.telegram_chat_id, builder)


async def post_init_hook(application: Application) -> None:
    """A hook that runs after the bot is initialized to set up shared clients and tasks."""
    session = aiohttp.ClientSession(headers={'User-Agent': 'DexArbBot/1.0'})
    application.bot_data['http_session'] = session

    config = application.bot_data['config']
    components = build_components(config, session, application.bot_data['status'])
    application.bot_data.update(components)

    commands = [
        BotCommand("status", "Check bot status"),
        BotCommand("positions", "Show open positions"),
        BotCommand("trades", "Show the trade ledger summary"),
        BotCommand("help", "Show help message"),
    ]
    try:
        await application.bot.set_my_commands(commands)
    except (TimedOut, TelegramError) as exc:
        print(
            f"{constants.C_YELLOW}Warning: unable to set Telegram bot commands ({exc})."
            f" Continuing startup without updating commands.{constants.C_RESET}"
        )

    if application.job_queue:
        application.job_queue.run_repeating(
            run_ledger_digest,
            interval=config.digest_interval,
            first=0,
            name="ledger-digest",
        )
    else:
        print(f"{constants.C_YELLOW}Job queue unavailable; ledger digest will not be sent.{constants.C_RESET}")

    scheduler: ArbitrageScheduler = components['scheduler']
    application.bot_data['scheduler_task'] = asyncio.create_task(scheduler.start())


async def post_shutdown_hook(application: Application) -> None:
    """A hook that runs on application shutdown to clean up resources."""
    task = application.bot_data.get('scheduler_task')
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    session = application.bot_data.get('http_session')
    if session:
        await session.close()
    for key in ('ledger', 'trade_executor'):
        resource = application.bot_data.get(key)
        if resource:
            await resource.close()


async def _print_digest_forever(builder: LedgerDigestBuilder, interval: float) -> None:
    while True:
        try:
            digest = await builder.build()
            print("Daily trades report:\n" + digest.text)
        except Exception as exc:  # pragma: no cover
            print(f"{constants.C_RED}Ledger digest generation failed: {exc}{constants.C_RESET}")
        await asyncio.sleep(interval)


async def run_cli(config: AppConfig) -> None:
    """Runs the trading loop without Telegram; the digest is printed to the console."""
    status: Dict[str, Any] = {}
    async with aiohttp.ClientSession(headers={'User-Agent': 'DexArbBot/1.0'}) as session:
        components = build_components(config, session, status)
        digest_task = asyncio.create_task(
            _print_digest_forever(components['digest_builder'], config.digest_interval)
        )
        try:
            await components['scheduler'].start()
        finally:
            digest_task.cancel()
            await components['trade_executor'].close()


def main() -> None:
    """The main synchronous entry point for the application."""
    config = load_config()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S")

    if config.show_trades:
        ledger = TradeLedger(config.trades_file, config.pending_closes_file)
        records = asyncio.run(ledger.fetch_trades(limit=config.trades_limit))
        _print_trade_records(records, config.trades_limit)
        return

    if not config.telegram_enabled:
        print("Telegram is not configured. The application will run in CLI-only mode.")
        try:
            asyncio.run(run_cli(config))
        except KeyboardInterrupt:
            print("Shutting down.")
        return

    application = (
        Application.builder()
        .token(config.telegram_bot_token)
        .post_init(post_init_hook)
        .post_shutdown(post_shutdown_hook)
        .build()
    )

    application.bot_data['config'] = config
    application.bot_data['start_time'] = time.time()
    application.bot_data['status'] = {}

    application.add_handler(CommandHandler("start", help_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("status", status_command))
    application.add_handler(CommandHandler("positions", positions_command))
    application.add_handler(CommandHandler("trades", trades_command))

    application.run_polling()


def _print_trade_records(records: list, limit: int) -> None:
    heading = f"Showing up to {limit} trades"
    print(heading)
    print("=" * len(heading))

    if not records:
        print("No trades recorded.")
        return

    headers = ["Closed (UTC)", "Token", "Exchange", "Buy $", "Sell $", "P/L $", "P/L %", "Held"]

    def _format_held(record) -> str:
        minutes = (record.close_time - record.open_time).total_seconds() / 60
        return f"{minutes:.0f}m"

    def _format_row(record) -> list[str]:
        address = record.token_address
        short_address = f"{address[:6]}...{address[-4:]}" if len(address) > 12 else address
        return [
            record.close_time.strftime("%Y-%m-%d %H:%M:%S"),
            short_address,
            record.exchange,
            f"{record.buy_price:.2f}",
            f"{record.sell_price:.2f}",
            f"{record.profit_or_loss:+.2f}",
            f"{record.profit_or_loss_percentage:+.2f}%",
            _format_held(record),
        ]

    rows = [_format_row(rec) for rec in records]
    widths = [len(h) for h in headers]
    for row in rows:
        for idx, cell in enumerate(row):
            widths[idx] = max(widths[idx], len(cell))

    def _format_line(row: list[str]) -> str:
        return "  ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row))

    print(_format_line(headers))
    print("  ".join('-' * w for w in widths))
    for row in rows:
        print(_format_line(row))


if __name__ == "__main__":
    main()
