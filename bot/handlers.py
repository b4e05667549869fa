# bot/handlers.py
import time

from telegram import Update
from telegram.ext import ContextTypes

from reports.ledger_digest import LedgerDigestBuilder
from trading.positions import PositionBook

# --- Command Handlers ---

async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Displays a help message with all available commands."""
    help_text = """
    <b>SushiSwap ↔ Uniswap Arbitrage Bot</b>

    The bot buys a token on the cheaper venue and sells it on the dearer one once the profit target or the hold timeout is reached.

    <b><u>Available Commands:</u></b>
    /status - Get bot status and last scan info
    /positions - Show the currently open position
    /trades - Show the trade ledger summary
    /help - Show this help message
    """
    await update.message.reply_html(help_text)

async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Checks and reports the bot's operational status and scheduler state."""
    bot_data = context.application.bot_data
    scheduler_task = bot_data.get('scheduler_task')
    status = bot_data.get('status', {})
    start_time = bot_data.get('start_time', 0)

    uptime_seconds = time.time() - start_time
    uptime_str = time.strftime('%H:%M:%S', time.gmtime(uptime_seconds))

    if scheduler_task and not scheduler_task.done():
        scheduler_status = "✅ Running"
    elif scheduler_task and scheduler_task.done():
        if not scheduler_task.cancelled() and scheduler_task.exception():
            scheduler_status = "❌ Stopped with error"
        else:
            scheduler_status = "⏹️ Stopped"
    else:
        scheduler_status = "⚠️ Not running"

    status_text = (
        f"<b>🤖 Bot Status</b>\n"
        f"Uptime: <code>{uptime_str}</code>\n\n"
        f"<b>🔍 Scheduler</b>\n"
        f"Status: {scheduler_status}\n"
        f"Cycles: <code>{status.get('cycles_completed', 0)}</code>\n"
        f"Last Scan: <code>{status.get('last_scan_time', 'Never')}</code>\n"
        f"Found Last Scan: <code>{status.get('found_last_scan', 'N/A')}</code>\n"
    )
    if status.get('active_symbol'):
        status_text += f"Working On: <code>{status['active_symbol']}</code>\n"
    if status.get('last_error'):
        status_text += f"Last Error: <pre>{status['last_error']}</pre>\n"

    await update.message.reply_html(status_text)

async def positions_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Lists open positions from the lifecycle manager's position book."""
    book: PositionBook | None = context.application.bot_data.get('position_book')
    positions = book.open_positions() if book else []
    if not positions:
        await update.message.reply_text("No open positions.")
        return

    lines = ["<b>📈 Open Positions</b>"]
    for position in positions:
        held_minutes = (time.time() - position.opened_at) / 60
        lines.append(
            f"<b>{position.symbol}</b> bought on {position.buy_venue}, selling on {position.sell_venue}\n"
            f"   - Amount: {position.amount:.6f}\n"
            f"   - Cost: ${position.buy_price:,.2f}\n"
            f"   - Held: {held_minutes:.0f} min\n"
            f"   - Tx: <code>{position.buy_tx_hash}</code>"
        )
    await update.message.reply_html("\n".join(lines))

async def trades_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Shows the ledger digest on demand."""
    builder: LedgerDigestBuilder | None = context.application.bot_data.get('digest_builder')
    if not builder:
        await update.message.reply_text("Trade ledger not configured.")
        return

    try:
        digest = await builder.build()
        response = digest.text
    except Exception as e:
        print(f"Error in /trades command: {e}")
        response = "An error occurred while reading the trade ledger."

    await update.message.reply_text(response)
