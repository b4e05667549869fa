#!/usr/bin/env python3
from typing import Dict

# --- ANSI Color Codes ---
C_GREEN = '\033[92m'
C_RED = '\033[91m'
C_YELLOW = '\033[93m'
C_BLUE = '\033[94m'
C_RESET = '\033[0m'

# --- API Configuration ---
MORALIS_API_BASE_URL = 'https://deep-index.moralis.io/api/v2.2'
SUSHISWAP_SUBGRAPH_URL_TEMPLATE = (
    'https://gateway.thegraph.com/api/{api_key}/subgraphs/id/8obLTNcEuGMieUt6jmrDaQUhWyj2pys26ULeP3gFiGNv'
)
POLYGON_CHAIN_HEX = '0x89'
MORALIS_UNISWAP_EXCHANGE = 'uniswapv3'

# --- Environment Variable Names ---
RPC_URL_ENV_VAR = 'RPC_URL'
PRIVATE_KEY_ENV_VAR = 'PRIVATE_KEY'
MORALIS_API_KEY_ENV_VAR = 'MORALIS_API_KEY'
SUBGRAPH_URL_ENV_VAR = 'SUBGRAPH_URL'
GRAPH_API_KEY_ENV_VAR = 'GRAPH_API_KEY'
TELEGRAM_BOT_TOKEN_ENV_VAR = 'TELEGRAM_BOT_TOKEN'
TELEGRAM_CHAT_ID_ENV_VAR = 'TELEGRAM_CHAT_ID'

# --- Venues ---
SUSHISWAP = 'SushiSwap'
UNISWAP = 'Uniswap'
VENUES = (SUSHISWAP, UNISWAP)

# --- Polygon Contracts ---
WETH_ADDRESS = '0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619'
ROUTER_ADDRESSES: Dict[str, str] = {
    SUSHISWAP: '0x1b02da8cb0d097eb8d57a175b88c7d8b47997506',
    UNISWAP: '0x7a250d5630b4cf539739df2c5dacabbe0a1c317c',
}

# --- Opportunity Scoring ---
TRANSACTION_COST_PCT = 1.0
MIN_NET_PROFIT_PCT = 3.0

# --- Position Lifecycle ---
CHECK_INTERVAL_SECONDS = 10 * 60
MAX_HOLD_SECONDS = 60 * 60
CLOSE_PROFIT_THRESHOLD_PCT = 3.0
CYCLE_DELAY_SECONDS = 10

# --- Trade Execution ---
SWAP_DEADLINE_SECONDS = 20 * 60
GAS_LIMIT = 8_000_000
GAS_PRICE_GWEI = 60
REQUIRED_CONFIRMATIONS = 3
CONFIRMATION_TIMEOUT_SECONDS = 30 * 60
CONFIRMATION_POLL_SECONDS = 5

# --- Reporting ---
DIGEST_INTERVAL_SECONDS = 24 * 60 * 60
DEFAULT_TOKENS_FILE = 'data.json'
DEFAULT_TRADES_FILE = 'trades.json'
DEFAULT_PENDING_CLOSES_FILE = 'pending_closes.json'

ROUTER_ABI = [
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "name": "swapExactTokensForTokens",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]
