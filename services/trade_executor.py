"""Swap execution against the SushiSwap and Uniswap V2-style routers on Polygon."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from constants import (
    CONFIRMATION_POLL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
    ERC20_ABI,
    GAS_LIMIT,
    GAS_PRICE_GWEI,
    REQUIRED_CONFIRMATIONS,
    ROUTER_ABI,
    ROUTER_ADDRESSES,
    SWAP_DEADLINE_SECONDS,
    WETH_ADDRESS,
)

MAX_UINT256 = 2**256 - 1


class TradeDirection(str, Enum):
    OPEN = "open"
    CLOSE = "close"


@dataclass(slots=True)
class TradeResult:
    venue: str
    token_address: str
    direction: TradeDirection
    executed: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    confirmations: int = 0
    amount_in: float = 0.0
    amount_out: float = 0.0
    reason: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.executed and self.tx_hash is not None


@dataclass(slots=True)
class PendingSwap:
    tx_hash: str
    output_token: str
    output_decimals: int
    balance_before: Decimal


class TradeExecutor:
    """Submits a swap and waits for it to confirm, reporting every failure as an unconfirmed TradeResult."""

    def __init__(
        self,
        rpc_url: Optional[str],
        private_key: str,
        *,
        web3: Optional[Any] = None,
        gas_limit: int = GAS_LIMIT,
        gas_price_gwei: int = GAS_PRICE_GWEI,
        confirmations: int = REQUIRED_CONFIRMATIONS,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        poll_interval: float = CONFIRMATION_POLL_SECONDS,
        deadline_seconds: int = SWAP_DEADLINE_SECONDS,
    ) -> None:
        self.web3 = web3 if web3 is not None else Web3(Web3.HTTPProvider(rpc_url))
        if not self.web3.is_connected():
            raise RuntimeError(f"Could not connect to RPC URL: {rpc_url}")

        self.account = self.web3.eth.account.from_key(private_key)
        self.wallet_address = self.account.address
        self.gas_limit = gas_limit
        self.gas_price_wei = Web3.to_wei(gas_price_gwei, "gwei")
        self.confirmations = confirmations
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.deadline_seconds = deadline_seconds
        self._decimals_cache: dict[str, int] = {}
        self._approved: set[tuple[str, str]] = set()
        self.logger = logging.getLogger(__name__)
        self.logger.setLevel(logging.INFO)

    async def get_balance(self, token_address: str) -> float:
        """Wallet balance of ``token_address`` in token units; 0.0 when it cannot be read."""
        try:
            balance = await asyncio.to_thread(self._token_balance_sync, token_address)
        except Exception as exc:
            self.logger.error("Could not read balance of %s: %s", token_address, exc)
            return 0.0
        return float(balance)

    async def get_trade_amount(self) -> float:
        """Full WETH balance, the amount every opening trade swaps."""
        return await self.get_balance(WETH_ADDRESS)

    async def execute(
        self,
        venue: str,
        token_address: str,
        direction: TradeDirection,
        amount: float,
        min_amount_out: float = 0.0,
    ) -> TradeResult:
        """Swaps ``amount`` of the input asset; OPEN buys the token with WETH, CLOSE sells it back."""
        result = TradeResult(
            venue=venue,
            token_address=token_address,
            direction=direction,
            executed=False,
            amount_in=amount,
        )
        if amount <= 0:
            result.reason = "Nothing to trade"
            return result

        self.logger.info(
            "Preparing to %s trade on %s for token %s with amount %s",
            direction.value,
            venue,
            token_address,
            amount,
        )
        try:
            pending = await asyncio.to_thread(
                self._submit_swap_sync, venue, token_address, direction, amount, min_amount_out
            )
        except (Web3Exception, ValueError) as exc:
            self.logger.error("Swap submission failed on %s: %s", venue, exc)
            result.reason = str(exc)
            return result
        except Exception as exc:
            self.logger.error("Unexpected error while submitting swap on %s: %s", venue, exc)
            result.reason = str(exc)
            return result

        result.tx_hash = pending.tx_hash
        self.logger.info("Transaction hash: %s; waiting for %d confirmations", pending.tx_hash, self.confirmations)

        try:
            receipt, confirmations = await asyncio.wait_for(
                self._wait_for_confirmations(pending.tx_hash),
                timeout=self.confirmation_timeout,
            )
        except asyncio.TimeoutError:
            # The transaction is not cancelled on chain and may still be mined.
            self.logger.error(
                "Transaction %s not confirmed within %ss; it may still confirm later",
                pending.tx_hash,
                self.confirmation_timeout,
            )
            result.tx_hash = None
            result.reason = f"Confirmation timed out for {pending.tx_hash}"
            return result
        except Exception as exc:
            self.logger.error("Error waiting for %s: %s", pending.tx_hash, exc)
            result.tx_hash = None
            result.reason = str(exc)
            return result

        result.block_number = receipt["blockNumber"]
        result.confirmations = confirmations
        if receipt.get("status", 1) == 0:
            self.logger.error("Transaction %s reverted in block %s", pending.tx_hash, result.block_number)
            result.tx_hash = None
            result.reason = f"Transaction {pending.tx_hash} reverted"
            return result

        try:
            balance_after = await asyncio.to_thread(self._token_balance_sync, pending.output_token)
            result.amount_out = float(balance_after - pending.balance_before)
        except Exception as exc:
            self.logger.warning("Could not read output balance after %s: %s", pending.tx_hash, exc)

        result.executed = True
        self.logger.info("Transaction %s confirmed with %d confirmations", pending.tx_hash, confirmations)
        return result

    def _submit_swap_sync(
        self,
        venue: str,
        token_address: str,
        direction: TradeDirection,
        amount: float,
        min_amount_out: float,
    ) -> PendingSwap:
        router_address = ROUTER_ADDRESSES.get(venue)
        if not router_address:
            raise ValueError(f"Unknown venue '{venue}'")
        router_address = self.web3.to_checksum_address(router_address)
        token = self.web3.to_checksum_address(token_address)
        weth = self.web3.to_checksum_address(WETH_ADDRESS)
        path = [weth, token] if direction is TradeDirection.OPEN else [token, weth]

        input_decimals = self._get_token_decimals(path[0])
        output_decimals = self._get_token_decimals(path[1])
        amount_in_wei = self._to_wei(Decimal(str(amount)), input_decimals)
        min_out_wei = self._to_wei(Decimal(str(min_amount_out)), output_decimals)

        self._ensure_allowance(path[0], router_address, amount_in_wei)
        balance_before = self._token_balance_sync(path[1])

        router = self.web3.eth.contract(address=router_address, abi=ROUTER_ABI)
        deadline = int(time.time()) + self.deadline_seconds
        tx = router.functions.swapExactTokensForTokens(
            amount_in_wei,
            min_out_wei,
            path,
            self.wallet_address,
            deadline,
        ).build_transaction(self._tx_options())
        tx_hash = self._sign_and_send(tx)
        return PendingSwap(
            tx_hash=tx_hash,
            output_token=path[1],
            output_decimals=output_decimals,
            balance_before=balance_before,
        )

    def _tx_options(self) -> dict:
        return {
            "from": self.wallet_address,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price_wei,
            "nonce": self.web3.eth.get_transaction_count(self.wallet_address, "pending"),
            "chainId": self.web3.eth.chain_id,
        }

    def _sign_and_send(self, tx: dict) -> str:
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return self.web3.to_hex(tx_hash)

    def _ensure_allowance(self, token: str, spender: str, amount_wei: int) -> None:
        key = (token, spender)
        if key in self._approved:
            return
        contract = self.web3.eth.contract(address=token, abi=ERC20_ABI)
        allowance = contract.functions.allowance(self.wallet_address, spender).call()
        if allowance < amount_wei:
            self.logger.info("Approving %s to spend %s", spender, token)
            tx = contract.functions.approve(spender, MAX_UINT256).build_transaction(self._tx_options())
            tx_hash = self._sign_and_send(tx)
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.confirmation_timeout)
            if receipt.get("status", 1) == 0:
                raise ValueError(f"Approval {tx_hash} reverted")
        self._approved.add(key)

    async def _wait_for_confirmations(self, tx_hash: str) -> tuple[Any, int]:
        """Polls until the receipt is buried under the required number of blocks."""
        while True:
            receipt = await asyncio.to_thread(self._get_receipt_sync, tx_hash)
            if receipt is not None:
                if receipt.get("status", 1) == 0:
                    return receipt, 1
                latest = await asyncio.to_thread(lambda: self.web3.eth.block_number)
                confirmations = latest - receipt["blockNumber"] + 1
                if confirmations >= self.confirmations:
                    return receipt, confirmations
            await asyncio.sleep(self.poll_interval)

    def _get_receipt_sync(self, tx_hash: str) -> Optional[Any]:
        try:
            return self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def _token_balance_sync(self, token_address: str) -> Decimal:
        token = self.web3.to_checksum_address(token_address)
        contract = self.web3.eth.contract(address=token, abi=ERC20_ABI)
        raw = contract.functions.balanceOf(self.wallet_address).call()
        return self._from_wei(raw, self._get_token_decimals(token))

    def _get_token_decimals(self, token_address: str) -> int:
        token_address = self.web3.to_checksum_address(token_address)
        if token_address not in self._decimals_cache:
            contract = self.web3.eth.contract(address=token_address, abi=ERC20_ABI)
            decimals = contract.functions.decimals().call()
            self._decimals_cache[token_address] = decimals
        return self._decimals_cache[token_address]

    @staticmethod
    def _to_wei(amount: Decimal, decimals: int) -> int:
        scale = Decimal(10) ** decimals
        return int((amount * scale).to_integral_value())

    @staticmethod
    def _from_wei(amount: int, decimals: int) -> Decimal:
        return Decimal(amount) / (Decimal(10) ** decimals)

    async def close(self) -> None:
        return None
