#!/usr/bin/env python3
"""USD price lookups for the two venues: Moralis for Uniswap, the SushiSwap subgraph for SushiSwap."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from constants import (
    C_RED,
    C_RESET,
    MORALIS_API_BASE_URL,
    MORALIS_UNISWAP_EXCHANGE,
    POLYGON_CHAIN_HEX,
    SUSHISWAP,
    UNISWAP,
    WETH_ADDRESS,
)


def log_error(message: str) -> None:
    """Centralized error logging."""
    print(f"{C_RED}{message}{C_RESET}")


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class PriceOracle:
    """Returns a USD quote for a token on a venue, or None when it cannot be priced."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        moralis_api_key: str,
        subgraph_url: str,
        *,
        retries: int = 3,
        timeout: int = 10,
        retry_delay: float = 2.0,
    ) -> None:
        self._session = session
        self._headers = {'X-API-Key': moralis_api_key, 'accept': 'application/json'}
        self._subgraph_url = subgraph_url
        self._retries = retries
        self._timeout = timeout
        self._retry_delay = retry_delay

    async def _request(self, method: str, url: str, **kwargs: Any) -> Optional[Dict[str, Any]]:
        for attempt in range(self._retries):
            try:
                async with self._session.request(method, url, timeout=self._timeout, **kwargs) as response:
                    response.raise_for_status()
                    return await response.json()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt < self._retries - 1:
                    await asyncio.sleep(self._retry_delay)
                    continue
                log_error(f"Price request failed for {url} after {self._retries} attempts: {exc}")
                return None
        return None

    async def get_moralis_usd_price(self, token_address: str, exchange: Optional[str] = None) -> Optional[float]:
        url = f"{MORALIS_API_BASE_URL}/erc20/{token_address}/price"
        params = {'chain': POLYGON_CHAIN_HEX}
        if exchange:
            params['exchange'] = exchange
        data = await self._request('GET', url, params=params, headers=self._headers)
        if not data:
            return None
        return _to_float(data.get('usdPrice'))

    async def get_weth_usd_price(self) -> Optional[float]:
        price = await self.get_moralis_usd_price(WETH_ADDRESS)
        if price is None:
            log_error("Could not fetch WETH to USD price from Moralis.")
        return price

    async def get_pair_relative_price(self, token_address: str) -> Optional[float]:
        """Token price denominated in WETH, read from the SushiSwap subgraph."""
        query = (
            '{ pairs(where: { token0: "%s", token1: "%s" }) { token0Price } }'
            % (WETH_ADDRESS.lower(), token_address.lower())
        )
        data = await self._request('POST', self._subgraph_url, json={'query': query})
        if not data:
            return None
        pairs = (data.get('data') or {}).get('pairs') or []
        if not pairs:
            log_error(f"No SushiSwap pair found for WETH/{token_address}.")
            return None
        return _to_float(pairs[0].get('token0Price'))

    async def get_sushiswap_price(self, token_address: str) -> Optional[float]:
        relative_price, weth_usd = await asyncio.gather(
            self.get_pair_relative_price(token_address),
            self.get_weth_usd_price(),
        )
        if relative_price is None or weth_usd is None:
            return None
        return relative_price * weth_usd

    async def get_uniswap_price(self, token_address: str) -> Optional[float]:
        return await self.get_moralis_usd_price(token_address, MORALIS_UNISWAP_EXCHANGE)

    async def get_price(self, token_address: str, venue: str) -> Optional[float]:
        """USD price of ``token_address`` on ``venue``; never raises."""
        try:
            if venue == UNISWAP:
                price = await self.get_uniswap_price(token_address)
            elif venue == SUSHISWAP:
                price = await self.get_sushiswap_price(token_address)
            else:
                log_error(f"Unknown venue '{venue}'.")
                return None
        except Exception as exc:
            log_error(f"Error fetching {venue} price for {token_address}: {exc}")
            return None
        if price is not None and price <= 0:
            return None
        return price
