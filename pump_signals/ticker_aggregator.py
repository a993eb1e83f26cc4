"""
Ticker Aggregation Across Exchanges
Fan-out fetch → consensus ticker per symbol → cache + broadcast
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import numpy as np

from pump_signals.models import AggregatedTicker, Ticker, now_ms

logger = logging.getLogger(__name__)


def aggregate_tickers(exchange_tickers: Dict[str, List[Ticker]],
                      timestamp: Optional[int] = None) -> Dict[str, AggregatedTicker]:
    """Merge per-exchange tickers into one consensus ticker per symbol.

    Price and 24h change are averaged, volume is summed, high/low are the
    extremes. ``exchanges`` keeps the order in which contributors were seen
    while iterating ``exchange_tickers``.
    """
    if timestamp is None:
        timestamp = now_ms()

    grouped: Dict[str, List[Ticker]] = defaultdict(list)
    contributors: Dict[str, List[str]] = defaultdict(list)

    for exchange_id, tickers in exchange_tickers.items():
        for ticker in tickers:
            grouped[ticker.symbol].append(ticker)
            contributors[ticker.symbol].append(exchange_id)

    aggregated = {}
    for symbol, tickers in grouped.items():
        prices = np.array([t.price for t in tickers], dtype=float)
        changes = np.array([t.change_24h for t in tickers], dtype=float)

        aggregated[symbol] = AggregatedTicker(
            symbol=symbol,
            price=float(np.mean(prices)),
            volume_24h=float(sum(t.volume_24h for t in tickers)),
            change_24h=float(np.mean(changes)),
            high_24h=max(t.high_24h for t in tickers),
            low_24h=min(t.low_24h for t in tickers),
            timestamp=timestamp,
            exchanges=contributors[symbol],
        )

    return aggregated


async def _fetch_exchange(exchange) -> Optional[List[Ticker]]:
    try:
        return await exchange.get_all_tickers()
    except Exception as e:
        logger.warning(f"Failed to fetch tickers from {exchange.id}: {e}")
        return None


async def fetch_all_tickers(exchanges: Sequence) -> Dict[str, List[Ticker]]:
    """Fetch every exchange concurrently; failed exchanges are simply absent."""
    results = await asyncio.gather(*(_fetch_exchange(ex) for ex in exchanges))

    exchange_tickers = {}
    for exchange, tickers in zip(exchanges, results):
        if tickers is not None:
            exchange_tickers[exchange.id] = tickers

    return exchange_tickers


class PriceAggregator:
    """One aggregation tick: fetch, aggregate, cache and broadcast"""

    def __init__(self, exchanges: Sequence, cache, broadcaster=None):
        self.exchanges = list(exchanges)
        self.cache = cache
        self.broadcaster = broadcaster
        self.last_symbol_count = 0

    async def run(self) -> Dict[str, AggregatedTicker]:
        start = time.monotonic()

        exchange_tickers = await fetch_all_tickers(self.exchanges)
        aggregated = aggregate_tickers(exchange_tickers)

        if aggregated:
            await self.cache.store_tickers(aggregated)
            if self.broadcaster:
                await self.broadcaster.broadcast_tickers(list(aggregated.values()))
        else:
            logger.warning("No tickers aggregated this tick (all exchanges failed or empty)")

        self.last_symbol_count = len(aggregated)
        duration_ms = (time.monotonic() - start) * 1000
        logger.info(f"Price aggregation completed in {duration_ms:.0f}ms | "
                    f"Symbols: {len(aggregated)} | Exchanges: {len(exchange_tickers)}/{len(self.exchanges)}")

        return aggregated
