"""
Redis market cache
Aggregated tickers (hash + per-symbol keys) and active pump events, each
stored under an explicit TTL. A miss always means "no data", never an error.
"""

import json
import logging
from typing import Dict, List, Optional

import redis.asyncio as aioredis

from pump_signals import config
from pump_signals.models import AggregatedTicker, PumpEvent

logger = logging.getLogger(__name__)


def _decode(raw) -> Optional[dict]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


class MarketCache:

    def __init__(self, client: aioredis.Redis, cache_config: Dict = None):
        self.redis = client
        self.keys = cache_config or config.CACHE_CONFIG

    @classmethod
    def from_url(cls, url: str = None) -> 'MarketCache':
        client = aioredis.from_url(url or config.REDIS_URL, decode_responses=True)
        return cls(client)

    async def close(self):
        await self.redis.aclose()

    # ------------------------------------------------------------------ tickers

    async def store_tickers(self, tickers: Dict[str, AggregatedTicker]):
        if not tickers:
            return

        ttl = self.keys['ticker_ttl']
        hash_key = self.keys['tickers_hash']
        hash_data = {}

        async with self.redis.pipeline(transaction=False) as pipe:
            for symbol, ticker in tickers.items():
                payload = json.dumps(ticker.to_dict())
                hash_data[symbol] = payload
                pipe.set(f"{self.keys['ticker_prefix']}{symbol}", payload, ex=ttl)
            pipe.hset(hash_key, mapping=hash_data)
            pipe.expire(hash_key, ttl)
            await pipe.execute()

    async def get_cached_tickers(self) -> Optional[List[AggregatedTicker]]:
        data = await self.redis.hgetall(self.keys['tickers_hash'])
        if not data:
            return None

        tickers = []
        for raw in data.values():
            decoded = _decode(raw)
            if decoded is None:
                continue
            try:
                tickers.append(AggregatedTicker.from_dict(decoded))
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed cached ticker: {str(raw)[:80]}")

        return tickers or None

    async def get_cached_ticker(self, symbol: str) -> Optional[AggregatedTicker]:
        decoded = _decode(await self.redis.hget(self.keys['tickers_hash'], symbol))
        if decoded is None:
            return None
        try:
            return AggregatedTicker.from_dict(decoded)
        except (KeyError, TypeError, ValueError):
            return None

    async def get_latest_price(self, symbol: str) -> Optional[float]:
        """Price from the per-symbol key, which expires independently of the hash."""
        decoded = _decode(await self.redis.get(f"{self.keys['ticker_prefix']}{symbol}"))
        if decoded is None:
            return None
        try:
            return float(decoded['price'])
        except (KeyError, TypeError, ValueError):
            return None

    # -------------------------------------------------------------------- pumps

    async def store_pump(self, pump: PumpEvent):
        await self.redis.set(
            f"{self.keys['pump_prefix']}{pump.symbol}",
            json.dumps(pump.to_dict()),
            ex=self.keys['pump_ttl'],
        )

    async def get_pump(self, symbol: str) -> Optional[PumpEvent]:
        decoded = _decode(await self.redis.get(f"{self.keys['pump_prefix']}{symbol}"))
        return PumpEvent.from_dict(decoded) if decoded else None

    async def get_active_pumps(self) -> List[PumpEvent]:
        keys = [key async for key in self.redis.scan_iter(match=f"{self.keys['pump_prefix']}*")]
        if not keys:
            return []

        pumps = []
        for raw in await self.redis.mget(keys):
            decoded = _decode(raw)
            if decoded:
                pumps.append(PumpEvent.from_dict(decoded))
        return pumps

    async def clear_pump(self, symbol: str):
        await self.redis.delete(f"{self.keys['pump_prefix']}{symbol}")
