"""
In-memory stand-ins for Redis, the signal repository, exchanges and subscribers
"""

import fnmatch
import uuid
from typing import Dict, List, Optional

from pump_signals.models import (
    AggregatedTicker, ExchangeError, GeneratedSignal, Signal, SignalStatus, Ticker, now_ms,
)


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    def set(self, *args, **kwargs):
        self.commands.append(('set', args, kwargs))

    def hset(self, *args, **kwargs):
        self.commands.append(('hset', args, kwargs))

    def expire(self, *args, **kwargs):
        self.commands.append(('expire', args, kwargs))

    async def execute(self):
        results = []
        for name, args, kwargs in self.commands:
            results.append(await getattr(self.redis, name)(*args, **kwargs))
        self.commands = []
        return results


class FakeRedis:
    """Subset of redis.asyncio.Redis with decode_responses=True semantics"""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.ttls: Dict[str, int] = {}
        self.published: List[tuple] = []
        self.closed = False

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def set(self, key, value, ex=None):
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.values.get(key)

    async def mget(self, keys):
        return [self.values.get(k) for k in keys]

    async def hset(self, key, mapping=None):
        self.hashes.setdefault(key, {}).update(mapping or {})
        return len(mapping or {})

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            removed += int(self.hashes.pop(key, None) is not None)
        return removed

    async def scan_iter(self, match='*'):
        for key in list(self.values):
            if fnmatch.fnmatch(key, match):
                yield key

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    async def aclose(self):
        self.closed = True


class FakeTickerCache:
    """Minimal cache for components that only read tickers or prices"""

    def __init__(self, tickers: Optional[List[AggregatedTicker]] = None, prices: Dict = None):
        self.tickers = tickers
        self.prices = dict(prices or {})
        self.stored_pumps = []
        self.stored_tickers = []
        self.fail_symbols = set()

    async def get_cached_tickers(self):
        return self.tickers

    async def store_tickers(self, tickers):
        self.stored_tickers.append(dict(tickers))

    async def store_pump(self, pump):
        if pump.symbol in self.fail_symbols:
            raise ConnectionError(f"redis down for {pump.symbol}")
        self.stored_pumps.append(pump)

    async def get_latest_price(self, symbol):
        if symbol in self.fail_symbols:
            raise ConnectionError(f"redis down for {symbol}")
        return self.prices.get(symbol)


class FakeRepository:
    def __init__(self, signals: Optional[List[Signal]] = None):
        self.signals: Dict[str, Signal] = {s.id: s for s in signals or []}
        self.closed_calls = []
        self.fail_close_ids = set()

    async def create_signal(self, generated: GeneratedSignal) -> Signal:
        signal = Signal.from_generated(str(uuid.uuid4()), generated)
        self.signals[signal.id] = signal
        return signal

    async def get_signal_by_id(self, signal_id):
        return self.signals.get(signal_id)

    async def get_active_signals(self):
        return [s for s in reversed(list(self.signals.values())) if s.is_active]

    async def close_signal(self, signal_id, status, result_pnl):
        if signal_id in self.fail_close_ids:
            raise ConnectionError("database unavailable")
        self.closed_calls.append((signal_id, status, result_pnl))
        signal = self.signals.get(signal_id)
        if signal is None or not signal.is_active:
            return False
        signal.status = SignalStatus(status)
        signal.result_pnl = result_pnl
        return True


class FakeExchange:
    def __init__(self, exchange_id: str, tickers: Optional[List[Ticker]] = None, fail: bool = False):
        self.id = exchange_id
        self.name = exchange_id.upper()
        self.tickers = list(tickers or [])
        self.fail = fail
        self.calls = 0

    def set_prices(self, prices: Dict[str, tuple]):
        """``prices`` maps symbol to (price, volume)."""
        self.tickers = [make_ticker(symbol, price, volume) for symbol, (price, volume) in prices.items()]

    async def get_all_tickers(self):
        self.calls += 1
        if self.fail:
            raise ExchangeError(self.name, "503 for get_all_tickers")
        return list(self.tickers)

    async def disconnect(self):
        pass


class Recorder:
    """Collects broadcast payloads per channel"""

    def __init__(self):
        self.tickers = []
        self.pumps = []
        self.signals = []

    async def broadcast_tickers(self, tickers):
        self.tickers.append(list(tickers))

    async def broadcast_pump(self, pump):
        self.pumps.append(pump)

    async def broadcast_signal(self, signal):
        self.signals.append(signal)


def make_ticker(symbol='BTCUSDT', price=100.0, volume=1000.0, change=1.0, high=None, low=None):
    return Ticker(
        symbol=symbol,
        price=price,
        volume_24h=volume,
        change_24h=change,
        high_24h=high if high is not None else price * 1.02,
        low_24h=low if low is not None else price * 0.98,
        timestamp=now_ms(),
    )


def make_aggregated(symbol='BTCUSDT', price=100.0, volume=1000.0, change=1.0,
                    exchanges=('binance', 'bybit')):
    return AggregatedTicker(
        symbol=symbol,
        price=price,
        volume_24h=volume,
        change_24h=change,
        high_24h=price * 1.02,
        low_24h=price * 0.98,
        timestamp=now_ms(),
        exchanges=list(exchanges),
    )
