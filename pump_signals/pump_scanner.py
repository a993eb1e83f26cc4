"""
Pump Scanner
Diffs the cached consensus tickers against the previous snapshot, then
stores, broadcasts and (optionally) hands off every detected pump.
"""

import logging
import random
import string
import time
from typing import Awaitable, Callable, Dict, List, Optional

from pump_signals.models import AggregatedTicker, PumpEvent, now_ms
from pump_signals.pump_detector import DEFAULT_PUMP_CONFIG, PumpConfig, detect_pump
from pump_signals.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

PUMP_ID_ALPHABET = string.ascii_lowercase + string.digits

SignalSink = Callable[[PumpEvent, AggregatedTicker], Awaitable[None]]


def generate_pump_id(timestamp_ms: Optional[int] = None) -> str:
    suffix = ''.join(random.choices(PUMP_ID_ALPHABET, k=9))
    return f"pump-{timestamp_ms if timestamp_ms is not None else now_ms()}-{suffix}"


def pump_broadcast_payload(pump: PumpEvent) -> Dict:
    return {
        'id': generate_pump_id(),
        'symbol': pump.symbol,
        'change': pump.change_pct,
        'volume': pump.volume_24h,
        'timestamp': pump.detected_at,
    }


class PumpScanner:
    """One scanner per pipeline; the SnapshotStore is the only state it touches"""

    def __init__(self, cache, snapshot_store: SnapshotStore, broadcaster=None,
                 pump_config: PumpConfig = DEFAULT_PUMP_CONFIG,
                 signal_sink: Optional[SignalSink] = None, monitor=None):
        self.cache = cache
        self.snapshots = snapshot_store
        self.broadcaster = broadcaster
        self.pump_config = pump_config
        self.signal_sink = signal_sink
        self.monitor = monitor

    def _baseline_is_stale(self, now: float) -> bool:
        age = self.snapshots.age_seconds(now)
        return age is not None and age > self.pump_config.window_minutes * 60

    async def _handle_pump(self, pump: PumpEvent, ticker: AggregatedTicker):
        try:
            await self.cache.store_pump(pump)
        except Exception as e:
            logger.error(f"Failed to store pump for {pump.symbol}: {e}")

        if self.broadcaster:
            try:
                await self.broadcaster.broadcast_pump(pump_broadcast_payload(pump))
            except Exception as e:
                logger.error(f"Failed to broadcast pump for {pump.symbol}: {e}")

        if self.monitor:
            self.monitor.record_pump(pump)

        logger.info(f"🚀 PUMP DETECTED: {pump.symbol} +{pump.change_pct:.2f}% | "
                    f"Volume x{pump.volume_multiplier:.2f} | Exchanges: {', '.join(pump.exchanges)}")

        if self.signal_sink:
            try:
                await self.signal_sink(pump, ticker)
            except Exception as e:
                logger.error(f"Signal generation failed for pump on {pump.symbol}: {e}")

    async def scan(self, now: Optional[float] = None) -> List[PumpEvent]:
        now = time.time() if now is None else now

        current_tickers = await self.cache.get_cached_tickers()
        if not current_tickers:
            logger.debug("No tickers available for pump scanning")
            return []

        current = {t.symbol: t for t in current_tickers}

        if self.snapshots.is_empty:
            self.snapshots.replace(current, now)
            logger.debug(f"Initial pump scanner snapshot stored ({len(current)} symbols)")
            return []

        if self._baseline_is_stale(now):
            logger.warning(f"Pump baseline is {self.snapshots.age_seconds(now):.0f}s old "
                           f"(window {self.pump_config.window_minutes:g} min) - re-baselining")
            self.snapshots.replace(current, now)
            return []

        detected = []
        for symbol, ticker in current.items():
            pump = detect_pump(ticker, self.snapshots.get(symbol), self.pump_config)
            if pump is not None:
                detected.append((pump, ticker))

        if detected:
            logger.info(f"Pumps detected: {len(detected)}")

        for pump, ticker in detected:
            await self._handle_pump(pump, ticker)

        self.snapshots.replace(current, now)
        return [pump for pump, _ in detected]
