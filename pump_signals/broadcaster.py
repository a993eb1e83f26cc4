"""
Realtime broadcaster
Fire-and-forget fan-out of tickers, pumps and signal closures to local
subscribers and, optionally, Redis pub/sub channels.
"""

import inspect
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List

from pump_signals import config
from pump_signals.models import AggregatedTicker, json_safe

logger = logging.getLogger(__name__)

TICKERS = 'tickers'
PUMPS = 'pumps'
SIGNALS = 'signals'


class Broadcaster:
    """Delivery failures are logged and never propagate to the caller."""

    def __init__(self, redis_client=None, broadcast_config: Dict = None):
        self.config = broadcast_config or config.BROADCAST_CONFIG
        self.redis = redis_client if self.config.get('publish_to_redis') else None
        self.callbacks: Dict[str, List[Callable]] = defaultdict(list)
        self.sent_counts: Dict[str, int] = defaultdict(int)

    def add_callback(self, channel: str, callback: Callable):
        if channel not in (TICKERS, PUMPS, SIGNALS):
            raise ValueError(f"Unknown broadcast channel: {channel}")
        self.callbacks[channel].append(callback)

    async def _deliver(self, channel: str, payload: Any):
        for callback in list(self.callbacks.get(channel, [])):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Broadcast callback failed on '{channel}': {e}")

        if self.redis is not None:
            redis_channel = self.config['channels'][channel]
            try:
                await self.redis.publish(redis_channel, json.dumps(json_safe(payload)))
            except Exception as e:
                logger.error(f"Redis publish to {redis_channel} failed: {e}")

        self.sent_counts[channel] += 1

    async def broadcast_tickers(self, tickers: Iterable[AggregatedTicker]):
        await self._deliver(TICKERS, [t.to_dict() for t in tickers])

    async def broadcast_pump(self, pump: Dict[str, Any]):
        await self._deliver(PUMPS, pump)

    async def broadcast_signal(self, signal: Dict[str, Any]):
        await self._deliver(SIGNALS, signal)
