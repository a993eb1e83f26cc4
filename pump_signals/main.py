"""
Pump Signals Pipeline
Exchanges → consensus tickers → pump scan → signals → lifecycle checks
Three fixed-interval jobs sharing one event loop
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from pump_signals import config
from pump_signals.broadcaster import Broadcaster
from pump_signals.cache import MarketCache
from pump_signals.database import SignalRepository
from pump_signals.exchanges import close_exchanges, create_exchanges
from pump_signals.models import AggregatedTicker, PumpEvent, Signal, TickerData, TriggerType, now_ms
from pump_signals.pipeline_monitor import PipelineMonitor
from pump_signals.pump_detector import DEFAULT_PUMP_CONFIG, PumpConfig
from pump_signals.pump_scanner import PumpScanner
from pump_signals.signal_generator import generate_signal
from pump_signals.signal_monitor import BatchReport, SignalLifecycleMonitor
from pump_signals.snapshot_store import SnapshotStore
from pump_signals.ticker_aggregator import PriceAggregator

logger = logging.getLogger(__name__)


class PumpSignalSystem:
    def __init__(self, cache=None, repository=None, exchanges: Optional[List] = None,
                 broadcaster=None, monitor: Optional[PipelineMonitor] = None,
                 pump_config: PumpConfig = DEFAULT_PUMP_CONFIG,
                 auto_generate_signals: Optional[bool] = None):
        self.cache = cache or MarketCache.from_url()
        self.repository = repository or SignalRepository()
        self.exchanges = exchanges if exchanges is not None else create_exchanges()
        self.broadcaster = broadcaster or Broadcaster(getattr(self.cache, 'redis', None))
        self.monitor = monitor or PipelineMonitor()

        if auto_generate_signals is None:
            auto_generate_signals = bool(config.SIGNAL_CONFIG['auto_generate_from_pumps'])
        self.auto_generate_signals = auto_generate_signals

        # Previous consensus snapshot, reset by clearing this store
        self.snapshot_store = SnapshotStore()

        self.price_aggregator = PriceAggregator(self.exchanges, self.cache, self.broadcaster)
        self.pump_scanner = PumpScanner(
            self.cache,
            self.snapshot_store,
            broadcaster=self.broadcaster,
            pump_config=pump_config,
            signal_sink=self._generate_signal_from_pump if self.auto_generate_signals else None,
            monitor=self.monitor,
        )
        self.signal_monitor = SignalLifecycleMonitor(self.repository, self.cache, self.broadcaster)

        self.running = False
        self._tasks: List[asyncio.Task] = []
        self.signals_generated = 0

    async def initialize(self):
        logger.info("🚀 Initializing Pump Signals Pipeline...")

        if isinstance(self.repository, SignalRepository):
            await asyncio.to_thread(self.repository.ensure_schema)

        for exchange in self.exchanges:
            connect = getattr(exchange, 'connect', None)
            if connect:
                await connect()

        logger.info(f"Exchanges: {', '.join(ex.id for ex in self.exchanges) or 'none'}")
        logger.info(f"Signal auto-generation: {'on' if self.auto_generate_signals else 'off'}")
        logger.info("✅ Pump Signals Pipeline ready")

    async def _run_job(self, name: str, job: Callable[[], Awaitable]):
        """Run one tick of a job; a failing tick is logged and recorded, never raised."""
        start = time.monotonic()
        try:
            result = await job()
        except Exception as e:
            duration_ms = (time.monotonic() - start) * 1000
            logger.error(f"{name} job failed after {duration_ms:.0f}ms: {e}")
            self.monitor.record_job(name, duration_ms, ok=False, error=str(e))
            return None

        duration_ms = (time.monotonic() - start) * 1000
        logger.debug(f"{name} job completed in {duration_ms:.0f}ms")
        self.monitor.record_job(name, duration_ms, ok=True)
        return result

    # Jobs

    async def run_price_aggregator(self) -> Dict[str, AggregatedTicker]:
        return await self.price_aggregator.run()

    async def scan_for_pumps(self) -> List[PumpEvent]:
        return await self.pump_scanner.scan()

    async def scan_active_signals(self) -> BatchReport:
        report = await self.signal_monitor.scan_active_signals()
        for closure in report.closures:
            self.monitor.record_signal_closure(closure.symbol, closure.status.value, closure.pnl_pct)
        return report

    async def _generate_signal_from_pump(self, pump: PumpEvent, ticker: AggregatedTicker) -> Signal:
        ticker_data = TickerData.from_aggregated(ticker, config.SIGNAL_CONFIG['aggregate_exchange_label'])
        generated = generate_signal(ticker_data, TriggerType.PUMP_DETECTION, {
            'change_pct': pump.change_pct,
            'volume_multiplier': pump.volume_multiplier,
            'exchanges': list(pump.exchanges),
        })

        signal = await self.repository.create_signal(generated)
        self.signals_generated += 1

        await self.broadcaster.broadcast_signal({
            'id': signal.id,
            'symbol': signal.symbol,
            'direction': signal.direction.value,
            'confidence': signal.ai_confidence or 0,
            'timestamp': now_ms(),
        })

        logger.info(f"📈 SIGNAL CREATED: {signal.symbol} {signal.direction.value.upper()} @ {signal.entry_price} | "
                    f"SL: {signal.stop_loss} | TP1: {signal.take_profit_1} | "
                    f"Confidence: {signal.ai_confidence} | Tier: {signal.min_tier.value}")
        return signal

    # Scheduling

    async def _job_loop(self, name: str, job: Callable[[], Awaitable], interval_seconds: float):
        logger.info(f"{name} job started (every {interval_seconds} seconds)")
        while self.running:
            await self._run_job(name, job)
            await asyncio.sleep(interval_seconds)

    async def run(self):
        logger.info("🔥 Starting pipeline jobs...")
        self.running = True

        schedule = config.SCHEDULE_CONFIG
        self._tasks = [
            asyncio.create_task(self._job_loop(
                'price_aggregator', self.run_price_aggregator, schedule['price_aggregator_seconds'])),
            asyncio.create_task(self._job_loop(
                'pump_scanner', self.scan_for_pumps, schedule['pump_scanner_seconds'])),
            asyncio.create_task(self._job_loop(
                'signal_checker', self.scan_active_signals, schedule['signal_checker_seconds'])),
        ]

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Pipeline jobs cancelled")
        finally:
            self.running = False

    async def shutdown(self):
        logger.info("🛑 Shutting down Pump Signals Pipeline...")
        self.running = False

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await close_exchanges(self.exchanges)

        close_cache = getattr(self.cache, 'close', None)
        if close_cache:
            await close_cache()

        db = getattr(self.repository, 'db', None)
        if db is not None:
            db.close()

        self.monitor.log_summary()
        logger.info("Pump Signals Pipeline stopped")
