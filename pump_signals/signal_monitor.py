"""
Signal Lifecycle Monitor
Checks every active signal against the live cached price and closes it
when the stop-loss or a take-profit level is reached.
Stop-loss is always evaluated first.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pump_signals import config
from pump_signals.models import Direction, Signal, SignalStatus, now_ms

logger = logging.getLogger(__name__)

PNL_DECIMALS = config.SIGNAL_CONFIG['pnl_decimals']


@dataclass(frozen=True)
class SignalCheckResult:
    signal_id: str
    symbol: str
    direction: Direction
    status: SignalStatus
    exit_price: float
    pnl_pct: float


@dataclass
class SignalOutcome:
    """Per-signal result of one scan."""
    signal_id: str
    symbol: str
    ok: bool
    result: Optional[SignalCheckResult] = None
    error: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.ok and self.result is not None


@dataclass
class BatchReport:
    outcomes: List[SignalOutcome] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def checked(self) -> int:
        return len(self.outcomes)

    @property
    def closed(self) -> int:
        return sum(1 for o in self.outcomes if o.closed)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.ok and o.result is None)

    @property
    def failures(self) -> List[SignalOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def closures(self) -> List[SignalCheckResult]:
        return [o.result for o in self.outcomes if o.closed]


def check_stop_loss_hit(current_price: float, signal: Signal) -> bool:
    if signal.direction == Direction.BUY:
        return current_price <= signal.stop_loss
    return current_price >= signal.stop_loss


def check_take_profit_hit(current_price: float, signal: Signal) -> Optional[Tuple[SignalStatus, float]]:
    """Highest level reached first: tp3, then tp2, then tp1. Missing levels are skipped."""
    levels = (
        (SignalStatus.TP3_HIT, signal.take_profit_3),
        (SignalStatus.TP2_HIT, signal.take_profit_2),
        (SignalStatus.TP1_HIT, signal.take_profit_1),
    )

    for status, level in levels:
        if level is None:
            continue
        if signal.direction == Direction.BUY and current_price >= level:
            return status, level
        if signal.direction == Direction.SELL and current_price <= level:
            return status, level

    return None


def calculate_pnl_pct(entry_price: float, exit_price: float, direction: Direction) -> float:
    if direction == Direction.BUY:
        pnl = (exit_price - entry_price) / entry_price * 100
    else:
        pnl = (entry_price - exit_price) / entry_price * 100
    return round(pnl, PNL_DECIMALS)


def evaluate_signal(signal: Signal, current_price: float) -> Optional[SignalCheckResult]:
    """Apply the exit rules to one price. ``None`` leaves the signal active."""
    if check_stop_loss_hit(current_price, signal):
        status, exit_price = SignalStatus.CLOSED, signal.stop_loss
    else:
        tp_hit = check_take_profit_hit(current_price, signal)
        if tp_hit is None:
            return None
        status, exit_price = tp_hit

    return SignalCheckResult(
        signal_id=signal.id,
        symbol=signal.symbol,
        direction=signal.direction,
        status=status,
        exit_price=exit_price,
        pnl_pct=calculate_pnl_pct(signal.entry_price, exit_price, signal.direction),
    )


async def check_signal(signal: Signal, cache) -> Optional[SignalCheckResult]:
    """Check one signal against the latest cached price; a cache miss is a no-op."""
    current_price = await cache.get_latest_price(signal.symbol)

    if current_price is None:
        logger.debug(f"No cached price for {signal.symbol}, skipping signal {signal.id}")
        return None

    return evaluate_signal(signal, current_price)


def closure_payload(signal: Signal, result: SignalCheckResult) -> dict:
    return {
        'id': result.signal_id,
        'symbol': result.symbol,
        'direction': result.direction.value,
        'confidence': signal.ai_confidence or 0,
        'timestamp': now_ms(),
    }


class SignalLifecycleMonitor:
    """Batch scan over active signals, tolerant to per-signal failures"""

    def __init__(self, repository, cache, broadcaster=None):
        self.repository = repository
        self.cache = cache
        self.broadcaster = broadcaster

    async def _process_signal(self, signal: Signal) -> SignalOutcome:
        try:
            result = await check_signal(signal, self.cache)
        except Exception as e:
            logger.error(f"Error checking signal {signal.id} ({signal.symbol}): {e}")
            return SignalOutcome(signal.id, signal.symbol, ok=False, error=f"check failed: {e}")

        if result is None:
            return SignalOutcome(signal.id, signal.symbol, ok=True)

        try:
            closed = await self.repository.close_signal(result.signal_id, result.status, result.pnl_pct)
        except Exception as e:
            logger.error(f"Error closing signal {signal.id} ({signal.symbol}): {e}")
            return SignalOutcome(signal.id, signal.symbol, ok=False, result=result,
                                 error=f"close failed: {e}")

        if not closed:
            # Already closed or cancelled elsewhere
            logger.debug(f"Signal {signal.id} ({signal.symbol}) no longer active, skipping closure")
            return SignalOutcome(signal.id, signal.symbol, ok=True)

        if self.broadcaster:
            try:
                await self.broadcaster.broadcast_signal(closure_payload(signal, result))
            except Exception as e:
                logger.error(f"Error broadcasting closure of signal {signal.id} ({signal.symbol}): {e}")

        logger.info(f"SIGNAL CLOSED: {result.symbol} {result.direction.value.upper()} | "
                    f"Status: {result.status.value} | Exit: {result.exit_price} | PnL: {result.pnl_pct:+.2f}%")

        return SignalOutcome(signal.id, signal.symbol, ok=True, result=result)

    async def scan_active_signals(self) -> BatchReport:
        start = time.monotonic()
        report = BatchReport()

        active_signals = await self.repository.get_active_signals()
        if not active_signals:
            logger.debug("No active signals to check")
            return report

        logger.debug(f"Checking {len(active_signals)} active signals")

        for signal in active_signals:
            if not signal.is_active:
                continue
            report.outcomes.append(await self._process_signal(signal))

        report.duration_ms = (time.monotonic() - start) * 1000

        if report.closed or report.failed:
            logger.info(f"Signal scan: {report.checked} checked | {report.closed} closed | "
                        f"{report.failed} failed | {report.skipped} unchanged")

        return report
