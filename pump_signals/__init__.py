"""
Multi-Exchange Pump Signals Pipeline

Aggregation: consensus 24h tickers across Binance, Bybit, OKX and MEXC
Detection: ≥5% price move with ≥1.5x volume against the previous snapshot
Signals: trigger-based entry, stop-loss and three take-profit levels
Lifecycle: active signals closed on stop-loss (checked first) or take-profit
"""

__version__ = "1.0.0"
__author__ = "Pump Signals"
__description__ = "Multi-exchange pump detection and trading signal pipeline"

from .models import (
    AggregatedTicker, Direction, PumpEvent, Signal, SignalStatus, Ticker, Tier, TriggerType,
)
from .pump_detector import PumpConfig, detect_pump
from .signal_generator import generate_compound_signal, generate_signal
from .signal_monitor import SignalLifecycleMonitor, check_signal
from .snapshot_store import SnapshotStore
from .pump_scanner import PumpScanner
from .ticker_aggregator import PriceAggregator, aggregate_tickers

__all__ = [
    'AggregatedTicker',
    'Direction',
    'PumpEvent',
    'Signal',
    'SignalStatus',
    'Ticker',
    'Tier',
    'TriggerType',
    'PumpConfig',
    'detect_pump',
    'generate_signal',
    'generate_compound_signal',
    'SignalLifecycleMonitor',
    'check_signal',
    'SnapshotStore',
    'PumpScanner',
    'PriceAggregator',
    'aggregate_tickers',
]

SYSTEM_INFO = {
    'name': 'Multi-Exchange Pump Signals Pipeline',
    'version': __version__,
    'exchanges': 'Binance futures, Bybit, OKX, MEXC spot (USDT pairs)',
    'detection': 'Price change ≥ threshold with volume multiplier ≥ limit vs previous snapshot',
    'signals': 'Trigger-specific TP1/TP2/TP3 and stop-loss geometry with confidence tiers',
    'lifecycle': 'Stop-loss evaluated before take-profit; closed signals are immutable',
    'schedule': 'Aggregate every 5s, scan pumps every 10s, check signals every 30s',
}
