"""
Data structures for the pump signals pipeline.
Tickers, pump events and trading signals shared by every component.
"""

import math
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def json_safe(value: Any) -> Any:
    """Replace non-finite floats with None so payloads stay strict JSON (JSONB, Redis)."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


class PipelineError(Exception):
    """Base error for the pump signals pipeline."""


class ExchangeError(PipelineError):
    """Exchange API request failed or returned an error payload."""

    def __init__(self, exchange: str, message: str):
        super().__init__(f"{exchange} API error: {message}")
        self.exchange = exchange


class RepositoryError(PipelineError):
    """Signal persistence failed."""


class TriggerType(str, Enum):
    PUMP_DETECTION = 'pump_detection'
    VOLUME_ANOMALY = 'volume_anomaly'
    SUPPORT_BOUNCE = 'support_bounce'
    RESISTANCE_BREAK = 'resistance_break'
    MACD_CROSS = 'macd_cross'
    RSI_OVERSOLD = 'rsi_oversold'


class Direction(str, Enum):
    BUY = 'buy'
    SELL = 'sell'


class Tier(str, Enum):
    FREE = 'free'
    PRO = 'pro'
    PREMIUM = 'premium'
    VIP = 'vip'


class SignalStatus(str, Enum):
    ACTIVE = 'active'
    TP1_HIT = 'tp1_hit'
    TP2_HIT = 'tp2_hit'
    TP3_HIT = 'tp3_hit'
    CLOSED = 'closed'
    CANCELLED = 'cancelled'


TERMINAL_STATUSES = frozenset(s for s in SignalStatus if s is not SignalStatus.ACTIVE)


@dataclass(frozen=True)
class Ticker:
    """Point-in-time 24h summary of one symbol on one exchange."""
    symbol: str
    price: float
    volume_24h: float
    change_24h: float
    high_24h: float
    low_24h: float
    timestamp: int


@dataclass
class AggregatedTicker:
    """Consensus ticker merged across every exchange reporting the symbol."""
    symbol: str
    price: float
    volume_24h: float
    change_24h: float
    high_24h: float
    low_24h: float
    timestamp: int
    exchanges: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AggregatedTicker':
        return cls(
            symbol=data['symbol'],
            price=float(data['price']),
            volume_24h=float(data['volume_24h']),
            change_24h=float(data['change_24h']),
            high_24h=float(data['high_24h']),
            low_24h=float(data['low_24h']),
            timestamp=int(data['timestamp']),
            exchanges=list(data.get('exchanges', [])),
        )


@dataclass(frozen=True)
class PumpEvent:
    symbol: str
    exchanges: List[str]
    start_price: float
    current_price: float
    change_pct: float
    volume_24h: float
    volume_multiplier: float
    detected_at: int

    def to_dict(self) -> Dict[str, Any]:
        # An infinite volume multiplier (zero baseline volume) is stored as null
        return json_safe(asdict(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PumpEvent':
        volume_multiplier = data.get('volume_multiplier')
        return cls(
            symbol=data['symbol'],
            exchanges=list(data.get('exchanges', [])),
            start_price=float(data['start_price']),
            current_price=float(data['current_price']),
            change_pct=float(data['change_pct']),
            volume_24h=float(data['volume_24h']),
            volume_multiplier=math.inf if volume_multiplier is None else float(volume_multiplier),
            detected_at=int(data['detected_at']),
        )


@dataclass(frozen=True)
class TickerData:
    """Market snapshot handed to the signal generator."""
    symbol: str
    exchange: str
    price: float
    volume_24h: float
    price_change_24h: float
    high_24h: float
    low_24h: float

    @classmethod
    def from_aggregated(cls, ticker: AggregatedTicker, exchange: str) -> 'TickerData':
        return cls(
            symbol=ticker.symbol,
            exchange=exchange,
            price=ticker.price,
            volume_24h=ticker.volume_24h,
            price_change_24h=ticker.change_24h,
            high_24h=ticker.high_24h,
            low_24h=ticker.low_24h,
        )


@dataclass(frozen=True)
class AiTrigger:
    type: TriggerType
    confidence: float
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {'type': getattr(self.type, 'value', self.type), 'confidence': self.confidence}
        if self.data is not None:
            payload['data'] = json_safe(self.data)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AiTrigger':
        trigger_type = data['type']
        try:
            trigger_type = TriggerType(trigger_type)
        except ValueError:
            pass
        return cls(type=trigger_type, confidence=data.get('confidence', 0), data=data.get('data'))


@dataclass(frozen=True)
class GeneratedSignal:
    """Fully parameterized signal before it is persisted."""
    symbol: str
    exchange: str
    direction: Direction
    entry_price: float
    stop_loss: float
    take_profit_1: float
    take_profit_2: float
    take_profit_3: float
    ai_confidence: int
    ai_triggers: List[AiTrigger]
    min_tier: Tier


@dataclass
class Signal:
    """Persisted signal. Created active, closed at most once."""
    id: str
    symbol: str
    exchange: str
    direction: Direction
    entry_price: float
    stop_loss: float
    take_profit_1: Optional[float]
    take_profit_2: Optional[float]
    take_profit_3: Optional[float]
    ai_confidence: Optional[int]
    ai_triggers: List[AiTrigger]
    min_tier: Tier
    status: SignalStatus = SignalStatus.ACTIVE
    result_pnl: Optional[float] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status is SignalStatus.ACTIVE

    @classmethod
    def from_generated(cls, signal_id: str, generated: GeneratedSignal,
                       created_at: Optional[datetime] = None) -> 'Signal':
        return cls(
            id=signal_id,
            symbol=generated.symbol,
            exchange=generated.exchange,
            direction=generated.direction,
            entry_price=generated.entry_price,
            stop_loss=generated.stop_loss,
            take_profit_1=generated.take_profit_1,
            take_profit_2=generated.take_profit_2,
            take_profit_3=generated.take_profit_3,
            ai_confidence=generated.ai_confidence,
            ai_triggers=list(generated.ai_triggers),
            min_tier=generated.min_tier,
            created_at=created_at,
        )
