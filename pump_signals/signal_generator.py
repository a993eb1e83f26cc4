"""
Signal Generator
Turns a market snapshot plus a trigger label into a fully parameterized
signal: direction, entry, stop-loss, three take-profits, confidence, tier.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pump_signals import config
from pump_signals.models import (
    AiTrigger, Direction, GeneratedSignal, Tier, TickerData, TriggerType,
)


@dataclass(frozen=True)
class SignalConfig:
    tp1_pct: float
    tp2_pct: float
    tp3_pct: float
    sl_pct: float


DEFAULT_SIGNAL_CONFIG = SignalConfig(
    tp1_pct=config.SIGNAL_CONFIG['default_tp1_pct'],
    tp2_pct=config.SIGNAL_CONFIG['default_tp2_pct'],
    tp3_pct=config.SIGNAL_CONFIG['default_tp3_pct'],
    sl_pct=config.SIGNAL_CONFIG['default_sl_pct'],
)

PRICE_DECIMALS = config.SIGNAL_CONFIG['price_decimals']

# Per-trigger overrides. Missing geometry keys fall back to DEFAULT_SIGNAL_CONFIG.
TRIGGER_CONFIGS: Dict[TriggerType, Dict[str, Any]] = {
    TriggerType.PUMP_DETECTION: {
        'tp1_pct': 3, 'tp2_pct': 5, 'tp3_pct': 8, 'sl_pct': 2.5,
        'base_confidence': 75, 'default_direction': Direction.BUY,
    },
    TriggerType.VOLUME_ANOMALY: {
        'tp1_pct': 2.5, 'tp2_pct': 4.5, 'tp3_pct': 7, 'sl_pct': 2,
        'base_confidence': 70, 'default_direction': Direction.BUY,
    },
    TriggerType.SUPPORT_BOUNCE: {
        'tp1_pct': 2, 'tp2_pct': 4, 'tp3_pct': 6, 'sl_pct': 1.5,
        'base_confidence': 80, 'default_direction': Direction.BUY,
    },
    TriggerType.RESISTANCE_BREAK: {
        'tp1_pct': 3, 'tp2_pct': 5, 'tp3_pct': 8, 'sl_pct': 2,
        'base_confidence': 78, 'default_direction': Direction.BUY,
    },
    TriggerType.MACD_CROSS: {
        'tp1_pct': 2, 'tp2_pct': 3.5, 'tp3_pct': 5, 'sl_pct': 1.8,
        'base_confidence': 72, 'default_direction': Direction.BUY,
    },
    TriggerType.RSI_OVERSOLD: {
        'tp1_pct': 2.5, 'tp2_pct': 4, 'tp3_pct': 6, 'sl_pct': 2,
        'base_confidence': 76, 'default_direction': Direction.BUY,
    },
}

FALLBACK_TRIGGER_CONFIG = {'base_confidence': 50, 'default_direction': Direction.BUY}

ADVANCED_TRIGGERS = frozenset({
    TriggerType.MACD_CROSS,
    TriggerType.RESISTANCE_BREAK,
    TriggerType.SUPPORT_BOUNCE,
})

TriggerLike = Union[TriggerType, str]


def _coerce_trigger(trigger: TriggerLike) -> Union[TriggerType, str]:
    if isinstance(trigger, TriggerType):
        return trigger
    try:
        return TriggerType(trigger)
    except ValueError:
        return trigger


def _trigger_config(trigger: TriggerLike) -> Dict[str, Any]:
    return TRIGGER_CONFIGS.get(_coerce_trigger(trigger), FALLBACK_TRIGGER_CONFIG)


def resolve_signal_config(trigger: TriggerLike) -> SignalConfig:
    """Trigger-specific TP/SL percentages with global defaults for gaps."""
    overrides = _trigger_config(trigger)
    return SignalConfig(
        tp1_pct=overrides.get('tp1_pct', DEFAULT_SIGNAL_CONFIG.tp1_pct),
        tp2_pct=overrides.get('tp2_pct', DEFAULT_SIGNAL_CONFIG.tp2_pct),
        tp3_pct=overrides.get('tp3_pct', DEFAULT_SIGNAL_CONFIG.tp3_pct),
        sl_pct=overrides.get('sl_pct', DEFAULT_SIGNAL_CONFIG.sl_pct),
    )


def calculate_take_profits(entry_price: float, direction: Direction,
                           signal_config: SignalConfig = DEFAULT_SIGNAL_CONFIG) -> Tuple[float, float, float]:
    """Above entry for buys, below entry for sells."""
    sign = 1 if direction == Direction.BUY else -1
    return tuple(
        round(entry_price * (1 + sign * pct / 100), PRICE_DECIMALS)
        for pct in (signal_config.tp1_pct, signal_config.tp2_pct, signal_config.tp3_pct)
    )


def calculate_stop_loss(entry_price: float, direction: Direction,
                        signal_config: SignalConfig = DEFAULT_SIGNAL_CONFIG) -> float:
    """Below entry for buys, above entry for sells."""
    if direction == Direction.BUY:
        return round(entry_price * (1 - signal_config.sl_pct / 100), PRICE_DECIMALS)
    return round(entry_price * (1 + signal_config.sl_pct / 100), PRICE_DECIMALS)


def calculate_confidence(trigger: TriggerLike, ticker: TickerData) -> float:
    """Base trigger confidence adjusted for liquidity and 24h range, clamped to [0, 100]"""
    confidence = _trigger_config(trigger)['base_confidence']

    # Deeper markets are more trustworthy
    if ticker.volume_24h > 10_000_000:
        confidence += 5
    elif ticker.volume_24h > 1_000_000:
        confidence += 2

    if ticker.price > 0:
        volatility = (ticker.high_24h - ticker.low_24h) / ticker.price * 100
        if volatility > 10:
            confidence -= 3
        elif volatility < 3:
            confidence += 3

    return max(0, min(100, confidence))


def determine_direction(trigger: TriggerLike, ticker: TickerData) -> Direction:
    trigger = _coerce_trigger(trigger)

    if trigger == TriggerType.RSI_OVERSOLD:
        return Direction.BUY

    # MACD follows the prevailing 24h momentum
    if trigger == TriggerType.MACD_CROSS:
        return Direction.BUY if ticker.price_change_24h >= 0 else Direction.SELL

    return _trigger_config(trigger)['default_direction']


def determine_min_tier(confidence: float, trigger: TriggerLike) -> Tier:
    if confidence >= 85:
        return Tier.PREMIUM

    if _coerce_trigger(trigger) in ADVANCED_TRIGGERS:
        return Tier.PRO

    if confidence >= 75:
        return Tier.PRO

    return Tier.FREE


def generate_signal(ticker: TickerData, trigger: TriggerLike,
                    trigger_data: Optional[Dict[str, Any]] = None) -> GeneratedSignal:
    """Build a single-trigger signal ready to be persisted."""
    trigger = _coerce_trigger(trigger)
    signal_config = resolve_signal_config(trigger)

    direction = determine_direction(trigger, ticker)
    tp1, tp2, tp3 = calculate_take_profits(ticker.price, direction, signal_config)
    stop_loss = calculate_stop_loss(ticker.price, direction, signal_config)
    confidence = calculate_confidence(trigger, ticker)

    return GeneratedSignal(
        symbol=ticker.symbol,
        exchange=ticker.exchange,
        direction=direction,
        entry_price=ticker.price,
        stop_loss=stop_loss,
        take_profit_1=tp1,
        take_profit_2=tp2,
        take_profit_3=tp3,
        ai_confidence=confidence,
        ai_triggers=[AiTrigger(type=trigger, confidence=confidence, data=trigger_data)],
        min_tier=determine_min_tier(confidence, trigger),
    )


def directions_agree(signals: Sequence[GeneratedSignal]) -> bool:
    return len({s.direction for s in signals}) <= 1


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def generate_compound_signal(ticker: TickerData,
                             triggers: Sequence[Tuple[TriggerLike, Optional[Dict[str, Any]]]],
                             strict: bool = False) -> Optional[GeneratedSignal]:
    """Combine several simultaneous triggers on one snapshot into one signal.

    Geometry (direction, entry, SL, TPs) comes from the first trigger. The
    combined confidence is the mean of the individual confidences plus 3 per
    extra trigger (bonus capped at 10), capped at 100. With ``strict`` the
    triggers must agree on direction, otherwise ``None`` is returned.
    """
    if not triggers:
        return None

    signals = [generate_signal(ticker, trigger, data) for trigger, data in triggers]
    if strict and not directions_agree(signals):
        return None

    base = signals[0]
    first_trigger = base.ai_triggers[0].type

    combined_triggers: List[AiTrigger] = [
        AiTrigger(type=s.ai_triggers[0].type, confidence=s.ai_confidence, data=data)
        for s, (_, data) in zip(signals, triggers)
    ]

    avg_confidence = sum(s.ai_confidence for s in signals) / len(signals)
    multi_trigger_bonus = min(10, (len(signals) - 1) * 3)
    combined_confidence = min(100, avg_confidence + multi_trigger_bonus)

    return GeneratedSignal(
        symbol=base.symbol,
        exchange=base.exchange,
        direction=base.direction,
        entry_price=base.entry_price,
        stop_loss=base.stop_loss,
        take_profit_1=base.take_profit_1,
        take_profit_2=base.take_profit_2,
        take_profit_3=base.take_profit_3,
        ai_confidence=_round_half_up(combined_confidence),
        ai_triggers=combined_triggers,
        min_tier=determine_min_tier(combined_confidence, first_trigger),
    )
