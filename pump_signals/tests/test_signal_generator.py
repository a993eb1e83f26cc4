"""
Signal generation: geometry, confidence, tiers and compound triggers
"""

import pytest

from pump_signals.models import Direction, Tier, TickerData, TriggerType
from pump_signals.signal_generator import (
    DEFAULT_SIGNAL_CONFIG, calculate_confidence, calculate_stop_loss, calculate_take_profits,
    determine_direction, determine_min_tier, directions_agree, generate_compound_signal,
    generate_signal, resolve_signal_config,
)


def ticker(price=100.0, volume=5_000_000, change=2.0, high=104.0, low=98.0, symbol='BTCUSDT'):
    return TickerData(
        symbol=symbol,
        exchange='aggregated',
        price=price,
        volume_24h=volume,
        price_change_24h=change,
        high_24h=high,
        low_24h=low,
    )


def test_pump_signal_geometry_and_tier():
    signal = generate_signal(ticker(), TriggerType.PUMP_DETECTION, {'change_pct': 7.5})

    assert signal.direction == Direction.BUY
    assert signal.entry_price == 100.0
    assert signal.take_profit_1 == pytest.approx(103)
    assert signal.take_profit_2 == pytest.approx(105)
    assert signal.take_profit_3 == pytest.approx(108)
    assert signal.stop_loss == pytest.approx(97.5)
    # 75 base + 2 for > 1M volume, 6% range leaves it unchanged
    assert signal.ai_confidence == 77
    assert signal.min_tier == Tier.PRO
    assert signal.ai_triggers[0].type == TriggerType.PUMP_DETECTION
    assert signal.ai_triggers[0].data == {'change_pct': 7.5}


def test_buy_levels_are_ordered():
    signal = generate_signal(ticker(price=0.00012345), TriggerType.VOLUME_ANOMALY)

    assert signal.stop_loss < signal.entry_price < signal.take_profit_1 < signal.take_profit_2 < signal.take_profit_3


def test_macd_follows_negative_momentum_into_sell():
    signal = generate_signal(ticker(change=-3.0), TriggerType.MACD_CROSS)

    assert signal.direction == Direction.SELL
    assert signal.take_profit_1 == pytest.approx(98)
    assert signal.take_profit_2 == pytest.approx(96.5)
    assert signal.take_profit_3 == pytest.approx(95)
    assert signal.stop_loss == pytest.approx(101.8)
    assert signal.take_profit_3 < signal.take_profit_2 < signal.take_profit_1 < signal.entry_price < signal.stop_loss
    assert signal.ai_confidence == 74
    assert signal.min_tier == Tier.PRO


def test_determine_direction():
    assert determine_direction(TriggerType.RSI_OVERSOLD, ticker(change=-10)) == Direction.BUY
    assert determine_direction(TriggerType.MACD_CROSS, ticker(change=0)) == Direction.BUY
    assert determine_direction('macd_cross', ticker(change=-0.1)) == Direction.SELL
    assert determine_direction(TriggerType.SUPPORT_BOUNCE, ticker(change=-5)) == Direction.BUY


def test_confidence_adjustments():
    # Deep, calm market: 80 + 5 + 3
    assert calculate_confidence(TriggerType.SUPPORT_BOUNCE, ticker(volume=20_000_000, high=101, low=99)) == 88
    # Thin, volatile market: 70 - 3
    assert calculate_confidence(TriggerType.VOLUME_ANOMALY, ticker(volume=500_000, high=120, low=95)) == 67


def test_confidence_zero_price_skips_volatility():
    assert calculate_confidence(TriggerType.PUMP_DETECTION, ticker(price=0, volume=0, high=10, low=0)) == 75


def test_premium_tier_from_high_confidence():
    signal = generate_signal(ticker(volume=20_000_000, high=101, low=99), TriggerType.SUPPORT_BOUNCE)

    assert signal.ai_confidence == 88
    assert signal.min_tier == Tier.PREMIUM


def test_determine_min_tier():
    assert determine_min_tier(90, TriggerType.VOLUME_ANOMALY) == Tier.PREMIUM
    assert determine_min_tier(60, TriggerType.RESISTANCE_BREAK) == Tier.PRO
    assert determine_min_tier(75, TriggerType.VOLUME_ANOMALY) == Tier.PRO
    assert determine_min_tier(74, TriggerType.RSI_OVERSOLD) == Tier.FREE


def test_unknown_trigger_falls_back_to_defaults():
    signal = generate_signal(ticker(volume=0, high=120, low=80), 'mystery_pattern')

    assert signal.direction == Direction.BUY
    assert signal.ai_confidence == 47
    assert signal.min_tier == Tier.FREE
    assert signal.take_profit_1 == pytest.approx(102)
    assert signal.take_profit_3 == pytest.approx(106)
    assert signal.stop_loss == pytest.approx(98)
    assert signal.ai_triggers[0].to_dict()['type'] == 'mystery_pattern'


def test_resolve_signal_config_uses_trigger_overrides():
    assert resolve_signal_config(TriggerType.MACD_CROSS).tp2_pct == 3.5
    assert resolve_signal_config('unknown') == DEFAULT_SIGNAL_CONFIG


def test_take_profit_and_stop_loss_helpers():
    tps = calculate_take_profits(50000, Direction.BUY)
    assert tps == pytest.approx((51000, 52000, 53000))
    assert calculate_stop_loss(50000, Direction.SELL) == pytest.approx(51000)


def test_compound_signal_combines_confidence():
    triggers = [(TriggerType.SUPPORT_BOUNCE, None), (TriggerType.RSI_OVERSOLD, {'rsi': 24})]

    signal = generate_compound_signal(ticker(), triggers)

    # mean(82, 78) + 3 for the extra trigger
    assert signal.ai_confidence == 83
    assert signal.ai_confidence >= generate_signal(ticker(), TriggerType.SUPPORT_BOUNCE).ai_confidence
    assert signal.min_tier == Tier.PRO
    assert [t.type for t in signal.ai_triggers] == [TriggerType.SUPPORT_BOUNCE, TriggerType.RSI_OVERSOLD]
    assert [t.confidence for t in signal.ai_triggers] == [82, 78]
    assert signal.ai_triggers[1].data == {'rsi': 24}
    # Geometry from the first trigger
    assert signal.stop_loss == pytest.approx(98.5)
    assert signal.take_profit_1 == pytest.approx(102)


def test_compound_confidence_rounds_half_up():
    triggers = [(TriggerType.PUMP_DETECTION, None), (TriggerType.MACD_CROSS, None)]

    # mean(77, 74) + 3 = 78.5
    assert generate_compound_signal(ticker(), triggers).ai_confidence == 79


def test_compound_bonus_is_capped():
    triggers = [(t, None) for t in (
        TriggerType.PUMP_DETECTION, TriggerType.VOLUME_ANOMALY, TriggerType.RSI_OVERSOLD,
        TriggerType.RESISTANCE_BREAK, TriggerType.SUPPORT_BOUNCE,
    )]

    signal = generate_compound_signal(ticker(), triggers)

    # mean(77, 72, 78, 80, 82) = 77.8, bonus capped at 10
    assert signal.ai_confidence == 88
    assert signal.min_tier == Tier.PREMIUM


def test_compound_empty_triggers():
    assert generate_compound_signal(ticker(), []) is None


def test_compound_direction_disagreement():
    triggers = [(TriggerType.PUMP_DETECTION, None), (TriggerType.MACD_CROSS, None)]
    falling = ticker(change=-4.0)

    lenient = generate_compound_signal(falling, triggers)
    assert lenient.direction == Direction.BUY
    assert generate_compound_signal(falling, triggers, strict=True) is None

    signals = [generate_signal(falling, t) for t, _ in triggers]
    assert not directions_agree(signals)


def test_confidence_bounded_for_flat_market():
    flat = ticker(price=50, volume=50_000_000, high=50, low=50)

    for trigger in list(TriggerType) + ['unknown']:
        assert 0 <= calculate_confidence(trigger, flat) <= 100
