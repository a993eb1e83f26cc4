"""
Pump Detection
Compares a consensus ticker with its previous snapshot and flags sharp
upward moves backed by a volume surge. Dumps are never flagged.
"""

import math
from dataclasses import dataclass
from typing import Optional

from pump_signals import config
from pump_signals.models import AggregatedTicker, PumpEvent, now_ms


@dataclass(frozen=True)
class PumpConfig:
    threshold_pct: float = 5.0       # minimum % price increase
    window_minutes: float = 15.0     # expected baseline age, enforced by the scanner
    volume_multiplier: float = 1.5   # minimum volume vs previous snapshot


DEFAULT_PUMP_CONFIG = PumpConfig(**config.PUMP_CONFIG)


def is_pumping(change_pct: float, volume_mult: float, pump_config: PumpConfig) -> bool:
    """Both gates are inclusive; negative moves never qualify."""
    if change_pct < 0:
        return False

    return change_pct >= pump_config.threshold_pct and volume_mult >= pump_config.volume_multiplier


def detect_pump(current: AggregatedTicker,
                previous: Optional[AggregatedTicker],
                pump_config: PumpConfig = DEFAULT_PUMP_CONFIG) -> Optional[PumpEvent]:
    """Return a PumpEvent when ``current`` pumped relative to ``previous``.

    No baseline or a zero baseline price yields ``None``. A zero baseline
    volume counts as an infinite volume multiplier.
    """
    if previous is None or previous.price == 0:
        return None

    change_pct = (current.price - previous.price) / previous.price * 100
    volume_mult = math.inf if previous.volume_24h == 0 else current.volume_24h / previous.volume_24h

    if not is_pumping(change_pct, volume_mult, pump_config):
        return None

    return PumpEvent(
        symbol=current.symbol,
        exchanges=list(current.exchanges),
        start_price=previous.price,
        current_price=current.price,
        change_pct=change_pct,
        volume_24h=current.volume_24h,
        volume_multiplier=volume_mult,
        detected_at=now_ms(),
    )
