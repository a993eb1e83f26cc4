"""
Snapshot store for pump scanning.
Holds the previous consensus ticker map between scanner ticks. One instance
per pipeline, owned by the orchestrator and handed to the scanner.
"""

import time
from typing import Dict, Optional

from pump_signals.models import AggregatedTicker


class SnapshotStore:

    def __init__(self):
        self._snapshot: Dict[str, AggregatedTicker] = {}
        self._taken_at: Optional[float] = None

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def is_empty(self) -> bool:
        return not self._snapshot

    def get(self, symbol: str) -> Optional[AggregatedTicker]:
        return self._snapshot.get(symbol)

    def replace(self, snapshot: Dict[str, AggregatedTicker], taken_at: Optional[float] = None):
        """Swap in a new baseline. ``taken_at`` is epoch seconds."""
        self._snapshot = dict(snapshot)
        self._taken_at = time.time() if taken_at is None else taken_at

    def age_seconds(self, now: Optional[float] = None) -> Optional[float]:
        if self._taken_at is None:
            return None
        now = time.time() if now is None else now
        return now - self._taken_at

    def clear(self):
        self._snapshot = {}
        self._taken_at = None
