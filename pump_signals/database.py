"""
PostgreSQL signal persistence.
Connection pooling plus the signal repository used by the generator
(create) and the lifecycle monitor (read active, close).
"""

import asyncio
import logging
import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional

import psycopg2
import psycopg2.pool
from psycopg2.extras import Json, RealDictCursor

from pump_signals import config
from pump_signals.models import (
    AiTrigger, Direction, GeneratedSignal, RepositoryError, Signal, SignalStatus, Tier,
)

logger = logging.getLogger(__name__)

SIGNALS_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS signals (
    id UUID PRIMARY KEY,
    symbol VARCHAR(20) NOT NULL,
    exchange VARCHAR(20) NOT NULL,
    direction VARCHAR(10) NOT NULL CHECK (direction IN ('buy', 'sell')),
    entry_price DECIMAL(20,8) NOT NULL,
    stop_loss DECIMAL(20,8) NOT NULL,
    take_profit_1 DECIMAL(20,8),
    take_profit_2 DECIMAL(20,8),
    take_profit_3 DECIMAL(20,8),
    ai_confidence INTEGER CHECK (ai_confidence >= 0 AND ai_confidence <= 100),
    ai_triggers JSONB,
    status VARCHAR(20) DEFAULT 'active'
        CHECK (status IN ('active', 'tp1_hit', 'tp2_hit', 'tp3_hit', 'closed', 'cancelled')),
    result_pnl DECIMAL(10,2),
    closed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    min_tier VARCHAR(20) DEFAULT 'free' CHECK (min_tier IN ('free', 'pro', 'premium', 'vip'))
);
CREATE INDEX IF NOT EXISTS idx_signals_status_created ON signals(status, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_signals_symbol ON signals(symbol);
"""

CLOSED_STATUSES = ('closed', 'tp1_hit', 'tp2_hit', 'tp3_hit')


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value) if isinstance(value, Decimal) else value


def row_to_signal(row: Dict[str, Any]) -> Signal:
    return Signal(
        id=str(row['id']),
        symbol=row['symbol'],
        exchange=row['exchange'],
        direction=Direction(row['direction']),
        entry_price=_to_float(row['entry_price']),
        stop_loss=_to_float(row['stop_loss']),
        take_profit_1=_to_float(row.get('take_profit_1')),
        take_profit_2=_to_float(row.get('take_profit_2')),
        take_profit_3=_to_float(row.get('take_profit_3')),
        ai_confidence=row.get('ai_confidence'),
        ai_triggers=[AiTrigger.from_dict(t) for t in (row.get('ai_triggers') or [])],
        min_tier=Tier(row.get('min_tier') or 'free'),
        status=SignalStatus(row['status']),
        result_pnl=_to_float(row.get('result_pnl')),
        closed_at=row.get('closed_at'),
        created_at=row.get('created_at'),
    )


class DatabaseConnectionManager:
    """Threaded psycopg2 pool with commit/rollback handling."""

    def __init__(self, db_config: Dict = None):
        self.config = dict(db_config or config.DATABASE_CONFIG)
        self.pool = None

    def connect(self):
        if self.pool:
            return
        try:
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=self.config['min_connections'],
                maxconn=self.config['max_connections'],
                host=self.config['host'],
                port=self.config['port'],
                database=self.config['database'],
                user=self.config['user'],
                password=self.config['password'],
                sslmode=self.config['sslmode'],
                cursor_factory=RealDictCursor,
            )
            logger.info(f"Database connection pool initialized: "
                        f"{self.config['min_connections']}-{self.config['max_connections']} connections")
        except psycopg2.Error as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise RepositoryError(str(e)) from e

    def close(self):
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.info("Database connection pool closed")

    @contextmanager
    def get_cursor(self, commit: bool = True):
        if not self.pool:
            self.connect()

        conn = self.pool.getconn()
        cursor = conn.cursor()
        try:
            yield cursor
            if commit:
                conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Database operation failed: {e}")
            raise RepositoryError(str(e)) from e
        finally:
            cursor.close()
            self.pool.putconn(conn)

    def execute_query(self, query: str, params: tuple = None) -> List[Dict[str, Any]]:
        with self.get_cursor(commit=False) as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def execute_single(self, query: str, params: tuple = None) -> Optional[Dict[str, Any]]:
        with self.get_cursor(commit=False) as cursor:
            cursor.execute(query, params)
            return cursor.fetchone()

    def execute_update(self, query: str, params: tuple = None) -> int:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return cursor.rowcount


class SignalRepository:
    """Async facade over the blocking psycopg2 calls (run in a worker thread)."""

    def __init__(self, db: DatabaseConnectionManager = None):
        self.db = db or DatabaseConnectionManager()

    def ensure_schema(self):
        with self.db.get_cursor() as cursor:
            cursor.execute(SIGNALS_TABLE_DDL)

    # Sync implementations

    def _create_signal(self, generated: GeneratedSignal) -> Signal:
        signal_id = str(uuid.uuid4())
        with self.db.get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO signals
                (id, symbol, exchange, direction, entry_price, stop_loss,
                 take_profit_1, take_profit_2, take_profit_3,
                 ai_confidence, ai_triggers, status, min_tier)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 'active', %s)
                RETURNING *;
                """,
                (
                    signal_id, generated.symbol, generated.exchange, generated.direction.value,
                    generated.entry_price, generated.stop_loss,
                    generated.take_profit_1, generated.take_profit_2, generated.take_profit_3,
                    generated.ai_confidence, Json([t.to_dict() for t in generated.ai_triggers]),
                    generated.min_tier.value,
                ),
            )
            return row_to_signal(cursor.fetchone())

    def _get_signal_by_id(self, signal_id: str) -> Optional[Signal]:
        row = self.db.execute_single("SELECT * FROM signals WHERE id = %s", (signal_id,))
        return row_to_signal(row) if row else None

    def _get_active_signals(self) -> List[Signal]:
        rows = self.db.execute_query(
            "SELECT * FROM signals WHERE status = 'active' ORDER BY created_at DESC"
        )
        return [row_to_signal(row) for row in rows]

    def _close_signal(self, signal_id: str, status: SignalStatus, result_pnl: float) -> bool:
        # Only active rows move; a closed signal is immutable
        updated = self.db.execute_update(
            """
            UPDATE signals
               SET status = %s, result_pnl = %s, closed_at = NOW()
             WHERE id = %s AND status = 'active'
            """,
            (status.value, result_pnl, signal_id),
        )
        return updated > 0

    def _cancel_signal(self, signal_id: str) -> bool:
        updated = self.db.execute_update(
            """
            UPDATE signals
               SET status = 'cancelled', closed_at = NOW()
             WHERE id = %s AND status = 'active'
            """,
            (signal_id,),
        )
        return updated > 0

    def _get_signal_stats(self) -> Dict[str, Any]:
        counts = self.db.execute_single(
            """
            SELECT COUNT(*) AS total,
                   COUNT(*) FILTER (WHERE status = 'active') AS active,
                   COUNT(*) FILTER (WHERE status IN %s) AS closed
              FROM signals
            """,
            (CLOSED_STATUSES,),
        ) or {}
        pnl = self.db.execute_single(
            """
            SELECT AVG(result_pnl) AS avg_pnl,
                   SUM(result_pnl) AS total_pnl,
                   COUNT(*) FILTER (WHERE result_pnl > 0) AS win_count,
                   COUNT(*) FILTER (WHERE result_pnl IS NOT NULL) AS total_with_pnl
              FROM signals
             WHERE status IN %s
            """,
            (CLOSED_STATUSES,),
        ) or {}

        total_with_pnl = int(pnl.get('total_with_pnl') or 0)
        win_count = int(pnl.get('win_count') or 0)
        win_rate = win_count / total_with_pnl * 100 if total_with_pnl > 0 else 0.0

        return {
            'total_signals': int(counts.get('total') or 0),
            'active_signals': int(counts.get('active') or 0),
            'closed_signals': int(counts.get('closed') or 0),
            'win_rate': round(win_rate, 2),
            'average_pnl': _to_float(pnl.get('avg_pnl')) or 0.0,
            'total_pnl': _to_float(pnl.get('total_pnl')) or 0.0,
        }

    # Async API used by the pipeline

    async def create_signal(self, generated: GeneratedSignal) -> Signal:
        return await asyncio.to_thread(self._create_signal, generated)

    async def get_signal_by_id(self, signal_id: str) -> Optional[Signal]:
        return await asyncio.to_thread(self._get_signal_by_id, signal_id)

    async def get_active_signals(self) -> List[Signal]:
        return await asyncio.to_thread(self._get_active_signals)

    async def close_signal(self, signal_id: str, status: SignalStatus, result_pnl: float) -> bool:
        return await asyncio.to_thread(self._close_signal, signal_id, status, result_pnl)

    async def cancel_signal(self, signal_id: str) -> bool:
        return await asyncio.to_thread(self._cancel_signal, signal_id)

    async def get_signal_stats(self) -> Dict[str, Any]:
        return await asyncio.to_thread(self._get_signal_stats)
