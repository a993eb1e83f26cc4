"""
Pump Signals Pipeline Configuration
Exchange aggregation, pump detection and signal lifecycle settings
All values can be overridden through environment variables / .env
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Infrastructure
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

DATABASE_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': int(os.getenv('DB_PORT', 5432)),
    'database': os.getenv('DB_NAME', 'pump_signals'),
    'user': os.getenv('DB_USER', 'pump_signals'),
    'password': os.getenv('DB_PASSWORD', ''),
    'sslmode': os.getenv('DB_SSL_MODE', 'prefer'),
    'min_connections': int(os.getenv('DB_POOL_MIN', 1)),
    'max_connections': int(os.getenv('DB_POOL_MAX', 10)),
}

# Exchange Adapters
EXCHANGE_CONFIG = {
    'enabled': [
        name.strip().lower()
        for name in os.getenv('EXCHANGES', 'binance,bybit,okx,mexc').split(',')
        if name.strip()
    ],
    'request_timeout_seconds': float(os.getenv('EXCHANGE_TIMEOUT_SECONDS', 15)),
    'quote_asset': 'USDT',
    'base_urls': {
        'binance': os.getenv('BINANCE_BASE_URL', 'https://fapi.binance.com'),
        'bybit': os.getenv('BYBIT_BASE_URL', 'https://api.bybit.com'),
        'okx': os.getenv('OKX_BASE_URL', 'https://www.okx.com'),
        'mexc': os.getenv('MEXC_BASE_URL', 'https://api.mexc.com'),
    },
}

# Pump Detection
PUMP_CONFIG = {
    'threshold_pct': float(os.getenv('PUMP_THRESHOLD_PCT', 5)),         # 5% price increase
    'window_minutes': float(os.getenv('PUMP_WINDOW_MINUTES', 15)),      # expected baseline age
    'volume_multiplier': float(os.getenv('PUMP_VOLUME_MULTIPLIER', 1.5)),  # 1.5x volume vs baseline
}

# Signal Generation
SIGNAL_CONFIG = {
    'default_tp1_pct': 2.0,
    'default_tp2_pct': 4.0,
    'default_tp3_pct': 6.0,
    'default_sl_pct': 2.0,
    'price_decimals': 8,            # keeps sub-cent assets meaningful
    'pnl_decimals': 2,
    'auto_generate_from_pumps': int(os.getenv('AUTO_GENERATE_SIGNALS', '1')),  # 1 = on, 0 = off
    'aggregate_exchange_label': os.getenv('SIGNAL_EXCHANGE_LABEL', 'aggregated'),
}

# Cache (Redis keys and TTLs in seconds)
CACHE_CONFIG = {
    'tickers_hash': 'market:tickers',
    'ticker_prefix': 'market:ticker:',
    'ticker_ttl': 30,
    'pump_prefix': 'pumps:active:',
    'pump_ttl': 900,                # pumps expire after 15 minutes
}

# Job Scheduling
SCHEDULE_CONFIG = {
    'price_aggregator_seconds': int(os.getenv('PRICE_AGGREGATOR_SECONDS', 5)),
    'pump_scanner_seconds': int(os.getenv('PUMP_SCANNER_SECONDS', 10)),
    'signal_checker_seconds': int(os.getenv('SIGNAL_CHECKER_SECONDS', 30)),
}

# Broadcast (Redis pub/sub channels consumed by the WebSocket fan-out)
BROADCAST_CONFIG = {
    'publish_to_redis': int(os.getenv('BROADCAST_TO_REDIS', '1')),
    'channels': {
        'tickers': 'ws:tickers',
        'pumps': 'ws:pumps',
        'signals': 'ws:signals',
    },
}

# Logging Configuration
LOGGING_CONFIG = {
    'level': os.getenv('LOG_LEVEL', 'INFO').upper(),
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'file': os.getenv('LOG_FILE', 'pump_signals.log'),
    'max_size_mb': 50,
    'backup_count': 5,
}
