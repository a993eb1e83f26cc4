"""
Exchange API Clients
Async 24h ticker adapters for Binance futures, Bybit, OKX and MEXC spot
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from pump_signals import config
from pump_signals.models import ExchangeError, Ticker, now_ms

logger = logging.getLogger(__name__)

QUOTE_ASSET = config.EXCHANGE_CONFIG['quote_asset']


def _float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class BaseExchange:
    """Shared aiohttp session handling for the exchange adapters"""

    id = ''
    name = ''

    def __init__(self, base_url: str = None, timeout_seconds: float = None):
        self.base_url = base_url or config.EXCHANGE_CONFIG['base_urls'][self.id]
        self.timeout_seconds = timeout_seconds or config.EXCHANGE_CONFIG['request_timeout_seconds']
        self.session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        if not self.session:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)
            logger.info(f"{self.name} client connected")

    async def disconnect(self):
        if self.session:
            await self.session.close()
            self.session = None
            logger.info(f"{self.name} client disconnected")

    def validate_symbol(self, symbol: str):
        if not symbol or not isinstance(symbol, str):
            raise ValueError("Invalid symbol: symbol must be a non-empty string")

    async def _get_json(self, endpoint: str, params: Dict = None, context: str = '') -> Any:
        """GET ``endpoint`` and decode JSON. Any transport or HTTP failure becomes ExchangeError."""
        if not self.session:
            await self.connect()

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{self.name} API request: {url} {params or ''}")

        try:
            async with self.session.get(url, params=params) as response:
                if response.status != 200:
                    raise ExchangeError(self.name, f"{response.status} for {context or endpoint}")
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ExchangeError(self.name, f"request timeout for {url}") from e
        except aiohttp.ClientError as e:
            raise ExchangeError(self.name, f"{e} for {context or endpoint}") from e

    async def get_all_tickers(self) -> List[Ticker]:
        raise NotImplementedError

    async def get_ticker(self, symbol: str) -> Ticker:
        raise NotImplementedError


class BinanceExchange(BaseExchange):
    """Binance USDT-margined futures"""

    id = 'binance'
    name = 'Binance'

    @staticmethod
    def map_ticker(data: Dict) -> Ticker:
        return Ticker(
            symbol=data['symbol'],
            price=_float(data.get('lastPrice')),
            volume_24h=_float(data.get('volume')),
            change_24h=_float(data.get('priceChangePercent')),
            high_24h=_float(data.get('highPrice')),
            low_24h=_float(data.get('lowPrice')),
            timestamp=now_ms(),
        )

    async def get_ticker(self, symbol: str) -> Ticker:
        self.validate_symbol(symbol)
        data = await self._get_json('/fapi/v1/ticker/24hr', {'symbol': symbol}, context=symbol)
        return self.map_ticker(data)

    async def get_all_tickers(self) -> List[Ticker]:
        data = await self._get_json('/fapi/v1/ticker/24hr', context='get_all_tickers')
        return [self.map_ticker(t) for t in data if t.get('symbol', '').endswith(QUOTE_ASSET)]


class BybitExchange(BaseExchange):
    """Bybit v5 spot market"""

    id = 'bybit'
    name = 'Bybit'

    @staticmethod
    def map_ticker(data: Dict) -> Ticker:
        # price24hPcnt is a fraction (0.05 == 5%)
        return Ticker(
            symbol=data['symbol'],
            price=_float(data.get('lastPrice')),
            volume_24h=_float(data.get('volume24h')),
            change_24h=_float(data.get('price24hPcnt')) * 100,
            high_24h=_float(data.get('highPrice24h')),
            low_24h=_float(data.get('lowPrice24h')),
            timestamp=now_ms(),
        )

    def _check(self, payload: Dict, context: str) -> List[Dict]:
        if payload.get('retCode') != 0:
            raise ExchangeError(self.name, f"{payload.get('retMsg')} for {context}")
        return (payload.get('result') or {}).get('list') or []

    async def get_ticker(self, symbol: str) -> Ticker:
        self.validate_symbol(symbol)
        payload = await self._get_json('/v5/market/tickers', {'category': 'spot', 'symbol': symbol},
                                       context=symbol)
        tickers = self._check(payload, symbol)
        if not tickers:
            raise ExchangeError(self.name, f"No ticker data for {symbol}")
        return self.map_ticker(tickers[0])

    async def get_all_tickers(self) -> List[Ticker]:
        payload = await self._get_json('/v5/market/tickers', {'category': 'spot'},
                                       context='get_all_tickers')
        return [
            self.map_ticker(t) for t in self._check(payload, 'get_all_tickers')
            if t.get('symbol', '').endswith(QUOTE_ASSET)
        ]


class OkxExchange(BaseExchange):
    """OKX v5 spot market. Instruments are dash-separated (BTC-USDT)."""

    id = 'okx'
    name = 'OKX'

    @staticmethod
    def to_okx_symbol(symbol: str) -> str:
        if symbol.endswith(QUOTE_ASSET) and '-' not in symbol:
            return f"{symbol[:-len(QUOTE_ASSET)]}-{QUOTE_ASSET}"
        return symbol

    @staticmethod
    def from_okx_symbol(inst_id: str) -> str:
        return inst_id.replace('-', '')

    @classmethod
    def map_ticker(cls, data: Dict) -> Ticker:
        last_price = _float(data.get('last'))
        open_24h = _float(data.get('open24h'))
        change_pct = (last_price - open_24h) / open_24h * 100 if open_24h != 0 else 0.0

        return Ticker(
            symbol=cls.from_okx_symbol(data['instId']),
            price=last_price,
            volume_24h=_float(data.get('vol24h')),
            change_24h=change_pct,
            high_24h=_float(data.get('high24h')),
            low_24h=_float(data.get('low24h')),
            timestamp=now_ms(),
        )

    def _check(self, payload: Dict, context: str) -> List[Dict]:
        if str(payload.get('code')) != '0':
            raise ExchangeError(self.name, f"{payload.get('msg')} for {context}")
        return payload.get('data') or []

    async def get_ticker(self, symbol: str) -> Ticker:
        self.validate_symbol(symbol)
        payload = await self._get_json('/api/v5/market/ticker', {'instId': self.to_okx_symbol(symbol)},
                                       context=symbol)
        tickers = self._check(payload, symbol)
        if not tickers:
            raise ExchangeError(self.name, f"No ticker data for {symbol}")
        return self.map_ticker(tickers[0])

    async def get_all_tickers(self) -> List[Ticker]:
        payload = await self._get_json('/api/v5/market/tickers', {'instType': 'SPOT'},
                                       context='get_all_tickers')
        return [
            self.map_ticker(t) for t in self._check(payload, 'get_all_tickers')
            if t.get('instId', '').endswith(f"-{QUOTE_ASSET}")
        ]


class MexcExchange(BaseExchange):
    """MEXC v3 spot market (Binance-compatible payloads)"""

    id = 'mexc'
    name = 'MEXC'

    map_ticker = staticmethod(BinanceExchange.map_ticker)

    async def get_ticker(self, symbol: str) -> Ticker:
        self.validate_symbol(symbol)
        data = await self._get_json('/api/v3/ticker/24hr', {'symbol': symbol}, context=symbol)
        return self.map_ticker(data)

    async def get_all_tickers(self) -> List[Ticker]:
        data = await self._get_json('/api/v3/ticker/24hr', context='get_all_tickers')
        return [self.map_ticker(t) for t in data if t.get('symbol', '').endswith(QUOTE_ASSET)]


EXCHANGE_CLASSES = {
    cls.id: cls for cls in (BinanceExchange, BybitExchange, OkxExchange, MexcExchange)
}


def create_exchanges(names: Optional[Sequence[str]] = None) -> List[BaseExchange]:
    """Instantiate adapters by id; unknown names are logged and skipped."""
    exchanges = []
    for name in names if names is not None else config.EXCHANGE_CONFIG['enabled']:
        exchange_cls = EXCHANGE_CLASSES.get(name.lower())
        if exchange_cls is None:
            logger.warning(f"Unknown exchange '{name}' - skipping")
            continue
        exchanges.append(exchange_cls())
    return exchanges


async def close_exchanges(exchanges: Sequence[BaseExchange]):
    await asyncio.gather(*(ex.disconnect() for ex in exchanges), return_exceptions=True)
