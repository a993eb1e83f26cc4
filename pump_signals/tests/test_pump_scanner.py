"""
Pump scanner: baselines, staleness, storage, broadcast and signal hand-off
"""

import asyncio
import re

from pump_signals.pump_detector import PumpConfig
from pump_signals.pump_scanner import PumpScanner, generate_pump_id
from pump_signals.snapshot_store import SnapshotStore
from pump_signals.tests.fakes import FakeTickerCache, Recorder, make_aggregated

T0 = 1_700_000_000.0


def scanner_for(cache, store=None, **kwargs):
    return PumpScanner(cache, store if store is not None else SnapshotStore(), **kwargs)


def test_cache_miss_leaves_baseline_untouched():
    store = SnapshotStore()
    scanner = scanner_for(FakeTickerCache(tickers=None), store)

    assert asyncio.run(scanner.scan(now=T0)) == []
    assert store.is_empty


def test_first_run_only_stores_baseline():
    store = SnapshotStore()
    cache = FakeTickerCache(tickers=[make_aggregated(price=100, volume=1000)])
    recorder = Recorder()

    assert asyncio.run(scanner_for(cache, store, broadcaster=recorder).scan(now=T0)) == []
    assert len(store) == 1
    assert store.age_seconds(now=T0) == 0
    assert cache.stored_pumps == []
    assert recorder.pumps == []


def test_pump_is_stored_and_broadcast():
    store = SnapshotStore()
    cache = FakeTickerCache(tickers=[make_aggregated('BTCUSDT', 100, 1000), make_aggregated('ETHUSDT', 50, 10)])
    recorder = Recorder()
    scanner = scanner_for(cache, store, broadcaster=recorder)

    asyncio.run(scanner.scan(now=T0))
    cache.tickers = [make_aggregated('BTCUSDT', 110, 2000), make_aggregated('ETHUSDT', 50.5, 10)]
    pumps = asyncio.run(scanner.scan(now=T0 + 10))

    assert [p.symbol for p in pumps] == ['BTCUSDT']
    assert cache.stored_pumps == pumps

    payload = recorder.pumps[0]
    assert re.match(r'^pump-\d+-[a-z0-9]{9}$', payload['id'])
    assert payload['symbol'] == 'BTCUSDT'
    assert round(payload['change'], 6) == 10.0
    assert payload['volume'] == 2000
    assert payload['timestamp'] == pumps[0].detected_at

    # Baseline advanced to the latest snapshot
    assert store.get('BTCUSDT').price == 110
    assert store.age_seconds(now=T0 + 10) == 0


def test_new_symbols_need_a_baseline_first():
    cache = FakeTickerCache(tickers=[make_aggregated('BTCUSDT', 100, 1000)])
    scanner = scanner_for(cache)

    asyncio.run(scanner.scan(now=T0))
    cache.tickers = [make_aggregated('BTCUSDT', 100, 1000), make_aggregated('NEWUSDT', 10, 100)]

    assert asyncio.run(scanner.scan(now=T0 + 10)) == []


def test_stale_baseline_is_replaced_without_detection():
    store = SnapshotStore()
    cache = FakeTickerCache(tickers=[make_aggregated(price=100, volume=1000)])
    scanner = scanner_for(cache, store, pump_config=PumpConfig(window_minutes=15))

    asyncio.run(scanner.scan(now=T0))
    cache.tickers = [make_aggregated(price=150, volume=9000)]

    assert asyncio.run(scanner.scan(now=T0 + 16 * 60)) == []
    assert store.get('BTCUSDT').price == 150
    assert cache.stored_pumps == []


def test_signal_sink_receives_pump_and_ticker():
    cache = FakeTickerCache(tickers=[make_aggregated(price=100, volume=1000)])
    received = []

    async def sink(pump, ticker):
        received.append((pump.symbol, ticker.price))

    scanner = scanner_for(cache, signal_sink=sink)
    asyncio.run(scanner.scan(now=T0))
    cache.tickers = [make_aggregated(price=120, volume=3000)]
    asyncio.run(scanner.scan(now=T0 + 10))

    assert received == [('BTCUSDT', 120)]


def test_failures_on_one_pump_do_not_stop_the_others():
    cache = FakeTickerCache(tickers=[make_aggregated('AAAUSDT', 10, 100), make_aggregated('BBBUSDT', 10, 100)])
    recorder = Recorder()
    sunk = []

    async def sink(pump, ticker):
        sunk.append(pump.symbol)
        raise RuntimeError("database unavailable")

    scanner = scanner_for(cache, broadcaster=recorder, signal_sink=sink)
    asyncio.run(scanner.scan(now=T0))

    cache.fail_symbols.add('AAAUSDT')
    cache.tickers = [make_aggregated('AAAUSDT', 12, 300), make_aggregated('BBBUSDT', 12, 300)]
    pumps = asyncio.run(scanner.scan(now=T0 + 10))

    assert len(pumps) == 2
    assert [p.symbol for p in cache.stored_pumps] == ['BBBUSDT']
    assert [p['symbol'] for p in recorder.pumps] == ['AAAUSDT', 'BBBUSDT']
    assert sunk == ['AAAUSDT', 'BBBUSDT']


def test_clearing_the_store_resets_detection():
    store = SnapshotStore()
    cache = FakeTickerCache(tickers=[make_aggregated(price=100, volume=1000)])
    scanner = scanner_for(cache, store)

    asyncio.run(scanner.scan(now=T0))
    store.clear()
    cache.tickers = [make_aggregated(price=200, volume=5000)]

    assert asyncio.run(scanner.scan(now=T0 + 10)) == []
    assert store.get('BTCUSDT').price == 200


def test_pump_id_format():
    assert re.match(r'^pump-42-[a-z0-9]{9}$', generate_pump_id(42))
    assert generate_pump_id() != generate_pump_id()
