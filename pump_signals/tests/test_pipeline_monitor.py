from pump_signals.pipeline_monitor import JOB_FAILURE_ALERT_THRESHOLD, PipelineMonitor
from pump_signals.start import validate_configuration


def test_success_resets_failure_streak():
    monitor = PipelineMonitor()

    for _ in range(JOB_FAILURE_ALERT_THRESHOLD - 1):
        monitor.record_job('pump_scanner', 12.0, ok=False, error='timeout')
    monitor.record_job('pump_scanner', 8.0, ok=True)
    monitor.record_job('pump_scanner', 9.0, ok=False, error='timeout')

    assert monitor.consecutive_failures['pump_scanner'] == 1
    assert len(monitor.system_alerts) == 0
    assert monitor.get_system_status()['job_runs'] == {'pump_scanner': JOB_FAILURE_ALERT_THRESHOLD + 1}


def test_signal_closure_win_rate():
    monitor = PipelineMonitor()
    monitor.record_signal_closure('BTCUSDT', 'tp1_hit', 3.0)
    monitor.record_signal_closure('ETHUSDT', 'closed', -2.5)

    status = monitor.get_system_status()

    assert status['signal_closures_count'] == 2
    assert status['signal_win_rate'] == 50.0


def test_recent_alerts():
    monitor = PipelineMonitor()
    monitor.create_alert('JOB_FAILING', 'price_aggregator failing', 'high')

    assert [a['type'] for a in monitor.get_recent_alerts()] == ['JOB_FAILING']


def test_default_configuration_is_valid():
    assert validate_configuration()
