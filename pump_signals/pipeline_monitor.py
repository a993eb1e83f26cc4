"""
Pipeline Monitor
Job health, pump detections and signal closures for the running pipeline
"""

import logging
from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pump_signals.models import PumpEvent

logger = logging.getLogger(__name__)

# Consecutive failures before a job raises a high severity alert
JOB_FAILURE_ALERT_THRESHOLD = 3


class PipelineMonitor:
    """In-process counters and alerts; no external dependencies"""

    def __init__(self):
        self.session_start = datetime.now()
        self.last_heartbeat = datetime.now()

        self.job_runs = defaultdict(int)
        self.job_errors = defaultdict(int)
        self.consecutive_failures = defaultdict(int)
        self.last_job_duration_ms: Dict[str, float] = {}
        self.last_job_error: Dict[str, str] = {}

        self.pump_detections = deque(maxlen=1000)
        self.signal_closures = deque(maxlen=1000)
        self.system_alerts = deque(maxlen=100)

    def record_job(self, name: str, duration_ms: float, ok: bool, error: Optional[str] = None):
        self.last_heartbeat = datetime.now()
        self.job_runs[name] += 1
        self.last_job_duration_ms[name] = duration_ms

        if ok:
            self.consecutive_failures[name] = 0
            return

        self.job_errors[name] += 1
        self.consecutive_failures[name] += 1
        self.last_job_error[name] = error or 'unknown error'

        if self.consecutive_failures[name] >= JOB_FAILURE_ALERT_THRESHOLD:
            self.create_alert(
                'JOB_FAILING',
                f"{name} failed {self.consecutive_failures[name]} times in a row: {error}",
                'high',
            )

    def record_pump(self, pump: PumpEvent):
        self.pump_detections.append({
            'timestamp': datetime.now(),
            'symbol': pump.symbol,
            'change_pct': pump.change_pct,
            'volume_multiplier': pump.volume_multiplier,
        })

    def record_signal_closure(self, symbol: str, status: str, pnl_pct: float):
        self.signal_closures.append({
            'timestamp': datetime.now(),
            'symbol': symbol,
            'status': status,
            'pnl_pct': pnl_pct,
        })

    def create_alert(self, alert_type: str, message: str, severity: str):
        self.system_alerts.append({
            'timestamp': datetime.now(),
            'type': alert_type,
            'message': message,
            'severity': severity,
        })

        if severity == 'high':
            logger.warning(f"{alert_type}: {message}")
        elif severity == 'medium':
            logger.info(f"{alert_type}: {message}")
        else:
            logger.debug(f"{alert_type}: {message}")

    def get_recent_alerts(self, hours: int = 1) -> List[Dict]:
        cutoff_time = datetime.now() - timedelta(hours=hours)
        return [alert for alert in self.system_alerts if alert['timestamp'] > cutoff_time]

    def get_system_status(self) -> Dict:
        closed_pnls = [c['pnl_pct'] for c in self.signal_closures]
        wins = sum(1 for pnl in closed_pnls if pnl > 0)

        return {
            'session_duration_hours': (datetime.now() - self.session_start).total_seconds() / 3600,
            'job_runs': dict(self.job_runs),
            'job_errors': dict(self.job_errors),
            'last_job_duration_ms': dict(self.last_job_duration_ms),
            'pump_detections_count': len(self.pump_detections),
            'signal_closures_count': len(closed_pnls),
            'signal_win_rate': round(wins / len(closed_pnls) * 100, 2) if closed_pnls else 0.0,
            'system_alerts': len(self.system_alerts),
            'last_heartbeat': self.last_heartbeat.isoformat(),
        }

    def log_summary(self):
        status = self.get_system_status()
        logger.info(f"""
PUMP SIGNALS PIPELINE SUMMARY
{'='*60}
Session Time: {status['session_duration_hours']:.1f} hours
Job Runs: {status['job_runs']}
Job Errors: {status['job_errors']}
Pumps Detected: {status['pump_detections_count']}
Signals Closed: {status['signal_closures_count']} (win rate {status['signal_win_rate']:.1f}%)
System Alerts: {status['system_alerts']}
        """)
