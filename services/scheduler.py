"""
Background Job Scheduler - Runs periodic maintenance tasks.

Jobs registered by init_scheduler:
- sla_recalculation: refresh inbox SLA status for every account
- cleanup_notifications: delete old read notifications
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None


def _now() -> datetime:
    from database.models import utcnow
    return utcnow()


class BackgroundScheduler:
    """Thread-based runner for periodic jobs."""

    def __init__(self, tick_seconds: int = 10):
        self.jobs: Dict[str, Dict] = {}
        self.running = False
        self.tick_seconds = tick_seconds
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._stop_event = threading.Event()

    def add_job(self, job_id: str, func: Callable, interval_seconds: int,
                run_immediately: bool = False, kwargs: Dict = None):
        """
        Register a job. Re-adding a job_id replaces the previous entry.

        Args:
            job_id: Unique identifier for the job
            func: Callable run with kwargs; raising marks the run as failed
            interval_seconds: Seconds between runs
            run_immediately: Run on the first tick instead of after one interval
        """
        now = _now()
        with self._lock:
            self.jobs[job_id] = {
                'func': func,
                'interval': interval_seconds,
                'kwargs': kwargs or {},
                'last_run': None,
                'next_run': now if run_immediately else now + timedelta(seconds=interval_seconds),
                'run_count': 0,
                'last_error': None,
                'last_result': None,
                'enabled': True
            }
        logger.info(f"Added job '{job_id}' with interval {interval_seconds}s")

    def remove_job(self, job_id: str) -> bool:
        with self._lock:
            removed = self.jobs.pop(job_id, None) is not None
        if removed:
            logger.info(f"Removed job '{job_id}'")
        return removed

    def _set_enabled(self, job_id: str, enabled: bool) -> bool:
        with self._lock:
            if job_id not in self.jobs:
                return False
            self.jobs[job_id]['enabled'] = enabled
            return True

    def enable_job(self, job_id: str) -> bool:
        return self._set_enabled(job_id, True)

    def disable_job(self, job_id: str) -> bool:
        """Keep the job registered but skip it until re-enabled."""
        return self._set_enabled(job_id, False)

    def get_job_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                job_id: {
                    'interval': job['interval'],
                    'last_run': job['last_run'].isoformat() if job['last_run'] else None,
                    'next_run': job['next_run'].isoformat() if job['next_run'] else None,
                    'run_count': job['run_count'],
                    'last_error': job['last_error'],
                    'last_result': job['last_result'],
                    'enabled': job['enabled']
                }
                for job_id, job in self.jobs.items()
            }

    def start(self):
        """Start the scheduler in a daemon thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name='background-scheduler', daemon=True)
        self._thread.start()
        logger.info("Background scheduler started")

    def stop(self):
        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Background scheduler stopped")

    def _execute(self, job_id: str, job: Dict) -> bool:
        """Run one job and record the outcome. Returns False when it raised."""
        started = _now()
        try:
            result = job['func'](**job['kwargs'])
        except Exception as e:
            logger.error(f"Job '{job_id}' failed: {e}", exc_info=True)
            with self._lock:
                job['last_error'] = str(e)
                job['next_run'] = started + timedelta(seconds=job['interval'])
            return False

        with self._lock:
            job['last_run'] = started
            job['next_run'] = started + timedelta(seconds=job['interval'])
            job['run_count'] += 1
            job['last_error'] = None
            job['last_result'] = result
        return True

    def run_pending(self) -> int:
        """Run every enabled job that is due. Returns how many ran."""
        now = _now()
        with self._lock:
            due = [
                (job_id, job) for job_id, job in self.jobs.items()
                if job['enabled'] and job['next_run'] and now >= job['next_run']
            ]

        for job_id, job in due:
            logger.debug(f"Running job '{job_id}'")
            self._execute(job_id, job)
        return len(due)

    def _run_loop(self):
        while self.running and not self._stop_event.is_set():
            self.run_pending()
            self._stop_event.wait(timeout=self.tick_seconds)

    def run_job_now(self, job_id: str) -> Optional[bool]:
        """
        Run a job immediately.

        Returns None for an unknown job, otherwise whether the run succeeded.
        """
        with self._lock:
            job = self.jobs.get(job_id)
        if job is None:
            return None
        return self._execute(job_id, job)


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler()
    return _scheduler


# =============================================================================
# SCHEDULED JOBS
# =============================================================================

def recalculate_sla_job(at_risk_ratio: float = 0.75) -> int:
    """Refresh SLA status for all accounts. Returns the number of conversations that changed."""
    from database.connection import get_db_session
    from services.sla_service import recalculate_all_accounts

    with get_db_session() as session:
        changed = recalculate_all_accounts(session, at_risk_ratio)

    if changed:
        logger.info(f"SLA recalculation changed {changed} conversations")
    return changed


def cleanup_old_notifications_job(days: int = 30) -> int:
    """Delete read notifications older than days, across all accounts."""
    from database.connection import get_db_session
    from database.models import Account
    from services.notification_service import NotificationService

    deleted = 0
    with get_db_session() as session:
        for (account_id,) in session.query(Account.id).all():
            deleted += NotificationService(session, account_id).cleanup_old_notifications(days=days)

    if deleted:
        logger.info(f"Cleaned up {deleted} old notifications")
    return deleted


def register_default_jobs(scheduler: BackgroundScheduler, config) -> BackgroundScheduler:
    scheduler.add_job(
        'sla_recalculation',
        recalculate_sla_job,
        interval_seconds=config.get('SLA_RECALC_INTERVAL', 300),
        run_immediately=True,
        kwargs={'at_risk_ratio': config.get('SLA_AT_RISK_RATIO', 0.75)}
    )

    scheduler.add_job(
        'cleanup_notifications',
        cleanup_old_notifications_job,
        interval_seconds=24 * 60 * 60,
        kwargs={'days': config.get('NOTIFICATION_RETENTION_DAYS', 30)}
    )
    return scheduler


def init_scheduler(config, start: bool = True) -> BackgroundScheduler:
    """Register the default jobs on the global scheduler and start it."""
    scheduler = register_default_jobs(get_scheduler(), config)
    if start:
        scheduler.start()
    logger.info("Scheduler initialized with default jobs")
    return scheduler
