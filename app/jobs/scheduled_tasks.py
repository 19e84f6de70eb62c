import threading
import time

import schedule

from infrastructure.configuration import Settings
from infrastructure.logging import get_module_logger
from modules.post_commit.factory import RecoveryServices

logger = get_module_logger()


def safe_run(job):
    def wrapper(*args, **kwargs):
        try:
            job(*args, **kwargs)
        except Exception as e:
            logger.error("scheduled_job_failed", job=job.__name__, error=str(e))

    wrapper.__name__ = getattr(job, "__name__", "job")
    return wrapper


def init(services: RecoveryServices, settings: Settings):
    logger.info("scheduled_tasks_initialized")

    schedule.every(5).minutes.do(safe_run(scheduler_heartbeat))

    if settings.recovery.enabled:
        schedule.every(settings.recovery.interval_minutes).minutes.do(
            safe_run(run_recovery_sweep), services=services
        )
    else:
        logger.warning("post_commit_recovery_disabled")

    if settings.escalation.enabled:
        schedule.every(settings.escalation.interval_minutes).minutes.do(
            safe_run(run_escalation_report), services=services
        )
    else:
        logger.warning("post_commit_escalation_report_disabled")


def scheduler_heartbeat():
    logger.info("scheduler_heartbeat", time=time.ctime())


def run_recovery_sweep(services: RecoveryServices):
    result = services.orchestrator.sweep()
    logger.info(
        "recovery_sweep_job_complete",
        visits_scanned=result.visits_scanned,
        visits_resolved=result.visits_resolved,
        visits_still_failing=result.visits_still_failing,
        escalations=result.escalations,
    )


def run_escalation_report(services: RecoveryServices):
    report = services.reporter.report()
    logger.info(
        "escalation_report_job_complete",
        unacknowledged=report.unacknowledged,
        delivered=report.dispatch.delivered,
        skipped_reason=report.dispatch.skipped_reason,
    )


def run_continuously(interval=1):
    """Continuously run, while executing pending jobs at each
    elapsed time interval.
    @return cease_continuous_run: threading. Event which can
    be set to cease continuous run. Please note that it is
    *intended behavior that run_continuously() does not run
    missed jobs*. For example, if you've registered a job that
    should run every minute and you set a continuous run
    interval of one hour then your job won't be run 60 times
    at each interval but only once.
    """
    cease_continuous_run = threading.Event()

    class ScheduleThread(threading.Thread):
        @classmethod
        def run(cls):
            while not cease_continuous_run.is_set():
                schedule.run_pending()
                time.sleep(interval)

    continuous_thread = ScheduleThread()
    continuous_thread.start()
    return cease_continuous_run
