"""Background jobs: periodic alert matching and digest dispatch.

An APScheduler BackgroundScheduler runs both jobs inside the API process;
intervals come from MATCH_INTERVAL_MINUTES and DIGEST_CHECK_MINUTES.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobEvent
from apscheduler.schedulers.background import BackgroundScheduler

from tenderwatch.core.config import settings

logger = logging.getLogger(__name__)

# Process-wide instance, None until started
_scheduler: Optional[BackgroundScheduler] = None
_last_run: dict[str, Any] = {}

# Re-scan a little before the previous run to cover tenders committed mid-run
_SINCE_OVERLAP = timedelta(minutes=1)


def _run_alert_matcher() -> None:
    """Match active alerts against tenders added since the previous run."""
    from tenderwatch.db.session import SessionLocal
    from tenderwatch.services.alert_matcher import run_alert_matcher

    started_at = datetime.now(timezone.utc)
    previous = _last_run.get("alert_matcher") or {}
    since = None
    if previous.get("status") == "ok" and previous.get("started_at"):
        since = datetime.fromisoformat(previous["started_at"]) - _SINCE_OVERLAP
        # Tenders whose email failed last time are scanned again
        if previous.get("retry_since"):
            since = min(since, datetime.fromisoformat(previous["retry_since"]))

    result: dict[str, Any] = {"started_at": started_at.isoformat(), "status": "running"}
    db = SessionLocal()
    try:
        summary = run_alert_matcher(db, since=since, now=started_at)
        result.update({k: v for k, v in summary.items() if k != "details"})
        retry_since = summary.get("retry_since")
        result["retry_since"] = retry_since.isoformat() if retry_since else None
        result["status"] = "ok"
    except Exception as e:
        result["status"] = "error"
        result["error"] = str(e)
        logger.exception("[Scheduler] Alert matcher failed")
    finally:
        db.close()

    result["elapsed_seconds"] = round((datetime.now(timezone.utc) - started_at).total_seconds(), 1)
    _last_run["alert_matcher"] = result


def _run_digests() -> None:
    """Send daily/weekly digests that are due."""
    from tenderwatch.db.session import SessionLocal
    from tenderwatch.services.alert_matcher import run_digests

    started_at = datetime.now(timezone.utc)
    result: dict[str, Any] = {"started_at": started_at.isoformat(), "status": "running"}
    db = SessionLocal()
    try:
        result.update(run_digests(db, now=started_at))
        result["status"] = "ok"
    except Exception as e:
        result["status"] = "error"
        result["error"] = str(e)
        logger.exception("[Scheduler] Digest run failed")
    finally:
        db.close()

    _last_run["alert_digest"] = result


def _log_job_event(event: JobEvent) -> None:
    if event.exception:
        logger.error("[Scheduler] %s raised: %s", event.job_id, event.exception)
    else:
        logger.debug("[Scheduler] %s finished", event.job_id)


def _jobs() -> list[tuple[str, Any, int, str]]:
    """(id, function, interval minutes, label) for every periodic job."""
    match_every = max(1, settings.match_interval_minutes)
    digest_every = max(1, settings.digest_check_minutes)
    return [
        ("alert_matcher", _run_alert_matcher, match_every, f"Alert matcher (every {match_every}min)"),
        ("alert_digest", _run_digests, digest_every, f"Alert digests (every {digest_every}min)"),
    ]


def start_scheduler() -> Optional[BackgroundScheduler]:
    """Start the background jobs when SCHEDULER_ENABLED is set. Called from the app lifespan."""
    global _scheduler

    if not settings.scheduler_enabled:
        logger.info("[Scheduler] Not started: SCHEDULER_ENABLED is false")
        return None
    if _scheduler is not None and _scheduler.running:
        logger.warning("[Scheduler] start_scheduler called twice, keeping the running instance")
        return _scheduler

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_listener(_log_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    # max_instances=1: single writer for alert stats
    for job_id, func, minutes, label in _jobs():
        scheduler.add_job(
            func,
            trigger="interval",
            minutes=minutes,
            id=job_id,
            name=label,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("[Scheduler] %s", label)

    scheduler.start()
    _scheduler = scheduler
    return _scheduler


def stop_scheduler() -> None:
    """Shut the scheduler down without waiting for running jobs."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Shut down")
    _scheduler = None


def get_scheduler_status() -> dict[str, Any]:
    """Jobs, intervals and last run summaries, as shown by /health."""
    if not settings.scheduler_enabled:
        return {"enabled": False, "message": "Set SCHEDULER_ENABLED=true to activate"}

    running = _scheduler is not None and bool(_scheduler.running)
    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in (_scheduler.get_jobs() if running else [])
    ]
    return {
        "enabled": True,
        "running": running,
        "config": {
            "match_interval_minutes": settings.match_interval_minutes,
            "digest_check_minutes": settings.digest_check_minutes,
            "match_lookback_hours": settings.match_lookback_hours,
        },
        "jobs": jobs,
        "last_run": dict(_last_run),
    }
