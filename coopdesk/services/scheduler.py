"""Background scheduler for month-end payroll posting."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from coopdesk.core.config import settings
from coopdesk.db.base import SessionLocal
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.services.payroll import auto_post_if_due

logger = logging.getLogger(__name__)

scheduler: AsyncIOScheduler | None = None

JOB_ID = "month_end_payroll"


def run_month_end_job(now: datetime = None) -> dict:
    """Run the month-end check once and email admins when a cycle was posted.

    Errors are logged and reported as reason "error"; the next tick retries.
    """
    db = SessionLocal()
    try:
        result = auto_post_if_due(db, now)
        if not result["ran"]:
            logger.debug("Scheduler month-end check for %s: %s", result["period"], result["reason"])
            return result

        logger.info("Scheduler posted payroll cycle %s", result["period"])

        admins = db.query(Member).filter(
            Member.role == MemberRole.ADMIN,
            Member.status == MemberStatus.ACTIVE,
        ).all()
        admin_emails = [a.email for a in admins if a.email]

        if admin_emails:
            from coopdesk.core.email import send_month_end_report
            send_month_end_report(to_emails=admin_emails, summary=result["summary"])
        return result
    except Exception:
        db.rollback()
        logger.exception("Error in month-end payroll job")
        return {"ran": False, "reason": "error", "period": None, "cycle_id": None, "summary": None}
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Scheduler lifecycle helpers
# ---------------------------------------------------------------------------

def start_scheduler() -> None:
    """Create and start the background scheduler."""
    global scheduler
    interval = settings.SCHEDULER_INTERVAL_MINUTES

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_month_end_job,
        trigger=IntervalTrigger(minutes=interval),
        id=JOB_ID,
        name="Month-end payroll draft, confirm and post",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Background scheduler started with interval=%d minutes", interval)


def stop_scheduler() -> None:
    """Shut down the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    """Return current scheduler state for the status API."""
    if not scheduler or not scheduler.running:
        return {"running": False, "interval_minutes": None, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {
        "running": True,
        "interval_minutes": settings.SCHEDULER_INTERVAL_MINUTES,
        "jobs": jobs,
    }
