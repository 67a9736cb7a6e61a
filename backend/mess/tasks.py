"""
Celery tasks for the billing cycle.

``celery_init_app`` binds a Celery app to the Flask app so every task runs
inside an application context. Beat sends the daily attendance task at
``DAILY_ATTENDANCE_HOUR`` and the monthly billing task just after midnight
on the 1st; both batches are idempotent, so a re-delivered or repeated run
changes nothing.

Run a worker with the embedded beat scheduler::

    celery -A worker worker --beat --loglevel=info
"""
import logging

from celery import Celery, Task, shared_task
from celery.schedules import crontab
from flask import current_app

from mess.services import scheduler
from utils.periods import parse_date

logger = logging.getLogger(__name__)

DAILY_ATTENDANCE_TASK = "mess.daily_attendance"
MONTHLY_BILLING_TASK = "mess.monthly_billing"


def beat_schedule(attendance_hour):
    return {
        "daily-attendance": {
            "task": DAILY_ATTENDANCE_TASK,
            "schedule": crontab(minute=0, hour=attendance_hour),
        },
        "monthly-billing": {
            "task": MONTHLY_BILLING_TASK,
            "schedule": crontab(minute=5, hour=0, day_of_month=1),
        },
    }


def celery_init_app(app):
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config["CELERY"])
    celery_app.conf.beat_schedule = beat_schedule(app.config["DAILY_ATTENDANCE_HOUR"])
    celery_app.set_default()
    app.extensions["celery"] = celery_app
    return celery_app


def _day(value):
    return parse_date(value, "day") if value else None


@shared_task(name=DAILY_ATTENDANCE_TASK)
def daily_attendance(day=None):
    """Marks full attendance for every active teacher; ``day`` is YYYY-MM-DD, default today."""
    result = scheduler.run_daily_attendance(_day(day), hour=current_app.config["DAILY_ATTENDANCE_HOUR"])
    if not result.ok:
        logger.warning("Daily attendance finished with failures: %r", result)
    return result.to_dict()


@shared_task(name=MONTHLY_BILLING_TASK)
def monthly_billing(day=None):
    """Bills last month for every active teacher when ``day`` (default today) is the 1st."""
    result = scheduler.run_monthly_billing(_day(day))
    if not result.ok:
        logger.warning("Monthly billing finished with failures: %r", result)
    return result.to_dict()
