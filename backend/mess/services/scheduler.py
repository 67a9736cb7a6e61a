"""
Billing cycle batches: daily auto-attendance and monthly auto-billing.

Celery beat triggers them through ``mess.tasks``; ``flask run-job`` runs
them by hand. Every teacher is processed in its own transaction, so one
teacher failing never stops the rest of the batch.
"""
import logging

from mess.extensions import db
from mess.errors import ConfigurationMissing, DuplicateAttendance
from mess.models import ADMIN_ROLE, Role, Teacher, User
from mess.services import ledger, reconciler
from mess.services.ledger import MealFlags
from mess.services.rates import get_rates
from utils.clock import get_clock
from utils.periods import previous_month

logger = logging.getLogger(__name__)

AUTO_REMARK = "Auto-marked by scheduler at {hour}"


def _hour_label(hour):
    return f"{hour % 12 or 12} {'AM' if hour < 12 else 'PM'}"


class BatchResult:
    def __init__(self, name):
        self.name = name
        self.processed = []
        self.skipped = []
        self.failed = []

    @property
    def ok(self):
        return not self.failed

    def to_dict(self):
        return {
            "job": self.name,
            "processed": list(self.processed),
            "skipped": list(self.skipped),
            "failed": [{"teacher_id": tid, "error": err} for tid, err in self.failed],
        }

    def __repr__(self):
        return (f"<BatchResult {self.name} processed={len(self.processed)} "
                f"skipped={len(self.skipped)} failed={len(self.failed)}>")


def find_system_user():
    """The account scheduled writes are attributed to: the oldest admin."""
    return (
        User.query.join(Role)
        .filter(Role.name == ADMIN_ROLE, User.is_active.is_(True))
        .order_by(User.id)
        .first()
    )


def _active_teachers():
    return Teacher.query.filter_by(is_active=True).order_by(Teacher.id).all()


def run_daily_attendance(today=None, hour=12):
    """
    Marks full attendance for every active teacher unless today already has any attendance.
    """
    today = today or get_clock().today()
    result = BatchResult("daily-attendance")

    if ledger.any_recorded_on(today):
        logger.info("Attendance already marked for %s; skipping auto-attendance", today)
        return result

    teachers = _active_teachers()
    if not teachers:
        logger.warning("No active teachers found for attendance marking.")
        return result

    admin = find_system_user()
    if admin is None:
        logger.error("No admin user found for recording attendance.")
        return result

    remark = AUTO_REMARK.format(hour=_hour_label(hour))
    for teacher in teachers:
        try:
            reconciler.record_attendance(teacher.id, today, MealFlags.all(), admin.id, remarks=remark, overwrite=False)
            result.processed.append(teacher.id)
        except DuplicateAttendance:
            result.skipped.append(teacher.id)
        except Exception as exc:
            db.session.rollback()
            logger.exception("Auto-attendance failed for teacher %s", teacher.id)
            result.failed.append((teacher.id, str(exc)))

    logger.info("Daily attendance for %s: %s teachers, %s meals", today,
                len(result.processed), len(result.processed) * 3)
    return result


def run_monthly_billing(today=None):
    """
    On the first day of a month, generates last month's bill for every active teacher.

    Teachers that already have a bill for that month are skipped.
    """
    today = today or get_clock().today()
    result = BatchResult("monthly-billing")
    if today.day != 1:
        return result

    month, year = previous_month(today)
    try:
        get_rates()
    except ConfigurationMissing:
        logger.error("Billing configuration not found; monthly billing for %s/%s not run", month, year)
        return result

    teachers = _active_teachers()
    if not teachers:
        logger.warning("No active teachers found for billing.")
        return result

    admin = find_system_user()
    if admin is None:
        logger.error("No admin user found for generating bills.")
        return result

    for teacher in teachers:
        if reconciler.find_bill(teacher.id, month, year) is not None:
            logger.info("Bill already exists for teacher %s for %s/%s", teacher.full_name, month, year)
            result.skipped.append(teacher.id)
            continue
        try:
            reconciler.generate(teacher.id, month, year, generated_by=admin.id)
            result.processed.append(teacher.id)
        except Exception as exc:
            db.session.rollback()
            logger.exception("Monthly bill generation failed for teacher %s", teacher.id)
            result.failed.append((teacher.id, str(exc)))

    logger.info("Monthly bills generated for %s/%s: %r", month, year, result)
    return result
