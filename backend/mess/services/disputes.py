import logging

from mess.extensions import db
from mess.errors import AlreadyResolved, DuplicatePending, NotFound, ValidationError
from mess.models import AttendanceDispute, DisputeStatus
from mess.services import ledger
from mess.services.ledger import MealFlags
from mess.services.reconciler import _adjust_for_record
from utils.clock import get_clock
from utils.db import atomic, locked
from utils.locks import bill_lock, keyed_lock

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"


def file_dispute(attendance_id, teacher_id, reason):
    """A teacher reports one of their own attendance records as wrong."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Please describe what is wrong with this attendance.")
    if len(reason) > 500:
        raise ValidationError("Reason must be at most 500 characters.")

    record = ledger.get_record(attendance_id)
    if record.teacher_id != teacher_id:
        raise NotFound("Attendance record not found")

    with keyed_lock("dispute", attendance_id):
        with atomic():
            pending = AttendanceDispute.query.filter_by(
                attendance_id=attendance_id, status=DisputeStatus.pending
            ).first()
            if pending is not None:
                raise DuplicatePending()
            dispute = AttendanceDispute(
                attendance_id=attendance_id,
                attendance_date=record.date,
                teacher_id=teacher_id,
                reason=reason,
                status=DisputeStatus.pending,
                reported_date=get_clock().now(),
            )
            db.session.add(dispute)

    logger.info("Dispute %s filed by teacher %s for attendance %s", dispute.id, teacher_id, attendance_id)
    return dispute


def get_dispute(dispute_id):
    dispute = db.session.get(AttendanceDispute, dispute_id)
    if dispute is None:
        raise NotFound("Dispute not found.")
    return dispute


def list_disputes(status=None, teacher_id=None):
    query = AttendanceDispute.query
    if status is not None:
        query = query.filter(AttendanceDispute.status == status)
    if teacher_id is not None:
        query = query.filter(AttendanceDispute.teacher_id == teacher_id)
    return query.order_by(AttendanceDispute.reported_date.desc()).all()


def _normalise_decision(decision):
    text = (decision or "").strip().lower()
    if text in ("approve", "approved"):
        return APPROVE
    if text in ("reject", "rejected"):
        return REJECT
    raise ValidationError("Decision must be 'Approve' or 'Reject'.")


def _approve(dispute):
    """Removes the disputed attendance and deducts it from the bill of its period."""
    record = dispute.attendance
    if record is None:
        # Already consumed or removed; nothing left to deduct.
        return None

    flags = MealFlags.of(record)
    bill, _ = _adjust_for_record(record, flags, MealFlags.none())
    dispute.attendance = None
    ledger.delete_record(record.id)
    return bill


def resolve(dispute_id, decision, notes, resolver_user_id):
    """
    Moves a Pending dispute to Approved or Rejected, exactly once.

    Approval deletes the attendance and adjusts the bill in the same transaction.
    """
    decision = _normalise_decision(decision)
    dispute = get_dispute(dispute_id)
    day = dispute.attendance_date

    with keyed_lock("dispute-resolve", dispute_id), bill_lock(dispute.teacher_id, day.month, day.year):
        with atomic():
            dispute = locked(AttendanceDispute.query.filter_by(id=dispute_id)).first()
            if dispute.status != DisputeStatus.pending:
                raise AlreadyResolved()

            bill = None
            if decision == APPROVE:
                bill = _approve(dispute)
                dispute.status = DisputeStatus.approved
            else:
                dispute.status = DisputeStatus.rejected
            dispute.resolved_by = resolver_user_id
            dispute.resolved_date = get_clock().now()
            dispute.admin_notes = notes

    logger.info("Dispute %s %s by user %s", dispute_id, dispute.status.value.lower(), resolver_user_id)
    return dispute, bill
