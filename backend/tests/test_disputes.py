from datetime import date
from decimal import Decimal

import pytest

from mess.errors import AlreadyResolved, DuplicatePending, NotFound, ValidationError
from mess.extensions import db
from mess.models import AttendanceDispute, AttendanceRecord, Bill, DisputeStatus
from mess.services import disputes, reconciler


def test_file_dispute_snapshots_attendance_date(teacher, record):
    saved = record(teacher, 10)
    dispute = disputes.file_dispute(saved.id, teacher.id, "I was on leave")

    assert dispute.status == DisputeStatus.pending
    assert dispute.attendance_date == date(2025, 7, 10)
    assert dispute.attendance_id == saved.id


def test_second_pending_dispute_is_refused_until_resolved(teacher, admin, record):
    saved = record(teacher, 10)
    first = disputes.file_dispute(saved.id, teacher.id, "Not me")

    with pytest.raises(DuplicatePending):
        disputes.file_dispute(saved.id, teacher.id, "Still not me")

    disputes.resolve(first.id, "Reject", "Checked the register", admin.id)
    again = disputes.file_dispute(saved.id, teacher.id, "Please check again")
    assert again.id != first.id
    assert AttendanceDispute.query.count() == 2


def test_dispute_needs_reason_and_own_attendance(teacher, other_teacher, record):
    saved = record(teacher, 10)
    with pytest.raises(ValidationError):
        disputes.file_dispute(saved.id, teacher.id, "   ")
    with pytest.raises(ValidationError):
        disputes.file_dispute(saved.id, teacher.id, "x" * 501)
    with pytest.raises(NotFound):
        disputes.file_dispute(saved.id, other_teacher.id, "Not mine")


def test_reject_has_no_side_effects(teacher, admin, record):
    saved = record(teacher, 10)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Wrong")

    resolved, bill = disputes.resolve(dispute.id, "Reject", "Register confirms meals", admin.id)

    assert bill is None
    assert resolved.status == DisputeStatus.rejected
    assert resolved.resolved_by == admin.id
    assert resolved.admin_notes == "Register confirms meals"
    assert resolved.resolved_date is not None
    assert db.session.get(AttendanceRecord, saved.id) is not None


def test_approve_deletes_attendance_and_adjusts_bill(teacher, other_teacher, admin, record):
    bill = reconciler.generate(teacher.id, 7, 2025)
    saved = record(teacher, 14, breakfast=True, lunch=True, dinner=False)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Only had tea")

    resolved, adjusted = disputes.resolve(dispute.id, "Approve", "Refunded", admin.id)

    assert resolved.status == DisputeStatus.approved
    assert resolved.attendance_id is None
    assert resolved.attendance_date == date(2025, 7, 14)
    assert db.session.get(AttendanceRecord, saved.id) is None
    assert adjusted.id == bill.id
    assert adjusted.food_bill == Decimal("0.00")
    assert adjusted.total_bill == Decimal("2500.00")
    assert adjusted.total_meals_consumed == 0


def test_approve_without_bill_only_removes_attendance(teacher, admin, record):
    saved = record(teacher, 14)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Absent")

    resolved, bill = disputes.resolve(dispute.id, "approve", None, admin.id)

    assert bill is None
    assert resolved.status == DisputeStatus.approved
    assert AttendanceRecord.query.count() == 0
    assert Bill.query.count() == 0


def test_approve_after_attendance_was_billed_and_purged(teacher, other_teacher, admin, record):
    saved = record(teacher, 14)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Absent")
    bill = reconciler.generate(teacher.id, 7, 2025)
    total = bill.total_bill

    resolved, adjusted = disputes.resolve(dispute.id, "Approve", "Too late", admin.id)

    assert resolved.status == DisputeStatus.approved
    assert adjusted is None
    assert db.session.get(Bill, bill.id).total_bill == total


def test_resolved_dispute_cannot_be_resolved_again(teacher, admin, record):
    saved = record(teacher, 10)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Wrong")
    disputes.resolve(dispute.id, "Reject", None, admin.id)

    with pytest.raises(AlreadyResolved):
        disputes.resolve(dispute.id, "Approve", None, admin.id)
    assert db.session.get(AttendanceDispute, dispute.id).status == DisputeStatus.rejected


def test_resolve_unknown_dispute_or_decision(teacher, admin, record):
    with pytest.raises(NotFound):
        disputes.resolve(999, "Approve", None, admin.id)

    saved = record(teacher, 10)
    dispute = disputes.file_dispute(saved.id, teacher.id, "Wrong")
    with pytest.raises(ValidationError):
        disputes.resolve(dispute.id, "maybe", None, admin.id)


def test_list_disputes_by_status_and_teacher(teacher, other_teacher, admin, record):
    a = disputes.file_dispute(record(teacher, 10).id, teacher.id, "One")
    disputes.file_dispute(record(teacher, 11).id, teacher.id, "Two")
    disputes.file_dispute(record(other_teacher, 10).id, other_teacher.id, "Three")
    disputes.resolve(a.id, "Reject", None, admin.id)

    assert len(disputes.list_disputes()) == 3
    assert len(disputes.list_disputes(status=DisputeStatus.pending)) == 2
    assert len(disputes.list_disputes(teacher_id=teacher.id)) == 2
    assert len(disputes.list_disputes(status=DisputeStatus.rejected, teacher_id=teacher.id)) == 1
