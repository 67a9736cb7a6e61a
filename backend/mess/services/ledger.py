"""
Attendance ledger: one row of meal flags per teacher per calendar day.
"""
import logging
from collections import namedtuple
from contextlib import ExitStack

from sqlalchemy.exc import IntegrityError

from mess.extensions import db
from mess.errors import DuplicateAttendance, NoMealsSelected, NotFound, ValidationError
from mess.models import AttendanceRecord, AttendanceDispute, Teacher
from utils.clock import get_clock
from utils.db import atomic
from utils.locks import attendance_lock

logger = logging.getLogger(__name__)


class MealFlags(namedtuple("MealFlags", ["breakfast", "lunch", "dinner"])):
    __slots__ = ()

    @classmethod
    def of(cls, record):
        return cls(bool(record.breakfast_taken), bool(record.lunch_taken), bool(record.dinner_taken))

    @classmethod
    def none(cls):
        return cls(False, False, False)

    @classmethod
    def all(cls):
        return cls(True, True, True)

    @property
    def any(self):
        return self.breakfast or self.lunch or self.dinner

    @property
    def meal_count(self):
        return int(self.breakfast) + int(self.lunch) + int(self.dinner)

    def require_any(self):
        if not self.any:
            raise NoMealsSelected()
        return self

    def labels(self):
        return [name.title() for name, taken in zip(self._fields, self) if taken]


def _apply_flags(record, flags):
    record.breakfast_taken = flags.breakfast
    record.lunch_taken = flags.lunch
    record.dinner_taken = flags.dinner


def get_record(attendance_id):
    record = db.session.get(AttendanceRecord, attendance_id)
    if record is None:
        raise NotFound("Attendance record not found")
    return record


def _upsert(teacher_id, day, flags, recorded_by, remarks, overwrite):
    """Returns (record, previous_flags); previous_flags is None for a new row."""
    record = AttendanceRecord.query.filter_by(teacher_id=teacher_id, date=day).first()
    if record is not None and not overwrite:
        raise DuplicateAttendance()
    previous = None
    if record is None:
        record = AttendanceRecord(teacher_id=teacher_id, date=day)
        db.session.add(record)
    else:
        previous = MealFlags.of(record)
    _apply_flags(record, flags)
    record.recorded_by = recorded_by
    record.recorded_at = get_clock().now()
    if remarks is not None:
        record.remarks = remarks
    db.session.flush()
    return record, previous


def _teacher_id(value):
    if isinstance(value, bool):
        raise ValidationError("teacher_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("teacher_id must be an integer")


def normalise_entries(entries):
    """
    Validates (teacher_id, flags, remarks) entries before anything is written.

    Raises ValidationError for a malformed or repeated teacher id,
    NoMealsSelected for an entry without meals and NotFound for unknown teachers.
    """
    cleaned = [(_teacher_id(tid), MealFlags(*flags).require_any(), remarks) for tid, flags, remarks in entries]
    teacher_ids = [tid for tid, _, _ in cleaned]
    if len(set(teacher_ids)) != len(teacher_ids):
        raise ValidationError("Each teacher may appear only once per day")

    found = {row.id for row in Teacher.query.filter(Teacher.id.in_(teacher_ids)).with_entities(Teacher.id)}
    missing = sorted(set(teacher_ids) - found)
    if missing:
        raise NotFound(f"Teacher not found: {', '.join(str(tid) for tid in missing)}")
    return cleaned


def record_many(day, entries, recorded_by, overwrite=True, on_write=None):
    """
    Inserts or overwrites one record per (teacher_id, flags, remarks) entry for ``day``.

    Every entry is validated first and all rows are written in one
    transaction, so either all of them are saved or none is. With
    ``overwrite=False`` an existing record raises DuplicateAttendance.

    ``on_write(record, previous_flags)`` runs inside the same transaction after
    each row. Returns the written records, or what ``on_write`` returned for each.
    A concurrent insert that loses the unique-constraint race is retried as an update.
    """
    entries = normalise_entries(entries)
    with ExitStack() as stack:
        for teacher_id in sorted(tid for tid, _, _ in entries):
            stack.enter_context(attendance_lock(teacher_id, day))
        for attempt in range(2):
            try:
                with atomic():
                    written = []
                    for teacher_id, flags, remarks in entries:
                        record, previous = _upsert(teacher_id, day, flags, recorded_by, remarks, overwrite)
                        written.append(on_write(record, previous) if on_write else record)
                return written
            except IntegrityError:
                if attempt:
                    raise
                logger.info("Attendance for %s was inserted concurrently; retrying as update", day)


def record_meals(teacher_id, day, flags, recorded_by, remarks=None, overwrite=True, on_write=None):
    """Inserts or overwrites the record for (teacher_id, day); see ``record_many``."""
    return record_many(day, [(teacher_id, flags, remarks)], recorded_by,
                       overwrite=overwrite, on_write=on_write)[0]


def edit_meals(attendance_id, flags, recorded_by=None, remarks=None):
    """
    Overwrites the flags of an existing record in the current session.

    Returns (record, old_flags, new_flags) so the caller can compute a billing delta.
    """
    new_flags = MealFlags(*flags).require_any()
    record = get_record(attendance_id)
    old_flags = MealFlags.of(record)
    _apply_flags(record, new_flags)
    record.recorded_at = get_clock().now()
    if recorded_by is not None:
        record.recorded_by = recorded_by
    if remarks is not None:
        record.remarks = remarks
    db.session.flush()
    return record, old_flags, new_flags


def _detach_disputes(attendance_ids):
    if not attendance_ids:
        return
    AttendanceDispute.query.filter(
        AttendanceDispute.attendance_id.in_(attendance_ids)
    ).update({AttendanceDispute.attendance_id: None}, synchronize_session="fetch")


def delete_record(attendance_id):
    """Removes a record in the current session and returns it with its flags intact."""
    record = get_record(attendance_id)
    _detach_disputes([record.id])
    db.session.delete(record)
    db.session.flush()
    return record


def _period_query(teacher_id, start, end_inclusive):
    return AttendanceRecord.query.filter(
        AttendanceRecord.teacher_id == teacher_id,
        AttendanceRecord.date >= start,
        AttendanceRecord.date <= end_inclusive,
    )


def list_period(teacher_id, start, end_inclusive):
    return _period_query(teacher_id, start, end_inclusive).order_by(AttendanceRecord.date).all()


def purge_period(teacher_id, start, end_inclusive):
    """Bulk-deletes a teacher's records in an inclusive date range. Empty ranges are a no-op."""
    ids = [row.id for row in _period_query(teacher_id, start, end_inclusive).with_entities(AttendanceRecord.id)]
    if not ids:
        return 0
    _detach_disputes(ids)
    removed = AttendanceRecord.query.filter(
        AttendanceRecord.id.in_(ids)
    ).delete(synchronize_session="fetch")
    logger.info("Purged %s attendance records for teacher %s between %s and %s",
                removed, teacher_id, start, end_inclusive)
    return removed


def list_by_date(day):
    return (
        AttendanceRecord.query
        .join(Teacher)
        .filter(AttendanceRecord.date == day)
        .order_by(Teacher.full_name)
        .all()
    )


def any_recorded_on(day):
    return db.session.query(
        AttendanceRecord.query.filter(AttendanceRecord.date == day).exists()
    ).scalar()
