"""
Bill reconciliation.

Turns a teacher's attendance for a calendar month into a Bill and keeps
that Bill consistent when attendance in a billed period changes later.

A bill always satisfies ``total_bill == food_bill + water_bill + carried_balance``.
``unpaid_balance`` starts out equal to the carried balance and then tracks
later adjustments: on an unpaid bill it moves together with the totals, on a
paid bill it is the only figure that changes and is carried into the next
bill generated for the teacher.

Generating a bill purges the attendance it consumed. Attendance written
later into a billed period is charged to that bill straight away and
remembers it through ``AttendanceRecord.bill_id``; edits and deletions move
the bill only for such charged rows, so no meal is counted twice.
"""
import logging
from collections import namedtuple
from contextlib import ExitStack
from decimal import Decimal

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from mess.extensions import db
from mess.errors import AlreadyPaid, Conflict, NotFound
from mess.models import Bill, Teacher
from mess.services import ledger
from mess.services.ledger import MealFlags
from mess.services.rates import get_rates
from utils.clock import get_clock
from utils.db import atomic, locked
from utils.locks import bill_lock
from utils.periods import month_bounds

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MealCounts = namedtuple("MealCounts", ["breakfast", "lunch", "dinner"])


def _money(value):
    return Decimal(value or 0).quantize(CENT)


def count_meals(records):
    return MealCounts(
        breakfast=sum(1 for r in records if r.breakfast_taken),
        lunch=sum(1 for r in records if r.lunch_taken),
        dinner=sum(1 for r in records if r.dinner_taken),
    )


def food_cost(counts, rates):
    return _money(
        counts.breakfast * rates.breakfast
        + counts.lunch * rates.lunch
        + counts.dinner * rates.dinner
    )


def active_teacher_count():
    return Teacher.query.filter_by(is_active=True).count()


def water_share(rates, active_count=None):
    """The monthly water total split evenly across active teachers (0 when there are none)."""
    if active_count is None:
        active_count = active_teacher_count()
    if active_count <= 0:
        return ZERO
    return _money(rates.monthly_water_total / active_count)


def find_bill(teacher_id, month, year, for_update=False):
    query = Bill.query.filter_by(teacher_id=teacher_id, month=month, year=year)
    if for_update:
        query = locked(query)
    return query.first()


def _carry_forward(teacher_id, month, year):
    """
    Balance carried into a new bill for (month, year).

    Taken from the most recent earlier bill that is either unpaid or paid with
    a pending adjustment (a credit from removed attendance, or a late charge).
    A paid bill's adjustment is moved rather than copied, so it is applied once.
    """
    earlier = or_(Bill.year < year, and_(Bill.year == year, Bill.month < month))
    pending = or_(Bill.is_paid.is_(False), Bill.unpaid_balance != 0)
    source = (
        locked(Bill.query.filter(Bill.teacher_id == teacher_id, earlier, pending))
        .order_by(Bill.year.desc(), Bill.month.desc())
        .first()
    )
    if source is None:
        return ZERO

    carry = _money(source.unpaid_balance)
    if source.is_paid:
        source.unpaid_balance = ZERO
    return carry


def _generate_in_session(teacher, month, year, rates, generated_by):
    bill = find_bill(teacher.id, month, year, for_update=True)
    if bill is not None and bill.is_paid:
        raise AlreadyPaid(
            f"Cannot generate bill! {teacher.full_name} has already paid the bill for {bill.period_label}."
        )

    start, end = month_bounds(year, month)
    # Rows recorded after this bill was generated are already charged on it.
    records = [r for r in ledger.list_period(teacher.id, start, end) if bill is None or r.bill_id != bill.id]
    counts = count_meals(records)
    new_food = food_cost(counts, rates)
    new_meals = sum(counts)
    water = water_share(rates)

    if bill is None:
        carry = _carry_forward(teacher.id, month, year)
        bill = Bill(
            teacher_id=teacher.id,
            month=month,
            year=year,
            food_bill=new_food,
            total_meals_consumed=new_meals,
            carried_balance=carry,
            unpaid_balance=carry,
            is_paid=False,
        )
        db.session.add(bill)
    else:
        # Attendance in the period is folded into the bill as it is written,
        # so only rows the bill has not seen yet are added.
        bill.food_bill = _money(bill.food_bill) + new_food
        bill.total_meals_consumed = (bill.total_meals_consumed or 0) + new_meals

    bill.water_bill = water
    bill.total_bill = _money(bill.food_bill) + water + _money(bill.carried_balance)
    bill.generated_date = get_clock().now()
    bill.generated_by = generated_by
    db.session.flush()

    ledger.purge_period(teacher.id, start, end)
    return bill


def generate(teacher_id, month, year, generated_by=None):
    """
    Generates (or regenerates) the bill of a teacher for one calendar month.

    Raises ConfigurationMissing without rates, NotFound for an unknown or
    inactive teacher and AlreadyPaid when the period's bill is settled.
    """
    rates = get_rates()
    teacher = db.session.get(Teacher, teacher_id)
    if teacher is None or not teacher.is_active:
        raise NotFound("Teacher not found or inactive.")

    with bill_lock(teacher_id, month, year):
        for attempt in range(2):
            try:
                with atomic():
                    bill = _generate_in_session(teacher, month, year, rates, generated_by)
                break
            except IntegrityError:
                # Another writer created the row first; the retry takes the update path.
                if attempt:
                    raise
                logger.info("Bill for teacher %s %s/%s created concurrently; retrying", teacher_id, month, year)

    logger.info("Bill %s generated for teacher %s (%s/%s): total %s", bill.id, teacher_id, month, year, bill.total_bill)
    return bill


def meal_delta(rates, old_flags, new_flags):
    """Money and meal-count change for a flag flip; all-false new flags model a deletion."""
    amount = ZERO
    for rate, old, new in zip((rates.breakfast, rates.lunch, rates.dinner), old_flags, new_flags):
        amount += rate * (int(new) - int(old))
    return _money(amount), new_flags.meal_count - old_flags.meal_count


def apply_adjustment(bill, rates, old_flags, new_flags):
    delta, meals = meal_delta(rates, old_flags, new_flags)
    if delta == 0 and meals == 0:
        return delta

    if bill.is_paid:
        # A settled total never changes; the difference waits for the next bill.
        if not new_flags.any:
            # TODO: removals overwrite rather than accumulate the credit; switch to += once
            # admins confirm several removals against one paid bill should stack.
            bill.unpaid_balance = delta
        else:
            bill.unpaid_balance = _money(bill.unpaid_balance) + delta
    else:
        bill.food_bill = _money(bill.food_bill) + delta
        bill.total_bill = _money(bill.total_bill) + delta
        bill.total_meals_consumed = (bill.total_meals_consumed or 0) + meals
        bill.unpaid_balance = _money(bill.unpaid_balance) + delta
    return delta


def _adjust_in_session(teacher_id, attendance_date, old_flags, new_flags):
    bill = find_bill(teacher_id, attendance_date.month, attendance_date.year, for_update=True)
    if bill is None:
        return None, ZERO
    delta = apply_adjustment(bill, get_rates(), MealFlags(*old_flags), MealFlags(*new_flags))
    db.session.flush()
    logger.info("Bill %s adjusted by %s after attendance change on %s", bill.id, delta, attendance_date)
    return bill, delta


def _adjust_for_record(record, old_flags, new_flags):
    """
    Moves the bill only for a record already charged on it.

    A record the bill has not seen yet is picked up by the next generate.
    """
    if record.bill_id is None:
        return None, ZERO
    return _adjust_in_session(record.teacher_id, record.date, old_flags, new_flags)


def adjust_for_attendance_change(teacher_id, attendance_date, old_flags, new_flags):
    """
    Applies an attendance change to the bill covering ``attendance_date``.

    Returns the adjusted bill, or None when the period has not been billed yet.
    """
    with bill_lock(teacher_id, attendance_date.month, attendance_date.year):
        with atomic():
            bill, _ = _adjust_in_session(teacher_id, attendance_date, old_flags, new_flags)
    return bill


AttendanceChange = namedtuple("AttendanceChange", ["record", "old_flags", "new_flags", "bill", "delta"])


def _fold_in(record, previous):
    """
    Charges a just-written record to the bill of its period, when one exists.

    ``previous`` holds the flags the row had before the write; they count as
    charged only if the row was already folded into that same bill.
    """
    new_flags = MealFlags.of(record)
    bill = find_bill(record.teacher_id, record.date.month, record.date.year, for_update=True)
    if bill is None:
        return AttendanceChange(record, previous or MealFlags.none(), new_flags, None, ZERO)

    charged = previous if previous is not None and record.bill_id == bill.id else MealFlags.none()
    record.bill_id = bill.id
    delta = apply_adjustment(bill, get_rates(), charged, new_flags)
    db.session.flush()
    logger.info("Attendance of teacher %s on %s charged to bill %s (%s)",
                record.teacher_id, record.date, bill.id, delta)
    return AttendanceChange(record, charged, new_flags, bill, delta)


def record_attendance_many(day, entries, recorded_by, overwrite=True):
    """
    Records one day for several teachers in a single transaction.

    ``entries`` are (teacher_id, flags, remarks). Meals that fall in an
    already-billed period are charged to that bill as they are written.
    Returns one AttendanceChange per entry.
    """
    entries = ledger.normalise_entries(entries)
    with ExitStack() as stack:
        for teacher_id in sorted(tid for tid, _, _ in entries):
            stack.enter_context(bill_lock(teacher_id, day.month, day.year))
        return ledger.record_many(day, entries, recorded_by, overwrite=overwrite, on_write=_fold_in)


def record_attendance(teacher_id, day, flags, recorded_by, remarks=None, overwrite=True):
    return record_attendance_many(day, [(teacher_id, flags, remarks)], recorded_by, overwrite=overwrite)[0]


def edit_attendance(attendance_id, flags, recorded_by=None, remarks=None):
    """Edits a record and adjusts the bill of its period in a single transaction."""
    record = ledger.get_record(attendance_id)
    teacher_id, day = record.teacher_id, record.date
    with bill_lock(teacher_id, day.month, day.year):
        with atomic():
            record, old_flags, new_flags = ledger.edit_meals(
                attendance_id, flags, recorded_by=recorded_by, remarks=remarks
            )
            bill, delta = _adjust_for_record(record, old_flags, new_flags)
    return AttendanceChange(record, old_flags, new_flags, bill, delta)


def delete_attendance(attendance_id):
    """Deletes a record and deducts its charged meals from the bill of its period in a single transaction."""
    record = ledger.get_record(attendance_id)
    teacher_id, day = record.teacher_id, record.date
    with bill_lock(teacher_id, day.month, day.year):
        with atomic():
            record = ledger.get_record(attendance_id)
            old_flags = MealFlags.of(record)
            bill, delta = _adjust_for_record(record, old_flags, MealFlags.none())
            removed = ledger.delete_record(attendance_id)
    return AttendanceChange(removed, old_flags, MealFlags.none(), bill, delta)


def get_bill(bill_id):
    bill = db.session.get(Bill, bill_id)
    if bill is None:
        raise NotFound("Bill not found.")
    return bill


def list_bills(teacher_id=None, month=None, year=None, is_paid=None, limit=None):
    query = Bill.query
    if teacher_id is not None:
        query = query.filter(Bill.teacher_id == teacher_id)
    if month is not None:
        query = query.filter(Bill.month == month)
    if year is not None:
        query = query.filter(Bill.year == year)
    if is_paid is not None:
        query = query.filter(Bill.is_paid.is_(is_paid))
    query = query.order_by(Bill.year.desc(), Bill.month.desc(), Bill.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def delete_bill(bill_id):
    """Only settled bills may be removed."""
    with atomic():
        bill = get_bill(bill_id)
        if not bill.is_paid:
            raise Conflict("Only paid bills can be deleted. Please mark the bill as paid first.")
        label = f"{bill.teacher.full_name} - {bill.period_label}"
        db.session.delete(bill)
    logger.info("Deleted paid bill %s (%s)", bill_id, label)
    return label
