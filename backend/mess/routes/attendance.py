from datetime import timedelta
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func, case
from mess.extensions import db
from mess.errors import ValidationError
from mess.models import AttendanceRecord, Teacher
from mess.services import ledger, reconciler
from mess.services.ledger import MealFlags
from mess.services.teachers import get_teacher
from utils.access_control import get_current_teacher, ensure_owns
from utils.audit import log_event
from utils.clock import get_clock
from utils.decorators import role_required, current_user
from utils.forms import as_bool
from utils.periods import parse_date, month_bounds, validate_period

attendance_bp = Blueprint('attendance', __name__)

MEAL_KEYS = ("breakfast", "lunch", "dinner")


def _flag(data, meal):
    return as_bool(data.get(meal, data.get(f"{meal}_taken")), meal)


def _flags_from(data):
    return MealFlags(*(_flag(data, meal) for meal in MEAL_KEYS))


def _range_from_args():
    """Either ?month=&year=, ?start=&end=, or the current month."""
    args = request.args
    if args.get('start') or args.get('end'):
        start = parse_date(args.get('start'), 'start')
        end = parse_date(args.get('end'), 'end')
        if end < start:
            raise ValueError("end must not be before start")
        return start, end
    today = get_clock().today()
    month, year = validate_period(args.get('month', today.month), args.get('year', today.year))
    return month_bounds(year, month)


def _change_payload(change, message, include_teacher=False):
    payload = {"message": message, "attendance": change.record.to_dict(include_teacher=include_teacher)}
    if change.bill is not None:
        payload["bill"] = change.bill.to_dict()
        payload["bill_adjustment"] = float(change.delta)
    return payload


def _deletion_message(change):
    day = change.record.date.strftime("%b %d, %Y")
    if change.bill is None or change.delta == 0:
        return f"Attendance deleted for {day}."
    amount = abs(change.delta)
    if change.bill.is_paid:
        return f"Attendance deleted for {day}. Credit of {amount:.2f} will be applied to the next bill."
    return f"Attendance deleted for {day}. The bill has been reduced by {amount:.2f}."


# ---------- Admin ----------

@attendance_bp.route('/', methods=['POST'])
@jwt_required()
@role_required('admin')
def mark_attendance():
    data = request.get_json() or {}
    try:
        day = parse_date(data.get('date') or get_clock().today(), 'date')
        teacher_id = int(data.get('teacher_id'))
    except (TypeError, ValueError) as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    change = reconciler.record_attendance(teacher_id, day, _flags_from(data), current_user().id,
                                          remarks=data.get('remarks'))
    return jsonify(_change_payload(change, "Attendance saved", include_teacher=True)), 201


@attendance_bp.route('/bulk', methods=['POST'])
@jwt_required()
@role_required('admin')
def mark_attendance_bulk():
    """
    Marks one day for many teachers: {"date": ..., "entries": [{"teacher_id": 1, "lunch": true}, ...]}.

    Entries without any meal are skipped. Any other bad entry rejects the
    whole request before anything is saved.
    """
    data = request.get_json() or {}
    try:
        day = parse_date(data.get('date') or get_clock().today(), 'date')
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    entries = data.get('entries') or []
    if not isinstance(entries, list) or not entries:
        return jsonify({"error": "ValidationError", "message": "entries must be a non-empty list"}), 400

    rows, skipped = [], []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(f"Entry {position} must be an object")
        flags = _flags_from(entry)
        if not flags.any:
            skipped.append(entry.get('teacher_id'))
            continue
        rows.append((entry.get('teacher_id'), flags, entry.get('remarks')))

    if not rows:
        return jsonify({"error": "NoMealsSelected",
                        "message": "Please select at least one meal for at least one teacher."}), 400

    changes = reconciler.record_attendance_many(day, rows, current_user().id)
    return jsonify({"message": f"Attendance saved for {len(changes)} teachers",
                    "attendance": [c.record.to_dict() for c in changes],
                    "skipped": skipped}), 201


@attendance_bp.route('/', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_by_date():
    try:
        day = parse_date(request.args.get('date') or get_clock().today(), 'date')
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    records = ledger.list_by_date(day)
    return jsonify({
        "date": day.isoformat(),
        "attendance": [r.to_dict(include_teacher=True) for r in records],
    }), 200


@attendance_bp.route('/teacher/<int:teacher_id>', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_for_teacher(teacher_id):
    teacher = get_teacher(teacher_id)
    try:
        start, end = _range_from_args()
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    records = ledger.list_period(teacher.id, start, end)
    return jsonify({
        "teacher": teacher.to_dict(),
        "start": start.isoformat(),
        "end": end.isoformat(),
        "attendance": [r.to_dict() for r in records],
    }), 200


@attendance_bp.route('/<int:attendance_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def edit_attendance(attendance_id):
    data = request.get_json() or {}
    change = reconciler.edit_attendance(attendance_id, _flags_from(data), recorded_by=current_user().id,
                                        remarks=data.get('remarks'))
    return jsonify(_change_payload(change, "Attendance updated")), 200


@attendance_bp.route('/<int:attendance_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_attendance(attendance_id):
    change = reconciler.delete_attendance(attendance_id)
    log_event("ATTENDANCE_DELETED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Attendance {attendance_id} of teacher {change.record.teacher_id} "
                          f"on {change.record.date} deleted, bill adjusted by {change.delta}")
    return jsonify(_change_payload(change, _deletion_message(change))), 200


@attendance_bp.route('/report', methods=['GET'])
@jwt_required()
@role_required('admin')
def monthly_report():
    today = get_clock().today()
    try:
        month, year = validate_period(request.args.get('month', today.month), request.args.get('year', today.year))
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400
    start, end = month_bounds(year, month)

    def meal_sum(column):
        return func.sum(case((column.is_(True), 1), else_=0))

    per_teacher = dict(
        (row.teacher_id, row)
        for row in db.session.query(
            AttendanceRecord.teacher_id,
            func.count(AttendanceRecord.id).label("days"),
            meal_sum(AttendanceRecord.breakfast_taken).label("breakfast"),
            meal_sum(AttendanceRecord.lunch_taken).label("lunch"),
            meal_sum(AttendanceRecord.dinner_taken).label("dinner"),
        )
        .filter(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
        .group_by(AttendanceRecord.teacher_id)
    )

    teachers = Teacher.query.filter(
        (Teacher.is_active.is_(True)) | (Teacher.id.in_(list(per_teacher)))
    ).order_by(Teacher.full_name).all()

    report = []
    for teacher in teachers:
        row = per_teacher.get(teacher.id)
        breakfast = int(row.breakfast or 0) if row else 0
        lunch = int(row.lunch or 0) if row else 0
        dinner = int(row.dinner or 0) if row else 0
        report.append({
            "teacher_id": teacher.id,
            "teacher_name": teacher.full_name,
            "department": teacher.department,
            "days_present": int(row.days) if row else 0,
            "breakfast": breakfast,
            "lunch": lunch,
            "dinner": dinner,
            "total_meals": breakfast + lunch + dinner,
        })

    daily = [
        {
            "date": row.date.isoformat(),
            "teachers": int(row.teachers),
            "breakfast": int(row.breakfast or 0),
            "lunch": int(row.lunch or 0),
            "dinner": int(row.dinner or 0),
        }
        for row in db.session.query(
            AttendanceRecord.date,
            func.count(AttendanceRecord.id).label("teachers"),
            meal_sum(AttendanceRecord.breakfast_taken).label("breakfast"),
            meal_sum(AttendanceRecord.lunch_taken).label("lunch"),
            meal_sum(AttendanceRecord.dinner_taken).label("dinner"),
        )
        .filter(AttendanceRecord.date >= start, AttendanceRecord.date <= end)
        .group_by(AttendanceRecord.date)
        .order_by(AttendanceRecord.date)
    ]

    return jsonify({
        "month": month,
        "year": year,
        "teachers": report,
        "daily_summary": daily,
        "total_meals": sum(r["total_meals"] for r in report),
    }), 200


# ---------- Teacher ----------

@attendance_bp.route('/mine', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_attendance():
    teacher = get_current_teacher(current_user())
    try:
        start, end = _range_from_args()
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    records = ledger.list_period(teacher.id, start, end)
    return jsonify({
        "start": start.isoformat(),
        "end": end.isoformat(),
        "attendance": [r.to_dict() for r in records],
        "total_meals": sum(r.meal_count for r in records),
    }), 200


@attendance_bp.route('/mine/recent', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_recent_attendance():
    """Last 30 days, newest first, for the teacher to verify and dispute."""
    teacher = get_current_teacher(current_user())
    today = get_clock().today()
    records = ledger.list_period(teacher.id, today - timedelta(days=30), today)
    return jsonify({"attendance": [r.to_dict() for r in reversed(records)]}), 200


@attendance_bp.route('/mine/<int:attendance_id>', methods=['DELETE'])
@jwt_required()
@role_required('teacher')
def delete_my_attendance(attendance_id):
    teacher = get_current_teacher(current_user())
    ensure_owns(teacher, db.session.get(AttendanceRecord, attendance_id),
                "Attendance record not found or you don't have permission to delete it.")

    change = reconciler.delete_attendance(attendance_id)
    log_event("ATTENDANCE_DELETED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Teacher {teacher.id} deleted own attendance on {change.record.date}")
    return jsonify(_change_payload(change, _deletion_message(change))), 200
