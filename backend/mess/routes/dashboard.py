from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from mess.models import Teacher, User, AttendanceRecord, AttendanceDispute, Bill, DisputeStatus
from utils.clock import get_clock
from utils.decorators import role_required

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/summary')
@jwt_required()
@role_required('admin')
def summary():
    today = get_clock().today()

    recent = (
        AttendanceRecord.query
        .order_by(AttendanceRecord.recorded_at.desc(), AttendanceRecord.id.desc())
        .limit(10)
        .all()
    )

    return jsonify({
        "totalTeachers": Teacher.query.count(),
        "activeTeachers": Teacher.query.filter_by(is_active=True).count(),
        "totalUsers": User.query.count(),
        "todaysAttendance": AttendanceRecord.query.filter_by(date=today).count(),
        "pendingDisputes": AttendanceDispute.query.filter_by(status=DisputeStatus.pending).count(),
        "unpaidBills": Bill.query.filter_by(is_paid=False).count(),
        "recentAttendance": [r.to_dict(include_teacher=True) for r in recent],
    })
