from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from mess.models import DisputeStatus, enum_by_value
from mess.services import disputes
from mess.services.rates import get_configuration
from utils.access_control import get_current_teacher
from utils.audit import log_event
from utils.decorators import role_required, current_user

disputes_bp = Blueprint('disputes', __name__)


def _status_arg(default=None):
    raw = request.args.get('status', default)
    if not raw or raw.lower() == 'all':
        return None
    return enum_by_value(DisputeStatus, raw)


# ---------- Teacher ----------

@disputes_bp.route('/', methods=['POST'])
@jwt_required()
@role_required('teacher')
def file_dispute():
    teacher = get_current_teacher(current_user())
    data = request.get_json() or {}
    try:
        attendance_id = int(data.get('attendance_id'))
    except (TypeError, ValueError):
        return jsonify({"error": "ValidationError", "message": "attendance_id is required"}), 400

    dispute = disputes.file_dispute(attendance_id, teacher.id, data.get('reason'))
    log_event("DISPUTE_FILED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Dispute {dispute.id} on attendance {attendance_id}")
    return jsonify({
        "message": "Your dispute has been submitted and is awaiting admin review.",
        "dispute": dispute.to_dict(),
    }), 201


@disputes_bp.route('/mine', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_disputes():
    teacher = get_current_teacher(current_user())
    try:
        status = _status_arg()
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    items = disputes.list_disputes(status=status, teacher_id=teacher.id)
    return jsonify({"disputes": [d.to_dict() for d in items]}), 200


# ---------- Admin ----------

@disputes_bp.route('/', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_disputes():
    try:
        status = _status_arg(default=DisputeStatus.pending.value)
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    items = disputes.list_disputes(status=status)
    return jsonify({
        "status": status.value if status else "All",
        "disputes": [d.to_dict() for d in items],
    }), 200


@disputes_bp.route('/<int:dispute_id>', methods=['GET'])
@jwt_required()
@role_required('admin')
def get_dispute(dispute_id):
    dispute = disputes.get_dispute(dispute_id)
    config = get_configuration()
    return jsonify({
        "dispute": dispute.to_dict(),
        "rates": config.to_dict() if config else None,
    }), 200


@disputes_bp.route('/<int:dispute_id>/resolve', methods=['POST'])
@jwt_required()
@role_required('admin')
def resolve_dispute(dispute_id):
    data = request.get_json() or {}
    admin = current_user()
    dispute, bill = disputes.resolve(dispute_id, data.get('decision'), data.get('admin_notes'), admin.id)

    log_event("DISPUTE_RESOLVED", user_id=admin.id, ip=request.remote_addr,
              description=f"Dispute {dispute.id} {dispute.status.value}")
    payload = {
        "message": f"Dispute {dispute.status.value.lower()}.",
        "dispute": dispute.to_dict(),
    }
    if bill is not None:
        payload["bill"] = bill.to_dict()
    return jsonify(payload), 200
