from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from mess.models import Teacher
from mess.services import teachers as teacher_service
from utils.access_control import get_current_teacher, ensure_can_view_teacher
from utils.audit import log_event
from utils.decorators import role_required, current_user
from utils.forms import as_bool
from utils.pagination import paginate_request

teachers_bp = Blueprint('teachers', __name__)


@teachers_bp.route('/', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_teachers():
    active = request.args.get('active')

    query = Teacher.query
    if active is not None:
        query = query.filter(Teacher.is_active.is_(as_bool(active, 'active')))
    query = query.order_by(Teacher.full_name)

    teachers, meta = paginate_request(query, Teacher, ["full_name", "email", "department"])
    return jsonify({
        "teachers": [t.to_dict() for t in teachers],
        **meta,
    }), 200


@teachers_bp.route('/me', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_profile():
    teacher = get_current_teacher(current_user())
    return jsonify(teacher.to_dict()), 200


@teachers_bp.route('/<int:teacher_id>', methods=['GET'])
@jwt_required()
@role_required('admin', 'teacher')
def get_teacher(teacher_id):
    teacher = teacher_service.get_teacher(teacher_id)
    ensure_can_view_teacher(current_user(), teacher)
    return jsonify(teacher.to_dict()), 200


@teachers_bp.route('/', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_teacher():
    data = request.get_json() or {}
    teacher = teacher_service.create_teacher(data)

    log_event("TEACHER_CREATED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Created teacher {teacher.full_name} ({teacher.user.username})")
    return jsonify({"message": "Teacher created successfully", "teacher": teacher.to_dict()}), 201


@teachers_bp.route('/<int:teacher_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_teacher(teacher_id):
    data = request.get_json() or {}
    if not data:
        return jsonify({"error": "ValidationError", "message": "No input data provided"}), 400

    teacher = teacher_service.update_teacher(teacher_id, data)
    return jsonify({"message": "Teacher updated successfully", "teacher": teacher.to_dict()}), 200


@teachers_bp.route('/<int:teacher_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_teacher(teacher_id):
    name = teacher_service.delete_teacher(teacher_id)

    log_event("TEACHER_DELETED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Deleted teacher {name} with attendance, bills and disputes", level="WARNING")
    return jsonify({"message": f"Teacher {name} and all related records were deleted"}), 200
