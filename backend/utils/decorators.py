from functools import wraps
from flask_jwt_extended import get_jwt_identity
from flask import jsonify
from mess.extensions import db
from mess.models import User


def current_user():
    user_id = get_jwt_identity()
    if not user_id:
        return None
    return db.session.get(User, int(user_id))


def role_required(*allowed_roles):
    """
    Restrict access to users with specific roles.
    Usage: @role_required("admin", "teacher")
    """
    allowed_roles = set(role.lower() for role in allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user_id = get_jwt_identity()
            if not user_id:
                return jsonify({"error": "Unauthorized", "message": "Missing or invalid JWT token"}), 401

            user = db.session.get(User, int(user_id))
            if not user or not user.is_active:
                return jsonify({"error": "Unauthorized", "message": "User not found"}), 401

            user_role_name = user.role.name.lower() if user.role else ""
            if user_role_name not in allowed_roles:
                return jsonify({"error": "Forbidden", "message": "Access forbidden: insufficient permissions"}), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator


def admin_required(fn):
    return role_required("admin")(fn)


def teacher_required(fn):
    return role_required("teacher")(fn)
