from flask import Blueprint, request, jsonify, current_app, make_response
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required,
    get_jwt_identity, get_jwt
)
from mess.models import User, TokenBlocklist
from mess.extensions import db, limiter, LOGIN_LIMIT, SENSITIVE_LIMIT
from utils.audit import log_event
from utils.decorators import current_user
from datetime import datetime
import re

auth_bp = Blueprint('auth', __name__)


def _issue_tokens(user):
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role_name}
    )
    refresh_token = create_refresh_token(identity=str(user.id))
    return access_token, refresh_token


def _set_token_cookies(response, access_token, refresh_token=None):
    secure_flag = current_app.config["JWT_COOKIE_SECURE"]
    same_site = current_app.config["JWT_COOKIE_SAMESITE"]
    access_age = int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds())

    response.set_cookie(
        "access_token_cookie",
        access_token,
        max_age=access_age,
        httponly=True,
        secure=secure_flag,
        samesite=same_site,
        path="/"
    )
    if refresh_token:
        response.set_cookie(
            "refresh_token_cookie",
            refresh_token,
            max_age=int(current_app.config["JWT_REFRESH_TOKEN_EXPIRES"].total_seconds()),
            httponly=True,
            secure=secure_flag,
            samesite=same_site,
            path="/auth/refresh"
        )
    return response


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(LOGIN_LIMIT, override_defaults=False)
def login():
    data = request.get_json() or {}
    username = data.get('username', '').strip()
    password = data.get('password', '')
    expected_role = (data.get('role') or '').strip().lower()
    ip = request.remote_addr

    if not username or not password:
        return jsonify({"error": "ValidationError", "message": "Username and password are required"}), 400

    if not re.match(r'^[\w.@+-]{3,}$', username):
        return jsonify({"error": "ValidationError", "message": "Invalid username format"}), 400

    user = User.query.filter_by(username=username, is_active=True).first()

    if not user or not user.check_password(password):
        log_event("LOGIN_FAILED", ip=ip, description=f"Failed login attempt for {username}", level="WARNING")
        return jsonify({"error": "Unauthorized", "message": "Invalid username or password"}), 401

    if expected_role and user.role_name != expected_role:
        log_event("LOGIN_FAILED", user_id=user.id, ip=ip, description=f"{username} is not a {expected_role}",
                  level="WARNING")
        return jsonify({"error": "Unauthorized", "message": "Invalid username or password"}), 401

    access_token, refresh_token = _issue_tokens(user)
    response = make_response(jsonify({
        "message": "Login successful",
        "access_token": access_token,
        "user": user.to_dict(),
    }))
    _set_token_cookies(response, access_token, refresh_token)

    log_event("LOGIN_SUCCESS", user_id=user.id, ip=ip, description=f"{username} logged in")
    return response


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    user = current_user()
    if not user:
        return jsonify({"error": "NotFound", "message": "User not found"}), 404

    data = user.to_dict()
    if user.teacher:
        data["teacher"] = user.teacher.to_dict()
    return jsonify(data), 200


@auth_bp.route('/validate', methods=['GET'])
@jwt_required()
def validate_token():
    user = current_user()
    if not user or not user.is_active:
        return jsonify({"valid": False}), 401
    return jsonify({"valid": True, "user_id": user.id, "role": user.role_name}), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh_access_token():
    user = current_user()
    if not user or not user.is_active:
        return jsonify({"error": "NotFound", "message": "User not found"}), 404

    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role_name}
    )
    response = make_response(jsonify({"message": "Token refreshed", "access_token": access_token}))
    _set_token_cookies(response, access_token)

    log_event("REFRESH_TOKEN", user_id=user.id, ip=request.remote_addr)
    return response


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    user_id = get_jwt_identity()

    token_block = TokenBlocklist(
        jti=claims["jti"],
        token_type=claims.get("type", "access"),
        user_id=int(user_id),
        expires_at=datetime.fromtimestamp(claims["exp"]),
    )
    db.session.add(token_block)
    db.session.commit()

    response = make_response(jsonify({"message": "Successfully logged out"}))
    response.delete_cookie("access_token_cookie", path="/")
    response.delete_cookie("refresh_token_cookie", path="/auth/refresh")

    log_event("LOGOUT", user_id=user_id, ip=request.remote_addr)
    return response


@auth_bp.route('/change-password', methods=['POST'])
@jwt_required()
@limiter.limit(SENSITIVE_LIMIT, override_defaults=False)
def change_password():
    user = current_user()
    if not user:
        return jsonify({"error": "NotFound", "message": "User not found"}), 404

    data = request.get_json() or {}
    current_password = data.get('current_password', '')
    new_password = data.get('new_password', '')

    if not user.check_password(current_password):
        return jsonify({"error": "ValidationError", "message": "Current password is incorrect"}), 400
    if len(new_password) < 6:
        return jsonify({"error": "ValidationError", "message": "New password must be at least 6 characters"}), 400
    if new_password == current_password:
        return jsonify({"error": "ValidationError", "message": "New password must differ from the current one"}), 400

    user.set_password(new_password)
    user.must_change_password = False
    db.session.commit()

    log_event("PASSWORD_CHANGED", user_id=user.id, ip=request.remote_addr)
    return jsonify({"message": "Password changed successfully"}), 200
