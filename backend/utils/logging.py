from flask import request, jsonify, make_response
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request


def log_rate_limit_violation(request_limit):
    from mess.models import AuditLog
    from mess.extensions import db

    try:
        verify_jwt_in_request(optional=True)
        user_id = get_jwt_identity()
    except Exception:
        user_id = None

    log = AuditLog(
        user_id=int(user_id) if user_id else None,
        action=f"RATE_LIMIT_EXCEEDED: {request.method} {request.path}",
        ip_address=request.remote_addr,
    )
    db.session.add(log)
    db.session.commit()

    return make_response(jsonify({
        "error": "RateLimitExceeded",
        "message": "Rate limit exceeded. Please slow down."
    }), 429)
