from flask import request, jsonify, make_response
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError


def log_rate_limit_violation(limit):
    """``on_breach`` hook: persist the breach and answer 429 in the envelope."""
    # models import the extensions module, which imports this one
    from schooladmin.extensions import db
    from schooladmin.models import AuditLog

    try:
        verify_jwt_in_request(optional=True)
        user_id = get_jwt_identity()
    except (JWTExtendedException, PyJWTError):
        user_id = None

    log = AuditLog(
        user_id=int(user_id) if user_id else None,
        action=f"RATE_LIMIT_EXCEEDED: {request.method} {request.path} ({limit.limit})",
        ip_address=request.remote_addr,
    )
    db.session.add(log)
    db.session.commit()

    return make_response(jsonify({
        "success": False,
        "error": "RATE_LIMIT_EXCEEDED",
        "message": "Trop de requêtes. Veuillez ralentir.",
    }), 429)
