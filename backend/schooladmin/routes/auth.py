import re
from datetime import datetime, timezone

from flask import Blueprint, request, jsonify, current_app, make_response
from flask_jwt_extended import (
    create_access_token, create_refresh_token, jwt_required,
    get_jwt_identity, get_jwt
)
from schooladmin.extensions import db, limiter
from schooladmin.errors import ValidationError, error_response
from schooladmin.models import User, TokenBlocklist
from schooladmin.services.years import resolve_working_year
from utils.audit import log_event
from utils.decorators import current_user, login_required

auth_bp = Blueprint('auth', __name__)

USERNAME_PATTERN = re.compile(r'^[\w.@+-]{3,}$')


def _issue_access_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role.value},
    )


def _set_cookie(response, name, token, lifetime, path):
    response.set_cookie(
        name,
        token,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        secure=current_app.config["JWT_COOKIE_SECURE"],
        samesite=current_app.config["JWT_COOKIE_SAMESITE"],
        path=path,
    )


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def login():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    username = username.strip() if isinstance(username, str) else ''
    password = data.get('password')
    password = password if isinstance(password, str) else ''
    ip = request.remote_addr

    if not username or not password:
        raise ValidationError("Nom d'utilisateur et mot de passe requis")

    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Format du nom d'utilisateur invalide",
                              errors={"username": ["Format invalide"]})

    user = User.query.filter_by(username=username, deleted=False).first()

    if user and user.check_password(password):
        access_token = _issue_access_token(user)
        refresh_token = create_refresh_token(identity=str(user.id))
        year = resolve_working_year(user)

        response = make_response(jsonify({
            "success": True,
            "message": "Connexion réussie",
            "data": {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "user": user.to_dict(),
                "working_year": year.to_dict() if year else None,
            },
        }))
        _set_cookie(response, "access_token_cookie", access_token,
                    current_app.config["JWT_ACCESS_TOKEN_EXPIRES"], "/")
        _set_cookie(response, "refresh_token_cookie", refresh_token,
                    current_app.config["JWT_REFRESH_TOKEN_EXPIRES"], "/auth/refresh")

        log_event("LOGIN_SUCCESS", user_id=user.id, ip=ip, description=f"{username} logged in")
        return response

    log_event("LOGIN_FAILED", ip=ip, level="WARNING", description=f"Failed login attempt for {username}")
    return error_response("Identifiants invalides", 401, "INVALID_CREDENTIALS")


@auth_bp.route('/me', methods=['GET'])
@login_required
def get_current_user():
    user = current_user()
    year = resolve_working_year(user)
    return jsonify({
        "success": True,
        "data": {
            "user": user.to_dict(),
            "working_year": year.to_dict() if year else None,
        },
    }), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True, locations=["cookies", "headers"])
def refresh_access_token():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user or user.deleted:
        return error_response("Utilisateur introuvable", 401, "USER_NOT_FOUND")

    access_token = _issue_access_token(user)
    response = make_response(jsonify({
        "success": True,
        "message": "Jeton renouvelé",
        "data": {"access_token": access_token},
    }))
    _set_cookie(response, "access_token_cookie", access_token,
                current_app.config["JWT_ACCESS_TOKEN_EXPIRES"], "/")

    log_event("REFRESH_TOKEN", user_id=user.id, ip=request.remote_addr)
    return response


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    user_id = int(get_jwt_identity())
    expires = datetime.fromtimestamp(claims["exp"], tz=timezone.utc).replace(tzinfo=None)

    db.session.add(TokenBlocklist(jti=claims["jti"], token_type=claims["type"],
                                  user_id=user_id, expires_at=expires))
    db.session.commit()

    response = make_response(jsonify({"success": True, "message": "Déconnexion réussie"}))
    response.delete_cookie("access_token_cookie", path="/")
    response.delete_cookie("refresh_token_cookie", path="/auth/refresh")

    log_event("LOGOUT", user_id=user_id, ip=request.remote_addr)
    return response
