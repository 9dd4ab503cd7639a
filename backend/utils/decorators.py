from functools import wraps
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from schooladmin.extensions import db
from schooladmin.errors import AuthorizationError
from schooladmin.models import User
from utils.access_control import can


def current_user():
    """The authenticated, non-deleted user of this request."""
    user_id = get_jwt_identity()
    user = db.session.get(User, int(user_id)) if user_id else None
    return user if user and not user.deleted else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if current_user() is None:
            raise AuthorizationError("Utilisateur introuvable ou désactivé", code="USER_NOT_FOUND")
        return fn(*args, **kwargs)
    return wrapper


def capability_required(*capabilities):
    """
    Restrict access to users whose role grants every listed capability.
    Usage: @capability_required(Capability.MANAGE_YEARS)
    """
    def decorator(fn):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            user = current_user()
            if not all(can(user, cap) for cap in capabilities):
                raise AuthorizationError("Accès refusé : permissions insuffisantes")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
