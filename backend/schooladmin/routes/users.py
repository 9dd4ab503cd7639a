from flask import Blueprint, request
from schooladmin.extensions import db
from schooladmin.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from schooladmin.models import AuditLog, RoleEnum, User
from schooladmin.services import supervision
from utils.access_control import Capability
from utils.audit import log_event
from utils.decorators import capability_required, current_user, login_required
from utils.pagination import apply_pagination_and_search, pagination_meta
from utils.responses import success
from utils.validation import json_body, optional_str, require_fields, require_str

users_bp = Blueprint('users', __name__)


def _parse_role(value):
    try:
        return RoleEnum(value)
    except ValueError:
        raise ValidationError(errors={"role": [f"Rôle inconnu : {value}"]})


def _check_unique(field, value, exclude_id=None):
    query = User.query.filter(getattr(User, field) == value)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Ce {field} est déjà utilisé", code="DUPLICATE_" + field.upper(),
                            errors={field: ["Déjà utilisé"]})


def _check_password(value):
    if not isinstance(value, str) or len(value) < 6:
        raise ValidationError(errors={"password": ["6 caractères minimum"]})
    return value


def _audit(action):
    db.session.add(AuditLog(user_id=current_user().id, action=action, ip_address=request.remote_addr))


@users_bp.route('', methods=['GET'])
@capability_required(Capability.MANAGE_USERS)
def list_users():
    query = User.query.filter_by(deleted=request.args.get('deleted', '0') in ('1', 'true'))
    role = request.args.get('role')
    if role:
        query = query.filter(User.role == _parse_role(role))

    page = apply_pagination_and_search(
        query.order_by(User.username),
        User,
        request.args.get('search'),
        ['username', 'full_name', 'email'],
        page=request.args.get('page', 1, type=int),
        per_page=request.args.get('per_page', 20, type=int),
    )
    return success(data=[u.to_dict() for u in page.items], meta=pagination_meta(page))


@users_bp.route('', methods=['POST'])
@capability_required(Capability.MANAGE_USERS)
def create_user():
    data = require_fields(json_body(request), 'username', 'password', 'role')
    username = require_str(data['username'], 'username')
    email = optional_str(data.get('email'), 'email')

    password = _check_password(data['password'])
    _check_unique('username', username)
    if email:
        _check_unique('email', email)

    user = User(
        username=username,
        email=email,
        full_name=optional_str(data.get('full_name'), 'full_name'),
        role=_parse_role(data['role']),
    )
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    _audit(f"Created user (id={user.id}) with role {user.role.value}")
    db.session.commit()

    log_event("USER_CREATED", user_id=current_user().id, description=f"user={user.id}")
    return success(data=user.to_dict(), message="Utilisateur créé avec succès", status=201)


@users_bp.route('/<int:user_id>', methods=['PUT'])
@capability_required(Capability.MANAGE_USERS)
def update_user(user_id):
    user = User.query.filter_by(id=user_id, deleted=False).first()
    if user is None:
        raise NotFoundError("Utilisateur introuvable", code="USER_NOT_FOUND")
    data = json_body(request)

    if 'username' in data:
        new_username = require_str(data['username'], 'username')
        _check_unique('username', new_username, exclude_id=user.id)
        user.username = new_username

    if 'email' in data:
        new_email = optional_str(data['email'], 'email')
        if new_email:
            _check_unique('email', new_email, exclude_id=user.id)
        user.email = new_email

    if 'full_name' in data:
        user.full_name = optional_str(data['full_name'], 'full_name')

    if data.get('password'):
        user.set_password(_check_password(data['password']))

    if 'role' in data:
        new_role = _parse_role(data['role'])
        if user.role == RoleEnum.surveillant_general and new_role != RoleEnum.surveillant_general:
            # a former supervisor keeps no scanning rights
            supervision.deactivate_for_supervisor(user.id)
        user.role = new_role

    db.session.commit()
    return success(data=user.to_dict(), message="Utilisateur mis à jour")


@users_bp.route('/me', methods=['PUT'])
@login_required
def update_own_account():
    user = current_user()
    data = json_body(request)

    if 'email' in data:
        new_email = optional_str(data['email'], 'email')
        if new_email:
            _check_unique('email', new_email, exclude_id=user.id)
        user.email = new_email

    if 'full_name' in data:
        user.full_name = optional_str(data['full_name'], 'full_name')

    if data.get('password'):
        if not user.check_password(data.get('current_password') or ''):
            raise ValidationError(errors={"current_password": ["Mot de passe actuel incorrect"]})
        user.set_password(_check_password(data['password']))

    db.session.commit()
    return success(data=user.to_dict(), message="Votre compte a été mis à jour")


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@capability_required(Capability.MANAGE_USERS)
def soft_delete_user(user_id):
    user = User.query.filter_by(id=user_id, deleted=False).first()
    if user is None:
        raise NotFoundError("Utilisateur introuvable", code="USER_NOT_FOUND")

    if user.role == RoleEnum.admin:
        raise AuthorizationError("Impossible de supprimer un administrateur", code="PROTECTED_USER")

    reason = (request.get_json(silent=True) or {}).get('reason', '')
    user.soft_delete()
    _audit(f"Removed user (id={user.id}). Reason: {reason or 'N/A'}")
    db.session.commit()

    log_event("USER_REMOVED", user_id=current_user().id, level="WARNING", description=f"user={user.id}")
    return success(message="Utilisateur supprimé")


@users_bp.route('/<int:user_id>/restore', methods=['POST'])
@capability_required(Capability.MANAGE_USERS)
def restore_user(user_id):
    user = User.query.filter_by(id=user_id, deleted=True).first()
    if user is None:
        raise NotFoundError("Utilisateur supprimé introuvable", code="USER_NOT_FOUND")

    user.restore()
    _audit(f"Restored user (id={user.id})")
    db.session.commit()
    return success(data=user.to_dict(), message="Utilisateur restauré")
