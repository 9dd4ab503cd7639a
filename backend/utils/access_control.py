import enum

from schooladmin.errors import AuthorizationError
from schooladmin.models import RoleEnum


class Capability(enum.Enum):
    MANAGE_YEARS = "manage_years"
    MANAGE_USERS = "manage_users"
    MANAGE_STRUCTURE = "manage_structure"
    MANAGE_STUDENTS = "manage_students"
    VIEW_STUDENTS = "view_students"
    ASSIGN_SUPERVISORS = "assign_supervisors"
    SCAN_ATTENDANCE = "scan_attendance"
    VIEW_ATTENDANCE = "view_attendance"
    MANAGE_PAYMENTS = "manage_payments"
    MANAGE_SCHOLARSHIPS = "manage_scholarships"
    MANAGE_TEACHERS = "manage_teachers"


ROLE_CAPABILITIES = {
    RoleEnum.admin: frozenset(Capability),
    RoleEnum.surveillant_general: frozenset({
        Capability.SCAN_ATTENDANCE,
        Capability.VIEW_ATTENDANCE,
        Capability.VIEW_STUDENTS,
    }),
    RoleEnum.comptable: frozenset({
        Capability.VIEW_STUDENTS,
        Capability.MANAGE_SCHOLARSHIPS,
    }),
    RoleEnum.comptable_superieur: frozenset({
        Capability.VIEW_STUDENTS,
        Capability.MANAGE_PAYMENTS,
        Capability.MANAGE_SCHOLARSHIPS,
    }),
    RoleEnum.secretaire: frozenset({
        Capability.VIEW_STUDENTS,
        Capability.MANAGE_STUDENTS,
        Capability.VIEW_ATTENDANCE,
    }),
    RoleEnum.teacher: frozenset({
        Capability.VIEW_STUDENTS,
    }),
    RoleEnum.user: frozenset(),
}


def is_admin(user):
    return user is not None and user.role == RoleEnum.admin


def can(user, capability):
    """
    Single policy check: does ``user`` hold ``capability`` through its role?
    Soft-deleted users hold nothing.
    """
    if user is None or user.deleted or user.role is None:
        return False
    return capability in ROLE_CAPABILITIES.get(user.role, frozenset())


def ensure_self_or_admin(user, target_user_id):
    """Supervisor-scoped routes: the actor acts for itself unless it is an admin."""
    if is_admin(user):
        return
    if target_user_id is None or int(target_user_id) != user.id:
        raise AuthorizationError("Vous ne pouvez agir que pour votre propre compte", code="FORBIDDEN")
