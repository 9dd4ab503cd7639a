from types import SimpleNamespace

import pytest

from schooladmin.errors import AuthorizationError, ValidationError
from schooladmin.models import AuditLog, RoleEnum
from utils.access_control import Capability, can, ensure_self_or_admin
from utils.logging import log_rate_limit_violation
from utils.validation import optional_str, parse_iso_date, require_amount, require_fields, require_str


@pytest.mark.parametrize("role, capability, allowed", [
    (RoleEnum.admin, Capability.MANAGE_YEARS, True),
    (RoleEnum.surveillant_general, Capability.SCAN_ATTENDANCE, True),
    (RoleEnum.surveillant_general, Capability.MANAGE_YEARS, False),
    (RoleEnum.comptable, Capability.MANAGE_SCHOLARSHIPS, True),
    (RoleEnum.comptable, Capability.MANAGE_PAYMENTS, False),
    (RoleEnum.comptable_superieur, Capability.MANAGE_PAYMENTS, True),
    (RoleEnum.secretaire, Capability.MANAGE_STUDENTS, True),
    (RoleEnum.teacher, Capability.SCAN_ATTENDANCE, False),
    (RoleEnum.user, Capability.VIEW_STUDENTS, False),
])
def test_capability_table(make, role, capability, allowed):
    assert can(make.user(role), capability) is allowed


def test_deleted_users_hold_no_capability(make):
    admin = make.user(RoleEnum.admin)
    admin.soft_delete()
    assert not can(admin, Capability.MANAGE_USERS)
    assert not can(None, Capability.MANAGE_USERS)


def test_ensure_self_or_admin(make):
    supervisor = make.user(RoleEnum.surveillant_general)
    admin = make.user(RoleEnum.admin)

    ensure_self_or_admin(supervisor, supervisor.id)
    ensure_self_or_admin(admin, supervisor.id)
    with pytest.raises(AuthorizationError):
        ensure_self_or_admin(supervisor, admin.id)


def test_rate_limit_breach_is_persisted(app):
    with app.test_request_context("/supervisor/scan", method="POST"):
        response = log_rate_limit_violation(SimpleNamespace(limit="60 per 1 minute"))

    assert response.status_code == 429
    assert response.get_json()["error"] == "RATE_LIMIT_EXCEEDED"
    log = AuditLog.query.one()
    assert log.action.startswith("RATE_LIMIT_EXCEEDED: POST /supervisor/scan")
    assert log.user_id is None


def test_validation_helpers(app):
    assert parse_iso_date("2025-03-10").day == 10
    with pytest.raises(ValidationError) as exc:
        parse_iso_date("10/03/2025", "start_date")
    assert "start_date" in exc.value.errors

    with pytest.raises(ValidationError) as exc:
        require_fields({"name": "  "}, "name", "start_date")
    assert set(exc.value.errors) == {"name", "start_date"}

    with pytest.raises(ValidationError):
        require_amount("NaN")


def test_string_helpers_reject_other_types(app):
    assert require_str("  Awa ", "name") == "Awa"
    assert optional_str("   ", "email") is None
    for value in (5, ["a"], {"a": 1}):
        with pytest.raises(ValidationError) as exc:
            require_str(value, "name")
        assert "name" in exc.value.errors
    with pytest.raises(ValidationError):
        optional_str(False, "email")
