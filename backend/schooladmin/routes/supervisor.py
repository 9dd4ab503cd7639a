from flask import Blueprint, request
from schooladmin.extensions import db, limiter
from schooladmin.errors import AuthorizationError, NotFoundError, ValidationError
from schooladmin.models import RoleEnum, Student, User
from schooladmin.services import attendance, supervision, years
from schooladmin.services.checkin import CheckInAuthorizer, decode_student_qr
from utils.access_control import Capability, ensure_self_or_admin, is_admin
from utils.audit import log_event
from utils.decorators import capability_required, current_user
from utils.responses import success
from utils.validation import (
    json_body, now_local, optional_date, optional_int, parse_iso_date, require_fields, require_int,
    require_int_list,
)

supervisor_bp = Blueprint("supervisor", __name__)


def _supervisor_scope(supervisor_id):
    """The acting user may read a supervisor's data only for itself, unless admin."""
    actor = current_user()
    ensure_self_or_admin(actor, supervisor_id)
    supervisor = db.session.get(User, supervisor_id)
    if supervisor is None:
        raise NotFoundError("Surveillant introuvable", code="SUPERVISOR_NOT_FOUND")
    if supervisor.role != RoleEnum.surveillant_general:
        raise AuthorizationError("Vous n'êtes pas autorisé à consulter les présences", code="NOT_A_SUPERVISOR")
    return supervisor


def _scoped_class_ids(supervisor_id, year_id):
    class_ids = supervision.assigned_class_ids(supervisor_id, year_id)
    class_id = optional_int(request.args.get("class_id"), "class_id")
    if class_id is None:
        return class_ids
    if class_id not in class_ids:
        raise AuthorizationError("Cette classe ne vous est pas assignée", code="NOT_AUTHORIZED_FOR_CLASS")
    return [class_id]


# Assignments

@supervisor_bp.route('/assign', methods=['POST'])
@capability_required(Capability.ASSIGN_SUPERVISORS)
def assign():
    data = require_fields(json_body(request), "supervisor_id", "school_class_id")
    year_id = optional_int(data.get("school_year_id"), "school_year_id")
    if year_id is None:
        year_id = years.require_working_year(current_user()).id
    assignment = supervision.assign(
        require_int(data["supervisor_id"], "supervisor_id"),
        require_int(data["school_class_id"], "school_class_id"),
        year_id,
    )
    log_event("SUPERVISOR_ASSIGNED", user_id=current_user().id,
              description=f"supervisor={assignment.supervisor_id} class={assignment.school_class_id}")
    return success(data=assignment.to_dict(), message="Surveillant assigné avec succès", status=201)


@supervisor_bp.route('/assign-bulk', methods=['POST'])
@capability_required(Capability.ASSIGN_SUPERVISORS)
def assign_bulk():
    data = require_fields(json_body(request), "supervisor_id", "class_ids")
    year_id = optional_int(data.get("school_year_id"), "school_year_id")
    if year_id is None:
        year_id = years.require_working_year(current_user()).id
    result = supervision.assign_many(
        require_int(data["supervisor_id"], "supervisor_id"),
        require_int_list(data["class_ids"], "class_ids"),
        year_id,
    )
    log_event("SUPERVISOR_ASSIGNED", user_id=current_user().id,
              description=f"bulk supervisor={data['supervisor_id']} count={result.assigned_count}")
    return success(data=result.to_dict(),
                   message=f"{result.assigned_count} classe(s) assignée(s) avec succès")


@supervisor_bp.route('/assignments', methods=['GET'])
@capability_required(Capability.ASSIGN_SUPERVISORS)
def all_assignments():
    year_id = optional_int(request.args.get("school_year_id"), "school_year_id")
    return success(data=[a.to_dict() for a in supervision.list_all(year_id)])


@supervisor_bp.route('/assignments/<int:supervisor_id>', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def supervisor_assignments(supervisor_id):
    ensure_self_or_admin(current_user(), supervisor_id)
    active_only = request.args.get("include_inactive") not in ("1", "true")
    return success(data=[a.to_dict() for a in supervision.list_for_supervisor(supervisor_id, active_only)])


@supervisor_bp.route('/assignments/<int:assignment_id>/deactivate', methods=['POST'])
@capability_required(Capability.ASSIGN_SUPERVISORS)
def deactivate_assignment(assignment_id):
    assignment = supervision.deactivate(assignment_id)
    return success(data=assignment.to_dict(), message="Assignation désactivée")


@supervisor_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@capability_required(Capability.ASSIGN_SUPERVISORS)
def delete_assignment(assignment_id):
    supervision.delete(assignment_id)
    log_event("SUPERVISOR_UNASSIGNED", user_id=current_user().id, description=f"assignment={assignment_id}")
    return success(message="Assignation supprimée avec succès")


# Scanning

@supervisor_bp.route('/scan', methods=['POST'])
@limiter.limit("60 per minute", override_defaults=False)
@capability_required(Capability.SCAN_ATTENDANCE)
def scan():
    data = require_fields(json_body(request), "student_qr_code", "supervisor_id")
    supervisor_id = require_int(data["supervisor_id"], "supervisor_id")
    ensure_self_or_admin(current_user(), supervisor_id)

    result = CheckInAuthorizer().scan(
        data["student_qr_code"], supervisor_id, event_type=data.get("event_type") or "entry",
    )
    return success(data=result.to_dict(), message=f"{result.event_label} enregistrée avec succès")


@supervisor_bp.route('/student-status', methods=['POST'])
@capability_required(Capability.VIEW_ATTENDANCE)
def student_status():
    data = require_fields(json_body(request), "student_qr_code")
    student_id = decode_student_qr(data["student_qr_code"])
    if student_id is None:
        raise ValidationError("Code QR invalide", code="INVALID_QR_FORMAT")
    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError("Étudiant introuvable", code="STUDENT_NOT_FOUND")
    year = years.require_active_year()
    day = optional_date(data.get("date"), default=now_local().date())
    return success(data=attendance.student_status(student, day, year.id))


# Attendance reads

@supervisor_bp.route('/daily-attendance', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def daily_attendance():
    supervisor_id = require_int(request.args.get("supervisor_id"), "supervisor_id")
    _supervisor_scope(supervisor_id)
    day = optional_date(request.args.get("date"), default=now_local().date())
    year = years.require_active_year()

    records = attendance.query_by_date(day, year.id, _scoped_class_ids(supervisor_id, year.id))
    return success(data={
        "date": day.strftime("%d/%m/%Y"),
        "total_present": sum(1 for r in records if r.is_present),
        "attendances": [r.to_dict() for r in records],
    })


@supervisor_bp.route('/attendance-range', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def attendance_range():
    supervisor_id = require_int(request.args.get("supervisor_id"), "supervisor_id")
    _supervisor_scope(supervisor_id)
    start = parse_iso_date(request.args.get("start_date"), "start_date")
    end = parse_iso_date(request.args.get("end_date"), "end_date")
    if end < start:
        raise ValidationError(errors={"end_date": ["La date de fin doit être postérieure ou égale à la date de début"]})
    year = years.require_active_year()

    records = attendance.query_by_range(start, end, year.id, _scoped_class_ids(supervisor_id, year.id))
    return success(data={
        "start_date": start.strftime("%d/%m/%Y"),
        "end_date": end.strftime("%d/%m/%Y"),
        "total_records": len(records),
        "attendances": [r.to_dict() for r in records],
    })


@supervisor_bp.route('/entry-exit-stats', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def entry_exit_stats():
    supervisor_id = optional_int(request.args.get("supervisor_id"), "supervisor_id")
    if supervisor_id is not None or not is_admin(current_user()):
        _supervisor_scope(supervisor_id)
    day = optional_date(request.args.get("date"), default=now_local().date())
    year = years.require_active_year()
    return success(data=attendance.entry_exit_stats(day, year.id))
