from flask import Blueprint, request
from schooladmin.services import teaching, years
from utils.access_control import Capability
from utils.audit import log_event
from utils.decorators import capability_required, current_user, login_required
from utils.responses import success
from utils.serialization import to_dict
from utils.validation import json_body, optional_int, require_amount, require_fields, require_int, require_int_list

teachers_bp = Blueprint("teachers", __name__)


def _year_id(data):
    year_id = optional_int(data.get("school_year_id"), "school_year_id")
    if year_id is None:
        year_id = years.require_working_year(current_user()).id
    return year_id


@teachers_bp.route('', methods=['GET'])
@login_required
def list_teachers():
    active_only = request.args.get("active_only") in ("1", "true")
    return success(data=[t.to_dict() for t in teaching.list_teachers(active_only)])


@teachers_bp.route('', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def create_teacher():
    data = require_fields(json_body(request), "first_name", "last_name", "phone_number")
    teacher = teaching.create_teacher(
        data["first_name"], data["last_name"], data["phone_number"],
        email=data.get("email"),
        qualification=data.get("qualification"),
        user_id=optional_int(data.get("user_id"), "user_id"),
    )
    return success(data=teacher.to_dict(), message="Enseignant créé avec succès", status=201)


@teachers_bp.route('/subjects', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def create_subject():
    data = require_fields(json_body(request), "name", "code")
    subject = teaching.create_subject(data["name"], data["code"], data.get("description"))
    return success(data=to_dict(subject), message="Matière créée avec succès", status=201)


@teachers_bp.route('/class-subjects', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def add_class_subject():
    data = require_fields(json_body(request), "school_class_id", "subject_id")
    class_subject = teaching.add_class_subject(
        require_int(data["school_class_id"], "school_class_id"),
        require_int(data["subject_id"], "subject_id"),
        require_amount(data.get("coefficient", 1), "coefficient"),
    )
    return success(data=class_subject.to_dict(), message="Matière ajoutée à la classe", status=201)


@teachers_bp.route('/assignments', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def assign():
    data = require_fields(json_body(request), "teacher_id", "class_subject_id")
    assignment = teaching.assign(
        require_int(data["teacher_id"], "teacher_id"),
        require_int(data["class_subject_id"], "class_subject_id"),
        _year_id(data),
    )
    return success(data=assignment.to_dict(), message="Enseignant affecté avec succès", status=201)


@teachers_bp.route('/<int:teacher_id>/bulk-assign', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def bulk_assign(teacher_id):
    data = require_fields(json_body(request), "class_subject_ids")
    result = teaching.assign_many(
        teacher_id,
        require_int_list(data["class_subject_ids"], "class_subject_ids"),
        _year_id(data),
    )
    log_event("TEACHER_ASSIGNED", user_id=current_user().id,
              description=f"bulk teacher={teacher_id} count={result.assigned_count}")
    return success(data=result.to_dict(),
                   message=f"{result.assigned_count} affectation(s) créée(s) avec succès")


@teachers_bp.route('/<int:teacher_id>/assignments', methods=['GET'])
@login_required
def teacher_assignments(teacher_id):
    year_id = optional_int(request.args.get("school_year_id"), "school_year_id")
    return success(data=[a.to_dict() for a in teaching.list_for_teacher(teacher_id, year_id)])


@teachers_bp.route('/<int:teacher_id>/available-subjects', methods=['GET'])
@capability_required(Capability.MANAGE_TEACHERS)
def available_subjects(teacher_id):
    year_id = _year_id(request.args)
    return success(data=[cs.to_dict() for cs in teaching.available_class_subjects(teacher_id, year_id)])


@teachers_bp.route('/assignments/<int:assignment_id>/toggle', methods=['POST'])
@capability_required(Capability.MANAGE_TEACHERS)
def toggle_assignment(assignment_id):
    assignment = teaching.toggle_status(assignment_id)
    return success(data=assignment.to_dict(), message="Statut de l'affectation mis à jour")


@teachers_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@capability_required(Capability.MANAGE_TEACHERS)
def delete_assignment(assignment_id):
    teaching.delete(assignment_id)
    return success(message="Affectation supprimée avec succès")
