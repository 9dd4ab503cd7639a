from flask import Blueprint, request
from schooladmin.services import scholarships
from utils.access_control import Capability
from utils.audit import log_event
from utils.decorators import capability_required, current_user
from utils.responses import success
from utils.validation import json_body, optional_int, require_fields, require_int, require_int_list

scholarships_bp = Blueprint("scholarships", __name__)


@scholarships_bp.route('/classes', methods=['GET'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def list_class_scholarships():
    class_id = optional_int(request.args.get("class_id"), "class_id")
    active_only = request.args.get("active_only") in ("1", "true")
    rows = scholarships.list_class_scholarships(class_id, active_only)
    return success(data=[s.to_dict() for s in rows])


@scholarships_bp.route('/classes', methods=['POST'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def create_class_scholarship():
    data = require_fields(json_body(request), "school_class_id", "payment_tranche_id", "name", "amount")
    scholarship = scholarships.create_class_scholarship(
        require_int(data["school_class_id"], "school_class_id"),
        require_int(data["payment_tranche_id"], "payment_tranche_id"),
        data["name"],
        data["amount"],
        description=data.get("description"),
        is_active=data.get("is_active", True),
    )
    return success(data=scholarship.to_dict(), message="Bourse créée avec succès", status=201)


@scholarships_bp.route('/classes/<int:scholarship_id>/eligible-students', methods=['GET'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def eligible_students(scholarship_id):
    scholarship, students = scholarships.eligible_students(scholarship_id)
    return success(data={
        "scholarship": scholarship.to_dict(),
        "eligible_students": [s.to_dict() for s in students],
    })


@scholarships_bp.route('/students/<int:student_id>', methods=['GET'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def student_scholarships(student_id):
    return success(data=[s.to_dict() for s in scholarships.student_scholarships(student_id)])


@scholarships_bp.route('/assign', methods=['POST'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def assign():
    data = require_fields(json_body(request), "student_id", "class_scholarship_id", "payment_tranche_id")
    grant = scholarships.assign_scholarship(
        require_int(data["student_id"], "student_id"),
        require_int(data["class_scholarship_id"], "class_scholarship_id"),
        require_int(data["payment_tranche_id"], "payment_tranche_id"),
        data.get("notes"),
    )
    log_event("SCHOLARSHIP_ASSIGNED", user_id=current_user().id,
              description=f"student={grant.student_id} scholarship={grant.class_scholarship_id}")
    return success(data=grant.to_dict(), message="Bourse assignée avec succès", status=201)


@scholarships_bp.route('/assign-bulk', methods=['POST'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def assign_bulk():
    data = require_fields(json_body(request), "student_ids", "class_scholarship_id", "payment_tranche_id")
    result = scholarships.bulk_assign_scholarship(
        require_int_list(data["student_ids"], "student_ids"),
        require_int(data["class_scholarship_id"], "class_scholarship_id"),
        require_int(data["payment_tranche_id"], "payment_tranche_id"),
        data.get("notes"),
    )
    log_event("SCHOLARSHIP_ASSIGNED", user_id=current_user().id,
              description=f"bulk scholarship={data['class_scholarship_id']} count={result.assigned_count}")
    return success(data=result.to_dict(),
                   message=f"{result.assigned_count} bourse(s) assignée(s) avec succès")


@scholarships_bp.route('/<int:student_scholarship_id>', methods=['DELETE'])
@capability_required(Capability.MANAGE_SCHOLARSHIPS)
def remove(student_scholarship_id):
    scholarships.remove_scholarship(student_scholarship_id)
    return success(message="Bourse retirée avec succès")
