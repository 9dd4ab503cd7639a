from flask import Blueprint, request
from schooladmin.extensions import db
from schooladmin.errors import NotFoundError, ValidationError
from schooladmin.models import ClassSeries, Student
from schooladmin.services.checkin import student_qr_payload
from schooladmin.services.years import require_working_year
from utils.access_control import Capability
from utils.decorators import capability_required, current_user
from utils.pagination import apply_pagination_and_search, pagination_meta
from utils.responses import success
from utils.validation import json_body, optional_date, optional_int, require_fields, require_int

students_bp = Blueprint("students", __name__)

EDITABLE_FIELDS = ("first_name", "last_name", "student_number", "gender", "parent_name", "parent_phone")


def _get_student(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError("Étudiant introuvable", code="STUDENT_NOT_FOUND")
    return student


def _get_series(series_id):
    series = db.session.get(ClassSeries, series_id)
    if series is None:
        raise ValidationError(errors={"class_series_id": ["Série introuvable"]})
    return series


def _check_student_number(number, exclude_id=None):
    if not number:
        return
    query = Student.query.filter(Student.student_number == number)
    if exclude_id is not None:
        query = query.filter(Student.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(errors={"student_number": ["Ce matricule est déjà utilisé"]})


def _filtered_query():
    year_id = optional_int(request.args.get("school_year_id"), "school_year_id")
    if year_id is None:
        year_id = require_working_year(current_user()).id

    query = Student.query.filter(Student.school_year_id == year_id)
    series_id = optional_int(request.args.get("series_id"), "series_id")
    class_id = optional_int(request.args.get("class_id"), "class_id")
    if series_id:
        query = query.filter(Student.class_series_id == series_id)
    elif class_id:
        query = query.join(ClassSeries).filter(ClassSeries.class_id == class_id)
    if request.args.get("include_inactive") not in ("1", "true"):
        query = query.filter(Student.is_active.is_(True))
    return query


@students_bp.route('', methods=['GET'])
@capability_required(Capability.VIEW_STUDENTS)
def list_students():
    paginated = apply_pagination_and_search(
        _filtered_query().order_by(Student.last_name, Student.first_name),
        Student,
        request.args.get("search", type=str),
        ["first_name", "last_name", "student_number", "parent_name"],
        request.args.get("page", 1, type=int),
        request.args.get("per_page", 20, type=int),
    )
    return success(data=[s.to_dict() for s in paginated.items], meta=pagination_meta(paginated))


@students_bp.route('/<int:student_id>', methods=['GET'])
@capability_required(Capability.VIEW_STUDENTS)
def get_student(student_id):
    return success(data=_get_student(student_id).to_dict())


@students_bp.route('', methods=['POST'])
@capability_required(Capability.MANAGE_STUDENTS)
def create_student():
    data = require_fields(json_body(request), "first_name", "last_name", "class_series_id")
    series = _get_series(require_int(data["class_series_id"], "class_series_id"))
    year_id = optional_int(data.get("school_year_id"), "school_year_id")
    if year_id is None:
        year_id = require_working_year(current_user()).id
    _check_student_number(data.get("student_number"))

    student = Student(
        class_series_id=series.id,
        school_year_id=year_id,
        date_of_birth=optional_date(data.get("date_of_birth"), "date_of_birth"),
        is_active=True,
    )
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(student, field, data[field])

    db.session.add(student)
    db.session.commit()
    return success(data=student.to_dict(), message="Étudiant créé avec succès", status=201)


@students_bp.route('/<int:student_id>', methods=['PUT'])
@capability_required(Capability.MANAGE_STUDENTS)
def update_student(student_id):
    student = _get_student(student_id)
    data = json_body(request)

    if "student_number" in data:
        _check_student_number(data["student_number"], exclude_id=student.id)
    if "class_series_id" in data:
        student.class_series_id = _get_series(require_int(data["class_series_id"], "class_series_id")).id
    if "date_of_birth" in data:
        student.date_of_birth = optional_date(data["date_of_birth"], "date_of_birth")
    if "is_active" in data:
        student.is_active = bool(data["is_active"])
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(student, field, data[field])

    db.session.commit()
    return success(data=student.to_dict(), message="Étudiant mis à jour")


@students_bp.route('/<int:student_id>/deactivate', methods=['POST'])
@capability_required(Capability.MANAGE_STUDENTS)
def deactivate_student(student_id):
    student = _get_student(student_id)
    student.is_active = False
    db.session.commit()
    return success(data=student.to_dict(), message="Étudiant désactivé")


@students_bp.route('/<int:student_id>/qr', methods=['GET'])
@capability_required(Capability.VIEW_STUDENTS)
def student_qr(student_id):
    return success(data=student_qr_payload(_get_student(student_id)))


@students_bp.route('/qr-codes', methods=['GET'])
@capability_required(Capability.VIEW_STUDENTS)
def all_student_qrs():
    students = _filtered_query().order_by(Student.last_name, Student.first_name).all()
    return success(data=[student_qr_payload(s) for s in students])
