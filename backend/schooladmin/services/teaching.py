import logging

from sqlalchemy.exc import IntegrityError

from schooladmin.extensions import db
from schooladmin.errors import ConflictError, NotFoundError
from schooladmin.models import ClassSubject, SchoolClass, SchoolYear, Subject, Teacher, TeacherAssignment
from schooladmin.services.batch import run_batch
from utils.validation import optional_str, require_str

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Cet enseignant est déjà affecté à cette matière dans cette classe"


def _get(model, object_id, message, code):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(message, code=code)
    return obj


def get_teacher(teacher_id):
    return _get(Teacher, teacher_id, "Enseignant introuvable", "TEACHER_NOT_FOUND")


def get_class_subject(class_subject_id):
    return _get(ClassSubject, class_subject_id, f"Matière de classe {class_subject_id} introuvable",
                "CLASS_SUBJECT_NOT_FOUND")


def _get_assignment(assignment_id):
    return _get(TeacherAssignment, assignment_id, "Affectation introuvable", "ASSIGNMENT_NOT_FOUND")


# Teachers, subjects and class curricula

def list_teachers(active_only=False):
    query = Teacher.query
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(Teacher.last_name, Teacher.first_name).all()


def create_teacher(first_name, last_name, phone_number, email=None, qualification=None, user_id=None):
    teacher = Teacher(
        first_name=require_str(first_name, "first_name"),
        last_name=require_str(last_name, "last_name"),
        phone_number=require_str(phone_number, "phone_number"),
        email=optional_str(email, "email"),
        qualification=optional_str(qualification, "qualification"),
        user_id=user_id,
    )
    db.session.add(teacher)
    db.session.commit()
    return teacher


def create_subject(name, code, description=None):
    code = require_str(code, "code").upper()
    if Subject.query.filter_by(code=code).first() is not None:
        raise ConflictError("Une matière porte déjà ce code", code="DUPLICATE_CODE",
                            errors={"code": ["Ce code est déjà utilisé"]})
    subject = Subject(name=require_str(name, "name"), code=code,
                      description=optional_str(description, "description"))
    db.session.add(subject)
    db.session.commit()
    return subject


def add_class_subject(school_class_id, subject_id, coefficient=1):
    _get(SchoolClass, school_class_id, "Classe introuvable", "CLASS_NOT_FOUND")
    _get(Subject, subject_id, "Matière introuvable", "SUBJECT_NOT_FOUND")
    if ClassSubject.query.filter_by(school_class_id=school_class_id, subject_id=subject_id).first():
        raise ConflictError("Cette matière est déjà configurée pour cette classe", code="DUPLICATE_CLASS_SUBJECT")
    class_subject = ClassSubject(school_class_id=school_class_id, subject_id=subject_id, coefficient=coefficient)
    db.session.add(class_subject)
    db.session.commit()
    return class_subject


# Assignments

def _insert(teacher_id, class_subject_id, year_id):
    exists = TeacherAssignment.query.filter_by(
        teacher_id=teacher_id, class_subject_id=class_subject_id, school_year_id=year_id
    ).first()
    if exists is not None:
        raise ConflictError(DUPLICATE_MESSAGE, code="DUPLICATE_ASSIGNMENT")
    assignment = TeacherAssignment(teacher_id=teacher_id, class_subject_id=class_subject_id,
                                   school_year_id=year_id, is_active=True)
    db.session.add(assignment)
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError(DUPLICATE_MESSAGE, code="DUPLICATE_ASSIGNMENT")
    return assignment


def assign(teacher_id, class_subject_id, year_id):
    get_teacher(teacher_id)
    get_class_subject(class_subject_id)
    _get(SchoolYear, year_id, "Année scolaire introuvable", "SCHOOL_YEAR_NOT_FOUND")
    try:
        assignment = _insert(teacher_id, class_subject_id, year_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Teacher %s assigned to class subject %s for year %s", teacher_id, class_subject_id, year_id)
    return assignment


def assign_many(teacher_id, class_subject_ids, year_id):
    """Assign a teacher to several class subjects; each failure is reported, the rest is kept."""
    get_teacher(teacher_id)
    _get(SchoolYear, year_id, "Année scolaire introuvable", "SCHOOL_YEAR_NOT_FOUND")

    def assign_one(class_subject_id):
        get_class_subject(class_subject_id)
        return _insert(teacher_id, class_subject_id, year_id).to_dict()

    result = run_batch(dict.fromkeys(class_subject_ids), assign_one,
                       describe=lambda csid: f"Matière {csid}")
    db.session.commit()
    return result


def list_for_teacher(teacher_id, year_id=None):
    get_teacher(teacher_id)
    query = TeacherAssignment.query.filter_by(teacher_id=teacher_id)
    if year_id is not None:
        query = query.filter_by(school_year_id=year_id)
    return query.order_by(TeacherAssignment.id).all()


def available_class_subjects(teacher_id, year_id):
    """Active class subjects the teacher does not already teach this year."""
    get_teacher(teacher_id)
    taken = db.select(TeacherAssignment.class_subject_id).where(
        TeacherAssignment.teacher_id == teacher_id,
        TeacherAssignment.school_year_id == year_id,
        TeacherAssignment.is_active.is_(True),
    )
    return (
        ClassSubject.query.filter(ClassSubject.is_active.is_(True), ClassSubject.id.notin_(taken))
        .order_by(ClassSubject.school_class_id, ClassSubject.id)
        .all()
    )


def toggle_status(assignment_id):
    assignment = _get_assignment(assignment_id)
    assignment.is_active = not assignment.is_active
    db.session.commit()
    return assignment


def delete(assignment_id):
    assignment = _get_assignment(assignment_id)
    db.session.delete(assignment)
    db.session.commit()
