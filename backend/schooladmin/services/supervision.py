import logging

from sqlalchemy.exc import IntegrityError

from schooladmin.extensions import db
from schooladmin.errors import AuthorizationError, ConflictError, NotFoundError
from schooladmin.models import RoleEnum, SchoolClass, SchoolYear, SupervisorAssignment, User
from schooladmin.services.batch import run_batch

logger = logging.getLogger(__name__)


def _load_supervisor(supervisor_id):
    supervisor = db.session.get(User, supervisor_id)
    if supervisor is None or supervisor.deleted:
        raise NotFoundError("Surveillant introuvable", code="SUPERVISOR_NOT_FOUND")
    if supervisor.role != RoleEnum.surveillant_general:
        raise AuthorizationError("L'utilisateur n'est pas un surveillant général", code="NOT_A_SUPERVISOR")
    return supervisor


def _load_class(class_id):
    school_class = db.session.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError(f"Classe {class_id} introuvable", code="CLASS_NOT_FOUND")
    return school_class


def _load_year(year_id):
    year = db.session.get(SchoolYear, year_id)
    if year is None:
        raise NotFoundError("Année scolaire introuvable", code="SCHOOL_YEAR_NOT_FOUND")
    return year


def _exists(supervisor_id, class_id, year_id):
    return SupervisorAssignment.query.filter_by(
        supervisor_id=supervisor_id, school_class_id=class_id, school_year_id=year_id
    ).first() is not None


def _insert(supervisor_id, class_id, year_id):
    if _exists(supervisor_id, class_id, year_id):
        raise ConflictError("Ce surveillant est déjà assigné à cette classe pour cette année",
                            code="DUPLICATE_ASSIGNMENT")
    assignment = SupervisorAssignment(
        supervisor_id=supervisor_id, school_class_id=class_id,
        school_year_id=year_id, is_active=True,
    )
    db.session.add(assignment)
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError("Ce surveillant est déjà assigné à cette classe pour cette année",
                            code="DUPLICATE_ASSIGNMENT")
    return assignment


def assign(supervisor_id, class_id, year_id):
    _load_supervisor(supervisor_id)
    _load_class(class_id)
    _load_year(year_id)
    try:
        assignment = _insert(supervisor_id, class_id, year_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Supervisor %s assigned to class %s for year %s", supervisor_id, class_id, year_id)
    return assignment


def assign_many(supervisor_id, class_ids, year_id):
    """Assign several classes at once; duplicates and unknown classes are reported, not fatal."""
    _load_supervisor(supervisor_id)
    _load_year(year_id)

    def assign_one(class_id):
        _load_class(class_id)
        return _insert(supervisor_id, class_id, year_id).to_dict()

    result = run_batch(dict.fromkeys(class_ids), assign_one, describe=lambda cid: f"Classe {cid}")
    db.session.commit()
    return result


def is_authorized(supervisor_id, class_id, year_id):
    if supervisor_id is None or class_id is None or year_id is None:
        return False
    return SupervisorAssignment.query.filter_by(
        supervisor_id=supervisor_id, school_class_id=class_id,
        school_year_id=year_id, is_active=True,
    ).first() is not None


def assigned_class_ids(supervisor_id, year_id):
    rows = (
        db.session.query(SupervisorAssignment.school_class_id)
        .filter_by(supervisor_id=supervisor_id, school_year_id=year_id, is_active=True)
        .all()
    )
    return [row[0] for row in rows]


def list_for_supervisor(supervisor_id, active_only=True):
    query = SupervisorAssignment.query.filter_by(supervisor_id=supervisor_id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(SupervisorAssignment.created_at.desc()).all()


def list_all(year_id=None):
    query = SupervisorAssignment.query
    if year_id is not None:
        query = query.filter_by(school_year_id=year_id)
    return query.order_by(SupervisorAssignment.created_at.desc()).all()


def _get_assignment(assignment_id):
    assignment = db.session.get(SupervisorAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignation introuvable", code="ASSIGNMENT_NOT_FOUND")
    return assignment


def deactivate(assignment_id):
    assignment = _get_assignment(assignment_id)
    assignment.is_active = False
    db.session.commit()
    return assignment


def deactivate_for_supervisor(supervisor_id):
    """Deactivate every active assignment of a user; the caller commits."""
    count = (
        SupervisorAssignment.query
        .filter_by(supervisor_id=supervisor_id, is_active=True)
        .update({SupervisorAssignment.is_active: False}, synchronize_session="fetch")
    )
    if count:
        logger.info("Deactivated %s assignment(s) of user %s", count, supervisor_id)
    return count


def delete(assignment_id):
    assignment = _get_assignment(assignment_id)
    db.session.delete(assignment)
    db.session.commit()
