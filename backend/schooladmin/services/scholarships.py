import logging

from sqlalchemy.exc import IntegrityError

from schooladmin.extensions import db
from schooladmin.errors import ConflictError, NotFoundError, ValidationError
from schooladmin.models import (
    ClassPaymentAmount, ClassScholarship, ClassSeries, PaymentTranche, SchoolClass, Student,
    StudentScholarship, utcnow,
)
from schooladmin.services.batch import run_batch
from utils.validation import require_amount, require_int, require_str

logger = logging.getLogger(__name__)


def _get(model, object_id, message, code):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError(message, code=code)
    return obj


def get_tranche(tranche_id):
    return _get(PaymentTranche, tranche_id, "Tranche de paiement introuvable", "TRANCHE_NOT_FOUND")


def get_class_scholarship(scholarship_id):
    return _get(ClassScholarship, scholarship_id, "Bourse introuvable", "SCHOLARSHIP_NOT_FOUND")


def get_student(student_id):
    return _get(Student, student_id, "Étudiant introuvable", "STUDENT_NOT_FOUND")


# Payment tranches & per-class amounts

def list_tranches(active_only=False):
    query = PaymentTranche.query
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(PaymentTranche.order.asc(), PaymentTranche.id.asc()).all()


def create_tranche(name, description=None, order=None, is_active=True):
    name = require_str(name, "name")
    if PaymentTranche.query.filter_by(name=name).first() is not None:
        raise ConflictError("Une tranche porte déjà ce nom", code="DUPLICATE_NAME",
                            errors={"name": ["Ce nom est déjà utilisé"]})
    if order is None:
        order = (db.session.query(db.func.max(PaymentTranche.order)).scalar() or 0) + 1
    tranche = PaymentTranche(name=name, description=description, order=order, is_active=bool(is_active))
    db.session.add(tranche)
    db.session.commit()
    return tranche


def replace_class_amounts(class_id, items):
    """
    Replace the per-tranche amounts configured for a class.

    Existing amounts are dropped and every valid item re-created in the same
    transaction; invalid items are reported in the result's ``errors``.
    """
    _get(SchoolClass, class_id, "Classe introuvable", "CLASS_NOT_FOUND")
    ClassPaymentAmount.query.filter_by(school_class_id=class_id).delete(synchronize_session="fetch")
    db.session.flush()

    def add_amount(item):
        tranche = get_tranche(require_int(item.get("payment_tranche_id"), "payment_tranche_id"))
        amount = ClassPaymentAmount(
            school_class_id=class_id,
            payment_tranche_id=tranche.id,
            amount=require_amount(item.get("amount")),
        )
        db.session.add(amount)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError(f"Tranche « {tranche.name} » configurée deux fois", code="DUPLICATE_TRANCHE")
        return amount.to_dict()

    result = run_batch(items, add_amount, describe=lambda item: f"Tranche {item.get('payment_tranche_id')}")
    db.session.commit()
    return result


def class_amounts(class_id):
    return ClassPaymentAmount.query.filter_by(school_class_id=class_id).all()


# Class scholarships

def list_class_scholarships(class_id=None, active_only=False):
    query = ClassScholarship.query
    if class_id is not None:
        query = query.filter_by(school_class_id=class_id)
    if active_only:
        query = query.filter_by(is_active=True)
    return query.order_by(ClassScholarship.created_at.desc()).all()


def create_class_scholarship(school_class_id, payment_tranche_id, name, amount, description=None, is_active=True):
    _get(SchoolClass, school_class_id, "Classe introuvable", "CLASS_NOT_FOUND")
    get_tranche(payment_tranche_id)
    name = require_str(name, "name")
    scholarship = ClassScholarship(
        school_class_id=school_class_id,
        payment_tranche_id=payment_tranche_id,
        name=name,
        description=description,
        amount=require_amount(amount),
        is_active=bool(is_active),
    )
    db.session.add(scholarship)
    db.session.commit()
    return scholarship


# Student scholarships

def _student_class_id(student_id):
    row = (
        db.session.query(ClassSeries.class_id)
        .join(Student, Student.class_series_id == ClassSeries.id)
        .filter(Student.id == student_id)
        .first()
    )
    return row[0] if row else None


def _grant(student, scholarship, tranche_id, notes):
    if StudentScholarship.query.filter_by(student_id=student.id, payment_tranche_id=tranche_id).first():
        raise ConflictError(f"L'étudiant {student.full_name} a déjà une bourse pour cette tranche",
                            code="SCHOLARSHIP_ALREADY_ASSIGNED")
    if _student_class_id(student.id) != scholarship.school_class_id:
        raise ValidationError(f"Cette bourse n'est pas disponible pour la classe de {student.full_name}",
                              code="SCHOLARSHIP_CLASS_MISMATCH")
    grant = StudentScholarship(
        student_id=student.id,
        class_scholarship_id=scholarship.id,
        payment_tranche_id=tranche_id,
        notes=notes,
    )
    db.session.add(grant)
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError(f"L'étudiant {student.full_name} a déjà une bourse pour cette tranche",
                            code="SCHOLARSHIP_ALREADY_ASSIGNED")
    return grant


def assign_scholarship(student_id, class_scholarship_id, tranche_id, notes=None):
    student = get_student(student_id)
    scholarship = get_class_scholarship(class_scholarship_id)
    get_tranche(tranche_id)
    try:
        grant = _grant(student, scholarship, tranche_id, notes)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return grant


def bulk_assign_scholarship(student_ids, class_scholarship_id, tranche_id, notes=None):
    """Grant one scholarship to many students; existing holders are skipped and reported."""
    scholarship = get_class_scholarship(class_scholarship_id)
    get_tranche(tranche_id)

    def grant_one(student_id):
        student = get_student(student_id)
        return _grant(student, scholarship, tranche_id, notes).to_dict()

    result = run_batch(dict.fromkeys(student_ids), grant_one)
    db.session.commit()
    logger.info("Scholarship %s granted to %s student(s), %s error(s)",
                class_scholarship_id, result.assigned_count, len(result.errors))
    return result


def remove_scholarship(student_scholarship_id):
    grant = _get(StudentScholarship, student_scholarship_id, "Bourse introuvable", "SCHOLARSHIP_NOT_FOUND")
    if grant.is_used:
        raise ConflictError("Impossible de retirer une bourse déjà utilisée", code="SCHOLARSHIP_USED")
    db.session.delete(grant)
    db.session.commit()


def mark_used(student_scholarship_id, amount_used=None):
    grant = _get(StudentScholarship, student_scholarship_id, "Bourse introuvable", "SCHOLARSHIP_NOT_FOUND")
    grant.is_used = True
    grant.used_at = utcnow()
    if amount_used is not None:
        grant.amount_used = require_amount(amount_used, "amount_used")
    db.session.commit()
    return grant


def student_scholarships(student_id):
    get_student(student_id)
    return (
        StudentScholarship.query.filter_by(student_id=student_id)
        .order_by(StudentScholarship.created_at.desc())
        .all()
    )


def eligible_students(class_scholarship_id):
    """Students of the scholarship's class who do not hold it for its tranche yet."""
    scholarship = get_class_scholarship(class_scholarship_id)
    holders = db.select(StudentScholarship.student_id).where(
        StudentScholarship.class_scholarship_id == scholarship.id,
        StudentScholarship.payment_tranche_id == scholarship.payment_tranche_id,
    )
    students = (
        Student.query.join(ClassSeries, Student.class_series_id == ClassSeries.id)
        .filter(ClassSeries.class_id == scholarship.school_class_id)
        .filter(Student.id.notin_(holders))
        .order_by(Student.last_name, Student.first_name)
        .all()
    )
    return scholarship, students

