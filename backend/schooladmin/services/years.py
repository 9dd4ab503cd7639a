import logging

from schooladmin.extensions import db
from schooladmin.errors import ConflictError, NotFoundError, PreconditionError, ValidationError
from schooladmin.models import SchoolYear
from utils.validation import parse_iso_date, require_str

logger = logging.getLogger(__name__)


def resolve_working_year(user):
    """
    The school year a user works in, first match wins:
    the user's own working year while it is active, then the year flagged
    current, then the earliest active year. None when nothing qualifies.
    """
    if user is not None and user.working_school_year_id:
        year = db.session.get(SchoolYear, user.working_school_year_id)
        if year is not None and year.is_active:
            return year

    year = SchoolYear.query.filter_by(is_current=True).first()
    if year is not None:
        return year

    return get_active_year()


def require_working_year(user):
    year = resolve_working_year(user)
    if year is None:
        raise PreconditionError("Aucune année scolaire de travail définie", code="NO_WORKING_YEAR")
    return year


def get_active_year():
    """The global active year used by attendance scanning."""
    return (
        SchoolYear.query.filter_by(is_active=True)
        .order_by(SchoolYear.start_date.asc(), SchoolYear.id.asc())
        .first()
    )


def require_active_year():
    year = get_active_year()
    if year is None:
        raise PreconditionError("Aucune année scolaire active", code="NO_ACTIVE_YEAR")
    return year


def list_years():
    return SchoolYear.query.order_by(SchoolYear.start_date.desc()).all()


def get_year(year_id):
    year = db.session.get(SchoolYear, year_id)
    if year is None:
        raise NotFoundError("Année scolaire introuvable", code="SCHOOL_YEAR_NOT_FOUND")
    return year


def _clear_current(except_id=None):
    query = SchoolYear.query.filter(SchoolYear.is_current.is_(True))
    if except_id is not None:
        query = query.filter(SchoolYear.id != except_id)
    query.update({SchoolYear.is_current: False}, synchronize_session="fetch")
    # the partial unique index is checked per statement
    db.session.flush()


def set_current_year(year):
    """Make ``year`` the only current year, in one transaction."""
    try:
        _clear_current(except_id=year.id)
        year.is_current = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("School year %s is now current", year.id)
    return year


def _check_dates(start_date, end_date):
    if end_date <= start_date:
        raise ValidationError(errors={"end_date": ["La date de fin doit être postérieure à la date de début"]})


def _check_unique_name(name, exclude_id=None):
    query = SchoolYear.query.filter(SchoolYear.name == name)
    if exclude_id is not None:
        query = query.filter(SchoolYear.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Une année scolaire porte déjà ce nom", code="DUPLICATE_NAME",
                            errors={"name": ["Ce nom est déjà utilisé"]})


def create_year(name, start_date, end_date, is_current=False, is_active=True):
    name = require_str(name, "name")
    start_date = parse_iso_date(start_date, "start_date")
    end_date = parse_iso_date(end_date, "end_date")
    _check_dates(start_date, end_date)
    _check_unique_name(name)

    year = SchoolYear(name=name, start_date=start_date, end_date=end_date,
                      is_current=False, is_active=bool(is_active))
    try:
        db.session.add(year)
        db.session.flush()
        if is_current:
            _clear_current(except_id=year.id)
            year.is_current = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return year


def update_year(year, **fields):
    name = fields.get("name")
    if name is not None:
        name = require_str(name, "name")
        _check_unique_name(name, exclude_id=year.id)

    start_date = parse_iso_date(fields["start_date"], "start_date") if fields.get("start_date") else year.start_date
    end_date = parse_iso_date(fields["end_date"], "end_date") if fields.get("end_date") else year.end_date
    _check_dates(start_date, end_date)

    try:
        if name is not None:
            year.name = name
        year.start_date = start_date
        year.end_date = end_date
        if "is_active" in fields and fields["is_active"] is not None:
            year.is_active = bool(fields["is_active"])
        if fields.get("is_current") is True:
            _clear_current(except_id=year.id)
            year.is_current = True
        elif fields.get("is_current") is False:
            year.is_current = False
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return year


def set_working_year(user, year_id):
    year = get_year(year_id)
    if not year.is_active:
        raise ValidationError("Cette année scolaire n'est pas active", code="INACTIVE_YEAR")
    user.working_school_year_id = year.id
    db.session.commit()
    return year
