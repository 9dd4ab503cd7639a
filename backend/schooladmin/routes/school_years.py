from flask import Blueprint, request
from schooladmin.models import SchoolYear
from schooladmin.services import years
from utils.access_control import Capability
from utils.audit import log_event
from utils.decorators import capability_required, current_user, login_required
from utils.responses import success
from utils.validation import json_body, require_fields, require_int

school_years_bp = Blueprint("school_years", __name__)


@school_years_bp.route('', methods=['GET'])
@capability_required(Capability.MANAGE_YEARS)
def list_years():
    return success(data=[y.to_dict() for y in years.list_years()])


@school_years_bp.route('/active', methods=['GET'])
@login_required
def active_years():
    rows = SchoolYear.query.filter_by(is_active=True).order_by(SchoolYear.start_date.desc()).all()
    return success(data=[y.to_dict() for y in rows])


@school_years_bp.route('', methods=['POST'])
@capability_required(Capability.MANAGE_YEARS)
def create_year():
    data = require_fields(json_body(request), "name", "start_date", "end_date")
    year = years.create_year(
        data["name"], data["start_date"], data["end_date"],
        is_current=bool(data.get("is_current", False)),
        is_active=data.get("is_active", True),
    )
    if year.is_current:
        log_event("CURRENT_YEAR_CHANGED", user_id=current_user().id, description=f"year={year.id}")
    return success(data=year.to_dict(), message="Année scolaire créée avec succès", status=201)


@school_years_bp.route('/<int:year_id>', methods=['PUT'])
@capability_required(Capability.MANAGE_YEARS)
def update_year(year_id):
    data = json_body(request)
    year = years.update_year(years.get_year(year_id), **{
        key: data.get(key) for key in ("name", "start_date", "end_date", "is_current", "is_active") if key in data
    })
    return success(data=year.to_dict(), message="Année scolaire mise à jour")


@school_years_bp.route('/<int:year_id>/set-current', methods=['POST'])
@capability_required(Capability.MANAGE_YEARS)
def set_current(year_id):
    year = years.set_current_year(years.get_year(year_id))
    log_event("CURRENT_YEAR_CHANGED", user_id=current_user().id, description=f"year={year.id}")
    return success(data=year.to_dict(), message=f"{year.name} est maintenant l'année courante")


@school_years_bp.route('/working-year', methods=['GET'])
@login_required
def get_working_year():
    year = years.resolve_working_year(current_user())
    return success(data=year.to_dict() if year else None)


@school_years_bp.route('/working-year', methods=['PUT'])
@login_required
def set_working_year():
    data = require_fields(json_body(request), "school_year_id")
    year = years.set_working_year(current_user(), require_int(data["school_year_id"], "school_year_id"))
    return success(data=year.to_dict(), message="Année de travail mise à jour")
