from flask import Blueprint, request
from schooladmin.services import attendance, years
from utils.access_control import Capability
from utils.decorators import capability_required, current_user
from utils.responses import success
from utils.validation import optional_date, optional_int, now_local

attendance_bp = Blueprint("attendance", __name__)


def _roster_filters():
    return {
        "section_id": optional_int(request.args.get("section_id"), "section_id"),
        "level_id": optional_int(request.args.get("level_id"), "level_id"),
        "series_id": optional_int(request.args.get("series_id"), "series_id"),
    }


@attendance_bp.route('/students', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def student_attendance():
    day = optional_date(request.args.get("date"), default=now_local().date())
    year = years.require_working_year(current_user())
    roster = attendance.daily_roster(day, year.id, **_roster_filters())
    return success(data=roster, message="Données de présence récupérées avec succès")


@attendance_bp.route('/stats', methods=['GET'])
@capability_required(Capability.VIEW_ATTENDANCE)
def attendance_stats():
    day = optional_date(request.args.get("date"), default=now_local().date())
    year = years.require_working_year(current_user())
    stats = attendance.roster_stats(day, year.id, **_roster_filters())
    stats["date"] = day.isoformat()
    return success(data=stats)
