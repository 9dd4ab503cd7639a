"""Attendance ledger: append-only scan records and the reads built on them."""
import logging
from collections import OrderedDict

from sqlalchemy.exc import IntegrityError

from schooladmin.extensions import db
from schooladmin.errors import ConflictError
from schooladmin.models import (
    AttendanceRecord, ClassSeries, EventTypeEnum, Level, SchoolClass, Section, Student,
)

logger = logging.getLogger(__name__)

DUPLICATE_CODES = {
    EventTypeEnum.entry: ("ALREADY_MARKED_TODAY", "Cet élève est déjà entré aujourd'hui"),
    EventTypeEnum.exit: ("ALREADY_EXITED_TODAY", "Cet élève est déjà sorti aujourd'hui"),
}


def _hhmm(value):
    return value.strftime("%H:%M") if value else None


def get_event(student_id, day, event_type, year_id=None):
    query = AttendanceRecord.query.filter_by(
        student_id=student_id, attendance_date=day, event_type=EventTypeEnum(event_type)
    )
    if year_id is not None:
        query = query.filter_by(school_year_id=year_id)
    return query.order_by(AttendanceRecord.scanned_at.asc()).first()


def has_entry_today(student_id, day, year_id=None):
    """The entry record of ``student_id`` on ``day`` if any; truthy iff one exists."""
    return get_event(student_id, day, EventTypeEnum.entry, year_id)


def _record(event_type, student_id, supervisor_id, class_id, year_id, timestamp):
    record = AttendanceRecord(
        student_id=student_id,
        supervisor_id=supervisor_id,
        school_class_id=class_id,
        school_year_id=year_id,
        attendance_date=timestamp.date(),
        scanned_at=timestamp,
        event_type=event_type,
        is_present=event_type == EventTypeEnum.entry,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent scan won the race for this (student, day, event)
        db.session.rollback()
        code, message = DUPLICATE_CODES[event_type]
        first = get_event(student_id, timestamp.date(), event_type)
        data = {"marked_at": _hhmm(first.scanned_at)} if first else None
        raise ConflictError(message, code=code, data=data)
    return record


def record_entry(student_id, supervisor_id, class_id, year_id, timestamp):
    return _record(EventTypeEnum.entry, student_id, supervisor_id, class_id, year_id, timestamp)


def record_exit(student_id, supervisor_id, class_id, year_id, timestamp):
    return _record(EventTypeEnum.exit, student_id, supervisor_id, class_id, year_id, timestamp)


def query_by_date(day, year_id, class_ids=None):
    query = AttendanceRecord.query.filter_by(attendance_date=day, school_year_id=year_id)
    if class_ids is not None:
        query = query.filter(AttendanceRecord.school_class_id.in_(class_ids))
    return query.order_by(AttendanceRecord.scanned_at.asc(), AttendanceRecord.id.asc()).all()


def query_by_range(start, end, year_id, class_ids=None):
    query = AttendanceRecord.query.filter(
        AttendanceRecord.attendance_date >= start,
        AttendanceRecord.attendance_date <= end,
        AttendanceRecord.school_year_id == year_id,
    )
    if class_ids is not None:
        query = query.filter(AttendanceRecord.school_class_id.in_(class_ids))
    return query.order_by(
        AttendanceRecord.attendance_date.desc(), AttendanceRecord.scanned_at.desc()
    ).all()


def _roster_students(year_id, section_id=None, level_id=None, series_id=None):
    query = (
        db.session.query(Student, ClassSeries, SchoolClass, Level, Section)
        .join(ClassSeries, Student.class_series_id == ClassSeries.id)
        .join(SchoolClass, ClassSeries.class_id == SchoolClass.id)
        .join(Level, SchoolClass.level_id == Level.id)
        .join(Section, Level.section_id == Section.id)
        .filter(Student.school_year_id == year_id, Student.is_active.is_(True))
    )
    # the most specific filter wins
    if series_id:
        query = query.filter(Student.class_series_id == series_id)
    elif level_id:
        query = query.filter(SchoolClass.level_id == level_id)
    elif section_id:
        query = query.filter(Level.section_id == section_id)
    return query.order_by(Student.last_name, Student.first_name).all()


def daily_roster(day, year_id, section_id=None, level_id=None, series_id=None):
    """Active students of the year with their presence on ``day``."""
    records = AttendanceRecord.query.filter_by(attendance_date=day, school_year_id=year_id).all()
    entries, exits = {}, {}
    for record in sorted(records, key=lambda r: r.scanned_at):
        target = entries if record.event_type == EventTypeEnum.entry else exits
        target.setdefault(record.student_id, record)

    roster = []
    for student, series, school_class, level, section in _roster_students(year_id, section_id, level_id, series_id):
        entry = entries.get(student.id)
        exit_ = exits.get(student.id)
        roster.append({
            "id": student.id,
            "student_number": student.student_number,
            "last_name": student.last_name,
            "first_name": student.first_name,
            "class_name": school_class.name,
            "level_name": level.name,
            "series_name": series.name,
            "section_name": section.name,
            "is_present": entry is not None,
            "arrival_time": entry.scanned_at.isoformat() if entry else None,
            "exit_time": exit_.scanned_at.isoformat() if exit_ else None,
        })
    return roster


def roster_stats(day, year_id, section_id=None, level_id=None, series_id=None):
    roster = daily_roster(day, year_id, section_id, level_id, series_id)
    total = len(roster)
    present = sum(1 for row in roster if row["is_present"])
    return {
        "total_students": total,
        "present_count": present,
        "absent_count": total - present,
        "attendance_rate": round(present * 100.0 / total, 2) if total else 0.0,
    }


def entry_exit_stats(day, year_id):
    records = query_by_date(day, year_id)
    entered = {r.student_id for r in records if r.event_type == EventTypeEnum.entry and r.is_present}
    exited = {r.student_id for r in records if r.event_type == EventTypeEnum.exit}

    per_class = OrderedDict()
    for record in records:
        row = per_class.setdefault(record.school_class_id, {
            "class_id": record.school_class_id,
            "class_name": record.school_class.name if record.school_class else "Classe inconnue",
            "entries": 0,
            "exits": 0,
        })
        row["entries" if record.event_type == EventTypeEnum.entry else "exits"] += 1
    for row in per_class.values():
        row["currently_present"] = row["entries"] - row["exits"]

    return {
        "date": day.strftime("%d/%m/%Y"),
        "global_stats": {
            "total_entries": sum(1 for r in records if r.event_type == EventTypeEnum.entry),
            "total_exits": sum(1 for r in records if r.event_type == EventTypeEnum.exit),
            "currently_present": len(entered - exited),
        },
        "class_stats": list(per_class.values()),
    }


def student_status(student, day, year_id):
    entry = get_event(student.id, day, EventTypeEnum.entry, year_id)
    exit_ = get_event(student.id, day, EventTypeEnum.exit, year_id)

    if entry and not exit_:
        status, next_action = "present", "exit"
        message = f"Présent (entré à {_hhmm(entry.scanned_at)})"
    elif entry and exit_:
        status, next_action = "exited", None
        message = f"Sorti (à {_hhmm(exit_.scanned_at)})"
    else:
        status, next_action = "not_entered", "entry"
        message = "Pas encore entré aujourd'hui"

    return {
        "student_name": student.full_name,
        "class_name": student.class_name or "Classe inconnue",
        "current_status": status,
        "status_message": message,
        "next_action": next_action,
        "entry_time": _hhmm(entry.scanned_at) if entry else None,
        "exit_time": _hhmm(exit_.scanned_at) if exit_ else None,
    }
