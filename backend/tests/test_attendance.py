from datetime import date, datetime

import pytest

from schooladmin.errors import ConflictError
from schooladmin.models import RoleEnum
from schooladmin.services import attendance
from schooladmin.services.checkin import CheckInAuthorizer

DAY = date(2025, 3, 10)


def at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def two_students(make, campus):
    second = make.student(campus["series"], campus["year"], first_name="Jean", last_name="Mbarga")
    return campus["student"], second


def test_record_entry_twice_hits_the_storage_constraint(campus):
    student, supervisor = campus["student"], campus["supervisor"]
    args = (student.id, supervisor.id, campus["school_class"].id, campus["year"].id)
    attendance.record_entry(*args, at(8))

    with pytest.raises(ConflictError) as exc:
        attendance.record_entry(*args, at(8, 5))

    assert exc.value.code == "ALREADY_MARKED_TODAY"
    assert exc.value.data == {"marked_at": "08:00"}


def test_has_entry_today_is_scoped_to_the_date(campus):
    student = campus["student"]
    attendance.record_entry(student.id, campus["supervisor"].id, campus["school_class"].id,
                            campus["year"].id, at(8))

    assert attendance.has_entry_today(student.id, DAY)
    assert attendance.has_entry_today(student.id, DAY, campus["year"].id)
    assert not attendance.has_entry_today(student.id, date(2025, 3, 11))


def test_query_by_date_is_ascending_and_repeatable(campus, two_students):
    first, second = two_students
    authorizer = CheckInAuthorizer()
    authorizer.scan(str(second.id), campus["supervisor"].id, now=at(8, 10))
    authorizer.scan(str(first.id), campus["supervisor"].id, now=at(7, 50))

    rows = attendance.query_by_date(DAY, campus["year"].id)
    again = attendance.query_by_date(DAY, campus["year"].id)

    assert [r.student_id for r in rows] == [first.id, second.id]
    assert [r.id for r in rows] == [r.id for r in again]


def test_query_by_date_filters_classes(make, campus):
    other_class = make.school_class()
    CheckInAuthorizer().scan(str(campus["student"].id), campus["supervisor"].id, now=at(8))

    assert attendance.query_by_date(DAY, campus["year"].id, [other_class.id]) == []
    assert len(attendance.query_by_date(DAY, campus["year"].id, [campus["school_class"].id])) == 1


def test_query_by_range_is_newest_first(campus):
    authorizer = CheckInAuthorizer()
    qr = str(campus["student"].id)
    for day in (date(2025, 3, 10), date(2025, 3, 11), date(2025, 3, 12)):
        authorizer.scan(qr, campus["supervisor"].id, now=at(8, day=day))

    rows = attendance.query_by_range(date(2025, 3, 10), date(2025, 3, 11), campus["year"].id)

    assert [r.attendance_date for r in rows] == [date(2025, 3, 11), date(2025, 3, 10)]


def test_daily_roster_and_stats(campus, two_students):
    first, second = two_students
    authorizer = CheckInAuthorizer()
    authorizer.scan(str(first.id), campus["supervisor"].id, now=at(7, 55))
    authorizer.scan(str(first.id), campus["supervisor"].id, event_type="exit", now=at(15, 30))

    roster = {row["id"]: row for row in attendance.daily_roster(DAY, campus["year"].id)}

    assert roster[first.id]["is_present"] is True
    assert roster[first.id]["arrival_time"] == "2025-03-10T07:55:00"
    assert roster[first.id]["exit_time"] == "2025-03-10T15:30:00"
    assert roster[second.id]["is_present"] is False
    assert roster[second.id]["series_name"] == "6ème A"

    stats = attendance.roster_stats(DAY, campus["year"].id)
    assert stats == {"total_students": 2, "present_count": 1, "absent_count": 1, "attendance_rate": 50.0}


def test_daily_roster_filters_by_series(make, campus, two_students):
    other_series = make.series(campus["school_class"], name="6ème B")
    make.student(other_series, campus["year"], first_name="Paul")

    roster = attendance.daily_roster(DAY, campus["year"].id, series_id=other_series.id)
    assert [row["first_name"] for row in roster] == ["Paul"]

    everyone = attendance.daily_roster(DAY, campus["year"].id, section_id=campus["school_class"].level.section_id)
    assert len(everyone) == 3


def test_roster_ignores_inactive_students(make, campus):
    make.student(campus["series"], campus["year"], is_active=False)
    assert len(attendance.daily_roster(DAY, campus["year"].id)) == 1


def test_entry_exit_stats(campus, two_students):
    first, second = two_students
    authorizer = CheckInAuthorizer()
    authorizer.scan(str(first.id), campus["supervisor"].id, now=at(8))
    authorizer.scan(str(second.id), campus["supervisor"].id, now=at(8, 2))
    authorizer.scan(str(first.id), campus["supervisor"].id, event_type="exit", now=at(12))

    stats = attendance.entry_exit_stats(DAY, campus["year"].id)

    assert stats["date"] == "10/03/2025"
    assert stats["global_stats"] == {"total_entries": 2, "total_exits": 1, "currently_present": 1}
    assert stats["class_stats"] == [{
        "class_id": campus["school_class"].id,
        "class_name": "6ème",
        "entries": 2,
        "exits": 1,
        "currently_present": 1,
    }]


def test_student_status_follows_the_day(campus):
    student, supervisor = campus["student"], campus["supervisor"]
    year_id = campus["year"].id
    authorizer = CheckInAuthorizer()

    assert attendance.student_status(student, DAY, year_id)["current_status"] == "not_entered"

    authorizer.scan(str(student.id), supervisor.id, now=at(8))
    status = attendance.student_status(student, DAY, year_id)
    assert status["current_status"] == "present"
    assert status["next_action"] == "exit"
    assert status["entry_time"] == "08:00"

    authorizer.scan(str(student.id), supervisor.id, event_type="exit", now=at(16, 15))
    status = attendance.student_status(student, DAY, year_id)
    assert status["current_status"] == "exited"
    assert status["exit_time"] == "16:15"


def test_other_supervisor_scans_do_not_leak_into_class_filter(make, campus):
    other_supervisor = make.user(RoleEnum.surveillant_general)
    other_class = make.school_class()
    make.assignment(other_supervisor, other_class, campus["year"])
    student = make.student(make.series(other_class), campus["year"])
    CheckInAuthorizer().scan(str(student.id), other_supervisor.id, now=at(9))

    rows = attendance.query_by_date(DAY, campus["year"].id, [campus["school_class"].id])
    assert rows == []
