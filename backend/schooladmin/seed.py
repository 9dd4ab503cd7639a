import os
from datetime import date

from schooladmin.extensions import db
from schooladmin.models import (
    ClassSeries, Level, PaymentTranche, RoleEnum, SchoolClass, SchoolYear, Section, Student,
    SupervisorAssignment, User,
)


def _user(username, role, password, full_name=None):
    user = User.query.filter_by(username=username).first()
    if user is None:
        user = User(username=username, role=role, full_name=full_name)
        user.set_password(password)
        db.session.add(user)
    return user


def seed_data():
    """Idempotent demo data: one year, a small structure, a supervisor and a few students."""
    admin_password = os.getenv("ADMIN_PASSWORD", "change-me-now")

    year = SchoolYear.query.filter_by(name="2024-2025").first()
    if year is None:
        SchoolYear.query.update({SchoolYear.is_current: False})
        year = SchoolYear(name="2024-2025", start_date=date(2024, 9, 2), end_date=date(2025, 7, 4),
                          is_current=True, is_active=True)
        db.session.add(year)

    _user("admin", RoleEnum.admin, admin_password, "Administrateur")
    supervisor = _user("surveillant", RoleEnum.surveillant_general, "surveillant123", "Surveillant Général")
    _user("comptable", RoleEnum.comptable, "comptable123", "Comptable")
    db.session.flush()

    if Section.query.first() is None:
        section = Section(name="Francophone", order=1)
        level = Level(name="Premier cycle", section=section, order=1)
        sixieme = SchoolClass(name="6ème", level=level)
        cinquieme = SchoolClass(name="5ème", level=level)
        series = [
            ClassSeries(name="6ème A", code="6A", school_class=sixieme),
            ClassSeries(name="6ème B", code="6B", school_class=sixieme),
            ClassSeries(name="5ème A", code="5A", school_class=cinquieme),
        ]
        db.session.add_all([section, level, sixieme, cinquieme] + series)
        db.session.flush()

        names = [("Awa", "Ndiaye"), ("Jean", "Mbarga"), ("Fatou", "Diallo"), ("Paul", "Essomba")]
        for index, (first, last) in enumerate(names):
            db.session.add(Student(
                first_name=first, last_name=last, student_number=f"MAT{index + 1:04d}",
                class_series_id=series[index % len(series)].id, school_year_id=year.id,
            ))

        for school_class in (sixieme, cinquieme):
            db.session.add(SupervisorAssignment(
                supervisor_id=supervisor.id, school_class_id=school_class.id, school_year_id=year.id,
            ))

    if PaymentTranche.query.first() is None:
        db.session.add_all([
            PaymentTranche(name="Inscription", order=1),
            PaymentTranche(name="Première tranche", order=2),
            PaymentTranche(name="Deuxième tranche", order=3),
        ])

    db.session.commit()
