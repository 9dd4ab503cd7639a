from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from schooladmin import create_app
from schooladmin.config import TestingConfig
from schooladmin.extensions import db
from schooladmin.models import (
    ClassSeries, Level, RoleEnum, SchoolClass, SchoolYear, Section, Student, SupervisorAssignment, User,
)


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig)
    app.config["AUDIT_LOG_FILE"] = str(tmp_path / "audit.log")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Factory:
    """Builds persisted rows with sensible defaults."""

    def __init__(self):
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def year(self, name=None, start=date(2024, 9, 2), end=date(2025, 7, 4), is_current=False, is_active=True):
        year = SchoolYear(name=name or f"Année {self._next()}", start_date=start, end_date=end,
                          is_current=is_current, is_active=is_active)
        db.session.add(year)
        db.session.commit()
        return year

    def user(self, role=RoleEnum.surveillant_general, username=None, password="secret123", **fields):
        user = User(username=username or f"user{self._next()}", role=role, **fields)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def school_class(self, name=None):
        n = self._next()
        section = Section(name=f"Section {n}")
        level = Level(name=f"Niveau {n}", section=section)
        school_class = SchoolClass(name=name or f"Classe {n}", level=level)
        db.session.add_all([section, level, school_class])
        db.session.commit()
        return school_class

    def series(self, school_class, name=None):
        series = ClassSeries(name=name or f"{school_class.name} A", school_class=school_class)
        db.session.add(series)
        db.session.commit()
        return series

    def student(self, series, year, first_name="Awa", last_name=None, **fields):
        student = Student(first_name=first_name, last_name=last_name or f"Eleve{self._next()}",
                          class_series_id=series.id, school_year_id=year.id, **fields)
        db.session.add(student)
        db.session.commit()
        return student

    def assignment(self, supervisor, school_class, year, is_active=True):
        assignment = SupervisorAssignment(supervisor_id=supervisor.id, school_class_id=school_class.id,
                                          school_year_id=year.id, is_active=is_active)
        db.session.add(assignment)
        db.session.commit()
        return assignment


@pytest.fixture
def make(app):
    return Factory()


@pytest.fixture
def auth_header(app):
    def _header(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
def campus(make):
    """An active year, one class with a series, a supervisor assigned to it and a student."""
    year = make.year(name="2024-2025", is_current=True)
    school_class = make.school_class(name="6ème")
    series = make.series(school_class, name="6ème A")
    supervisor = make.user(RoleEnum.surveillant_general, username="surveillant")
    make.assignment(supervisor, school_class, year)
    student = make.student(series, year, first_name="Awa", last_name="Ndiaye")
    return {
        "year": year,
        "school_class": school_class,
        "series": series,
        "supervisor": supervisor,
        "student": student,
    }
