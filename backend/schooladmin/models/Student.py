from schooladmin.extensions import db
from .base import TimestampMixin


class Student(db.Model, TimestampMixin):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    student_number = db.Column(db.String(30), unique=True, nullable=True)
    gender = db.Column(db.String(1), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    parent_name = db.Column(db.String(150), nullable=True)
    parent_phone = db.Column(db.String(30), nullable=True)
    class_series_id = db.Column(db.Integer, db.ForeignKey('class_series.id'), nullable=False, index=True)
    school_year_id = db.Column(db.Integer, db.ForeignKey('school_years.id'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    class_series = db.relationship('ClassSeries', back_populates='students')
    school_year = db.relationship('SchoolYear')
    attendance_records = db.relationship('AttendanceRecord', back_populates='student', lazy=True)
    scholarships = db.relationship('StudentScholarship', back_populates='student', lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def class_id(self):
        return self.class_series.class_id if self.class_series else None

    @property
    def class_name(self):
        return self.class_series.name if self.class_series else None

    def to_dict(self):
        series = self.class_series
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "student_number": self.student_number,
            "gender": self.gender,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "parent_name": self.parent_name,
            "parent_phone": self.parent_phone,
            "class_series_id": self.class_series_id,
            "series_name": series.name if series else None,
            "class_id": series.class_id if series else None,
            "school_year_id": self.school_year_id,
            "is_active": self.is_active,
        }
