from schooladmin.extensions import db
from .base import EventTypeEnum


class AttendanceRecord(db.Model):
    __tablename__ = 'attendances'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    supervisor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    school_class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False, index=True)
    school_year_id = db.Column(db.Integer, db.ForeignKey('school_years.id'), nullable=False, index=True)
    attendance_date = db.Column(db.Date, nullable=False, index=True)
    event_type = db.Column(db.Enum(EventTypeEnum), nullable=False, default=EventTypeEnum.entry)
    scanned_at = db.Column(db.DateTime, nullable=False)
    is_present = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.String(255), nullable=True)

    student = db.relationship('Student', back_populates='attendance_records')
    supervisor = db.relationship('User')
    school_class = db.relationship('SchoolClass')

    # one entry and one exit per student per day
    __table_args__ = (
        db.UniqueConstraint('student_id', 'attendance_date', 'event_type',
                            name='uq_attendance_student_day_event'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "student_name": self.student.full_name if self.student else None,
            "supervisor_id": self.supervisor_id,
            "supervisor_name": self.supervisor.display_name if self.supervisor else None,
            "school_class_id": self.school_class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "school_year_id": self.school_year_id,
            "attendance_date": self.attendance_date.isoformat(),
            "event_type": self.event_type.value,
            "scanned_at": self.scanned_at.isoformat(),
            "marked_at": self.scanned_at.strftime("%H:%M"),
            "is_present": self.is_present,
        }
