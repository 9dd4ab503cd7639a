from schooladmin.extensions import db
from .base import TimestampMixin


class Teacher(db.Model, TimestampMixin):
    __tablename__ = 'teachers'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone_number = db.Column(db.String(30), nullable=False, index=True)
    email = db.Column(db.String(120), nullable=True)
    qualification = db.Column(db.String(150), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    assignments = db.relationship('TeacherAssignment', back_populates='teacher', lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "email": self.email,
            "qualification": self.qualification,
            "is_active": self.is_active,
            "user_id": self.user_id,
        }


class Subject(db.Model, TimestampMixin):
    __tablename__ = 'subjects'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(10), nullable=False, unique=True)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class ClassSubject(db.Model, TimestampMixin):
    """A subject taught in a class, with its coefficient."""

    __tablename__ = 'class_subjects'

    id = db.Column(db.Integer, primary_key=True)
    school_class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False)
    subject_id = db.Column(db.Integer, db.ForeignKey('subjects.id'), nullable=False)
    coefficient = db.Column(db.Numeric(3, 1), nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    school_class = db.relationship('SchoolClass')
    subject = db.relationship('Subject')

    __table_args__ = (
        db.UniqueConstraint('school_class_id', 'subject_id', name='uq_class_subject'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "school_class_id": self.school_class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "subject_id": self.subject_id,
            "subject_name": self.subject.name if self.subject else None,
            "coefficient": float(self.coefficient),
            "is_active": self.is_active,
        }


class TeacherAssignment(db.Model, TimestampMixin):
    __tablename__ = 'teacher_assignments'

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id'), nullable=False, index=True)
    class_subject_id = db.Column(db.Integer, db.ForeignKey('class_subjects.id'), nullable=False)
    school_year_id = db.Column(db.Integer, db.ForeignKey('school_years.id'), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    teacher = db.relationship('Teacher', back_populates='assignments')
    class_subject = db.relationship('ClassSubject')
    school_year = db.relationship('SchoolYear')

    __table_args__ = (
        db.UniqueConstraint('teacher_id', 'class_subject_id', 'school_year_id',
                            name='uq_teacher_subject_year'),
    )

    def to_dict(self):
        class_subject = self.class_subject
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher.full_name if self.teacher else None,
            "class_subject_id": self.class_subject_id,
            "subject_name": class_subject.subject.name if class_subject and class_subject.subject else None,
            "class_name": class_subject.school_class.name if class_subject and class_subject.school_class else None,
            "school_year_id": self.school_year_id,
            "is_active": self.is_active,
        }
