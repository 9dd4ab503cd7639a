from schooladmin.extensions import db
from .base import utcnow


class SupervisorAssignment(db.Model):
    __tablename__ = 'supervisor_class_assignments'

    id = db.Column(db.Integer, primary_key=True)
    supervisor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    school_class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False)
    school_year_id = db.Column(db.Integer, db.ForeignKey('school_years.id'), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    supervisor = db.relationship('User')
    school_class = db.relationship('SchoolClass')
    school_year = db.relationship('SchoolYear')

    __table_args__ = (
        db.UniqueConstraint('supervisor_id', 'school_class_id', 'school_year_id',
                            name='uq_supervisor_class_year'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "supervisor_id": self.supervisor_id,
            "supervisor_name": self.supervisor.display_name if self.supervisor else None,
            "school_class_id": self.school_class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "school_year_id": self.school_year_id,
            "school_year_name": self.school_year.name if self.school_year else None,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
