from schooladmin.extensions import db
from .base import TimestampMixin


class SchoolYear(db.Model, TimestampMixin):
    __tablename__ = 'school_years'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_current = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # at most one current year
    __table_args__ = (
        db.Index(
            'uq_school_years_single_current', 'is_current', unique=True,
            sqlite_where=db.text('is_current'),
            postgresql_where=db.text('is_current'),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "is_current": self.is_current,
            "is_active": self.is_active,
        }
