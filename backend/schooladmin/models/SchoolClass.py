from schooladmin.extensions import db
from .base import TimestampMixin


class Section(db.Model, TimestampMixin):
    __tablename__ = 'sections'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text)
    order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    levels = db.relationship('Level', back_populates='section', lazy=True)


class Level(db.Model, TimestampMixin):
    __tablename__ = 'levels'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    section_id = db.Column(db.Integer, db.ForeignKey('sections.id'), nullable=False, index=True)
    description = db.Column(db.Text)
    order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    section = db.relationship('Section', back_populates='levels')
    classes = db.relationship('SchoolClass', back_populates='level', lazy=True)


class SchoolClass(db.Model, TimestampMixin):
    __tablename__ = 'school_classes'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    level_id = db.Column(db.Integer, db.ForeignKey('levels.id'), nullable=False, index=True)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    level = db.relationship('Level', back_populates='classes')
    series = db.relationship('ClassSeries', back_populates='school_class', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "level_id": self.level_id,
            "level_name": self.level.name if self.level else None,
            "description": self.description,
            "is_active": self.is_active,
        }


class ClassSeries(db.Model, TimestampMixin):
    """A series (subdivision) of a class sharing its level, e.g. 6e A."""

    __tablename__ = 'class_series'

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(30))
    capacity = db.Column(db.Integer)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    school_class = db.relationship('SchoolClass', back_populates='series')
    students = db.relationship('Student', back_populates='class_series', lazy=True)
