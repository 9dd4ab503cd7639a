from datetime import datetime, timezone
from schooladmin.extensions import db
import enum


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SoftDeleteMixin:
    deleted = db.Column(db.Boolean, default=False, nullable=False)
    deleted_at = db.Column(db.DateTime)

    def soft_delete(self):
        self.deleted = True
        self.deleted_at = utcnow()

    def restore(self):
        self.deleted = False
        self.deleted_at = None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class RoleEnum(enum.Enum):
    admin = "admin"
    surveillant_general = "surveillant_general"
    comptable = "comptable"
    comptable_superieur = "comptable_superieur"
    secretaire = "secretaire"
    teacher = "teacher"
    user = "user"


class EventTypeEnum(enum.Enum):
    entry = "entry"
    exit = "exit"
