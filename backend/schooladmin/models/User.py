from werkzeug.security import generate_password_hash, check_password_hash
from schooladmin.extensions import db
from .base import SoftDeleteMixin, TimestampMixin, RoleEnum, utcnow


class User(db.Model, SoftDeleteMixin, TimestampMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    full_name = db.Column(db.String(150), nullable=True)
    password_hash = db.Column(db.String(512), nullable=False)
    role = db.Column(db.Enum(RoleEnum), nullable=False, default=RoleEnum.user, index=True)

    # per-user override of the school year used as session context
    working_school_year_id = db.Column(db.Integer, db.ForeignKey('school_years.id', ondelete='SET NULL'),
                                       nullable=True, index=True)
    working_school_year = db.relationship('SchoolYear')

    audit_logs = db.relationship('AuditLog', backref='user', lazy=True)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        return self.full_name or self.username

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role.value if self.role else None,
            "working_school_year_id": self.working_school_year_id,
            "deleted": self.deleted,
        }


class TokenBlocklist(db.Model):
    __tablename__ = 'token_blocklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, index=True)
    token_type = db.Column(db.String(10), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User", backref="revoked_tokens")
