from schooladmin.extensions import db
from .base import TimestampMixin


class PaymentTranche(db.Model, TimestampMixin):
    __tablename__ = 'payment_tranches'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text)
    order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class ClassPaymentAmount(db.Model, TimestampMixin):
    __tablename__ = 'class_payment_amounts'

    id = db.Column(db.Integer, primary_key=True)
    school_class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False)
    payment_tranche_id = db.Column(db.Integer, db.ForeignKey('payment_tranches.id'), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    payment_tranche = db.relationship('PaymentTranche')

    __table_args__ = (
        db.UniqueConstraint('school_class_id', 'payment_tranche_id', name='uq_class_tranche_amount'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "school_class_id": self.school_class_id,
            "payment_tranche_id": self.payment_tranche_id,
            "tranche_name": self.payment_tranche.name if self.payment_tranche else None,
            "amount": float(self.amount),
        }


class ClassScholarship(db.Model, TimestampMixin):
    __tablename__ = 'class_scholarships'

    id = db.Column(db.Integer, primary_key=True)
    school_class_id = db.Column(db.Integer, db.ForeignKey('school_classes.id'), nullable=False, index=True)
    payment_tranche_id = db.Column(db.Integer, db.ForeignKey('payment_tranches.id'), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    school_class = db.relationship('SchoolClass')
    payment_tranche = db.relationship('PaymentTranche')

    def to_dict(self):
        return {
            "id": self.id,
            "school_class_id": self.school_class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "payment_tranche_id": self.payment_tranche_id,
            "tranche_name": self.payment_tranche.name if self.payment_tranche else None,
            "name": self.name,
            "description": self.description,
            "amount": float(self.amount),
            "is_active": self.is_active,
        }


class StudentScholarship(db.Model, TimestampMixin):
    __tablename__ = 'student_scholarships'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False)
    class_scholarship_id = db.Column(db.Integer, db.ForeignKey('class_scholarships.id'), nullable=False)
    payment_tranche_id = db.Column(db.Integer, db.ForeignKey('payment_tranches.id'), nullable=False)
    is_used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime)
    amount_used = db.Column(db.Numeric(12, 2))
    notes = db.Column(db.Text)

    student = db.relationship('Student', back_populates='scholarships')
    class_scholarship = db.relationship('ClassScholarship')
    payment_tranche = db.relationship('PaymentTranche')

    __table_args__ = (
        db.UniqueConstraint('student_id', 'payment_tranche_id', name='uq_student_tranche_scholarship'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "class_scholarship_id": self.class_scholarship_id,
            "scholarship_name": self.class_scholarship.name if self.class_scholarship else None,
            "amount": float(self.class_scholarship.amount) if self.class_scholarship else None,
            "payment_tranche_id": self.payment_tranche_id,
            "is_used": self.is_used,
            "used_at": self.used_at.isoformat() if self.used_at else None,
            "notes": self.notes,
        }
