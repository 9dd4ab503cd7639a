from .base import SoftDeleteMixin, TimestampMixin, RoleEnum, EventTypeEnum, utcnow
from .User import User, TokenBlocklist
from .AuditLog import AuditLog
from .SchoolYear import SchoolYear
from .SchoolClass import Section, Level, SchoolClass, ClassSeries
from .Student import Student
from .SupervisorAssignment import SupervisorAssignment
from .AttendanceRecord import AttendanceRecord
from .Scholarship import PaymentTranche, ClassPaymentAmount, ClassScholarship, StudentScholarship
from .Teaching import Teacher, Subject, ClassSubject, TeacherAssignment
