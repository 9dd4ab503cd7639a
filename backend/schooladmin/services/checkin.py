"""QR check-in: decode, authorize, deduplicate, then record one attendance event."""
import logging
import re
from dataclasses import dataclass, asdict
from urllib.parse import urlencode

from schooladmin.extensions import db
from schooladmin.errors import AppError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from schooladmin.models import EventTypeEnum, Student
from schooladmin.services import attendance, supervision, years
from utils.audit import log_event
from utils.validation import now_local

logger = logging.getLogger(__name__)

QR_PREFIX = "STUDENT_ID_"
QR_IMAGE_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"

_PREFIXED = re.compile(r"STUDENT_ID_([0-9]+)")
_BARE = re.compile(r"[0-9]+")

SCAN_MODES = (None, "", "entry", "exit", "auto")

EVENT_LABELS = {
    EventTypeEnum.entry: "Entrée",
    EventTypeEnum.exit: "Sortie",
}


def decode_student_qr(payload):
    """
    Student id carried by a QR payload, or None.

    Accepted forms are ``STUDENT_ID_<digits>`` and a bare digit string;
    surrounding whitespace is ignored, nothing else is.
    """
    if not isinstance(payload, str):
        return None
    payload = payload.strip()
    match = _PREFIXED.fullmatch(payload) or _BARE.fullmatch(payload)
    if match is None:
        return None
    digits = match.group(1) if match.re is _PREFIXED else match.group(0)
    student_id = int(digits)
    return student_id if student_id > 0 else None


def student_qr_payload(student, size=200):
    value = f"{QR_PREFIX}{student.id}"
    return {
        "student_id": student.id,
        "student_name": student.full_name,
        "qr_value": value,
        "qr_image_url": QR_IMAGE_ENDPOINT + "?" + urlencode({"size": f"{size}x{size}", "data": value}),
    }


@dataclass
class ScanResult:
    student_id: int
    student_name: str
    class_name: str
    event_type: str
    event_label: str
    marked_at: str
    date: str

    def to_dict(self):
        return asdict(self)


class CheckInAuthorizer:
    """
    Runs one scan through decode, student lookup, year resolution,
    class authorization and the once-per-day check before recording it.
    Every rejection is an AppError carrying the code the scanner displays.
    """

    def __init__(self, clock=now_local):
        self.clock = clock

    def scan(self, qr_code, supervisor_id, event_type="entry", now=None):
        now = now or self.clock()
        try:
            result = self._scan(qr_code, supervisor_id, event_type, now)
        except AppError as exc:
            log_event("SCAN_REJECTED", user_id=supervisor_id, level="WARNING",
                      description=f"{exc.code} qr={qr_code!r}")
            raise
        log_event("SCAN_ACCEPTED", user_id=supervisor_id,
                  description=f"{result.event_type} student={result.student_id}")
        return result

    def _scan(self, qr_code, supervisor_id, event_type, now):
        if event_type not in SCAN_MODES:
            raise ValidationError(errors={"event_type": ["Valeurs acceptées : entry, exit, auto"]})
        student_id = decode_student_qr(qr_code)
        if student_id is None:
            raise ValidationError("Code QR invalide", code="INVALID_QR_FORMAT")

        student = db.session.get(Student, student_id)
        if student is None:
            raise NotFoundError("Étudiant introuvable", code="STUDENT_NOT_FOUND")

        # scanning follows the global active year, not the supervisor's working year
        year = years.require_active_year()

        class_name = student.class_name or "Classe inconnue"
        class_id = student.class_id
        if not supervision.is_authorized(supervisor_id, class_id, year.id):
            raise AuthorizationError(
                "Vous n'êtes pas autorisé à marquer la présence pour cette classe",
                code="NOT_AUTHORIZED_FOR_CLASS",
                data={"student_name": student.full_name, "class_name": class_name},
            )

        today = now.date()
        event = self._resolve_event_type(event_type, student.id, today, year.id)
        entry = attendance.has_entry_today(student.id, today, year.id)

        if event == EventTypeEnum.entry:
            if entry:
                marked_at = entry.scanned_at.strftime("%H:%M")
                raise ConflictError(
                    f"Cet élève est déjà entré aujourd'hui à {marked_at}",
                    code="ALREADY_MARKED_TODAY",
                    data={"student_name": student.full_name, "marked_at": marked_at},
                )
            record = attendance.record_entry(student.id, supervisor_id, class_id, year.id, now)
        else:
            if not entry:
                raise ConflictError(
                    "Aucune entrée trouvée pour cet élève aujourd'hui. Il doit d'abord entrer.",
                    code="NO_ENTRY_TODAY",
                    data={"student_name": student.full_name},
                )
            previous_exit = attendance.get_event(student.id, today, EventTypeEnum.exit, year.id)
            if previous_exit:
                marked_at = previous_exit.scanned_at.strftime("%H:%M")
                raise ConflictError(
                    f"Cet élève est déjà sorti aujourd'hui à {marked_at}",
                    code="ALREADY_EXITED_TODAY",
                    data={"student_name": student.full_name, "marked_at": marked_at},
                )
            record = attendance.record_exit(student.id, supervisor_id, class_id, year.id, now)

        logger.info("Recorded %s for student %s by supervisor %s", event.value, student.id, supervisor_id)
        return ScanResult(
            student_id=student.id,
            student_name=student.full_name,
            class_name=class_name,
            event_type=event.value,
            event_label=EVENT_LABELS[event],
            marked_at=record.scanned_at.strftime("%H:%M"),
            date=record.attendance_date.strftime("%d/%m/%Y"),
        )

    @staticmethod
    def _resolve_event_type(event_type, student_id, day, year_id):
        if event_type in (None, "", "entry"):
            return EventTypeEnum.entry
        if event_type == "auto":
            # entered and not yet out means this scan is the exit
            entered = attendance.has_entry_today(student_id, day, year_id)
            exited = attendance.get_event(student_id, day, EventTypeEnum.exit, year_id)
            return EventTypeEnum.exit if entered and not exited else EventTypeEnum.entry
        return EventTypeEnum.exit
