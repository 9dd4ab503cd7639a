from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from schooladmin.errors import ValidationError


def now_local():
    """Current local time. Wrapped so tests can patch it."""
    return datetime.now()


def parse_iso_date(value, field_name="date"):
    """Parse a YYYY-MM-DD string into a date, raising ValidationError on bad input."""
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(errors={field_name: ["Date invalide (format attendu AAAA-MM-JJ)"]})


def optional_date(value, field_name="date", default=None):
    if value in (None, ""):
        return default
    return parse_iso_date(value, field_name)


def require_fields(data, *fields):
    """Every listed field must be present and non-blank in ``data``."""
    missing = {}
    for field in fields:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing[field] = ["Ce champ est obligatoire"]
    if missing:
        raise ValidationError(errors=missing)
    return data


def require_str(value, field_name):
    """Non-blank string, stripped."""
    if value is None:
        raise ValidationError(errors={field_name: ["Ce champ est obligatoire"]})
    if not isinstance(value, str):
        raise ValidationError(errors={field_name: ["Doit être une chaîne de caractères"]})
    value = value.strip()
    if not value:
        raise ValidationError(errors={field_name: ["Ce champ est obligatoire"]})
    return value


def optional_str(value, field_name):
    """Stripped string, or None when absent or blank."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(errors={field_name: ["Doit être une chaîne de caractères"]})
    return value.strip() or None


def require_int(value, field_name):
    if isinstance(value, bool):
        raise ValidationError(errors={field_name: ["Doit être un entier"]})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(errors={field_name: ["Doit être un entier"]})


def optional_int(value, field_name):
    if value in (None, ""):
        return None
    return require_int(value, field_name)


def require_int_list(value, field_name):
    if not isinstance(value, list) or not value:
        raise ValidationError(errors={field_name: ["Doit être une liste non vide"]})
    return [require_int(item, field_name) for item in value]


def require_amount(value, field_name="amount"):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(errors={field_name: ["Montant invalide"]})
    if not amount.is_finite() or amount < 0:
        raise ValidationError(errors={field_name: ["Le montant doit être positif"]})
    return amount


def json_body(request):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Corps JSON attendu")
    return data
