from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from schooladmin.extensions import db
from schooladmin.errors import ConflictError, NotFoundError, ValidationError
from schooladmin.models import ClassSeries, Level, SchoolClass, Section
from utils.access_control import Capability
from utils.decorators import capability_required, login_required
from utils.responses import success
from utils.serialization import to_dict
from utils.validation import json_body, optional_int, optional_str, require_fields, require_str

structure_bp = Blueprint("structure", __name__)

# kind -> (model, parent foreign key, parent model, editable fields)
MODEL_MAP = {
    "sections": (Section, None, None, ("name", "description", "order")),
    "levels": (Level, "section_id", Section, ("name", "description", "order")),
    "classes": (SchoolClass, "level_id", Level, ("name", "description")),
    "series": (ClassSeries, "class_id", SchoolClass, ("name", "code", "capacity")),
}

INT_FIELDS = ("order", "capacity")


def _clean(field, value):
    if field == "name":
        return require_str(value, field)
    if field == "order":
        return optional_int(value, field) or 0
    if field in INT_FIELDS:
        return optional_int(value, field)
    return optional_str(value, field)


def _apply(item, fields, data):
    for field in fields:
        if field in data:
            setattr(item, field, _clean(field, data[field]))


def _check_name_free(model, name, exclude_id=None):
    if not model.__table__.c.name.unique:
        return
    query = model.query.filter(model.name == name)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    with db.session.no_autoflush:
        taken = query.first() is not None
    if taken:
        raise ConflictError("Un élément porte déjà ce nom", code="DUPLICATE_NAME",
                            errors={"name": ["Ce nom est déjà utilisé"]})


def _commit():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Un élément porte déjà ce nom", code="DUPLICATE_NAME",
                            errors={"name": ["Ce nom est déjà utilisé"]})


def _resolve(kind):
    if kind not in MODEL_MAP:
        raise NotFoundError(f"Ressource inconnue : {kind}")
    return MODEL_MAP[kind]


def _get(model, object_id):
    obj = db.session.get(model, object_id)
    if obj is None:
        raise NotFoundError("Élément introuvable")
    return obj


def _check_parent(parent_model, parent_key, value):
    parent_id = optional_int(value, parent_key)
    if parent_id is None or db.session.get(parent_model, parent_id) is None:
        raise ValidationError(errors={parent_key: ["Élément parent introuvable"]})
    return parent_id


@structure_bp.route('/<kind>', methods=['GET'])
@login_required
def list_items(kind):
    model, parent_key, _, _ = _resolve(kind)
    query = model.query
    if parent_key:
        parent_id = optional_int(request.args.get(parent_key), parent_key)
        if parent_id is not None:
            query = query.filter(getattr(model, parent_key) == parent_id)
    if request.args.get("active_only") in ("1", "true"):
        query = query.filter(model.is_active.is_(True))
    order = model.order if hasattr(model, "order") else model.name
    return success(data=[to_dict(item) for item in query.order_by(order, model.id).all()])


@structure_bp.route('/<kind>', methods=['POST'])
@capability_required(Capability.MANAGE_STRUCTURE)
def create_item(kind):
    model, parent_key, parent_model, fields = _resolve(kind)
    required = ("name", parent_key) if parent_key else ("name",)
    data = require_fields(json_body(request), *required)

    item = model(is_active=bool(data.get("is_active", True)))
    if parent_key:
        setattr(item, parent_key, _check_parent(parent_model, parent_key, data[parent_key]))
    _apply(item, fields, data)
    _check_name_free(model, item.name)

    db.session.add(item)
    _commit()
    return success(data=to_dict(item), message="Élément créé avec succès", status=201)


@structure_bp.route('/<kind>/<int:item_id>', methods=['PUT'])
@capability_required(Capability.MANAGE_STRUCTURE)
def update_item(kind, item_id):
    model, parent_key, parent_model, fields = _resolve(kind)
    item = _get(model, item_id)
    data = json_body(request)

    if parent_key and parent_key in data:
        setattr(item, parent_key, _check_parent(parent_model, parent_key, data[parent_key]))
    _apply(item, fields, data)
    _check_name_free(model, item.name, exclude_id=item.id)

    _commit()
    return success(data=to_dict(item), message="Élément mis à jour")


@structure_bp.route('/<kind>/<int:item_id>/toggle', methods=['POST'])
@capability_required(Capability.MANAGE_STRUCTURE)
def toggle_item(kind, item_id):
    model, _, _, _ = _resolve(kind)
    item = _get(model, item_id)
    item.is_active = not item.is_active
    db.session.commit()
    return success(data=to_dict(item))
