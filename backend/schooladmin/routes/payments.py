from flask import Blueprint, request
from schooladmin.errors import ValidationError
from schooladmin.services import scholarships
from utils.access_control import Capability
from utils.decorators import capability_required, login_required
from utils.responses import success
from utils.serialization import to_dict
from utils.validation import json_body, optional_int, require_fields

payments_bp = Blueprint("payments", __name__)


@payments_bp.route('/tranches', methods=['GET'])
@login_required
def list_tranches():
    active_only = request.args.get("active_only") in ("1", "true")
    return success(data=[to_dict(t) for t in scholarships.list_tranches(active_only)])


@payments_bp.route('/tranches', methods=['POST'])
@capability_required(Capability.MANAGE_PAYMENTS)
def create_tranche():
    data = require_fields(json_body(request), "name")
    tranche = scholarships.create_tranche(
        data["name"], data.get("description"),
        optional_int(data.get("order"), "order"),
        data.get("is_active", True),
    )
    return success(data=to_dict(tranche), message="Tranche créée avec succès", status=201)


@payments_bp.route('/classes/<int:class_id>/amounts', methods=['GET'])
@login_required
def class_amounts(class_id):
    return success(data=[a.to_dict() for a in scholarships.class_amounts(class_id)])


@payments_bp.route('/classes/<int:class_id>/amounts', methods=['PUT'])
@capability_required(Capability.MANAGE_PAYMENTS)
def replace_class_amounts(class_id):
    data = require_fields(json_body(request), "amounts")
    items = data["amounts"]
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ValidationError(errors={"amounts": ["Liste d'objets {payment_tranche_id, amount} attendue"]})
    result = scholarships.replace_class_amounts(class_id, items)
    return success(data=result.to_dict(), message="Configuration des paiements enregistrée")
