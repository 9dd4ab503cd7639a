from flask import Blueprint

from schooladmin.extensions import db
from utils.responses import success

base_bp = Blueprint("base", __name__)


@base_bp.route("/")
def home():
    return success(message="School administration API")


@base_bp.route("/health")
def health():
    db.session.execute(db.text("SELECT 1"))
    return success(data={"database": "ok"})
