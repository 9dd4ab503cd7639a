import logging

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .errors import error_response, register_error_handlers
from .extensions import db, jwt, limiter, migrate


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    app.logger.setLevel(level)


def _register_jwt_handlers():
    from .models import TokenBlocklist

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        jti = jwt_payload["jti"]
        token = db.session.query(TokenBlocklist.id).filter_by(jti=jti).first()
        return token is not None

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("Authentification requise", 401, "UNAUTHORIZED")

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("Jeton invalide", 401, "INVALID_TOKEN")

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("Jeton expiré", 401, "TOKEN_EXPIRED")

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_response("Jeton révoqué", 401, "TOKEN_REVOKED")


def create_app(config_class=None):
    app = Flask(__name__)
    app.config.from_object(config_class or get_config())
    _configure_logging(app)

    db.init_app(app)
    jwt.init_app(app)
    limiter.init_app(app)
    migrate.init_app(app, db)
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)

    from .routes import register_routes
    register_routes(app)
    register_error_handlers(app)

    _register_jwt_handlers()

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            db.create_all()

    app.logger.info("Application started (%s)", app.config.get("FLASK_ENV"))
    return app
