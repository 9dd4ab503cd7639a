"""Error taxonomy shared by services and routes.

Services raise these; ``register_error_handlers`` turns them into the JSON
envelope ``{success: false, message, error, errors?, data?}``.
"""
from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    """Base exception for business rule violations."""

    status_code = 500
    code = "ERROR"
    default_message = "Une erreur est survenue"

    def __init__(self, message=None, code=None, errors=None, data=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if code:
            self.code = code
        self.errors = errors
        self.data = data


class ValidationError(AppError):
    """Malformed or missing input; ``errors`` maps fields to messages."""

    status_code = 422
    code = "VALIDATION_ERROR"
    default_message = "Données invalides"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Ressource introuvable"


class AuthorizationError(AppError):
    """Raised when a user lacks permission for an action."""

    status_code = 403
    code = "FORBIDDEN"
    default_message = "Accès refusé"


class ConflictError(AppError):
    """Business-rule collision (duplicates, already marked, ...)."""

    status_code = 422
    code = "CONFLICT"
    default_message = "Conflit avec l'état existant"


class PreconditionError(AppError):
    """System configuration missing, e.g. no active school year."""

    status_code = 400
    code = "PRECONDITION_FAILED"
    default_message = "Pré-condition non satisfaite"


def error_response(message, status, code=None, errors=None, data=None):
    body = {"success": False, "message": message}
    if code:
        body["error"] = code
    if errors:
        body["errors"] = errors
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(exc):
        return error_response(exc.message, exc.status_code, exc.code, exc.errors, exc.data)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        # rate-limit breaches carry a prebuilt response
        if exc.response is not None:
            return exc.response
        code = (exc.name or "error").upper().replace(" ", "_")
        return error_response(exc.description or exc.name, exc.code or 500, code)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        current_app.logger.exception("Unhandled error: %s", exc)
        message = "Erreur interne du serveur"
        if current_app.debug:
            message = f"{message}: {exc}"
        return error_response(message, 500, "INTERNAL_ERROR")
