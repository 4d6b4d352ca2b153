import logging
from datetime import datetime

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    error = "InternalServerError"

    def __init__(self, message=None):
        super().__init__(message)
        self.message = message or "Erreur interne du serveur"


class BadRequestError(ApiError):
    status_code = 400
    error = "BadRequest"


class UnauthorizedError(ApiError):
    status_code = 401
    error = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    error = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    error = "NotFound"


class ConflictError(ApiError):
    status_code = 409
    error = "Conflict"


def error_response(message, status_code, error):
    body = {
        "success": False,
        "message": message,
        "error": error,
        "statusCode": status_code,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "path": request.path,
    }
    return jsonify(body), status_code


def register_error_handlers(app, db, jwt):
    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        return error_response(exc.message, exc.status_code, exc.error)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return error_response(exc.description, exc.code, exc.name.replace(" ", ""))

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(exc):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return error_response("Erreur interne du serveur", 500, "InternalServerError")

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response("Erreur interne du serveur", 500, "InternalServerError")

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("Token d'authentification manquant", 401, "Unauthorized")

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("Token invalide", 401, "Unauthorized")

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("Token expiré", 401, "Unauthorized")

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_response("Token révoqué", 401, "Unauthorized")
