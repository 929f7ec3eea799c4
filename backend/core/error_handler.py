"""Error handling middleware and utilities

Provides:
- An application error hierarchy mapped to HTTP status codes
- Centralized Flask handlers rendering every error as JSON {error, details}
- Error logging
"""

import traceback
from typing import Any, Dict, Optional

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from .logger import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """Base application error"""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 400,
        details: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        # Extra top-level keys merged into the JSON body
        self.payload = payload or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        body.update(self.payload)
        return body


class ValidationError(AppError):
    """Invalid or missing request input"""

    def __init__(self, message: str, field: str = None, details: str = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details,
        )
        self.field = field


class AuthenticationError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class AuthorizationError(AppError):
    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


class NotFoundError(AppError):
    """Resource not found error"""

    def __init__(self, resource: str = "Resource", message: str = None):
        super().__init__(
            message=message or f"{resource} not found",
            code="NOT_FOUND",
            status_code=404,
        )


class ConflictError(AppError):
    """Conflict error (e.g., duplicate invitation)"""

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message=message, code="CONFLICT", status_code=409)


class UnprocessableError(AppError):
    """Model output that could not be turned into structured data"""

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="UNPROCESSABLE",
            status_code=422,
            payload=payload,
        )


class ExternalServiceError(AppError):
    """Error from external service (LLM, telephony, identity provider)"""

    def __init__(self, service: str, message: str, status_code: int = 502):
        super().__init__(
            message=f"{service} service error. Please try again.",
            code="EXTERNAL_SERVICE_ERROR",
            status_code=status_code,
            details=message,
        )
        self.service = service


class ConfigurationError(AppError):
    """Required server-side configuration is missing"""

    def __init__(self, message: str):
        super().__init__(message=message, code="CONFIGURATION_ERROR", status_code=500)


class ProvisioningError(AppError):
    """Profile or account could not be resolved or created"""

    def __init__(self, message: str, details: str = None):
        super().__init__(
            message=message,
            code="PROVISIONING_ERROR",
            status_code=404,
            details=details,
        )


def handle_errors(app):
    """Register error handlers with Flask app"""

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            "app_error",
            code=error.code,
            status_code=error.status_code,
            error=error.message,
            details=error.details,
            path=request.path,
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({"error": error.name, "details": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        logger.error(
            "internal_server_error",
            exc=error,
            error=str(error),
            traceback=traceback.format_exc(),
            path=request.path,
            method=request.method,
        )
        return jsonify({"error": "Internal server error", "details": str(error)}), 500
