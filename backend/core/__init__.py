"""Core Infrastructure Package

Centralized utilities for logging, error handling, validation and dates.

Modules:
- logger: Structured logging configuration
- error_handler: Error hierarchy and Flask handlers
- validators: Input validation utilities
- dates: Pakistan Standard Time helpers
"""

from .logger import get_logger
from .error_handler import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ProvisioningError,
    UnprocessableError,
    ValidationError,
    handle_errors,
)
from .validators import TransactionValidator

__all__ = [
    "get_logger",
    "handle_errors",
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ConflictError",
    "ExternalServiceError",
    "NotFoundError",
    "ProvisioningError",
    "UnprocessableError",
    "ValidationError",
    "TransactionValidator",
]
