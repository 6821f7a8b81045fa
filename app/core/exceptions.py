"""
Custom exception classes for better error handling
"""
from datetime import datetime
from typing import Optional, Dict, Any


class BraveThingsException(Exception):
    """Base exception for all custom exceptions"""
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class StoreException(BraveThingsException):
    """Raised when document store operations fail"""
    pass


class ValidationException(BraveThingsException):
    """Raised when input validation fails"""
    status_code = 400


class AuthenticationException(BraveThingsException):
    """Raised when credentials are wrong. The message never says which part."""
    status_code = 401


class InvalidTokenException(BraveThingsException):
    """Raised when a bearer token is expired, malformed or badly signed"""
    status_code = 401


class AuthorizationException(BraveThingsException):
    """Raised when a known user lacks the entitlement or permission"""
    status_code = 403


class ResourceNotFoundException(BraveThingsException):
    """Raised when a requested resource is not found"""
    status_code = 404


class ConflictException(BraveThingsException):
    """Raised when a unique resource already exists"""
    status_code = 409


class RateLimitException(BraveThingsException):
    """Raised when an identifier is locked out after too many failed attempts"""
    status_code = 429

    def __init__(self, message: str, lockout_end: datetime, details: Optional[Dict[str, Any]] = None):
        self.lockout_end = lockout_end
        details = dict(details or {})
        details.setdefault("lockout_end", lockout_end.isoformat())
        super().__init__(message, details)


class TelemetryException(BraveThingsException):
    """Raised when an analytics write fails. Logged by callers, never returned to clients."""
    pass
