"""
Domain Exceptions — Raised by services, mapped to HTTP responses in main.py.

Storage errors (SQLAlchemyError) are deliberately not wrapped here; they
propagate to the caller unchanged.
"""


class ClinicError(Exception):
    """Base class for domain failures surfaced to API callers."""

    status_code = 400
    error_code = "clinic_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ClinicError):
    status_code = 404
    error_code = "not_found"


class UnavailableError(ClinicError):
    """No eligible staff member exists for an assignment decision."""

    status_code = 503
    error_code = "unavailable"


class ConflictError(ClinicError):
    status_code = 409
    error_code = "conflict"


class InvalidTransitionError(ConflictError):
    """A lifecycle change not permitted from the record's current status."""

    error_code = "invalid_transition"


class ValidationFailedError(ClinicError):
    status_code = 400
    error_code = "validation_failed"


class AuthenticationFailedError(ClinicError):
    status_code = 401
    error_code = "authentication_failed"


class PermissionDeniedError(ClinicError):
    status_code = 403
    error_code = "permission_denied"
