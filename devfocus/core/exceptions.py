"""
DevFocus - Error Taxonomy
=========================

Domain errors raised by services and routers. Each error knows the HTTP
status and machine-readable code it is rendered with, so the API layer maps
them in one exception handler and the client library can map responses
back onto the same classes.
"""

from typing import Optional


class DevFocusError(Exception):
    """Base class for all DevFocus domain errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    title: str = "Internal Server Error"

    def __init__(
        self,
        detail: str = "",
        *,
        status_code: Optional[int] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(detail or self.title)
        self.detail = detail or self.title
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers


class ValidationError(DevFocusError):
    """Missing or malformed input."""

    status_code = 400
    code = "VALIDATION_ERROR"
    title = "Bad Request"


class AuthError(DevFocusError):
    """Bad credentials, bad token, or unverified email (403)."""

    status_code = 401
    code = "AUTH_ERROR"
    title = "Unauthorized"


class ForbiddenError(DevFocusError):
    """Resource exists but belongs to another user."""

    status_code = 403
    code = "FORBIDDEN"
    title = "Forbidden"


class NotFoundError(DevFocusError):
    status_code = 404
    code = "NOT_FOUND"
    title = "Not Found"


class ConflictError(DevFocusError):
    """Duplicate resource (e.g. a verified account with the same email)."""

    status_code = 400
    code = "CONFLICT"
    title = "Conflict"


class ExternalServiceError(DevFocusError):
    """Email or AI provider failure."""

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
    title = "Bad Gateway"


class AIServiceError(ExternalServiceError):
    code = "AI_SERVICE_ERROR"


class EmailDeliveryError(ExternalServiceError):
    code = "EMAIL_DELIVERY_ERROR"


ERRORS_BY_CODE: dict[str, type[DevFocusError]] = {
    cls.code: cls
    for cls in (
        ValidationError,
        AuthError,
        ForbiddenError,
        NotFoundError,
        ConflictError,
        ExternalServiceError,
        AIServiceError,
        EmailDeliveryError,
    )
}

ERRORS_BY_STATUS: dict[int, type[DevFocusError]] = {
    400: ValidationError,
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    502: ExternalServiceError,
}
