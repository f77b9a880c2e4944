"""
Application error taxonomy.

Every error carries the HTTP status and the JSON envelope fields the API
returns: ``error`` (short title), ``message`` (human readable) and ``code``
(machine readable). The shared handlers in ``app.api.error_handlers`` turn
these into responses.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    error: str = "Internal server error"
    message: str = "Something went wrong"
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Any = None,
    ) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.error,
            "message": self.message,
            "code": self.code,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class MissingCredential(AppError):
    status_code = 401
    error = "Token required"
    message = "An authentication token must be provided"
    code = "MISSING_TOKEN"


class InvalidLocalCredential(AppError):
    status_code = 401
    error = "Invalid token"
    message = "The provided token is not valid"
    code = "INVALID_TOKEN"


class ExpiredLocalCredential(InvalidLocalCredential):
    error = "Token expired"
    message = "The authentication token has expired"
    code = "TOKEN_EXPIRED"


class InvalidExternalCredential(AppError):
    status_code = 401
    error = "Invalid token"
    message = "The provided token is not valid or could not be verified"
    code = "INVALID_TOKEN"


class InvalidUser(AppError):
    status_code = 401
    error = "Invalid user"
    message = "The user does not exist or is inactive"
    code = "INVALID_USER"


class InvalidCredentials(AppError):
    status_code = 401
    error = "Invalid credentials"
    message = "Incorrect email or password"
    code = "INVALID_CREDENTIALS"


class ReconciliationFailed(AppError):
    status_code = 403
    error = "Authentication error"
    message = "Could not resolve the authenticated user"
    code = "AUTH_ERROR"


class DuplicateEntry(AppError):
    status_code = 400
    error = "Data conflict"
    message = "A record with these unique fields already exists"
    code = "DUPLICATE_ENTRY"


class UserExists(AppError):
    status_code = 400
    error = "User already exists"
    message = "An account with this email already exists"
    code = "USER_EXISTS"


class NotFound(AppError):
    status_code = 404
    error = "Not found"
    message = "The requested record does not exist"
    code = "NOT_FOUND"


class ValidationError(AppError):
    status_code = 400
    error = "Invalid data"
    message = "Please check the submitted data"
    code = "VALIDATION_ERROR"


class InvalidCurrentPassword(AppError):
    status_code = 400
    error = "Incorrect password"
    message = "The current password is not correct"
    code = "INVALID_CURRENT_PASSWORD"


class WebhookSignatureInvalid(AppError):
    status_code = 400
    error = "Invalid signature"
    message = "The webhook signature could not be verified"
    code = "WEBHOOK_SIGNATURE_INVALID"


class WebhookNotConfigured(AppError):
    status_code = 500
    error = "Webhook secret not configured"
    message = "CLERK_WEBHOOK_SECRET is not set"
    code = "WEBHOOK_NOT_CONFIGURED"


class WebhookProcessingError(AppError):
    status_code = 500
    error = "Error processing webhook"
    message = "The webhook event could not be processed"
    code = "WEBHOOK_PROCESSING_ERROR"


class FeatureDisabled(AppError):
    status_code = 501
    error = "Feature in development"
    message = "This feature is temporarily disabled"
    code = "FEATURE_DISABLED"


class InternalError(AppError):
    pass
