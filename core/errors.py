"""
Error taxonomy shared by services and the HTTP layer.

Services raise these; ``api.main`` renders them as ``{kind, message, details}``.
"""
from typing import Any, Dict, Optional


class QuizForgeError(Exception):
    """Base class for failures that are reported to the caller."""

    kind = "internal"
    status_code = 500
    default_message = "Internal error."

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AuthError(QuizForgeError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Sign in required."


class ValidationError(QuizForgeError):
    kind = "invalid-argument"
    status_code = 400
    default_message = "Invalid payload."


class NotFoundError(QuizForgeError):
    kind = "not-found"
    status_code = 404
    default_message = "Not found."


class AuthorizationError(QuizForgeError):
    kind = "permission-denied"
    status_code = 403
    default_message = "Permission denied."


class PreconditionError(QuizForgeError):
    kind = "failed-precondition"
    status_code = 409
    default_message = "Operation not allowed in the current state."


class QuotaError(QuizForgeError):
    kind = "resource-exhausted"
    status_code = 429
    default_message = "Rate limit exceeded."

    @property
    def retry_after_seconds(self) -> Optional[int]:
        return self.details.get("retryAfterSeconds")


class InternalError(QuizForgeError):
    pass
