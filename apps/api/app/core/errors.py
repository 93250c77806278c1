from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ServiceError(Exception):
    """Base for every classified outcome surfaced to callers.

    The HTTP layer maps ``code`` to a status code; services never deal with
    transport details.
    """

    code = "internal_error"
    default_message = "Request failed"
    default_field = "general"

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        detail: str | None = None,
        errors: list[FieldError] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if errors is None:
            errors = [FieldError(field or self.default_field, detail or self.message)]
        self.errors = errors
        super().__init__(self.message)

    def error_dicts(self) -> list[dict[str, str]]:
        return [error.as_dict() for error in self.errors]


class AuthenticationError(ServiceError):
    """Base for failures of the bearer-token gate."""

    default_field = "auth"


class MissingCredential(AuthenticationError):
    code = "missing_credential"
    default_message = "Access denied. No token provided."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, detail="Authentication token required")


class TokenExpired(AuthenticationError):
    code = "token_expired"
    default_message = "Token expired"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, detail="Authentication token has expired")


class TokenInvalid(AuthenticationError):
    code = "token_invalid"
    default_message = "Invalid token"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, detail="Invalid authentication token")


class PrincipalNotFound(AuthenticationError):
    code = "principal_not_found"
    default_message = "User not found"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, detail="User associated with token not found")


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"
    default_field = "credentials"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, detail="Email or password is incorrect")


class Forbidden(ServiceError):
    code = "forbidden"
    default_message = "Access denied"
    default_field = "auth"


class NotFoundOrForbidden(ServiceError):
    """Entity is missing or owned by someone else; callers cannot tell which."""

    code = "not_found"
    default_message = "Not found"
    default_field = "id"


class ValidationFailed(ServiceError):
    code = "validation_failed"
    default_message = "Validation failed"


class Conflict(ServiceError):
    code = "conflict"
    default_message = "Conflict"


class CascadeFailure(ServiceError):
    code = "cascade_failure"
    default_message = "Failed to delete customer"
