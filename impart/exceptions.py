"""
Custom exception classes and FastAPI exception handlers.

The service and dependency layers raise domain errors without building HTTP
responses; a single handler registered here turns every ImpartAPIError into
a consistent JSON body:

    {"detail": "...", "error_type": "..."}

Field validation failures add an "errors" object keyed by field name.

Exception hierarchy:
    ImpartAPIError (base)
    ├── InvalidAuthenticationTokenError  401 — malformed/unknown/expired bearer token
    ├── AuthenticationRequiredError      401 — anonymous caller on a protected route
    ├── InvalidCredentialsError          401 — wrong email or password at login
    ├── InactiveAccountError             403 — account is not active
    ├── NotPermittedError                403 — role or ownership check failed
    ├── NotFoundError                    404 — requested resource does not exist
    ├── FailedValidationError            422 — field-level validation errors
    └── RateLimitExceededError           429 — client exceeded its request budget

Two exceptions deliberately sit outside the hierarchy and have no handler:

  - RecordNotFoundError is the persistence layer's "no such row" signal.
    Handlers translate it into NotFoundError or a validation error where
    that is the intended outcome. Anywhere else it is an internal failure
    and ends up as a 500, e.g. a user whose role row has vanished.
  - PrincipalNotResolvedError means a principal was read from a request
    that never went through resolution. That is a wiring bug.

Anything unhandled is turned into a logged 500 by RecoverPanicMiddleware.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Persistence and programming-error signals
# ---------------------------------------------------------------------------

class RecordNotFoundError(Exception):
    """Raised by lookups that matched no row."""

    def __init__(self, resource: str = "record"):
        self.resource = resource
        super().__init__(f"{resource} not found")


class PrincipalNotResolvedError(RuntimeError):
    """Raised when a request's principal is read before it was resolved."""

    def __init__(self):
        super().__init__("missing principal in request state")


class MissingPasswordHashError(RuntimeError):
    """Raised when a user is validated before a password hash was set."""

    def __init__(self):
        super().__init__("missing password hash for user")


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class ImpartAPIError(Exception):
    """Base exception for all Impart API domain errors."""

    status_code: int = 400
    error_type: str = "bad_request"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_content(self) -> dict:
        return {"detail": self.detail, "error_type": self.error_type}


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InvalidAuthenticationTokenError(ImpartAPIError):
    """Raised for malformed, unknown, expired or wrong-scope bearer tokens."""

    status_code = 401
    error_type = "invalid_authentication_token"

    def __init__(self):
        super().__init__("invalid or missing authentication token")

    @property
    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class AuthenticationRequiredError(ImpartAPIError):
    status_code = 401
    error_type = "authentication_required"

    def __init__(self):
        super().__init__("you must be authenticated to access this resource")


class InvalidCredentialsError(ImpartAPIError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("invalid authentication credentials")


class InactiveAccountError(ImpartAPIError):
    status_code = 403
    error_type = "inactive_account"

    def __init__(self):
        super().__init__("your user account must be activated to access this resource")


class NotPermittedError(ImpartAPIError):
    """Raised when a role or ownership check rejects the caller."""

    status_code = 403
    error_type = "not_permitted"

    def __init__(self, detail: str = "your user account doesn't have the necessary permissions to access this resource"):
        super().__init__(detail)


class NotFoundError(ImpartAPIError):
    status_code = 404
    error_type = "not_found"

    def __init__(self, detail: str = "the requested resource could not be found"):
        super().__init__(detail)


class FailedValidationError(ImpartAPIError):
    """
    Raised when request data passes schema validation but breaks a rule
    that needs the database or the caller's role to check.

    Attributes:
        errors: Mapping of field name to a human-readable message.
    """

    status_code = 422
    error_type = "failed_validation"

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("the request data failed validation")

    def to_content(self) -> dict:
        content = super().to_content()
        content["errors"] = self.errors
        return content


class RateLimitExceededError(ImpartAPIError):
    status_code = 429
    error_type = "rate_limit_exceeded"

    def __init__(self):
        super().__init__("rate limit exceeded")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def error_response(exc: ImpartAPIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=exc.headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(ImpartAPIError)
    async def impart_api_error_handler(
        request: Request, exc: ImpartAPIError
    ) -> JSONResponse:
        return error_response(exc)
