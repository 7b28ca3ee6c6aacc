"""Errors that the API turns into the {"error": {...}} envelope.

Services raise these directly; app.main registers a handler that renders
code, message and details with the error's HTTP status. Anything that is not
an APIError becomes a generic 500.

Status map:
    400 VALIDATION_ERROR, or a custom code via BadRequestError
    401 UNAUTHORIZED
    403 FORBIDDEN / ADMIN_REQUIRED
    404 NOT_FOUND
    409 custom code (EMAIL_ALREADY_EXISTS, ACCOUNT_LINKING_BLOCKED)
    422 INVALID_STATE_TRANSITION
    500 INTERNAL_ERROR
"""


class APIError(Exception):
    """Base class for errors rendered into the error envelope.

    Attributes:
        code: Machine-readable code, e.g. "UNAUTHORIZED".
        message: Text shown to the client. Must not leak account existence
            or internals.
        status_code: HTTP status of the response.
        details: Optional field-level details (validation errors).
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class ValidationError(APIError):
    """Malformed input, including a password that fails the strength rules."""

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__("VALIDATION_ERROR", message, 400, details)


class BadRequestError(APIError):
    """Well-formed request that cannot be honoured, with its own code.

    Example: INVALID_RESET_TOKEN for an unknown or expired reset token.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 400)


class UnauthorizedError(APIError):
    """Missing or invalid credentials (401).

    Messages are deliberately generic: "Invalid credentials",
    "Invalid refresh token", "Authentication required".
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__("UNAUTHORIZED", message, 401)


class ForbiddenError(APIError):
    def __init__(
        self, message: str = "Access denied", code: str = "FORBIDDEN"
    ) -> None:
        super().__init__(code, message, 403)


class AdminRequiredError(ForbiddenError):
    """Authenticated, but the role is not admin."""

    def __init__(self) -> None:
        super().__init__("Admin access required", code="ADMIN_REQUIRED")


class NotFoundError(APIError):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__("NOT_FOUND", message, 404)


class ConflictError(APIError):
    """The request collides with existing state (409); code names the clash."""

    def __init__(
        self, code: str, message: str, details: list[dict] | None = None
    ) -> None:
        super().__init__(code, message, 409, details)


class InvalidStateError(APIError):
    """Valid request that breaks a business rule (422).

    E.g. an admin demoting, deactivating or deleting their own account.
    """

    def __init__(self, message: str) -> None:
        super().__init__("INVALID_STATE_TRANSITION", message, 422)


class InternalError(APIError):
    """Server-side misconfiguration or failure (500). Never carries internals."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__("INTERNAL_ERROR", message, 500)
