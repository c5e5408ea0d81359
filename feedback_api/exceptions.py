# =============================================================================
# Error Taxonomy
# =============================================================================
#
# API errors carry an HTTP status and a client-safe message. They are turned
# into `{"error": "<message>"}` responses by the handlers in main.py.
#
#   UnauthenticatedError   401  missing, malformed or unknown credential
#   InvalidRequestError    400  client data violates a stated constraint
#   NotFoundError          404  tenant-scoped resource does not exist
#   MethodNotAllowedError  405  unsupported HTTP method
#   ConflictError          409  resource already exists
#   InternalError          500  storage or unexpected failure (generic text)
#
# Domain errors raised by the stores are plain exceptions; the API layer maps
# them onto the classes above.
# =============================================================================

from __future__ import annotations


class FeedbackApiError(Exception):
    """Base class for errors rendered as a JSON `{"error": ...}` body."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self, message: str | None = None, headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class UnauthenticatedError(FeedbackApiError):
    status_code = 401
    default_message = "Missing or invalid API key"


class InvalidRequestError(FeedbackApiError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(FeedbackApiError):
    status_code = 404
    default_message = "Not found"


class MethodNotAllowedError(FeedbackApiError):
    status_code = 405
    default_message = "Method not allowed"


class ConflictError(FeedbackApiError):
    status_code = 409
    default_message = "Resource already exists"


class InternalError(FeedbackApiError):
    status_code = 500
    default_message = "Internal server error"


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


class TenantNotFoundError(LookupError):
    """Raised by the stores when a tenant ID has no tenant row."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id!r} does not exist")


class TenantExistsError(ValueError):
    """Raised when provisioning a tenant ID that is already taken."""

    def __init__(self, tenant_id: str) -> None:
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id!r} already exists")


class TenantAuthError(Exception):
    """Raised by an identity provider when tenant credentials are rejected."""
