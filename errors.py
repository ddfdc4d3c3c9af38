"""
Error taxonomy for the Export Hub backend.

Every error carries the HTTP status it maps to and a message that is safe to
show to clients. Extra keys in ``extras`` are merged into the error envelope.
"""
from typing import Any, Dict, Optional


class ExportHubError(Exception):
    status_code = 500
    message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **extras: Any):
        self.message = message or self.message
        self.extras: Dict[str, Any] = extras
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.message}
        body.update(self.extras)
        return body


class ValidationFailed(ExportHubError):
    status_code = 400
    message = "Required fields missing"


class NotFound(ExportHubError):
    status_code = 404
    message = "Resource not found"


class Conflict(ExportHubError):
    status_code = 400
    message = "Request conflicts with current state"


class InsufficientStock(Conflict):
    message = "Insufficient quantity available"

    def __init__(self, available: int, requested: int):
        super().__init__(available=available, requested=requested)
        self.available = available
        self.requested = requested


class ProductInUse(Conflict):
    def __init__(self, count: int):
        super().__init__(
            f"Cannot delete product: {count} import(s) still reference it",
            importCount=count,
        )
        self.count = count


class DuplicateUser(Conflict):
    message = "User already exists"


class InvalidCredentials(ExportHubError):
    status_code = 401
    message = "Invalid email or password"


class StoreUnavailable(ExportHubError):
    status_code = 503
    message = "Database not connected"


class UnexpectedError(ExportHubError):
    pass
