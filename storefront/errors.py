# storefront/errors.py
from typing import Optional


class StorefrontError(Exception):
    """Base for every error that crosses the RPC boundary."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = "", field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message, "field": self.field}}


class ValidationError(StorefrontError):
    status_code = 400
    code = "BAD_REQUEST"


class AuthenticationRequired(StorefrontError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Please login (10001)", field: Optional[str] = None):
        super().__init__(message, field)


class PermissionDenied(StorefrontError):
    status_code = 403
    code = "FORBIDDEN"


class TransportError(StorefrontError):
    """Client side only: the request never produced a usable response."""

    status_code = 503
    code = "TRANSPORT_ERROR"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (ValidationError, AuthenticationRequired, PermissionDenied, TransportError)
}


def error_from_payload(status_code: int, payload: Optional[dict]) -> StorefrontError:
    """Rebuild an exception from an error envelope received over the wire."""
    body = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(body, dict):
        body = {}
    cls = ERRORS_BY_CODE.get(body.get("code"), StorefrontError)
    err = cls(body.get("message") or f"Request failed with status {status_code}", body.get("field"))
    if cls is StorefrontError:
        err.status_code = status_code
    return err
