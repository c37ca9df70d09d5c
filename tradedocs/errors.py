"""
tradedocs/errors.py

Typed error taxonomy.

Every error carries:
- status_code: HTTP status the JSON error handler responds with
- code: machine-readable identifier for API clients

Hierarchy:

    TradeDocsError (base, 500)
    +-- ValidationError (400)        client input rejected, nothing written
    +-- AuthenticationRequired (401)
    +-- PermissionDenied (403)
    +-- NotFoundError (404)          update/delete/get on an unknown id
    +-- ConflictError (409)          unique document number already taken
    +-- AllocationError (500)        sequence counter could not be incremented

IMPORTANT:
- The amount calculator never raises any of these; dirty numeric input degrades to 0.
"""

from __future__ import annotations

from typing import Any, Dict


class TradeDocsError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(TradeDocsError):
    status_code = 400
    code = "validation_error"


class AuthenticationRequired(TradeDocsError):
    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Not authorized", **details: Any):
        super().__init__(message, **details)


class PermissionDenied(TradeDocsError):
    status_code = 403
    code = "permission_denied"

    def __init__(self, message: str = "You don't have permission for this action", **details: Any):
        super().__init__(message, **details)


class NotFoundError(TradeDocsError):
    status_code = 404
    code = "not_found"


class ConflictError(TradeDocsError):
    status_code = 409
    code = "conflict"


class AllocationError(TradeDocsError):
    status_code = 500
    code = "allocation_failed"
