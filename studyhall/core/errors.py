# studyhall/core/errors.py
from __future__ import annotations

import uuid
from typing import Optional


class AppError(Exception):
    """Base for errors that map onto a JSON `{message, error}` response."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.kind}


class ValidationError(AppError):
    status_code = 400
    kind = "validation"


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class ConflictError(AppError):
    # duplicates are reported as 400, not 409
    status_code = 400
    kind = "conflict"


class InvalidLibraryError(AppError):
    status_code = 400
    kind = "invalid_library"


class AuthError(AppError):
    status_code = 401
    kind = "unauthorized"


class InternalError(AppError):
    """
    Opaque 500. The detail stays in the server log under `reference`;
    the client only sees the reference id.
    """

    status_code = 500
    kind = "internal"

    def __init__(self, message: str = "Server error", reference: Optional[str] = None):
        super().__init__(message)
        self.reference = reference or new_reference()

    def to_dict(self) -> dict:
        return {"message": self.message, "error": self.kind, "reference": self.reference}


def new_reference() -> str:
    return uuid.uuid4().hex[:12]
