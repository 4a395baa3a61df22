"""
minimux: Application Error Variants
===================================

What:  The closed set of errors a Handler raises to signal a domain failure.
How:   Every variant derives from AppError and carries an ErrorKind tag, a
       human-readable message and an optional context dict. Context.error()
       switches on the tag to pick the HTTP status and error code.

Error Variants:
    AppError (base)
    ├── NotFoundError          → 404 Not Found
    ├── InvalidIDError         → 400 Bad Request (identifier not in proper form)
    ├── ValidationFailedError  → 400 Bad Request (field-level details)
    └── InternalError          → 500 Internal Server Error (details logged only)

Matching:
    try:
        ...
    except AppError as err:
        if err.kind is ErrorKind.NOT_FOUND:
            ...
"""

import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    """Tag identifying which variant an AppError is."""

    NOT_FOUND = "not_found"
    INVALID_ID = "invalid_id"
    VALIDATION = "validation_error"
    INTERNAL = "internal_server_error"


class AppError(Exception):
    """
    Base of all handler-raised errors.

    Attributes:
        kind:     ErrorKind tag (doubles as the machine-readable error code)
        message:  Client-facing description
        context:  Extra detail; returned to the client except for INTERNAL
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = dict(context or {})
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class NotFoundError(AppError):
    """No record matched the lookup (e.g. GET /items/{id} with an unknown id)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"No {resource}(s) found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = dict(context or {})
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class InvalidIDError(AppError):
    """An identifier in the path or body is not in its proper form."""

    kind = ErrorKind.INVALID_ID

    def __init__(
        self,
        value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if value is not None:
            ctx["value"] = value
        super().__init__(message="ID is not in its proper form", context=ctx)
        self.value = value


class ValidationFailedError(AppError):
    """
    Client input failed validation.

    `errors` holds field-level problems, one dict per failure, in the shape
    pydantic reports them ({"loc": [...], "msg": "...", "type": "..."}).
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation errors occurred",
        field: Optional[str] = None,
        errors: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = dict(context or {})
        if field:
            ctx["field"] = field
        if errors:
            ctx["errors"] = errors
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = errors or []


class InternalError(AppError):
    """
    Something broke server-side.

    Raised by the recover middleware in place of unexpected exceptions. The
    context is logged but never sent to the client.
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "An unexpected error occurred. Please try again or contact support.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
