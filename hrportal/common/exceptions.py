"""Application errors and their RFC 7807 ``application/problem+json`` rendering.

Each subclass fixes its HTTP status, problem ``type`` slug and title; the
instance carries the human-readable ``detail`` and optional per-field
``errors``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

PROBLEM_MEDIA_TYPE = "application/problem+json"

FieldErrors = dict[str, list[str]]


class AppException(Exception):
    status_code: int = 500
    error_type: str = "internal-error"
    title: str = "Internal Server Error"

    def __init__(self, detail: str, errors: Optional[FieldErrors] = None) -> None:
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    status_code = 404
    error_type = "not-found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        self.title = f"{entity_type} Not Found"
        super().__init__(f"{entity_type} with id '{entity_id}' does not exist.")


class ConflictError(AppException):
    """Duplicate value, or a record state that forbids the operation."""

    status_code = 409
    error_type = "conflict"
    title = "Conflict"

    def __init__(self, field: str, value: Any, detail: Optional[str] = None) -> None:
        super().__init__(
            detail or f"An entry with {field}='{value}' already exists.",
            errors={field: [detail or f"'{value}' is already in use."]},
        )


class UnauthorizedException(AppException):
    status_code = 401
    error_type = "unauthorized"
    title = "Unauthorized"

    def __init__(self, detail: str = "Authentication required.") -> None:
        super().__init__(detail)


class ForbiddenException(AppException):
    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"

    def __init__(self, detail: str = "You do not have permission to perform this action.") -> None:
        super().__init__(detail)


class ValidationException(AppException):
    """Field-level failures found by service code after schema parsing."""

    status_code = 422
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, errors: FieldErrors) -> None:
        super().__init__("One or more fields failed validation.", errors=errors)


class BusinessRuleError(AppException):
    """Well-formed request that a leave/attendance rule refuses."""

    status_code = 400
    error_type = "business-rule"
    title = "Business Rule Violation"


# ── Rendering ───────────────────────────────────────────────────────

def problem_response(
    request: Request,
    *,
    status: int,
    error_type: str,
    title: str,
    detail: str,
    errors: Optional[FieldErrors] = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "type": f"/errors/{error_type}",
        "title": title,
        "status": status,
        "detail": detail,
        "instance": request.url.path,
    }
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_MEDIA_TYPE)


def _field_name(loc: tuple) -> str:
    # drop the leading "body" / "query" / "path" segment
    parts = loc[1:] if len(loc) > 1 else loc
    return ".".join(str(p) for p in parts) or "unknown"


async def _on_app_exception(request: Request, exc: AppException) -> JSONResponse:
    return problem_response(
        request,
        status=exc.status_code,
        error_type=exc.error_type,
        title=exc.title,
        detail=exc.detail,
        errors=exc.errors,
    )


async def _on_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: FieldErrors = {}
    for err in exc.errors():
        errors.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(
            err.get("msg", "Invalid value")
        )
    return problem_response(
        request,
        status=ValidationException.status_code,
        error_type=ValidationException.error_type,
        title=ValidationException.title,
        detail="Request validation failed.",
        errors=errors,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, _on_app_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _on_request_validation)  # type: ignore[arg-type]
