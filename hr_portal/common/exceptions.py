"""Custom exceptions and RFC 7807 Problem Detail error handlers."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

BASE_ERROR_URI = "https://hr-portal.local/errors"


# ── Exception hierarchy ─────────────────────────────────────────────

class AppException(Exception):
    """Base for all application exceptions → RFC 7807 JSON."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        title: str,
        detail: str,
        errors: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.title = title
        self.detail = detail
        self.errors = errors
        super().__init__(detail)


class NotFoundException(AppException):
    """404 — entity not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=404,
            error_type="not-found",
            title=f"{entity_type} Not Found",
            detail=f"{entity_type} with id '{entity_id}' does not exist.",
        )


class ConflictError(AppException):
    """409 — unique-constraint / duplicate."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="conflict",
            title="Conflict",
            detail=f"An entry with {field}='{value}' already exists.",
            errors={field: [f"'{value}' is already in use."]},
        )


class ForbiddenException(AppException):
    """403 — insufficient permissions."""

    def __init__(
        self,
        detail: str = "You do not have permission to perform this action.",
    ) -> None:
        super().__init__(
            status_code=403,
            error_type="forbidden",
            title="Forbidden",
            detail=detail,
        )


class ValidationException(AppException):
    """422 — business-logic validation failures."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        super().__init__(
            status_code=422,
            error_type="validation-error",
            title="Validation Error",
            detail="One or more fields failed validation.",
            errors=errors,
        )


# ── Leave ledger / workflow ─────────────────────────────────────────

class InsufficientBalanceError(AppException):
    """422 — requested days exceed the available leave balance."""

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            status_code=422,
            error_type="insufficient-balance",
            title="Insufficient Leave Balance",
            detail=(
                f"Insufficient leave balance. "
                f"Available: {available}, Requested: {requested}."
            ),
            errors={"balance": [f"Available: {available}, Requested: {requested}."]},
        )


class InvalidTransitionError(AppException):
    """409 — action attempted against a request in the wrong state."""

    def __init__(self, current: str, action: str) -> None:
        self.current = current
        self.action = action
        super().__init__(
            status_code=409,
            error_type="invalid-transition",
            title="Invalid Transition",
            detail=f"Cannot {action} a leave request that is '{current}'.",
            errors={"status": [f"Leave request is {current}."]},
        )


class PolicyBucketExhaustedError(AppException):
    """409 — a restricted deduction policy would drive a bucket negative."""

    def __init__(
        self,
        policy: str,
        current_available: int,
        carryover_remaining: int,
    ) -> None:
        self.policy = policy
        self.current_available = current_available
        self.carryover_remaining = carryover_remaining
        super().__init__(
            status_code=409,
            error_type="policy-bucket-exhausted",
            title="Leave Bucket Exhausted",
            detail=(
                f"The '{policy}' policy cannot absorb this correction. "
                f"Current year available: {current_available}, "
                f"carryover remaining: {carryover_remaining}. "
                f"Use the 'auto' policy instead."
            ),
            errors={
                "current_available": [str(current_available)],
                "carryover_remaining": [str(carryover_remaining)],
            },
        )


class ConcurrentUpdateError(AppException):
    """409 — the ledger row changed underneath the current operation."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(
            status_code=409,
            error_type="concurrent-update",
            title="Concurrent Update",
            detail=(
                f"{entity_type} '{entity_id}' was modified by another "
                f"operation. Retry the request."
            ),
        )


class AccountResolutionError(AppException):
    """409 — a leave request has no ledger account to post to."""

    def __init__(self, request_number: str) -> None:
        self.request_number = request_number
        super().__init__(
            status_code=409,
            error_type="account-unresolved",
            title="Leave Account Unresolved",
            detail=(
                f"Leave request {request_number} is not linked to a leave "
                f"account. HR must relink it before it can be approved."
            ),
        )


# ── RFC 7807 builder ────────────────────────────────────────────────

def _build_problem_detail(exc: AppException, request: Request) -> dict[str, Any]:
    body: dict[str, Any] = {
        "type": f"{BASE_ERROR_URI}/{exc.error_type}",
        "title": exc.title,
        "status": exc.status_code,
        "detail": exc.detail,
        "instance": str(request.url.path),
    }
    if exc.errors:
        body["errors"] = exc.errors
    return body


# ── FastAPI handlers ────────────────────────────────────────────────

async def _handle_app_exception(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_problem_detail(exc, request),
        media_type="application/problem+json",
    )


async def _handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err.get("loc", ())
        name = (
            ".".join(str(p) for p in loc[1:])
            if len(loc) > 1
            else str(loc[0]) if loc else "unknown"
        )
        field_errors.setdefault(name, []).append(err.get("msg", "Invalid value"))

    return JSONResponse(
        status_code=422,
        content={
            "type": f"{BASE_ERROR_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "Request validation failed.",
            "instance": str(request.url.path),
            "errors": field_errors,
        },
        media_type="application/problem+json",
    )


# ── Registration helper (called from main.py) ──────────────────────

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""
    app.add_exception_handler(AppException, _handle_app_exception)          # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
