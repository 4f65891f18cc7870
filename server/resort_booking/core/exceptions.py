"""
Error hierarchy rendered as RFC 9457 Problem Details.

Every error the API returns is a :class:`ProblemDetailsException`. Subclasses
fix the status, title and problem type; callers add the occurrence detail and
any extension members (``code``, ``violations``, ``conflicting_resource``).
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://resort-booking.dev/problems/"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _compact(**members: Any) -> Dict[str, Any]:
    """Drop members that were not supplied."""
    return {key: value for key, value in members.items() if value is not None and value != []}


class ProblemDetailsException(HTTPException):
    """
    Base exception carrying an RFC 9457 problem document.

    ``problem_details`` is the response body; it is also passed to
    ``HTTPException`` as ``detail`` so Starlette's fallback handler still
    produces something sensible.
    """

    status_code: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal-server-error"

    def __init__(
        self,
        status_code: Optional[int] = None,
        title: Optional[str] = None,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        status_code = status_code or type(self).status_code
        title = title or type(self).title

        self.problem_details: Dict[str, Any] = {
            "type": type_uri or f"{PROBLEM_TYPE_BASE}{self.slug}",
            "title": title,
            "status": status_code,
            **_compact(detail=detail, instance=instance),
            **(extensions or {}),
        }
        super().__init__(status_code=status_code, detail=self.problem_details, headers=headers)
        self.title = title

    @property
    def code(self) -> Optional[str]:
        """Machine-readable error code, when the problem carries one."""
        return self.problem_details.get("code")


class ValidationError(ProblemDetailsException):
    """Malformed or out-of-range input, rejected before any write."""

    status_code = 400
    title = "Validation Error"
    slug = "validation-error"

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        violations: Optional[List[Dict[str, str]]] = None,
        code: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail=detail,
            instance=instance,
            extensions=_compact(code=code, errors=errors or None, violations=violations),
        )


class AuthenticationError(ProblemDetailsException):
    """Missing, malformed or expired admin bearer token."""

    status_code = 401
    title = "Authentication Required"
    slug = "authentication-required"

    def __init__(self, detail: str = "Authentication credentials are required", instance: Optional[str] = None):
        super().__init__(detail=detail, instance=instance, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(ProblemDetailsException):
    """Authenticated, but not allowed to act on the requested tenant."""

    status_code = 403
    title = "Forbidden"
    slug = "forbidden"

    def __init__(self, detail: str = "Access to this resource is not allowed", instance: Optional[str] = None):
        super().__init__(detail=detail, instance=instance)


class NotFoundError(ProblemDetailsException):
    """Unknown entity, or one that belongs to another tenant."""

    status_code = 404
    title = "Resource Not Found"
    slug = "resource-not-found"

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            subject = f"{resource_type} '{resource_id}'" if resource_id else resource_type
            detail = f"The requested {subject} could not be found"
        super().__init__(
            detail=detail,
            instance=instance,
            extensions=_compact(resource_type=resource_type, resource_id=resource_id),
        )


class ConflictError(ProblemDetailsException):
    """The request cannot be applied to the current state, e.g. a room already taken."""

    status_code = 409
    title = "Resource Conflict"
    slug = "resource-conflict"

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        code: Optional[str] = None,
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail=detail,
            instance=instance,
            extensions=_compact(code=code, conflicting_resource=conflicting_resource),
        )


class RateLimitError(ProblemDetailsException):
    """Client exceeded the request budget of an endpoint."""

    status_code = 429
    title = "Rate Limit Exceeded"
    slug = "rate-limit-exceeded"

    def __init__(
        self,
        detail: str = "Too many requests. Please try again later.",
        retry_after: Optional[int] = None,
        limit: Optional[int] = None,
        window: Optional[int] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail=detail,
            instance=instance,
            extensions=_compact(limit=limit, window_seconds=window, retry_after_seconds=retry_after),
            headers={"Retry-After": str(retry_after)} if retry_after else None,
        )


class InternalServerError(ProblemDetailsException):
    """Unexpected failure; the caller only sees an error id to quote."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            detail=detail,
            instance=instance,
            extensions={"error_id": error_id or str(uuid.uuid4()), "timestamp": _timestamp()},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """Render a raised problem as its JSON document."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Convert FastAPI body/query validation failures into a 400 Problem Details response.

    Each pydantic error becomes a violation with a dotted path to the offending field.
    """
    violations = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        violations.append({
            "path": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value"),
        })

    problem = ValidationError(violations=violations, instance=str(request.url))
    return JSONResponse(status_code=problem.status_code, content=problem.problem_details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the traceback, return a 500 problem with an error id."""
    problem = InternalServerError(instance=str(request.url))

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"error_id": problem.problem_details["error_id"], "path": request.url.path},
    )

    return JSONResponse(status_code=500, content=problem.problem_details)
