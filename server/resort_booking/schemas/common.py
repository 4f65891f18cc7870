"""Types shared by the request and response schemas."""

from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer

# Two-decimal amount, emitted as a JSON number
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Violation(BaseModel):
    path: str
    message: str


class Problem(BaseModel):
    """RFC 9457 error body; documents what the exception handlers emit."""

    model_config = ConfigDict(extra="allow")

    type: str
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None
    violations: Optional[List[Violation]] = None


def problem_responses(*statuses: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI ``responses`` entries for the error statuses a router can return."""
    return {
        status: {"model": Problem, "content": {"application/problem+json": {}}}
        for status in statuses
    }
