"""Response bodies of the health and readiness endpoints."""

from datetime import datetime
from enum import Enum
from typing import Dict, Literal

from pydantic import BaseModel


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


CheckResult = Literal["ok", "error"]


class HealthResponse(BaseModel):
    """Body of ``/v1/health/ping``: database reachability plus worker state."""

    status: HealthStatus
    timestamp: datetime
    version: str
    database: CheckResult = "ok"
    workers: Dict[str, bool] = {}


class ReadinessChecks(BaseModel):
    database: CheckResult
    workers: Dict[str, bool]


class ReadinessResponse(BaseModel):
    status: Literal["ready", "not_ready"]
    service: str
    checks: ReadinessChecks
