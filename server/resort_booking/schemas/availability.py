"""Availability calendar schemas."""

import datetime as dt
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AvailabilityRequest(BaseModel):
    """Request schema for an availability calendar."""

    accommodation_type_id: Optional[UUID] = Field(None, description="Limit to one accommodation type")
    start_date: dt.date = Field(..., description="First day reported")
    end_date: dt.date = Field(..., description="Last day reported (inclusive)")


class DayAvailability(BaseModel):
    """Occupancy of one calendar day."""

    total_rooms: int = Field(..., ge=0)
    booked_rooms: int = Field(..., ge=0)
    status: str = Field(..., description="available, limited or full")


class AvailabilityResponse(BaseModel):
    """Availability calendar response schema."""

    accommodation_type_id: Optional[UUID] = None
    start_date: dt.date
    end_date: dt.date
    availability: Dict[dt.date, DayAvailability] = Field(..., description="Occupancy keyed by ISO date")
