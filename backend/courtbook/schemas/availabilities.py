# backend/courtbook/schemas/availabilities.py
"""
Pydantic schemas for availability (slot) API.

Civil dates are "YYYY-MM-DD", civil times "HH:MM"; instants are UTC
ISO-8601 strings. Format checks happen in the civil time converter so the
API and the core reject the same inputs.
"""

from typing import Optional
from pydantic import BaseModel, Field


class BulkSlotRequest(BaseModel):
    """Weekly pattern to materialize."""
    start_date: str = Field(description="First civil date, inclusive (YYYY-MM-DD)")
    end_date: str = Field(description="Last civil date, inclusive (YYYY-MM-DD)")
    weekdays: set[int] = Field(description="0=Sunday .. 6=Saturday")
    start_time: str = Field(description="Daily window start (HH:MM)")
    end_time: str = Field(description="Daily window end (HH:MM)")
    capacity: int = Field(10, ge=1)
    service_name: Optional[str] = None
    location_ids: list[int] = Field(min_length=1)


class BulkSlotResponse(BaseModel):
    created: int
    batch_id: str
    availability_ids: list[int]


class SingleSlotCreate(BaseModel):
    """One manually published slot at one or more locations."""
    date: str
    start_time: str
    capacity: int = Field(10, ge=1)
    service_name: Optional[str] = None
    location_ids: list[int] = Field(min_length=1)


class AvailabilityRead(BaseModel):
    id: int
    location_id: int
    start_time: str
    end_time: str
    max_capacity: int
    is_full: bool
    service_name: Optional[str] = None
    batch_id: Optional[str] = None

    model_config = {"from_attributes": True}


class AvailabilityDayEntry(BaseModel):
    """One row of the day view, with live counts."""
    availability_id: int
    location_id: int
    start_time: str
    end_time: str
    civil_date: str
    civil_time: str
    service_name: Optional[str] = None
    capacity: int
    booked_count: int
    is_full: bool
    status: str
    batch_id: Optional[str] = None


class AvailabilityDayResponse(BaseModel):
    date: str
    slots: list[AvailabilityDayEntry]


class SlotStatusRead(BaseModel):
    status: str
    booked_count: int
    capacity: int
    location_id: int
    availability_id: Optional[int] = None


class AvailabilityUpdate(BaseModel):
    """Only the service label and the location set can change."""
    service_name: Optional[str] = None
    location_ids: Optional[list[int]] = None

    model_config = {"extra": "forbid"}


class AvailabilityUpdateResponse(BaseModel):
    updated_ids: list[int]
    added_ids: list[int]
    removed_ids: list[int]
    skipped_ids: list[int]


class AvailabilityDeleteResponse(BaseModel):
    removed: int
    skipped: int
    removed_ids: list[int]
    skipped_ids: list[int]
