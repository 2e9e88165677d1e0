# backend/courtbook/schemas/bookings.py

from typing import Optional
from pydantic import BaseModel, Field


class RequestedRangeIn(BaseModel):
    location_id: int
    start_time: str = Field(description="UTC instant, ISO-8601")
    end_time: str = Field(description="UTC instant, ISO-8601")


class ReservationCreate(BaseModel):
    client_id: int
    ranges: list[RequestedRangeIn] = Field(min_length=1)
    coach_id: Optional[int] = None


class ReservationFailure(BaseModel):
    index: int
    location_id: int
    start_time: str
    end_time: str
    code: str
    message: str
    needs_reconciliation: bool = False

    model_config = {"from_attributes": True}


class ReservationResponse(BaseModel):
    created: int
    failed: int
    total_charged: float
    booking_ids: list[int]
    failures: list[ReservationFailure]
    needs_reconciliation: bool

    model_config = {"from_attributes": True}


class BookingRead(BaseModel):
    id: int
    client_id: int
    location_id: int
    start_time: str
    end_time: str
    credit_cost: float
    service_name: Optional[str] = None
    coach_id: Optional[int] = None

    model_config = {"from_attributes": True}
