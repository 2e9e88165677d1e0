# backend/courtbook/schemas/locations.py

from typing import Optional
from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class LocationUpdate(BaseModel):
    """Display fields only; identity never changes once referenced."""
    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class LocationRead(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None
    is_deleted: bool

    model_config = {"from_attributes": True}
