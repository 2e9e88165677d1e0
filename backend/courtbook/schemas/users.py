# backend/courtbook/schemas/users.py

from typing import Literal, Optional
from pydantic import BaseModel


Role = Literal["admin", "coach", "client"]


class UserCreate(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Role = "client"

    model_config = {"from_attributes": True}


class UserRead(BaseModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Role
    is_active: bool

    model_config = {"from_attributes": True}
