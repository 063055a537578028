from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from fleetkeeper.schemas.auth import is_valid_email
from fleetkeeper.schemas.truck import blank_to_none


class CompanyForm(BaseModel):
    """Fields submitted by the company profile form."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    name: str = ""
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("address", "city", "state", "zip", "phone", "email", mode="before")
    @classmethod
    def _blank_optional(cls, value):
        return blank_to_none(value)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not value:
            raise ValueError("Company name is required")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_email(value):
            raise ValueError("Invalid email address")
        return value


class CompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
