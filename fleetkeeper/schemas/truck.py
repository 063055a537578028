import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

_VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")
MIN_YEAR = 1900


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TruckForm(BaseModel):
    """Fields submitted by the add/edit truck form."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    vin: str = ""
    license_plate: str = ""
    year: Optional[int] = None
    make: str = ""
    model: str = ""
    current_mileage: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("year", "current_mileage", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, value):
        return blank_to_none(value)

    @field_validator("vin")
    @classmethod
    def _vin(cls, value: str) -> str:
        value = value.upper()
        if not value:
            raise ValueError("VIN is required")
        if len(value) != 17:
            raise ValueError("VIN must be exactly 17 characters")
        if not _VIN_RE.match(value):
            raise ValueError("VIN may only contain letters (except I, O, Q) and digits")
        return value

    @field_validator("license_plate")
    @classmethod
    def _license_plate(cls, value: str) -> str:
        if not value:
            raise ValueError("License plate is required")
        return value.upper()

    @field_validator("year")
    @classmethod
    def _year(cls, value: Optional[int]) -> int:
        if value is None:
            raise ValueError("Year is required")
        max_year = date.today().year + 1
        if not MIN_YEAR <= value <= max_year:
            raise ValueError(f"Year must be between {MIN_YEAR} and {max_year}")
        return value

    @field_validator("make")
    @classmethod
    def _make(cls, value: str) -> str:
        if not value:
            raise ValueError("Make is required")
        return value

    @field_validator("model")
    @classmethod
    def _model(cls, value: str) -> str:
        if not value:
            raise ValueError("Model is required")
        return value

    @field_validator("current_mileage")
    @classmethod
    def _current_mileage(cls, value: Optional[int]) -> int:
        if value is None:
            raise ValueError("Current mileage is required")
        if value < 0:
            raise ValueError("Mileage cannot be negative")
        return value


class TruckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    vin: str
    license_plate: str
    year: int
    make: str
    model: str
    current_mileage: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        return f"{self.year} {self.make} {self.model}"
