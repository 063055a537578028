from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from fleetkeeper.schemas.truck import blank_to_none

MAINTENANCE_TYPES = [
    "Oil Change",
    "Tire Rotation",
    "Brake Service",
    "Air Filter",
    "Fuel Filter",
    "Transmission Service",
    "Coolant Flush",
    "Battery Replacement",
    "Wiper Blades",
    "Lights",
    "Other",
]


class MaintenanceForm(BaseModel):
    """Fields submitted by the add maintenance record form."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    maintenance_type: str = ""
    performed_at: Optional[date] = None
    mileage: Optional[int] = None
    next_due_mileage: Optional[int] = None
    part_make_model: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("performed_at", "mileage", "next_due_mileage", "part_make_model", "notes", mode="before")
    @classmethod
    def _blank_optional(cls, value):
        return blank_to_none(value)

    @field_validator("maintenance_type")
    @classmethod
    def _maintenance_type(cls, value: str) -> str:
        if not value:
            raise ValueError("Maintenance type is required")
        return value

    @field_validator("performed_at")
    @classmethod
    def _performed_at(cls, value: Optional[date]) -> date:
        if value is None:
            raise ValueError("Date is required")
        if value > date.today():
            raise ValueError("Date cannot be in the future")
        return value

    @field_validator("mileage")
    @classmethod
    def _mileage(cls, value: Optional[int]) -> int:
        if value is None:
            raise ValueError("Mileage is required")
        if value < 0:
            raise ValueError("Mileage cannot be negative")
        return value

    @field_validator("next_due_mileage")
    @classmethod
    def _next_due_mileage(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("Next due mileage cannot be negative")
        return value

    def to_row(self, company_id: int, truck_id: int) -> dict:
        row = self.model_dump()
        row["performed_at"] = datetime.combine(self.performed_at, time.min, tzinfo=timezone.utc)
        row["company_id"] = company_id
        row["truck_id"] = truck_id
        return row


class MaintenanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    truck_id: int
    maintenance_type: str
    performed_at: datetime
    mileage: int
    next_due_mileage: Optional[int] = None
    part_make_model: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    def is_due(self, current_mileage: int) -> bool:
        return self.next_due_mileage is not None and current_mileage >= self.next_due_mileage
