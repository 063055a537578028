import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: str) -> bool:
    """Pragmatic email check: rejects obviously invalid strings, not RFC-complete."""
    if not email or not isinstance(email, str):
        return False
    return _EMAIL_RE.fullmatch(email.strip()) is not None


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str


class AuthSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: datetime
    user: User


class AuthChangeEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


class LoginForm(BaseModel):
    model_config = ConfigDict(validate_default=True)

    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Email is required")
        if not is_valid_email(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        return value


class RegisterForm(BaseModel):
    model_config = ConfigDict(validate_default=True)

    company_name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    @field_validator("company_name")
    @classmethod
    def _company_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Company name is required")
        if len(value) < 2:
            raise ValueError("Company name must be at least 2 characters")
        return value

    @field_validator("address")
    @classmethod
    def _address(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Address is required")
        if len(value) < 5:
            raise ValueError("Address must be at least 5 characters")
        return value

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Phone number is required")
        if len(value) < 10:
            raise ValueError("Phone number must be at least 10 digits")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Email is required")
        if not is_valid_email(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value

    @field_validator("confirm_password")
    @classmethod
    def _confirm_password(cls, value: str, info: ValidationInfo) -> str:
        if not value:
            raise ValueError("Confirm password is required")
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords must match")
        return value
