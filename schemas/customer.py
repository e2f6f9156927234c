"""
Pydantic schema for one customer row with field-level validation
"""

from pydantic import BaseModel, validator
from typing import Optional
from email_validator import validate_email, EmailNotValidError


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


class CustomerRow(BaseModel):
    """
    Field rules for an uploaded customer row.

    Fields are declared in the order their rules are evaluated, so the
    first entry of a ValidationError is the first rule the row broke.
    """

    name: str
    email: str
    phone: Optional[str] = None
    company: str

    @validator("name", pre=True)
    def require_name(cls, v):
        v = _text(v)
        if not v:
            raise ValueError("name is required")
        return v

    @validator("email", pre=True)
    def require_valid_email(cls, v):
        v = _text(v)
        if not v:
            raise ValueError("email is required")
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("invalid email")
        return v

    @validator("phone", pre=True)
    def optional_phone(cls, v):
        return _text(v) or None

    @validator("company", pre=True)
    def require_company(cls, v):
        v = _text(v)
        if not v:
            raise ValueError("company is required")
        return v
