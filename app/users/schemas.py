"""
User schemas for request/response validation.

Validation only accepts or rejects input; accepted values are stored exactly
as sent.
"""
from typing import Annotated

from email_validator import validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

# Ids are 32-bit signed integers in the table
USER_ID_MIN = -(2**31)
USER_ID_MAX = 2**31 - 1


def _check_email(value: str) -> str:
    validate_email(value, check_deliverability=False)
    return value


Email = Annotated[str, AfterValidator(_check_email)]


class UserRead(BaseModel):
    """
    Schema for reading user data.

    Mirrors the table row (id, first_name, last_name, email) without
    re-validating what is already stored.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str


class UserCreate(BaseModel):
    """
    Schema for creating a new user.

    The id is chosen by the caller; there is no auto-increment.
    """

    id: int = Field(
        ...,
        ge=USER_ID_MIN,
        le=USER_ID_MAX,
        description="Caller-supplied primary key",
    )
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: Email = Field(..., description="Contact email address")

    @field_validator("first_name", "last_name")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class UserUpdate(UserCreate):
    """
    Schema for overwriting a user.

    Same complete shape as ``UserCreate``; partial updates are not supported.
    The ``id`` field is accepted but ignored in favor of the path id.
    """
    pass
