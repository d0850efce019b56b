"""User/auth schemas"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_us_phone


class SignupRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: str
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., validation_alias=AliasChoices("confirm_password", "confirmPassword"))
    phoneNumber: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v


class SigninRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phoneNumber: Optional[str] = None

    @field_validator("phoneNumber")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v
