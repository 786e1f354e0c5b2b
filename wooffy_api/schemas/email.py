from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from wooffy_api.schemas.common import require_text


class VerifyEmailTokenIn(BaseModel):
    token: str

    @field_validator("token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        return require_text(value)


class VerifyEmailTokenOut(BaseModel):
    success: bool = True
    message: str
    email: str


class SendVerificationEmailIn(BaseModel):
    full_name: Optional[str] = Field(default=None, alias="fullName")

    @field_validator("full_name")
    @classmethod
    def normalize_full_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(populate_by_name=True)


class SendPasswordResetIn(BaseModel):
    email: EmailStr
    reset_url: str = Field(alias="resetUrl")

    @field_validator("reset_url")
    @classmethod
    def validate_reset_url(cls, value: str) -> str:
        return require_text(value)

    model_config = ConfigDict(populate_by_name=True)


class SuccessOut(BaseModel):
    success: bool = True
