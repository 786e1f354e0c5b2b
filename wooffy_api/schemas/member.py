from pydantic import BaseModel, ConfigDict, Field, field_validator

from wooffy_api.schemas.common import require_text, require_uuid

MEMBER_ID_MAX_LENGTH = 50


class VerifyMemberIn(BaseModel):
    member_id: str = Field(alias="memberId")
    offer_id: str = Field(alias="offerId")
    business_id: str = Field(alias="businessId")

    @field_validator("member_id")
    @classmethod
    def validate_member_id(cls, value: str) -> str:
        cleaned = require_text(value)
        if len(cleaned) > MEMBER_ID_MAX_LENGTH:
            raise ValueError("Invalid member ID format")
        return cleaned

    @field_validator("offer_id")
    @classmethod
    def validate_offer_id(cls, value: str) -> str:
        return require_uuid(value, "offer")

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, value: str) -> str:
        return require_uuid(value, "business")

    model_config = ConfigDict(populate_by_name=True)
