from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wooffy_api.schemas.common import require_uuid


class ConfirmRedemptionIn(BaseModel):
    membership_id: str = Field(alias="membershipId")
    offer_id: str = Field(alias="offerId")
    business_id: str = Field(alias="businessId")
    pet_id: Optional[str] = Field(default=None, alias="petId")

    @field_validator("membership_id")
    @classmethod
    def validate_membership_id(cls, value: str) -> str:
        return require_uuid(value, "membership")

    @field_validator("offer_id")
    @classmethod
    def validate_offer_id(cls, value: str) -> str:
        return require_uuid(value, "offer")

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, value: str) -> str:
        return require_uuid(value, "business")

    @field_validator("pet_id")
    @classmethod
    def validate_pet_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return require_uuid(value, "pet")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "membershipId": "6f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b",
                "offerId": "0b1c2d3e-4f50-4a6b-8c7d-8e9f0a1b2c3d",
                "businessId": "5a6b7c8d-9e0f-4a1b-9c2d-3e4f5a6b7c8d",
            }
        },
    )


class RedemptionOut(BaseModel):
    id: str
    offer_title: str
    discount: str
    business_name: str
    redeemed_at: str
    member_name: str
    pet_names: str
    member_number: str


class ConfirmRedemptionOut(BaseModel):
    success: bool = True
    redemption: RedemptionOut


class RedeemBirthdayOfferIn(BaseModel):
    birthday_offer_id: str = Field(alias="birthdayOfferId")
    business_id: str = Field(alias="businessId")

    @field_validator("birthday_offer_id")
    @classmethod
    def validate_birthday_offer_id(cls, value: str) -> str:
        return require_uuid(value, "birthday offer")

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, value: str) -> str:
        return require_uuid(value, "business")

    model_config = ConfigDict(populate_by_name=True)


class BirthdayRedemptionOut(BaseModel):
    id: str
    pet_name: str
    discount: str
    business_name: str
    redeemed_at: str


class RedeemBirthdayOfferOut(BaseModel):
    success: bool = True
    redemption: BirthdayRedemptionOut
