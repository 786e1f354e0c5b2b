from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column

from wooffy_api.db.base import Base


class Offer(Base):
    __tablename__ = "offers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id", ondelete="CASCADE"), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    discount_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    discount_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="percentage", server_default="percentage"
    )
    pet_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    max_redemptions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class OfferRedemption(Base):
    __tablename__ = "offer_redemptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    membership_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("memberships.id", ondelete="CASCADE"), index=True, nullable=False
    )
    offer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("offers.id", ondelete="CASCADE"), index=True, nullable=False
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id", ondelete="CASCADE"), index=True, nullable=False
    )
    redeemed_by_user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    pet_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("pets.id", ondelete="SET NULL"), nullable=True
    )
    member_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    member_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pet_names: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        # One redemption per (membership, offer); the insert relies on this to lose races cleanly.
        UniqueConstraint("membership_id", "offer_id", name="uq_offer_redemptions_membership_offer"),
    )


class RatingPrompt(Base):
    __tablename__ = "rating_prompts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    redemption_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("offer_redemptions.id", ondelete="CASCADE"), nullable=False
    )
    prompt_after: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SentBirthdayOffer(Base):
    __tablename__ = "sent_birthday_offers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    business_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("businesses.id", ondelete="CASCADE"), index=True, nullable=False
    )
    owner_user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    pet_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("pets.id", ondelete="SET NULL"), nullable=True
    )
    pet_name: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    discount_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="percentage", server_default="percentage"
    )
    message: Mapped[str] = mapped_column(String(1000), nullable=False, default="", server_default="")
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    redeemed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    redeemed_by_business_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("businesses.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_sent_birthday_offers_owner_sent_at", "owner_user_id", "sent_at"),
    )
