"""Offer and birthday-offer redemption.

Both operations follow the same pattern: authorise against the caller's own
business, load cross-user rows through a privileged capability, perform one
conditional write, then queue the member-facing side effects in the same
transaction and run them once the write is committed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess
from wooffy_api.core.config import settings
from wooffy_api.core.errors import ApiError, already_redeemed, bad_request, forbidden, not_found
from wooffy_api.core.id_utils import generate_id
from wooffy_api.core.money import format_discount
from wooffy_api.core.observability import log_event
from wooffy_api.core.time_utils import as_utc, utcnow
from wooffy_api.models.business import Business
from wooffy_api.models.membership import Membership, Pet
from wooffy_api.models.offer import Offer, OfferRedemption, SentBirthdayOffer
from wooffy_api.models.user import Profile
from wooffy_api.services.side_effects import queue_side_effect, run_side_effects

RATING_PROMPT_DELAY = timedelta(hours=24)
PET_TYPE_LABELS = {"dog": "dogs", "cat": "cats"}


@dataclass(frozen=True)
class RedemptionRequest:
    membership_id: str
    offer_id: str
    business_id: str
    pet_id: str | None = None


def _json_number(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def _owned_business_or_403(scope: UserScopedAccess, business_id: str) -> Business:
    business = scope.owned_business(business_id)
    if business is None:
        raise forbidden("Unauthorized")
    return business


def _member_name(db: Session, user_id: str) -> str:
    full_name = db.execute(
        select(Profile.full_name).where(Profile.user_id == user_id)
    ).scalar_one_or_none()
    return full_name or "Member"


def confirm_redemption(
    scope: UserScopedAccess,
    privileged: PrivilegedAccess,
    request: RedemptionRequest,
) -> dict[str, Any]:
    business = _owned_business_or_403(scope, request.business_id)
    db = privileged.db

    membership = db.get(Membership, request.membership_id)
    if membership is None:
        raise not_found("Membership not found")
    offer = db.get(Offer, request.offer_id)
    if offer is None or offer.business_id != business.id:
        raise not_found("Offer not found")

    pets = db.execute(
        select(Pet).where(Pet.membership_id == membership.id).order_by(Pet.created_at.asc(), Pet.id.asc())
    ).scalars().all()
    member_name = _member_name(db, membership.user_id)

    selected_pet: Pet | None = None
    if request.pet_id:
        selected_pet = next((pet for pet in pets if pet.id == request.pet_id), None)
        if selected_pet is None:
            raise bad_request("Selected pet not found", code="PET_NOT_FOUND")
        if offer.pet_type and selected_pet.pet_type != offer.pet_type:
            label = PET_TYPE_LABELS.get(offer.pet_type, f"{offer.pet_type}s")
            raise bad_request(f"This offer is only valid for {label}", code="PET_TYPE_MISMATCH")

    if selected_pet is not None:
        pet_names = selected_pet.pet_name
    elif pets:
        pet_names = ", ".join(pet.pet_name for pet in pets)
    else:
        pet_names = membership.pet_name or "Not specified"

    existing = db.execute(
        select(OfferRedemption.id).where(
            OfferRedemption.membership_id == membership.id,
            OfferRedemption.offer_id == offer.id,
        )
    ).first()
    if existing is not None:
        raise already_redeemed("Offer already redeemed")

    now = utcnow()
    redemption = OfferRedemption(
        id=generate_id(),
        membership_id=membership.id,
        offer_id=offer.id,
        business_id=business.id,
        redeemed_by_user_id=scope.user_id,
        pet_id=selected_pet.id if selected_pet else None,
        member_name=member_name,
        member_number=membership.member_number,
        pet_names=pet_names,
        redeemed_at=now,
    )
    try:
        with db.begin_nested():
            db.add(redemption)
    except IntegrityError as exc:
        db.rollback()
        log_event(
            "redemption_conflict",
            membership_id=membership.id,
            offer_id=offer.id,
            business_id=business.id,
        )
        raise already_redeemed("Offer already redeemed") from exc

    discount = format_discount(offer.discount_value, offer.discount_type, currency_symbol=settings.currency_symbol)
    saver = f"{selected_pet.pet_name} saved" if selected_pet else "You saved"
    notification_data: dict[str, Any] = {
        "redemption_id": redemption.id,
        "offer_id": offer.id,
        "offer_title": offer.title,
        "business_id": business.id,
        "business_name": business.business_name,
        "discount_value": _json_number(offer.discount_value),
        "discount_type": offer.discount_type,
    }
    if selected_pet is not None:
        notification_data["pet_id"] = selected_pet.id
        notification_data["pet_name"] = selected_pet.pet_name

    tasks = [
        queue_side_effect(
            db,
            operation="confirm-redemption",
            kind="notification.create",
            payload_json={
                "user_id": membership.user_id,
                "type": "redemption",
                "title": "Offer Redeemed! 🎉",
                "message": f'{saver} {discount} with "{offer.title}" at {business.business_name}!',
                "data": notification_data,
            },
        ),
        queue_side_effect(
            db,
            operation="confirm-redemption",
            kind="rating_prompt.create",
            payload_json={
                "user_id": membership.user_id,
                "business_id": business.id,
                "redemption_id": redemption.id,
                "prompt_after": _iso(now + RATING_PROMPT_DELAY),
            },
        ),
        queue_side_effect(
            db,
            operation="confirm-redemption",
            kind="notification.create",
            payload_json={
                "user_id": membership.user_id,
                "type": "review_request",
                "title": f"How was your visit to {business.business_name}? ⭐",
                "message": (
                    f'You recently used "{offer.title}". '
                    "Tap here to leave a review and help other pet parents!"
                ),
                "data": {
                    "business_id": business.id,
                    "business_name": business.business_name,
                    "redemption_id": redemption.id,
                    "action_url": f"/business/{business.id}",
                },
            },
        ),
        queue_side_effect(
            db,
            operation="confirm-redemption",
            kind="analytics.track",
            payload_json={
                "user_id": membership.user_id,
                "event_type": "offer_redeem",
                "entity_type": "offer",
                "entity_id": offer.id,
                "entity_name": offer.title,
                "metadata": {
                    "business_id": business.id,
                    "business_name": business.business_name,
                    "redemption_id": redemption.id,
                },
            },
        ),
    ]

    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        log_event("redemption_insert_failed", error=str(exc), membership_id=membership.id, offer_id=offer.id)
        raise ApiError(500, "Failed to process redemption. Please try again.", code="INSERT_FAILED") from exc

    log_event(
        "redemption_confirmed",
        redemption_id=redemption.id,
        business_id=business.id,
        offer_id=offer.id,
        membership_id=membership.id,
        redeemed_by_user_id=scope.user_id,
    )
    run_side_effects(db, tasks)

    return {
        "success": True,
        "redemption": {
            "id": redemption.id,
            "offer_title": offer.title,
            "discount": discount,
            "business_name": business.business_name,
            "redeemed_at": _iso(now),
            "member_name": member_name,
            "pet_names": pet_names,
            "member_number": membership.member_number,
        },
    }


def redeem_birthday_offer(
    scope: UserScopedAccess,
    privileged: PrivilegedAccess,
    *,
    birthday_offer_id: str,
    business_id: str,
) -> dict[str, Any]:
    business = _owned_business_or_403(scope, business_id)
    db = privileged.db

    birthday_offer = db.get(SentBirthdayOffer, birthday_offer_id)
    if birthday_offer is None:
        raise not_found("Birthday offer not found")
    if birthday_offer.redeemed_at is not None:
        raise already_redeemed("Birthday offer already redeemed")

    now = utcnow()
    result = db.execute(
        update(SentBirthdayOffer)
        .where(
            SentBirthdayOffer.id == birthday_offer.id,
            SentBirthdayOffer.redeemed_at.is_(None),
        )
        .values(redeemed_at=now, redeemed_by_business_id=business.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        log_event("birthday_offer_conflict", birthday_offer_id=birthday_offer.id, business_id=business.id)
        raise already_redeemed("Birthday offer already redeemed")

    discount = format_discount(
        birthday_offer.discount_value,
        birthday_offer.discount_type,
        currency_symbol=settings.currency_symbol,
    )
    pet_name = birthday_offer.pet_name
    tasks = [
        queue_side_effect(
            db,
            operation="redeem-birthday-offer",
            kind="notification.create",
            payload_json={
                "user_id": birthday_offer.owner_user_id,
                "type": "redemption",
                "title": "Birthday Offer Redeemed! 🎂",
                "message": (
                    f"Your birthday offer for {pet_name} was redeemed at "
                    f"{business.business_name}. You saved {discount}!"
                ),
                "data": {
                    "birthday_offer_id": birthday_offer.id,
                    "business_id": business.id,
                    "business_name": business.business_name,
                    "discount_value": _json_number(birthday_offer.discount_value),
                    "discount_type": birthday_offer.discount_type,
                    "pet_name": pet_name,
                },
            },
        ),
        queue_side_effect(
            db,
            operation="redeem-birthday-offer",
            kind="analytics.track",
            payload_json={
                "user_id": birthday_offer.owner_user_id,
                "event_type": "birthday_offer_redeem",
                "entity_type": "birthday_offer",
                "entity_id": birthday_offer.id,
                "entity_name": f"Birthday offer for {pet_name}",
                "metadata": {
                    "business_id": business.id,
                    "business_name": business.business_name,
                    "original_business_id": birthday_offer.business_id,
                },
            },
        ),
    ]

    try:
        db.commit()
    except Exception as exc:
        db.rollback()
        log_event("birthday_offer_update_failed", error=str(exc), birthday_offer_id=birthday_offer.id)
        raise ApiError(500, "Failed to redeem birthday offer", code="UPDATE_FAILED") from exc

    log_event(
        "birthday_offer_redeemed",
        birthday_offer_id=birthday_offer.id,
        business_id=business.id,
        redeemed_by_user_id=scope.user_id,
    )
    run_side_effects(db, tasks)

    return {
        "success": True,
        "redemption": {
            "id": birthday_offer.id,
            "pet_name": pet_name,
            "discount": discount,
            "business_name": business.business_name,
            "redeemed_at": _iso(now),
        },
    }
