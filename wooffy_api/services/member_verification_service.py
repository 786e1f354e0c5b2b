from datetime import timedelta
from typing import Any

from sqlalchemy import func, select

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess
from wooffy_api.core.config import settings
from wooffy_api.core.errors import ApiError, forbidden, not_found
from wooffy_api.core.id_utils import generate_id
from wooffy_api.core.money import format_discount
from wooffy_api.core.observability import log_event
from wooffy_api.core.time_utils import as_utc, utcnow
from wooffy_api.models.membership import Membership, Pet
from wooffy_api.models.offer import Offer, OfferRedemption
from wooffy_api.models.user import Profile
from wooffy_api.models.verification import VerificationAttempt

RATE_LIMITED_MESSAGE = "Too many failed attempts. Please try again later."


def client_ip(forwarded_for: str | None, cf_connecting_ip: str | None) -> str:
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return (cf_connecting_ip or "").strip() or "unknown"


def _recent_failures(privileged: PrivilegedAccess, business_id: str) -> int:
    since = utcnow() - timedelta(minutes=settings.member_verify_lockout_minutes)
    return int(
        privileged.db.execute(
            select(func.count(VerificationAttempt.id)).where(
                VerificationAttempt.business_id == business_id,
                VerificationAttempt.success.is_(False),
                VerificationAttempt.created_at >= since,
            )
        ).scalar_one()
    )


def verify_member(
    scope: UserScopedAccess,
    privileged: PrivilegedAccess,
    *,
    member_id: str,
    offer_id: str,
    business_id: str,
    ip_address: str,
) -> dict[str, Any]:
    business = scope.owned_business(business_id)
    if business is None:
        raise forbidden("Unauthorized")

    db = privileged.db
    if _recent_failures(privileged, business.id) >= settings.member_verify_max_failed_attempts:
        log_event("member_verification_rate_limited", business_id=business.id, ip_address=ip_address)
        raise ApiError(429, RATE_LIMITED_MESSAGE, code="RATE_LIMITED", extra={"status": "rate_limited"})

    offer = db.get(Offer, offer_id)
    if offer is None or offer.business_id != business.id:
        raise not_found("Offer not found")

    member_number = member_id.strip()
    membership = db.execute(
        select(Membership).where(Membership.member_number == member_number)
    ).scalar_one_or_none()
    now = utcnow()
    is_current = (
        membership is not None
        and membership.is_active
        and as_utc(membership.expires_at) >= now
    )

    db.add(
        VerificationAttempt(
            id=generate_id(),
            business_id=business.id,
            attempted_member_id=member_number,
            success=bool(is_current),
            ip_address=ip_address,
        )
    )
    db.commit()

    if membership is None:
        log_event("member_verification", business_id=business.id, status="invalid")
        return {"status": "invalid"}

    pets = db.execute(
        select(Pet.pet_name).where(Pet.membership_id == membership.id).order_by(Pet.created_at.asc())
    ).scalars().all()
    pet_names = ", ".join(pets) if pets else (membership.pet_name or "Not specified")
    full_name = db.execute(
        select(Profile.full_name).where(Profile.user_id == membership.user_id)
    ).scalar_one_or_none()
    summary = {
        "memberName": full_name or "Member",
        "petName": pet_names,
        "memberId": membership.member_number,
        "expiryDate": as_utc(membership.expires_at).date().isoformat(),
    }

    if not is_current:
        log_event("member_verification", business_id=business.id, status="expired")
        return {"status": "expired", **summary}

    if offer.max_redemptions is not None:
        redeemed = int(
            db.execute(
                select(func.count(OfferRedemption.id)).where(OfferRedemption.offer_id == offer.id)
            ).scalar_one()
        )
        if redeemed >= offer.max_redemptions:
            log_event("member_verification", business_id=business.id, status="limit_reached")
            return {
                "status": "limit_reached",
                **summary,
                "offerTitle": offer.title,
                "message": "This offer has reached its maximum redemption limit.",
            }

    existing = db.execute(
        select(OfferRedemption.id).where(
            OfferRedemption.membership_id == membership.id,
            OfferRedemption.offer_id == offer.id,
        )
    ).first()
    if existing is not None:
        log_event("member_verification", business_id=business.id, status="already_redeemed")
        return {"status": "already_redeemed", **summary, "offerTitle": offer.title}

    discount = format_discount(offer.discount_value, offer.discount_type, currency_symbol=settings.currency_symbol)
    log_event("member_verification", business_id=business.id, status="valid")
    return {
        "status": "valid",
        **summary,
        "membershipId": membership.id,
        "discount": f"{discount} - {offer.title}",
        "offerId": offer.id,
        "offerTitle": offer.title,
        "offerType": "per_member",
    }
