from fastapi import APIRouter, Depends

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess, get_user_scope, privileged_access
from wooffy_api.core.api_docs import error_responses
from wooffy_api.schemas.redemption import (
    ConfirmRedemptionIn,
    ConfirmRedemptionOut,
    RedeemBirthdayOfferIn,
    RedeemBirthdayOfferOut,
)
from wooffy_api.services.redemption_service import (
    RedemptionRequest,
    confirm_redemption,
    redeem_birthday_offer,
)

router = APIRouter(prefix="/functions/v1", tags=["redemptions"])


@router.post(
    "/confirm-redemption",
    response_model=ConfirmRedemptionOut,
    summary="Confirm a member's offer redemption at the caller's business",
    responses={**error_responses(400, 401, 403, 404, 409, 500)},
)
def confirm_redemption_route(
    payload: ConfirmRedemptionIn,
    scope: UserScopedAccess = Depends(get_user_scope),
    privileged: PrivilegedAccess = Depends(privileged_access("confirm-redemption: cross-user membership and offer")),
):
    return confirm_redemption(
        scope,
        privileged,
        RedemptionRequest(
            membership_id=payload.membership_id,
            offer_id=payload.offer_id,
            business_id=payload.business_id,
            pet_id=payload.pet_id,
        ),
    )


@router.post(
    "/redeem-birthday-offer",
    response_model=RedeemBirthdayOfferOut,
    summary="Redeem a birthday offer at the caller's business",
    responses={**error_responses(400, 401, 403, 404, 409, 500)},
)
def redeem_birthday_offer_route(
    payload: RedeemBirthdayOfferIn,
    scope: UserScopedAccess = Depends(get_user_scope),
    privileged: PrivilegedAccess = Depends(privileged_access("redeem-birthday-offer: member's birthday offer")),
):
    return redeem_birthday_offer(
        scope,
        privileged,
        birthday_offer_id=payload.birthday_offer_id,
        business_id=payload.business_id,
    )
