from fastapi import APIRouter, Depends, Header

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess, get_user_scope, privileged_access
from wooffy_api.core.api_docs import error_responses
from wooffy_api.schemas.member import VerifyMemberIn
from wooffy_api.services.member_verification_service import client_ip, verify_member

router = APIRouter(prefix="/functions/v1", tags=["members"])


@router.post(
    "/verify-member",
    summary="Check a member number against one of the caller's offers",
    responses={**error_responses(400, 401, 403, 404, 429, 500)},
)
def verify_member_route(
    payload: VerifyMemberIn,
    x_forwarded_for: str | None = Header(default=None),
    cf_connecting_ip: str | None = Header(default=None),
    scope: UserScopedAccess = Depends(get_user_scope),
    privileged: PrivilegedAccess = Depends(privileged_access("verify-member: member lookup by number")),
):
    return verify_member(
        scope,
        privileged,
        member_id=payload.member_id,
        offer_id=payload.offer_id,
        business_id=payload.business_id,
        ip_address=client_ip(x_forwarded_for, cf_connecting_ip),
    )
