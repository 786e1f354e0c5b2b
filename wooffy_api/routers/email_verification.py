from fastapi import APIRouter, Body, Depends

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess, get_user_scope, privileged_access
from wooffy_api.core.api_docs import error_responses
from wooffy_api.schemas.email import (
    SendPasswordResetIn,
    SendVerificationEmailIn,
    SuccessOut,
    VerifyEmailTokenIn,
    VerifyEmailTokenOut,
)
from wooffy_api.services.email_verification_service import (
    send_password_reset,
    send_verification_email,
    verify_email_token,
)

router = APIRouter(prefix="/functions/v1", tags=["email"])


@router.post(
    "/verify-email-token",
    response_model=VerifyEmailTokenOut,
    summary="Consume an email verification token",
    responses={**error_responses(400, 500)},
)
def verify_email_token_route(
    payload: VerifyEmailTokenIn,
    privileged: PrivilegedAccess = Depends(privileged_access("verify-email-token: token owner profile")),
):
    return verify_email_token(privileged, token=payload.token)


@router.post(
    "/send-verification-email",
    response_model=SuccessOut,
    summary="Issue a new verification link for the caller",
    responses={**error_responses(400, 401, 500)},
)
def send_verification_email_route(
    payload: SendVerificationEmailIn | None = Body(default=None),
    scope: UserScopedAccess = Depends(get_user_scope),
):
    return send_verification_email(scope, full_name=payload.full_name if payload else None)


@router.post(
    "/send-password-reset",
    response_model=SuccessOut,
    summary="Email a password reset link if the account exists",
    responses={**error_responses(400, 500)},
)
def send_password_reset_route(
    payload: SendPasswordResetIn,
    privileged: PrivilegedAccess = Depends(privileged_access("send-password-reset: account lookup by email")),
):
    return send_password_reset(privileged, email=str(payload.email), reset_url=payload.reset_url)
