from datetime import timedelta
from typing import Any

from sqlalchemy import func, select, update

from wooffy_api.core.access import PrivilegedAccess, UserScopedAccess
from wooffy_api.core.config import settings
from wooffy_api.core.errors import bad_request
from wooffy_api.core.id_utils import generate_id
from wooffy_api.core.observability import log_event
from wooffy_api.core.security import generate_email_verification_token, hash_email_verification_token
from wooffy_api.core.time_utils import as_utc, utcnow
from wooffy_api.models.user import Profile, User
from wooffy_api.models.verification import EmailVerificationToken
from wooffy_api.services.side_effects import queue_side_effect, run_side_effects

INVALID_TOKEN_MESSAGE = "Invalid or expired verification link"
EXPIRED_TOKEN_MESSAGE = "Verification link has expired. Please request a new one."


def verify_email_token(privileged: PrivilegedAccess, *, token: str) -> dict[str, Any]:
    """Consume a verification token once, mark the profile verified and queue the welcome email.

    Unknown and already-consumed tokens share one message; an expired token gets
    its own so the client can offer to resend.
    """
    db = privileged.db
    token_hash = hash_email_verification_token(token)
    row = db.execute(
        select(EmailVerificationToken).where(
            EmailVerificationToken.token_hash == token_hash,
            EmailVerificationToken.verified_at.is_(None),
        )
    ).scalar_one_or_none()
    if row is None:
        log_event("email_verification_rejected", reason="unknown_or_used")
        raise bad_request(INVALID_TOKEN_MESSAGE, code="INVALID_TOKEN")

    now = utcnow()
    if as_utc(row.expires_at) < now:
        log_event("email_verification_rejected", reason="expired", user_id=row.user_id)
        raise bad_request(EXPIRED_TOKEN_MESSAGE, code="TOKEN_EXPIRED")

    consumed = db.execute(
        update(EmailVerificationToken)
        .where(
            EmailVerificationToken.id == row.id,
            EmailVerificationToken.verified_at.is_(None),
        )
        .values(verified_at=now)
        .execution_options(synchronize_session=False)
    )
    if consumed.rowcount != 1:
        db.rollback()
        log_event("email_verification_rejected", reason="race_lost", user_id=row.user_id)
        raise bad_request(INVALID_TOKEN_MESSAGE, code="INVALID_TOKEN")

    db.execute(
        update(Profile)
        .where(Profile.user_id == row.user_id)
        .values(email_verified=True)
        .execution_options(synchronize_session=False)
    )

    user_id = row.user_id
    email = row.email
    full_name = db.execute(select(Profile.full_name).where(Profile.user_id == user_id)).scalar_one_or_none()
    task = queue_side_effect(
        db,
        operation="verify-email-token",
        kind="email.welcome",
        payload_json={"email": email, "full_name": full_name or ""},
    )
    db.commit()
    log_event("email_verified", user_id=user_id)
    run_side_effects(db, [task])

    return {"success": True, "message": "Email verified successfully!", "email": email}


def send_verification_email(scope: UserScopedAccess, *, full_name: str | None = None) -> dict[str, Any]:
    db = scope.db
    email = scope.user.email
    if full_name is None:
        profile = scope.profile()
        full_name = profile.full_name if profile else None

    raw_token = generate_email_verification_token()
    db.add(
        EmailVerificationToken(
            id=generate_id(),
            user_id=scope.user_id,
            email=email,
            token_hash=hash_email_verification_token(raw_token),
            expires_at=utcnow() + timedelta(hours=settings.verification_token_ttl_hours),
        )
    )
    task = queue_side_effect(
        db,
        operation="send-verification-email",
        kind="email.verification",
        payload_json={
            "email": email,
            "full_name": full_name,
            "verify_url": f"{settings.web_base_url}/verify-email?token={raw_token}",
        },
    )
    db.commit()
    log_event("verification_email_queued", user_id=scope.user_id)
    run_side_effects(db, [task])
    return {"success": True}


def _allowed_reset_url(reset_url: str) -> bool:
    base = settings.web_base_url
    return reset_url == base or reset_url.startswith(f"{base}/") or reset_url.startswith(f"{base}?")


def send_password_reset(privileged: PrivilegedAccess, *, email: str, reset_url: str) -> dict[str, Any]:
    """Email a reset link to an existing account.

    Always answers ``{"success": True}`` so the endpoint can't be used to discover
    which addresses have accounts.
    """
    db = privileged.db
    if not _allowed_reset_url(reset_url):
        log_event("password_reset_skipped", reason="reset_url_not_allowed")
        return {"success": True}

    user = db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()
    if user is None:
        log_event("password_reset_skipped", reason="unknown_account")
        return {"success": True}

    task = queue_side_effect(
        db,
        operation="send-password-reset",
        kind="email.password_reset",
        payload_json={"email": user.email, "reset_url": reset_url},
    )
    db.commit()
    log_event("password_reset_queued", user_id=user.id)
    run_side_effects(db, [task])
    return {"success": True}
