"""Datastore capabilities handed to operations.

Two access modes exist. ``UserScopedAccess`` only answers questions a row
policy would let the calling user ask about their own rows. ``PrivilegedAccess``
bypasses those policies for legitimate cross-user work; every instance is
created through a FastAPI dependency that names its purpose, so each
cross-user site shows up in the route signature and in the logs.
"""

from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from wooffy_api.core.config import settings
from wooffy_api.core.deps import get_db
from wooffy_api.core.errors import ApiError, unauthorized
from wooffy_api.core.observability import log_event
from wooffy_api.core.security import TokenValidationError, decode_token, secrets_match
from wooffy_api.models.business import Business
from wooffy_api.models.user import Profile, User, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class UserScopedAccess:
    db: Session
    user: User

    @property
    def user_id(self) -> str:
        return self.user.id

    def owned_business(self, business_id: str) -> Business | None:
        return self.db.execute(
            select(Business).where(
                Business.id == business_id,
                Business.owner_user_id == self.user.id,
            )
        ).scalar_one_or_none()

    def profile(self) -> Profile | None:
        return self.db.execute(
            select(Profile).where(Profile.user_id == self.user.id)
        ).scalar_one_or_none()


class PrivilegedAccess:
    def __init__(self, db: Session, *, purpose: str):
        self.db = db
        self.purpose = purpose
        log_event("privileged_access", purpose=purpose)

    def has_role(self, user_id: str, role: str) -> bool:
        found = self.db.execute(
            select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
        ).first()
        return found is not None

    def user_ids_with_role(self, role: str) -> set[str]:
        rows = self.db.execute(select(UserRole.user_id).where(UserRole.role == role)).scalars().all()
        return set(rows)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise unauthorized("Authentication required")
    try:
        payload = decode_token(credentials.credentials)
    except TokenValidationError as exc:
        raise unauthorized("Authentication failed") from exc

    user = db.execute(select(User).where(User.id == str(payload["sub"]))).scalar_one_or_none()
    if not user:
        raise unauthorized("Authentication failed")
    return user


def get_user_scope(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserScopedAccess:
    return UserScopedAccess(db=db, user=user)


def privileged_access(purpose: str) -> Callable[[Session], PrivilegedAccess]:
    def dependency(db: Session = Depends(get_db)) -> PrivilegedAccess:
        return PrivilegedAccess(db, purpose=purpose)

    return dependency


@dataclass(frozen=True)
class AdminContext:
    user: User
    privileged: PrivilegedAccess


def require_admin(purpose: str) -> Callable[..., AdminContext]:
    def dependency(
        user: User = Depends(get_current_user),
        privileged: PrivilegedAccess = Depends(privileged_access(purpose)),
    ) -> AdminContext:
        if not privileged.has_role(user.id, "admin"):
            raise ApiError(403, "Admin access required", code="FORBIDDEN")
        return AdminContext(user=user, privileged=privileged)

    return dependency


def require_cron_secret(x_cron_secret: str | None = Header(default=None)) -> None:
    if not settings.cron_secret:
        return
    if not secrets_match(x_cron_secret, settings.cron_secret):
        raise unauthorized("Invalid cron secret")
