"""Bulk account deletion for administrators.

The route layer enforces credential and identity; this module checks the admin
role and the literal confirmation token, in that order, before touching any
account. Per-account failures are collected and reported, never fatal.
"""

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from wooffy_api.core.access import AdminContext
from wooffy_api.core.config import settings
from wooffy_api.core.errors import ApiError
from wooffy_api.core.observability import log_event
from wooffy_api.core.security import secrets_match
from wooffy_api.db.pagination import fetch_all
from wooffy_api.models.user import User
from wooffy_api.services.audit_service import log_audit_event


@dataclass(frozen=True)
class IdentityAccount:
    id: str
    email: str | None


class IdentityAdmin(Protocol):
    name: str

    def list_users(self, db: Session) -> list[IdentityAccount]:
        ...

    def delete_user(self, db: Session, user_id: str) -> None:
        ...


class DatabaseIdentityAdmin:
    """Accounts live in the ``users`` table; dependent rows go with them via ON DELETE CASCADE."""

    name = "database"

    def list_users(self, db: Session) -> list[IdentityAccount]:
        users = fetch_all(db, select(User), order_by=User.id)
        return [IdentityAccount(id=user.id, email=user.email) for user in users]

    def delete_user(self, db: Session, user_id: str) -> None:
        with db.begin_nested():
            result = db.execute(
                delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise LookupError("User not found")


_identity_admin = DatabaseIdentityAdmin()


def get_identity_admin() -> IdentityAdmin:
    return _identity_admin


@dataclass
class DeleteAllUsersResult:
    deleted_emails: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped_admins: int = 0


def check_confirmation_token(confirmation_token: str | None) -> None:
    if not secrets_match(confirmation_token, settings.delete_users_confirmation_token):
        raise ApiError(400, "Confirmation required", code="CONFIRMATION_REQUIRED")


def delete_all_users(
    admin: AdminContext,
    identity_admin: IdentityAdmin,
    *,
    confirmation_token: str | None,
    include_admins: bool = False,
) -> dict:
    check_confirmation_token(confirmation_token)

    db = admin.privileged.db
    initiator_id = admin.user.id
    initiator_email = admin.user.email
    admin_ids = set() if include_admins else admin.privileged.user_ids_with_role("admin")

    result = DeleteAllUsersResult()
    for account in identity_admin.list_users(db):
        if account.id in admin_ids:
            result.skipped_admins += 1
            continue
        try:
            identity_admin.delete_user(db, account.id)
        except Exception as exc:  # noqa: BLE001 - collected per account
            result.errors.append(f"Failed to delete {account.email or account.id}: {exc}")
            continue
        result.deleted_emails.append(account.email or account.id)
    db.commit()

    outcome = {
        "deleted": len(result.deleted_emails),
        "errors": len(result.errors),
        "skipped_admins": result.skipped_admins,
        "include_admins": include_admins,
    }
    try:
        log_audit_event(
            db,
            actor_user_id=initiator_id,
            actor_email=initiator_email,
            action="users.bulk_delete",
            target_type="user",
            metadata_json={**outcome, "provider": identity_admin.name},
        )
        db.commit()
    except Exception as exc:  # noqa: BLE001 - deletions already happened; record the gap
        db.rollback()
        log_event("audit_log_write_failed", level=logging.ERROR, action="users.bulk_delete", error=str(exc))

    log_event(
        "users_bulk_deleted",
        level=logging.WARNING,
        initiated_by=initiator_id,
        initiated_by_email=initiator_email,
        **outcome,
    )

    return {
        "success": True,
        "deleted": len(result.deleted_emails),
        "deletedEmails": result.deleted_emails,
        "errors": result.errors,
        "skippedAdmins": result.skipped_admins,
        "initiatedBy": {"id": initiator_id, "email": initiator_email},
    }
