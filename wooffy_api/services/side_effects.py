"""Outbox for best-effort side effects.

Operations queue tasks in the same transaction as their primary write, commit,
then run them inline. Each task runs in its own savepoint: a failure rolls back
only that task, is recorded on the row and logged, and never reaches the
caller. ``dispatch_due_side_effects`` retries failed rows from a cron route.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from wooffy_api.core.config import settings
from wooffy_api.core.id_utils import generate_id
from wooffy_api.core.observability import log_event
from wooffy_api.models.side_effect import SideEffectTask
from wooffy_api.services import email_service, notification_service


class SideEffectSkipped(Exception):
    """Raised by a handler when there is nothing to do (e.g. email transport not configured)."""


class SideEffectError(RuntimeError):
    pass


SideEffectHandler = Callable[[Session, dict[str, Any]], None]


def _create_notification(db: Session, payload: dict[str, Any]) -> None:
    notification_service.create_notification(
        db,
        user_id=payload["user_id"],
        type=payload["type"],
        title=payload["title"],
        message=payload["message"],
        data=payload.get("data"),
    )


def _bulk_create_notifications(db: Session, payload: dict[str, Any]) -> None:
    notification_service.create_notifications(db, payload.get("notifications") or [])


def _track_analytics(db: Session, payload: dict[str, Any]) -> None:
    notification_service.track_analytics_event(
        db,
        user_id=payload.get("user_id"),
        event_type=payload["event_type"],
        entity_type=payload.get("entity_type"),
        entity_id=payload.get("entity_id"),
        entity_name=payload.get("entity_name"),
        metadata_json=payload.get("metadata"),
    )


def _create_rating_prompt(db: Session, payload: dict[str, Any]) -> None:
    notification_service.create_rating_prompt(
        db,
        user_id=payload["user_id"],
        business_id=payload["business_id"],
        redemption_id=payload["redemption_id"],
        prompt_after=datetime.fromisoformat(payload["prompt_after"]),
    )


def _deliver(recipient_email: str, rendered: email_service.RenderedEmail) -> None:
    result = email_service.send_email(recipient_email=recipient_email, email=rendered)
    if result.status == "not_configured":
        raise SideEffectSkipped(result.detail or "Email transport not configured")
    if result.status == "failed":
        raise SideEffectError(result.detail or "Email delivery failed")


def _send_welcome_email(_db: Session, payload: dict[str, Any]) -> None:
    _deliver(
        payload["email"],
        email_service.render_welcome_email(full_name=payload.get("full_name")),
    )


def _send_verification_email(_db: Session, payload: dict[str, Any]) -> None:
    _deliver(
        payload["email"],
        email_service.render_verification_email(
            full_name=payload.get("full_name"),
            verify_url=payload["verify_url"],
        ),
    )


def _send_password_reset_email(_db: Session, payload: dict[str, Any]) -> None:
    _deliver(
        payload["email"],
        email_service.render_password_reset_email(reset_url=payload["reset_url"]),
    )


_HANDLERS: dict[str, SideEffectHandler] = {
    "notification.create": _create_notification,
    "notification.bulk_create": _bulk_create_notifications,
    "analytics.track": _track_analytics,
    "rating_prompt.create": _create_rating_prompt,
    "email.welcome": _send_welcome_email,
    "email.verification": _send_verification_email,
    "email.password_reset": _send_password_reset_email,
}


@dataclass(frozen=True)
class SideEffectSummary:
    processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    dead_lettered: int = 0


def queue_side_effect(
    db: Session,
    *,
    operation: str,
    kind: str,
    payload_json: dict[str, Any] | None = None,
    max_attempts: int | None = None,
) -> SideEffectTask:
    if kind not in _HANDLERS:
        raise ValueError(f"Unknown side effect kind '{kind}'")
    task = SideEffectTask(
        id=generate_id(),
        operation=operation,
        kind=kind,
        payload_json=payload_json,
        status="pending",
        attempt_count=0,
        max_attempts=max_attempts or settings.side_effect_max_attempts,
        next_attempt_at=datetime.now(timezone.utc),
        last_error=None,
    )
    db.add(task)
    return task


def _execute(db: Session, task: SideEffectTask, now: datetime) -> str:
    handler = _HANDLERS[task.kind]
    task.attempt_count += 1
    try:
        with db.begin_nested():
            handler(db, dict(task.payload_json or {}))
    except SideEffectSkipped as exc:
        task.status = "skipped"
        task.last_error = str(exc)[:500]
        task.completed_at = now
        log_event(
            "side_effect_skipped",
            task_id=task.id,
            operation=task.operation,
            kind=task.kind,
            reason=task.last_error,
        )
        return "skipped"
    except Exception as exc:  # noqa: BLE001 - side effects never fail the operation
        task.last_error = str(exc)[:500] or exc.__class__.__name__
        if task.attempt_count >= task.max_attempts:
            task.status = "dead_letter"
        else:
            task.status = "failed"
            task.next_attempt_at = now + timedelta(seconds=settings.side_effect_retry_seconds)
        log_event(
            "side_effect_failed",
            level=logging.WARNING,
            task_id=task.id,
            operation=task.operation,
            kind=task.kind,
            attempt=task.attempt_count,
            status=task.status,
            error=task.last_error,
        )
        return task.status

    task.status = "succeeded"
    task.last_error = None
    task.completed_at = now
    return "succeeded"


def run_side_effects(db: Session, tasks: Iterable[SideEffectTask]) -> SideEffectSummary:
    """Execute already-committed tasks inline and persist their outcome."""
    now = datetime.now(timezone.utc)
    counts = {"succeeded": 0, "skipped": 0, "failed": 0, "dead_letter": 0}
    processed = 0
    for task in tasks:
        processed += 1
        counts[_execute(db, task, now)] += 1
    db.commit()
    return SideEffectSummary(
        processed=processed,
        succeeded=counts["succeeded"],
        skipped=counts["skipped"],
        failed=counts["failed"],
        dead_lettered=counts["dead_letter"],
    )


def dispatch_due_side_effects(db: Session, *, limit: int = 100) -> SideEffectSummary:
    now = datetime.now(timezone.utc)
    tasks = db.execute(
        select(SideEffectTask)
        .where(
            and_(
                SideEffectTask.status.in_(["pending", "failed"]),
                SideEffectTask.next_attempt_at <= now,
            )
        )
        .order_by(SideEffectTask.created_at.asc())
        .limit(limit)
    ).scalars().all()
    return run_side_effects(db, tasks)
