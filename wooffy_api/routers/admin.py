from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select

from wooffy_api.core.access import AdminContext, require_admin
from wooffy_api.core.api_docs import error_responses
from wooffy_api.core.errors import bad_request
from wooffy_api.models.audit_log import AuditLog
from wooffy_api.models.side_effect import SIDE_EFFECT_STATUSES, SideEffectTask
from wooffy_api.schemas.admin import AuditLogListOut, AuditLogOut, SideEffectTaskListOut, SideEffectTaskOut
from wooffy_api.schemas.common import PaginationMeta

router = APIRouter(prefix="/admin", tags=["admin"])


def _pagination(*, total: int, limit: int, offset: int, count: int) -> PaginationMeta:
    return PaginationMeta(
        total=total,
        limit=limit,
        offset=offset,
        count=count,
        has_next=(offset + count) < total,
    )


@router.get(
    "/audit-logs",
    response_model=AuditLogListOut,
    summary="List audit logs",
    responses={**error_responses(401, 403, 500)},
)
def list_audit_logs(
    action: str | None = Query(default=None),
    actor_user_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    admin: AdminContext = Depends(require_admin("admin: audit trail")),
):
    db = admin.privileged.db
    count_stmt = select(func.count(AuditLog.id))
    data_stmt = select(AuditLog)
    if action:
        count_stmt = count_stmt.where(AuditLog.action == action)
        data_stmt = data_stmt.where(AuditLog.action == action)
    if actor_user_id:
        count_stmt = count_stmt.where(AuditLog.actor_user_id == actor_user_id)
        data_stmt = data_stmt.where(AuditLog.actor_user_id == actor_user_id)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [
        AuditLogOut(
            id=row.id,
            actor_user_id=row.actor_user_id,
            actor_email=row.actor_email,
            action=row.action,
            target_type=row.target_type,
            target_id=row.target_id,
            metadata_json=row.metadata_json,
            created_at=row.created_at,
        )
        for row in rows
    ]
    return AuditLogListOut(
        items=items,
        pagination=_pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )


@router.get(
    "/side-effects",
    response_model=SideEffectTaskListOut,
    summary="List side effect tasks",
    responses={**error_responses(400, 401, 403, 500)},
)
def list_side_effects(
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    admin: AdminContext = Depends(require_admin("admin: side effect outbox")),
):
    if status and status not in SIDE_EFFECT_STATUSES:
        raise bad_request(f"status must be one of: {', '.join(sorted(SIDE_EFFECT_STATUSES))}")

    db = admin.privileged.db
    count_stmt = select(func.count(SideEffectTask.id))
    data_stmt = select(SideEffectTask)
    if status:
        count_stmt = count_stmt.where(SideEffectTask.status == status)
        data_stmt = data_stmt.where(SideEffectTask.status == status)

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(SideEffectTask.created_at.desc(), SideEffectTask.id.desc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [
        SideEffectTaskOut(
            id=row.id,
            operation=row.operation,
            kind=row.kind,
            status=row.status,
            attempt_count=row.attempt_count,
            max_attempts=row.max_attempts,
            last_error=row.last_error,
            next_attempt_at=row.next_attempt_at,
            completed_at=row.completed_at,
            created_at=row.created_at,
        )
        for row in rows
    ]
    return SideEffectTaskListOut(
        items=items,
        pagination=_pagination(total=total, limit=limit, offset=offset, count=len(items)),
    )
