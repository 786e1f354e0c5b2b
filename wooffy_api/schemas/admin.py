from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from wooffy_api.schemas.common import PaginationMeta


class DeleteAllUsersIn(BaseModel):
    confirmation_token: Optional[str] = Field(default=None, alias="confirmationToken")
    include_admins: bool = Field(default=False, alias="includeAdmins")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"confirmationToken": "DELETE_ALL_USERS", "includeAdmins": False}},
    )


class InitiatorOut(BaseModel):
    id: str
    email: Optional[str] = None


class DeleteAllUsersOut(BaseModel):
    success: bool = True
    deleted: int
    deletedEmails: list[str]
    errors: list[str]
    skippedAdmins: int
    initiatedBy: InitiatorOut


class AuditLogOut(BaseModel):
    id: str
    actor_user_id: str
    actor_email: Optional[str] = None
    action: str
    target_type: str
    target_id: Optional[str] = None
    metadata_json: Optional[dict[str, Any]] = None
    created_at: datetime


class AuditLogListOut(BaseModel):
    items: list[AuditLogOut]
    pagination: PaginationMeta


class SideEffectTaskOut(BaseModel):
    id: str
    operation: str
    kind: str
    status: str
    attempt_count: int
    max_attempts: int
    last_error: Optional[str] = None
    next_attempt_at: datetime
    completed_at: Optional[datetime] = None
    created_at: datetime


class SideEffectTaskListOut(BaseModel):
    items: list[SideEffectTaskOut]
    pagination: PaginationMeta


class SideEffectDispatchOut(BaseModel):
    processed: int
    succeeded: int
    skipped: int
    failed: int
    dead_lettered: int
