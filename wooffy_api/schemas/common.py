from pydantic import BaseModel, ConfigDict
from pydantic_core import PydanticCustomError

from wooffy_api.core.id_utils import is_valid_uuid


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total": 42,
                "limit": 10,
                "offset": 0,
                "count": 10,
                "has_next": True,
            }
        }
    )


class ErrorOut(BaseModel):
    success: bool = False
    error: str
    code: str | None = None
    request_id: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Offer already redeemed",
                "code": "ALREADY_REDEEMED",
                "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
            }
        }
    )


def require_text(value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        # Reported like an absent field so empty strings and omissions read the same.
        raise PydanticCustomError("missing", "Missing required fields")
    return cleaned


def require_uuid(value: str | None, label: str) -> str:
    cleaned = require_text(value)
    if not is_valid_uuid(cleaned):
        raise ValueError(f"Invalid {label} ID format")
    return cleaned
