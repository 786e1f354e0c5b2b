from datetime import datetime
from typing import Any

from sqlalchemy import insert
from sqlalchemy.orm import Session

from wooffy_api.core.id_utils import generate_id
from wooffy_api.models.notification import AnalyticsEvent, Notification
from wooffy_api.models.offer import RatingPrompt


def create_notification(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
) -> Notification:
    notification = Notification(
        id=generate_id(),
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data,
        read=False,
    )
    db.add(notification)
    return notification


def create_notifications(db: Session, rows: list[dict[str, Any]]) -> int:
    if not rows:
        return 0
    values = [
        {
            "id": generate_id(),
            "user_id": row["user_id"],
            "type": row["type"],
            "title": row["title"],
            "message": row["message"],
            "data": row.get("data"),
            "read": False,
        }
        for row in rows
    ]
    db.execute(insert(Notification), values)
    return len(values)


def track_analytics_event(
    db: Session,
    *,
    user_id: str | None,
    event_type: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    entity_name: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AnalyticsEvent:
    event = AnalyticsEvent(
        id=generate_id(),
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        metadata_json=metadata_json,
    )
    db.add(event)
    return event


def create_rating_prompt(
    db: Session,
    *,
    user_id: str,
    business_id: str,
    redemption_id: str,
    prompt_after: datetime,
) -> RatingPrompt:
    prompt = RatingPrompt(
        id=generate_id(),
        user_id=user_id,
        business_id=business_id,
        redemption_id=redemption_id,
        prompt_after=prompt_after,
        dismissed=False,
    )
    db.add(prompt)
    return prompt
