"""Scheduled membership housekeeping: expiry, renewal reminders, anniversaries and birthday reminders."""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wooffy_api.core.access import PrivilegedAccess
from wooffy_api.core.config import settings
from wooffy_api.core.id_utils import generate_id
from wooffy_api.core.observability import log_event
from wooffy_api.core.time_utils import as_utc, utcnow
from wooffy_api.db.pagination import fetch_all
from wooffy_api.models.business import Business, BusinessBirthdaySettings
from wooffy_api.models.membership import Membership, MembershipExpiryNotification, Pet
from wooffy_api.models.notification import Notification
from wooffy_api.models.offer import OfferRedemption
from wooffy_api.models.user import Profile
from wooffy_api.services.side_effects import queue_side_effect, run_side_effects

EXPIRED_TITLE = "Your Membership Has Expired"
EXPIRED_MESSAGE = (
    "Your Wooffy membership has expired. You still have access to our Community Hub, "
    "but upgrade to unlock all premium features!"
)


@dataclass(frozen=True)
class ReminderTier:
    notification_type: str
    max_days: int
    title: str


REMINDER_TIERS = (
    ReminderTier("expiry_3_days", 3, "⚠️ Membership Expiring in 3 Days!"),
    ReminderTier("expiry_7_days", 7, "📅 Membership Expiring Soon"),
    ReminderTier("expiry_30_days", 30, "🔔 Membership Renewal Reminder"),
)

BUSINESS_REMINDER_MAX_DAYS = 3


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def _day_window(today: date) -> tuple[datetime, datetime]:
    start = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _years_text(years: int, suffix: str = "") -> str:
    unit = "year" if years == 1 else "years"
    return f"{years} {unit}{suffix}"


def expire_memberships(privileged: PrivilegedAccess) -> dict[str, Any]:
    db = privileged.db
    cutoff = utcnow() - timedelta(days=settings.membership_expiry_grace_days)

    candidates = fetch_all(
        db,
        select(Membership).where(Membership.is_active.is_(True), Membership.expires_at < cutoff),
        order_by=Membership.id,
    )
    flipped_ids: set[str] = set()
    if candidates:
        # Only rows this run actually flipped are reported and notified.
        flipped_ids = set(
            db.execute(
                update(Membership)
                .where(Membership.id.in_([m.id for m in candidates]), Membership.is_active.is_(True))
                .values(is_active=False)
                .returning(Membership.id)
                .execution_options(synchronize_session=False)
            ).scalars().all()
        )
    expired = [m for m in candidates if m.id in flipped_ids]
    if not expired:
        db.commit()
        log_event("memberships_expired", count=0, candidates=len(candidates), cutoff=_iso(cutoff))
        return {"success": True, "message": "No memberships to expire", "count": 0, "deactivated": []}

    deactivated = [
        {"id": m.id, "member_number": m.member_number, "expired_at": _iso(m.expires_at)}
        for m in expired
    ]
    task = queue_side_effect(
        db,
        operation="expire-memberships",
        kind="notification.bulk_create",
        payload_json={
            "notifications": [
                {
                    "user_id": m.user_id,
                    "type": "membership_expired",
                    "title": EXPIRED_TITLE,
                    "message": EXPIRED_MESSAGE,
                    "data": {"membership_id": m.id, "member_number": m.member_number},
                }
                for m in expired
            ]
        },
    )
    db.commit()
    log_event("memberships_expired", count=len(expired), candidates=len(candidates), cutoff=_iso(cutoff))
    run_side_effects(db, [task])

    return {
        "success": True,
        "message": f"Deactivated {len(expired)} expired memberships",
        "count": len(expired),
        "deactivated": deactivated,
    }


def _reminder_tier(days_left: int) -> ReminderTier | None:
    for tier in REMINDER_TIERS:
        if days_left <= tier.max_days:
            return tier
    return None


def _reminder_message(tier: ReminderTier, *, days_left: int, expires_at: datetime) -> str:
    expiry_date = as_utc(expires_at).date().isoformat()
    if tier.notification_type == "expiry_7_days":
        return f"Your membership expires in {days_left} days. Renew early and save with our loyalty discount!"
    if tier.notification_type == "expiry_3_days":
        return f"Your Wooffy membership expires on {expiry_date}. Renew now to keep enjoying exclusive discounts!"
    return f"Your Wooffy membership expires on {expiry_date}. Plan ahead and renew to continue saving!"


def notify_expiring_memberships(privileged: PrivilegedAccess) -> dict[str, Any]:
    db = privileged.db
    now = utcnow()
    window_end = now + timedelta(days=settings.membership_reminder_window_days)

    expiring = fetch_all(
        db,
        select(Membership).where(
            Membership.is_active.is_(True),
            Membership.expires_at > now,
            Membership.expires_at <= window_end,
        ),
        order_by=Membership.id,
    )

    tasks = []
    for membership in expiring:
        days_left = math.ceil((as_utc(membership.expires_at) - now).total_seconds() / 86400)
        tier = _reminder_tier(days_left)
        if tier is None:
            continue

        # The unique (membership, type) index makes each tier fire once.
        try:
            with db.begin_nested():
                db.add(
                    MembershipExpiryNotification(
                        id=generate_id(),
                        membership_id=membership.id,
                        user_id=membership.user_id,
                        notification_type=tier.notification_type,
                        days_until_expiry=days_left,
                    )
                )
        except IntegrityError:
            continue

        tasks.append(
            queue_side_effect(
                db,
                operation="notify-expiring-memberships",
                kind="notification.create",
                payload_json={
                    "user_id": membership.user_id,
                    "type": "membership_expiry",
                    "title": tier.title,
                    "message": _reminder_message(tier, days_left=days_left, expires_at=membership.expires_at),
                    "data": {"days_left": days_left, "membership_id": membership.id},
                },
            )
        )

    db.commit()
    log_event("expiry_reminders_sent", total_expiring=len(expiring), notifications_sent=len(tasks))
    run_side_effects(db, tasks)

    return {
        "success": True,
        "totalExpiring": len(expiring),
        "notificationsSent": len(tasks),
        "timestamp": now.isoformat(),
    }


def _notified_today(db: Session, *, user_id: str, notification_type: str, today: date) -> list[Notification]:
    start, end = _day_window(today)
    return db.execute(
        select(Notification).where(
            Notification.user_id == user_id,
            Notification.type == notification_type,
            Notification.created_at >= start,
            Notification.created_at < end,
        )
    ).scalars().all()


def notify_member_anniversaries(privileged: PrivilegedAccess) -> dict[str, Any]:
    db = privileged.db
    today = utcnow().date()

    memberships = fetch_all(
        db,
        select(Membership).where(Membership.is_active.is_(True)),
        order_by=Membership.id,
    )

    rows: list[dict[str, Any]] = []
    seen_users: set[str] = set()
    for membership in memberships:
        created = as_utc(membership.created_at).date()
        if (created.month, created.day) != (today.month, today.day):
            continue
        years = today.year - created.year
        if years < 1 or membership.user_id in seen_users:
            continue
        if _notified_today(db, user_id=membership.user_id, notification_type="anniversary", today=today):
            continue
        seen_users.add(membership.user_id)

        full_name = db.execute(
            select(Profile.full_name).where(Profile.user_id == membership.user_id)
        ).scalar_one_or_none()
        year_text = _years_text(years)
        rows.append(
            {
                "user_id": membership.user_id,
                "type": "anniversary",
                "title": f"🎊 Happy {year_text} with Wooffy!",
                "message": (
                    f"Hey {full_name or 'there'}, today marks {year_text} since you joined the Wooffy family! "
                    "Thank you for being an amazing pet parent. We're so glad you're part of the pack! 🐾"
                ),
                "data": {"years": years, "membership_id": membership.id},
            }
        )

    tasks = []
    if rows:
        tasks.append(
            queue_side_effect(
                db,
                operation="notify-member-anniversaries",
                kind="notification.bulk_create",
                payload_json={"notifications": rows},
            )
        )
        db.commit()
    log_event("anniversary_notifications_sent", notifications_sent=len(rows))
    run_side_effects(db, tasks)

    return {
        "message": f"Sent {len(rows)} anniversary notifications",
        "notificationsSent": len(rows),
    }


def notify_pet_birthdays(privileged: PrivilegedAccess) -> dict[str, Any]:
    db = privileged.db
    today = utcnow().date()

    pets = fetch_all(db, select(Pet).where(Pet.birthday.is_not(None)), order_by=Pet.id)

    rows: list[dict[str, Any]] = []
    for pet in pets:
        birthday = pet.birthday
        if (birthday.month, birthday.day) != (today.month, today.day):
            continue
        age = today.year - birthday.year
        if age < 1:
            continue
        already_sent = any(
            (notification.data or {}).get("pet_id") == pet.id
            for notification in _notified_today(
                db,
                user_id=pet.owner_user_id,
                notification_type="pet_birthday",
                today=today,
            )
        )
        if already_sent:
            continue

        age_text = _years_text(age, " old")
        rows.append(
            {
                "user_id": pet.owner_user_id,
                "type": "pet_birthday",
                "title": f"🎂 Happy Birthday, {pet.pet_name}!",
                "message": (
                    f"{pet.pet_name} is turning {age_text} today! 🎉🐾 Wishing your furry friend "
                    "the happiest of birthdays. Give them an extra treat from us!"
                ),
                "data": {
                    "pet_id": pet.id,
                    "pet_name": pet.pet_name,
                    "pet_breed": pet.pet_breed,
                    "pet_type": pet.pet_type,
                    "age": age,
                    "photo_url": pet.photo_url,
                },
            }
        )

    tasks = []
    if rows:
        tasks.append(
            queue_side_effect(
                db,
                operation="notify-pet-birthdays",
                kind="notification.bulk_create",
                payload_json={"notifications": rows},
            )
        )
        db.commit()
    log_event("pet_birthday_notifications_sent", notifications_sent=len(rows))
    run_side_effects(db, tasks)

    return {
        "message": f"Sent {len(rows)} pet birthday notifications",
        "notificationsSent": len(rows),
    }


def _birthday_in(year: int, birthday: date) -> date:
    try:
        return birthday.replace(year=year)
    except ValueError:
        # Feb 29 falls on Mar 1 in common years.
        return date(year, 3, 1)


def _next_birthday(birthday: date, today: date) -> date:
    upcoming = _birthday_in(today.year, birthday)
    if upcoming < today:
        upcoming = _birthday_in(today.year + 1, birthday)
    return upcoming


def _business_reminder_text(*, owner_name: str, pet: Pet, age: int, days_until: int) -> tuple[str, str]:
    if days_until == 0:
        title = f"🎂 It's {pet.pet_name}'s Birthday Today!"
        when = "today! 🎉"
    else:
        title = f"🎂 Upcoming Pet Birthday: {pet.pet_name}"
        when = f"in {days_until} day{'' if days_until == 1 else 's'}!"
    message = (
        f"{owner_name}'s pet {pet.pet_name} ({pet.pet_breed or 'Pet'}) is turning {age} {when} "
        "Consider sending them a birthday offer."
    )
    return title, message


def notify_business_birthdays(privileged: PrivilegedAccess) -> dict[str, Any]:
    """Remind opted-in businesses about customers' pets with a birthday in the next few days.

    Customers are the memberships that have redeemed one of the business's offers.
    Each business owner hears about a given pet at most once per UTC day.
    """
    db = privileged.db
    today = utcnow().date()

    enabled = fetch_all(
        db,
        select(BusinessBirthdaySettings).where(BusinessBirthdaySettings.enabled.is_(True)),
        order_by=BusinessBirthdaySettings.id,
    )
    if not enabled:
        log_event("business_birthday_reminders_sent", businesses=0, notifications_sent=0)
        return {"message": "No businesses with birthday reminders enabled", "notificationsSent": 0}

    rows: list[dict[str, Any]] = []
    queued: set[tuple[str, str]] = set()
    for birthday_settings in enabled:
        business = db.get(Business, birthday_settings.business_id)
        if business is None:
            continue

        membership_ids = fetch_all(
            db,
            select(OfferRedemption.membership_id)
            .where(OfferRedemption.business_id == business.id)
            .distinct(),
            order_by=OfferRedemption.membership_id,
        )
        if not membership_ids:
            continue

        pets = fetch_all(
            db,
            select(Pet).where(Pet.membership_id.in_(membership_ids), Pet.birthday.is_not(None)),
            order_by=Pet.id,
        )
        upcoming: list[tuple[Pet, int, int]] = []
        for pet in pets:
            next_birthday = _next_birthday(pet.birthday, today)
            days_until = (next_birthday - today).days
            age = next_birthday.year - pet.birthday.year
            if days_until <= BUSINESS_REMINDER_MAX_DAYS and age >= 1:
                upcoming.append((pet, days_until, age))
        if not upcoming:
            continue

        notified_pet_ids = {
            (notification.data or {}).get("pet_id")
            for notification in _notified_today(
                db,
                user_id=business.owner_user_id,
                notification_type="business_birthday_reminder",
                today=today,
            )
        }
        for pet, days_until, age in upcoming:
            key = (business.owner_user_id, pet.id)
            if pet.id in notified_pet_ids or key in queued:
                continue
            queued.add(key)

            owner_name = db.execute(
                select(Profile.full_name).where(Profile.user_id == pet.owner_user_id)
            ).scalar_one_or_none() or "A customer"
            title, message = _business_reminder_text(
                owner_name=owner_name, pet=pet, age=age, days_until=days_until
            )
            rows.append(
                {
                    "user_id": business.owner_user_id,
                    "type": "business_birthday_reminder",
                    "title": title,
                    "message": message,
                    "data": {
                        "pet_id": pet.id,
                        "pet_name": pet.pet_name,
                        "pet_breed": pet.pet_breed,
                        "owner_user_id": pet.owner_user_id,
                        "owner_name": owner_name,
                        "birthday": pet.birthday.isoformat(),
                        "age": age,
                        "days_until": days_until,
                        "business_id": business.id,
                    },
                }
            )

    tasks = []
    if rows:
        tasks.append(
            queue_side_effect(
                db,
                operation="notify-business-birthdays",
                kind="notification.bulk_create",
                payload_json={"notifications": rows},
            )
        )
        db.commit()
    log_event("business_birthday_reminders_sent", businesses=len(enabled), notifications_sent=len(rows))
    run_side_effects(db, tasks)

    return {
        "message": f"Sent {len(rows)} birthday reminder notifications",
        "notificationsSent": len(rows),
    }
