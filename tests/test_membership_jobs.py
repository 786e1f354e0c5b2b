from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select, update

from wooffy_api.core.config import settings
from wooffy_api.models.membership import Membership, MembershipExpiryNotification
from wooffy_api.models.notification import Notification
from wooffy_api.models.side_effect import SideEffectTask
from wooffy_api.services import membership_jobs


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _years_ago(years: int) -> date:
    today = _now().date()
    if (today.month, today.day) == (2, 29):
        pytest.skip("anniversary arithmetic is undefined on Feb 29")
    return today.replace(year=today.year - years)


def test_expire_memberships_deactivates_once(test_context, seed):
    client, session_local = test_context
    expired_user = seed.user("expired@wooffy.test")
    grace_user = seed.user("grace@wooffy.test")
    active_user = seed.user("active@wooffy.test")
    expired_id = seed.membership(
        expired_user, member_number="WF-EXPIRED", expires_at=_now() - timedelta(days=10)
    )
    grace_id = seed.membership(grace_user, expires_at=_now() - timedelta(days=2))
    active_id = seed.membership(active_user, expires_at=_now() + timedelta(days=40))

    first = client.post("/functions/v1/expire-memberships")
    assert first.status_code == 200, first.text
    body = first.json()
    assert body["success"] is True
    assert body["count"] == 1
    assert body["message"] == "Deactivated 1 expired memberships"
    assert body["deactivated"][0]["id"] == expired_id
    assert body["deactivated"][0]["member_number"] == "WF-EXPIRED"

    second = client.post("/functions/v1/expire-memberships")
    assert second.status_code == 200
    assert second.json() == {
        "success": True,
        "message": "No memberships to expire",
        "count": 0,
        "deactivated": [],
    }

    with session_local() as db:
        assert db.get(Membership, expired_id).is_active is False
        assert db.get(Membership, grace_id).is_active is True
        assert db.get(Membership, active_id).is_active is True
        notes = db.execute(
            select(Notification).where(Notification.type == "membership_expired")
        ).scalars().all()
        assert len(notes) == 1
        assert notes[0].user_id == expired_user
        assert notes[0].title == "Your Membership Has Expired"


def test_expire_memberships_reads_every_page(test_context, seed, monkeypatch):
    client, session_local = test_context
    monkeypatch.setattr(settings, "datastore_page_size", 2)
    expired_ids = {
        seed.membership(seed.user(f"lapsed{index}@wooffy.test"), expires_at=_now() - timedelta(days=30))
        for index in range(5)
    }

    res = client.post("/functions/v1/expire-memberships")
    assert res.status_code == 200, res.text
    assert res.json()["count"] == 5
    assert {row["id"] for row in res.json()["deactivated"]} == expired_ids

    with session_local() as db:
        assert db.execute(
            select(func.count(Membership.id)).where(Membership.is_active.is_(True))
        ).scalar_one() == 0
        assert db.execute(
            select(func.count(Notification.id)).where(Notification.type == "membership_expired")
        ).scalar_one() == 5


def test_expire_memberships_skips_rows_another_run_already_flipped(test_context, seed, monkeypatch):
    client, session_local = test_context
    user_id = seed.user("expired@wooffy.test")
    membership_id = seed.membership(user_id, expires_at=_now() - timedelta(days=10))
    read_memberships = membership_jobs.fetch_all

    def read_then_lose_race(db, stmt, **kwargs):
        rows = read_memberships(db, stmt, **kwargs)
        db.execute(
            update(Membership)
            .where(Membership.id == membership_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return rows

    monkeypatch.setattr(membership_jobs, "fetch_all", read_then_lose_race)

    res = client.post("/functions/v1/expire-memberships")
    assert res.status_code == 200, res.text
    assert res.json() == {
        "success": True,
        "message": "No memberships to expire",
        "count": 0,
        "deactivated": [],
    }

    with session_local() as db:
        assert db.get(Membership, membership_id).is_active is False
        assert db.execute(select(func.count(Notification.id))).scalar_one() == 0
        assert db.execute(select(func.count(SideEffectTask.id))).scalar_one() == 0


def test_expiry_reminders_fire_once_per_tier(test_context, seed):
    client, session_local = test_context
    soon_user = seed.user("soon@wooffy.test")
    month_user = seed.user("month@wooffy.test")
    far_user = seed.user("far@wooffy.test")
    soon_id = seed.membership(soon_user, expires_at=_now() + timedelta(days=2, hours=12))
    seed.membership(month_user, expires_at=_now() + timedelta(days=20))
    seed.membership(far_user, expires_at=_now() + timedelta(days=90))

    first = client.post("/functions/v1/notify-expiring-memberships")
    assert first.status_code == 200, first.text
    assert first.json()["success"] is True
    assert first.json()["totalExpiring"] == 2
    assert first.json()["notificationsSent"] == 2

    second = client.post("/functions/v1/notify-expiring-memberships")
    assert second.status_code == 200
    assert second.json()["totalExpiring"] == 2
    assert second.json()["notificationsSent"] == 0

    with session_local() as db:
        tracked = db.execute(
            select(MembershipExpiryNotification).where(MembershipExpiryNotification.membership_id == soon_id)
        ).scalar_one()
        assert tracked.notification_type == "expiry_3_days"
        assert tracked.days_until_expiry == 3

        soon_note = db.execute(select(Notification).where(Notification.user_id == soon_user)).scalar_one()
        assert soon_note.type == "membership_expiry"
        assert soon_note.title == "⚠️ Membership Expiring in 3 Days!"
        assert soon_note.data == {"days_left": 3, "membership_id": soon_id}

        month_note = db.execute(select(Notification).where(Notification.user_id == month_user)).scalar_one()
        assert month_note.title == "🔔 Membership Renewal Reminder"

        assert db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == far_user)
        ).scalar_one() == 0


def test_member_anniversaries_notify_once_per_day(test_context, seed):
    client, session_local = test_context
    joined = _years_ago(2)
    veteran = seed.user("veteran@wooffy.test", full_name="Vera")
    newcomer = seed.user("newcomer@wooffy.test")
    seed.membership(veteran, created_at=datetime(joined.year, joined.month, joined.day, 9, tzinfo=timezone.utc))
    seed.membership(newcomer)

    first = client.post("/functions/v1/notify-member-anniversaries")
    assert first.status_code == 200, first.text
    assert first.json() == {"message": "Sent 1 anniversary notifications", "notificationsSent": 1}

    second = client.post("/functions/v1/notify-member-anniversaries")
    assert second.json()["notificationsSent"] == 0

    with session_local() as db:
        note = db.execute(select(Notification).where(Notification.type == "anniversary")).scalar_one()
        assert note.user_id == veteran
        assert note.title == "🎊 Happy 2 years with Wooffy!"
        assert note.message.startswith("Hey Vera, today marks 2 years")
        assert note.data["years"] == 2


def test_pet_birthdays_notify_each_pet_once(test_context, seed):
    client, session_local = test_context
    born = _years_ago(1)
    owner = seed.user("owner@wooffy.test")
    membership_id = seed.membership(owner)
    rex_id = seed.pet(membership_id, owner, name="Rex", birthday=born)
    seed.pet(membership_id, owner, name="Misty", pet_type="cat", birthday=born)
    seed.pet(membership_id, owner, name="Puppy", birthday=_now().date())
    seed.pet(membership_id, owner, name="Nobody", birthday=None)

    first = client.post("/functions/v1/notify-pet-birthdays")
    assert first.status_code == 200, first.text
    assert first.json() == {"message": "Sent 2 pet birthday notifications", "notificationsSent": 2}

    second = client.post("/functions/v1/notify-pet-birthdays")
    assert second.json()["notificationsSent"] == 0

    with session_local() as db:
        notes = db.execute(select(Notification).where(Notification.type == "pet_birthday")).scalars().all()
        assert sorted(note.data["pet_name"] for note in notes) == ["Misty", "Rex"]
        rex_note = next(note for note in notes if note.data["pet_id"] == rex_id)
        assert rex_note.title == "🎂 Happy Birthday, Rex!"
        assert "turning 1 year old today" in rex_note.message


def test_scheduled_routes_require_cron_secret_when_configured(test_context, monkeypatch):
    client, _ = test_context
    monkeypatch.setattr(settings, "cron_secret", "cron-secret-value")

    missing = client.post("/functions/v1/expire-memberships")
    assert missing.status_code == 401
    assert missing.json()["success"] is False

    wrong = client.post("/functions/v1/expire-memberships", headers={"X-Cron-Secret": "nope"})
    assert wrong.status_code == 401

    ok = client.post("/functions/v1/expire-memberships", headers={"X-Cron-Secret": "cron-secret-value"})
    assert ok.status_code == 200


def _birthday_in(days: int, *, years_old: int) -> date:
    upcoming = _now().date() + timedelta(days=days)
    if (upcoming.month, upcoming.day) == (2, 29):
        pytest.skip("birthday arithmetic is undefined on Feb 29")
    return upcoming.replace(year=upcoming.year - years_old)


def test_business_birthday_reminders_reach_opted_in_owners_once(test_context, seed):
    client, session_local = test_context
    owner_id = seed.user("owner@groomers.test", roles=("business",))
    business_id = seed.business(owner_id)
    seed.birthday_settings(business_id)
    quiet_owner = seed.user("quiet@groomers.test", roles=("business",))
    quiet_business = seed.business(quiet_owner, name="Quiet Grooming")
    seed.birthday_settings(quiet_business, enabled=False)

    customer = seed.user("customer@wooffy.test", full_name="Maria")
    membership_id = seed.membership(customer)
    rex_id = seed.pet(membership_id, customer, name="Rex", birthday=_birthday_in(2, years_old=2))
    misty_id = seed.pet(membership_id, customer, name="Misty", pet_type="cat", birthday=_birthday_in(0, years_old=3))
    seed.pet(membership_id, customer, name="Later", birthday=_birthday_in(10, years_old=4))
    seed.redemption(membership_id, seed.offer(business_id), business_id, owner_id)
    seed.redemption(membership_id, seed.offer(quiet_business), quiet_business, quiet_owner)

    stranger = seed.user("stranger@wooffy.test")
    seed.pet(seed.membership(stranger), stranger, name="Unknown", birthday=_birthday_in(0, years_old=2))

    first = client.post("/functions/v1/notify-business-birthdays")
    assert first.status_code == 200, first.text
    assert first.json() == {"message": "Sent 2 birthday reminder notifications", "notificationsSent": 2}

    second = client.post("/functions/v1/notify-business-birthdays")
    assert second.json()["notificationsSent"] == 0

    with session_local() as db:
        notes = db.execute(
            select(Notification).where(Notification.type == "business_birthday_reminder")
        ).scalars().all()
        assert {note.user_id for note in notes} == {owner_id}
        by_pet = {note.data["pet_id"]: note for note in notes}
        assert set(by_pet) == {rex_id, misty_id}

        rex_note = by_pet[rex_id]
        assert rex_note.title == "🎂 Upcoming Pet Birthday: Rex"
        assert rex_note.message == (
            "Maria's pet Rex (Beagle) is turning 2 in 2 days! Consider sending them a birthday offer."
        )
        assert rex_note.data["days_until"] == 2
        assert rex_note.data["business_id"] == business_id

        misty_note = by_pet[misty_id]
        assert misty_note.title == "🎂 It's Misty's Birthday Today!"
        assert misty_note.message == (
            "Maria's pet Misty (Pet) is turning 3 today! 🎉 Consider sending them a birthday offer."
        )


def test_business_birthday_reminders_without_opted_in_businesses(test_context, seed):
    client, _ = test_context
    owner_id = seed.user("owner@groomers.test", roles=("business",))
    seed.business(owner_id)

    res = client.post("/functions/v1/notify-business-birthdays")
    assert res.status_code == 200, res.text
    assert res.json() == {"message": "No businesses with birthday reminders enabled", "notificationsSent": 0}
