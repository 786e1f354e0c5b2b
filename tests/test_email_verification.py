from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

from sqlalchemy import select

from tests.factories import auth_headers, write_before_first_update
from wooffy_api.core.security import hash_email_verification_token
from wooffy_api.models.side_effect import SideEffectTask
from wooffy_api.models.user import Profile
from wooffy_api.models.verification import EmailVerificationToken
from wooffy_api.services import email_service


def _capture_emails(monkeypatch) -> list[tuple[str, email_service.RenderedEmail]]:
    sent: list[tuple[str, email_service.RenderedEmail]] = []

    def fake_send_email(*, recipient_email, email):
        sent.append((recipient_email, email))
        return email_service.EmailDeliveryResult(status="sent")

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


def test_verify_email_token_is_single_use(test_context, seed, monkeypatch):
    client, session_local = test_context
    sent = _capture_emails(monkeypatch)
    user_id = seed.user("new@wooffy.test", full_name="Nia")
    seed.verification_token(user_id, "new@wooffy.test", "raw-token-123")

    first = client.post("/functions/v1/verify-email-token", json={"token": "raw-token-123"})
    assert first.status_code == 200, first.text
    assert first.json() == {
        "success": True,
        "message": "Email verified successfully!",
        "email": "new@wooffy.test",
    }

    second = client.post("/functions/v1/verify-email-token", json={"token": "raw-token-123"})
    assert second.status_code == 400
    assert second.json()["code"] == "INVALID_TOKEN"
    assert second.json()["error"] == "Invalid or expired verification link"

    with session_local() as db:
        profile = db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one()
        assert profile.email_verified is True
        token = db.execute(select(EmailVerificationToken)).scalar_one()
        assert token.verified_at is not None

    assert len(sent) == 1
    assert sent[0][0] == "new@wooffy.test"
    assert sent[0][1].subject == "Welcome to Wooffy! 🐾"


def test_verify_email_token_rejects_expired_and_unknown(test_context, seed):
    client, session_local = test_context
    user_id = seed.user("late@wooffy.test")
    seed.verification_token(
        user_id,
        "late@wooffy.test",
        "stale-token",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )

    expired = client.post("/functions/v1/verify-email-token", json={"token": "stale-token"})
    assert expired.status_code == 400
    assert expired.json()["code"] == "TOKEN_EXPIRED"
    assert expired.json()["error"] == "Verification link has expired. Please request a new one."

    unknown = client.post("/functions/v1/verify-email-token", json={"token": "never-issued"})
    assert unknown.status_code == 400
    assert unknown.json()["code"] == "INVALID_TOKEN"

    missing = client.post("/functions/v1/verify-email-token", json={})
    assert missing.status_code == 400
    assert missing.json()["code"] == "MISSING_FIELDS"

    with session_local() as db:
        profile = db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one()
        assert profile.email_verified is False
        token = db.execute(select(EmailVerificationToken)).scalar_one()
        assert token.verified_at is None


def test_send_verification_email_issues_usable_link(test_context, seed, monkeypatch):
    client, session_local = test_context
    sent = _capture_emails(monkeypatch)
    user_id = seed.user("link@wooffy.test", full_name="Lena")

    res = client.post(
        "/functions/v1/send-verification-email",
        json={"fullName": "Lena L."},
        headers=auth_headers(user_id),
    )
    assert res.status_code == 200, res.text
    assert res.json() == {"success": True}

    assert len(sent) == 1
    recipient, rendered = sent[0]
    assert recipient == "link@wooffy.test"
    assert "Lena L." in rendered.text
    link = next(word for word in rendered.text.split() if "/verify-email?token=" in word)
    raw_token = parse_qs(urlparse(link).query)["token"][0]

    with session_local() as db:
        token = db.execute(select(EmailVerificationToken)).scalar_one()
        assert token.user_id == user_id
        assert token.token_hash == hash_email_verification_token(raw_token)
        assert token.token_hash != raw_token

    verified = client.post("/functions/v1/verify-email-token", json={"token": raw_token})
    assert verified.status_code == 200, verified.text


def test_send_verification_email_requires_authentication(test_context):
    client, _ = test_context
    res = client.post("/functions/v1/send-verification-email", json={})
    assert res.status_code == 401


def test_email_side_effect_is_skipped_without_transport(test_context, seed):
    client, session_local = test_context
    user_id = seed.user("quiet@wooffy.test")

    res = client.post("/functions/v1/send-verification-email", headers=auth_headers(user_id))
    assert res.status_code == 200, res.text

    with session_local() as db:
        task = db.execute(select(SideEffectTask)).scalar_one()
        assert task.kind == "email.verification"
        assert task.status == "skipped"


def test_send_password_reset_never_reveals_accounts(test_context, seed, monkeypatch):
    client, _ = test_context
    sent = _capture_emails(monkeypatch)
    seed.user("Known@Wooffy.app")
    reset_url = "https://www.wooffy.app/reset-password"

    known = client.post(
        "/functions/v1/send-password-reset",
        json={"email": "known@wooffy.app", "resetUrl": reset_url},
    )
    assert known.status_code == 200, known.text
    assert known.json() == {"success": True}

    unknown = client.post(
        "/functions/v1/send-password-reset",
        json={"email": "ghost@wooffy.app", "resetUrl": reset_url},
    )
    assert unknown.status_code == 200
    assert unknown.json() == {"success": True}

    foreign_link = client.post(
        "/functions/v1/send-password-reset",
        json={"email": "known@wooffy.app", "resetUrl": "https://evil.example/reset"},
    )
    assert foreign_link.status_code == 200
    assert foreign_link.json() == {"success": True}

    assert len(sent) == 1
    assert sent[0][0] == "Known@Wooffy.app"
    assert reset_url in sent[0][1].text

    invalid_email = client.post(
        "/functions/v1/send-password-reset",
        json={"email": "not-an-email", "resetUrl": reset_url},
    )
    assert invalid_email.status_code == 400


def test_verify_email_token_lost_race_is_rejected(test_context, seed, monkeypatch):
    client, session_local = test_context
    sent = _capture_emails(monkeypatch)
    user_id = seed.user("race@wooffy.test")
    seed.verification_token(user_id, "race@wooffy.test", "raw-token-race")

    def other_tab_verifies_first(connection):
        tokens = EmailVerificationToken.__table__
        connection.execute(
            tokens.update()
            .where(tokens.c.token_hash == hash_email_verification_token("raw-token-race"))
            .values(verified_at=datetime.now(timezone.utc))
        )

    write_before_first_update(session_local, EmailVerificationToken, other_tab_verifies_first)

    res = client.post("/functions/v1/verify-email-token", json={"token": "raw-token-race"})
    assert res.status_code == 400
    assert res.json()["code"] == "INVALID_TOKEN"
    assert res.json()["error"] == "Invalid or expired verification link"

    with session_local() as db:
        profile = db.execute(select(Profile).where(Profile.user_id == user_id)).scalar_one()
        assert profile.email_verified is False
        assert db.execute(select(SideEffectTask)).scalars().all() == []
    assert sent == []
