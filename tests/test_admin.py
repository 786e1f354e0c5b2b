from sqlalchemy import func, select

from tests.factories import auth_headers
from wooffy_api.main import app
from wooffy_api.models.audit_log import AuditLog
from wooffy_api.models.membership import Membership
from wooffy_api.models.user import User
from wooffy_api.services.user_admin_service import DatabaseIdentityAdmin, get_identity_admin


def _delete_all(client, user_id: str, body: dict | None = None):
    return client.post(
        "/functions/v1/delete-all-users",
        json=body,
        headers=auth_headers(user_id),
    )


def _user_count(session_local) -> int:
    with session_local() as db:
        return int(db.execute(select(func.count(User.id))).scalar_one())


def test_delete_all_users_guards_run_in_order(test_context, seed):
    client, session_local = test_context
    admin_id = seed.user("admin@wooffy.app", roles=("admin",))
    member_id = seed.user("member@wooffy.app", roles=("member",))

    anonymous = client.post("/functions/v1/delete-all-users", json={"confirmationToken": "DELETE_ALL_USERS"})
    assert anonymous.status_code == 401

    not_admin = _delete_all(client, member_id, {"confirmationToken": "DELETE_ALL_USERS"})
    assert not_admin.status_code == 403
    assert not_admin.json()["error"] == "Admin access required"

    # Role is checked before the confirmation token.
    not_admin_no_token = _delete_all(client, member_id)
    assert not_admin_no_token.status_code == 403

    no_token = _delete_all(client, admin_id)
    assert no_token.status_code == 400
    assert no_token.json()["code"] == "CONFIRMATION_REQUIRED"
    assert no_token.json()["error"] == "Confirmation required"

    wrong_token = _delete_all(client, admin_id, {"confirmationToken": "delete_all_users"})
    assert wrong_token.status_code == 400
    assert wrong_token.json()["code"] == "CONFIRMATION_REQUIRED"

    assert _user_count(session_local) == 2


def test_delete_all_users_keeps_admins_and_cascades(test_context, seed):
    client, session_local = test_context
    admin_id = seed.user("admin@wooffy.app", roles=("admin",))
    member_id = seed.user("member@wooffy.app", roles=("member",))
    owner_id = seed.user("owner@wooffy.app", roles=("business",))
    seed.membership(member_id)
    seed.business(owner_id)

    res = _delete_all(client, admin_id, {"confirmationToken": "DELETE_ALL_USERS"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["success"] is True
    assert body["deleted"] == 2
    assert sorted(body["deletedEmails"]) == ["member@wooffy.app", "owner@wooffy.app"]
    assert body["errors"] == []
    assert body["skippedAdmins"] == 1
    assert body["initiatedBy"] == {"id": admin_id, "email": "admin@wooffy.app"}

    with session_local() as db:
        remaining = db.execute(select(User.id)).scalars().all()
        assert remaining == [admin_id]
        assert db.execute(select(func.count(Membership.id))).scalar_one() == 0

        audit = db.execute(select(AuditLog)).scalar_one()
        assert audit.action == "users.bulk_delete"
        assert audit.actor_user_id == admin_id
        assert audit.metadata_json["deleted"] == 2
        assert audit.metadata_json["skipped_admins"] == 1


def test_delete_all_users_reports_per_account_failures(test_context, seed):
    client, session_local = test_context
    admin_id = seed.user("admin@wooffy.app", roles=("admin",))
    seed.user("stuck@wooffy.app")
    seed.user("gone@wooffy.app")

    class FlakyIdentityAdmin(DatabaseIdentityAdmin):
        def delete_user(self, db, user_id):
            email = db.execute(select(User.email).where(User.id == user_id)).scalar_one()
            if email == "stuck@wooffy.app":
                raise RuntimeError("provider timeout")
            super().delete_user(db, user_id)

    app.dependency_overrides[get_identity_admin] = FlakyIdentityAdmin
    try:
        res = _delete_all(client, admin_id, {"confirmationToken": "DELETE_ALL_USERS", "includeAdmins": False})
    finally:
        app.dependency_overrides.pop(get_identity_admin, None)

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["deletedEmails"] == ["gone@wooffy.app"]
    assert body["errors"] == ["Failed to delete stuck@wooffy.app: provider timeout"]
    assert _user_count(session_local) == 2


def test_admin_can_read_audit_trail_and_outbox(test_context, seed):
    client, _ = test_context
    admin_id = seed.user("admin@wooffy.app", roles=("admin",))
    seed.user("member@wooffy.app")

    res = _delete_all(client, admin_id, {"confirmationToken": "DELETE_ALL_USERS"})
    assert res.status_code == 200, res.text

    logs = client.get("/admin/audit-logs", params={"action": "users.bulk_delete"}, headers=auth_headers(admin_id))
    assert logs.status_code == 200, logs.text
    assert logs.json()["pagination"]["total"] == 1
    assert logs.json()["items"][0]["actor_email"] == "admin@wooffy.app"

    outbox = client.get("/admin/side-effects", params={"status": "failed"}, headers=auth_headers(admin_id))
    assert outbox.status_code == 200
    assert outbox.json()["items"] == []

    bad_status = client.get("/admin/side-effects", params={"status": "weird"}, headers=auth_headers(admin_id))
    assert bad_status.status_code == 400


def test_admin_routes_reject_non_admins(test_context, seed):
    client, _ = test_context
    member_id = seed.user("member@wooffy.app")

    res = client.get("/admin/audit-logs", headers=auth_headers(member_id))
    assert res.status_code == 403
    assert client.get("/admin/side-effects").status_code == 401
