"""Tests for admin user management and auth metadata syncing."""

from sqlalchemy.exc import SQLAlchemyError

from app.core.security import verify_password
from app.models import User
from app.services import users as user_service


def _invite(client, email="new.hire@example.com", role="production", **extra):
    payload = {"email": email, "name": "New Hire", "role": role, **extra}
    return client.post("/api/users/invite", json=payload)


def test_invite_creates_user_with_temporary_password(client, make_user, login_as, db_session):
    login_as(make_user(role="admin"))

    response = _invite(client, phone="+90 555 000 0000")

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["role"] == "production"
    assert body["user"]["must_change_password"] is True
    temporary = body["temporary_password"]

    user = db_session.query(User).filter(User.email == "new.hire@example.com").one()
    assert verify_password(temporary, user.password_hash)
    assert user.auth_metadata["role"] == "production"
    assert user.auth_metadata["is_active"] is True
    assert user.auth_metadata["must_change_password"] is True


def test_invite_sanitizes_profile_fields(client, make_user, login_as):
    login_as(make_user(role="admin"))
    response = _invite(client, email="x@example.com", name="<b>Ayşe</b> <script>x()</script>Kaya")
    assert response.json()["user"]["name"] == "Ayşe Kaya"


def test_duplicate_email_is_a_conflict(client, make_user, login_as):
    login_as(make_user(role="admin"))
    assert _invite(client).status_code == 201
    response = _invite(client, email="New.Hire@example.com")
    assert response.status_code == 409


def test_user_creation_is_rate_limited_per_admin(client, make_user, login_as):
    login_as(make_user(role="admin"))
    for n in range(10):
        assert _invite(client, email=f"hire{n}@example.com").status_code == 201
    response = _invite(client, email="hire10@example.com")
    assert response.status_code == 429
    assert response.json()["detail"].startswith("Too many requests")


def test_non_admin_cannot_reach_user_admin(client, make_user, login_as):
    login_as(make_user(role="pm"))
    response = _invite(client)
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard?error=unauthorized"


def test_update_user_syncs_role_into_metadata(client, make_user, login_as, db_session):
    login_as(make_user(role="admin"))
    target = make_user(role="pm")

    response = client.patch(
        f"/api/users/{target.id}", json={"name": "Renamed", "role": "management"}
    )

    assert response.status_code == 200
    assert response.json()["role"] == "management"
    db_session.expire_all()
    db_session.refresh(target)
    assert target.auth_metadata["role"] == "management"
    assert "metadata_synced_at" in target.auth_metadata


def test_update_user_survives_metadata_sync_failure(client, make_user, login_as, monkeypatch, db_session):
    login_as(make_user(role="admin"))
    target = make_user(role="pm")

    def _broken(db, user):
        raise SQLAlchemyError("sync down")

    monkeypatch.setattr(user_service, "sync_user_auth_metadata", _broken)
    response = client.patch(f"/api/users/{target.id}", json={"name": "Still Saved", "role": "client"})

    assert response.status_code == 200
    db_session.expire_all()
    db_session.refresh(target)
    assert target.role == "client"
    assert target.auth_metadata["role"] == "pm"


def test_deactivating_a_user_signs_out_their_next_session(client, make_user, login_as, db_session):
    admin = make_user(role="admin")
    target = make_user(role="pm")
    login_as(admin)

    response = client.post(f"/api/users/{target.id}/active", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    db_session.expire_all()
    db_session.refresh(target)
    assert target.auth_metadata["is_active"] is False

    # A token issued from the synced metadata carries the deactivation
    login_as(target)
    redirected = client.get("/api/dashboard")
    assert redirected.headers["location"] == "/login?error=account_deactivated"


def test_admin_cannot_deactivate_themselves(client, make_user, login_as):
    admin = make_user(role="admin")
    login_as(admin)
    response = client.post(f"/api/users/{admin.id}/active", json={"is_active": False})
    assert response.status_code == 400


def test_sync_metadata_reports_counts(client, make_user, login_as, db_session):
    login_as(make_user(role="admin"))
    legacy = make_user(role="procurement", with_claims=False)

    response = client.post("/api/users/sync-metadata")

    assert response.json() == {"success": True, "synced": 2, "failed": 0, "errors": []}
    db_session.expire_all()
    db_session.refresh(legacy)
    assert legacy.auth_metadata["role"] == "procurement"
    assert legacy.auth_metadata["is_active"] is True


def test_list_users(client, make_user, login_as):
    login_as(make_user(role="admin"))
    make_user(role="client")
    response = client.get("/api/users")
    assert response.status_code == 200
    assert len(response.json()) == 2
