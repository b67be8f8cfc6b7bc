"""End-to-end checks of the route authorization middleware."""

import threading

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from app.core.security import create_access_token
from app.main import app
from app.services import user_status


def _location(response):
    return response.headers["location"]


def _deleted_cookies(response):
    return [h for h in response.headers.get_list("set-cookie") if "Max-Age=0" in h]


def _follow(client, path, max_hops=5):
    response = client.get(path)
    for _ in range(max_hops):
        if response.status_code != 307:
            return response
        response = client.get(_location(response))
    raise AssertionError(f"redirects from {path} did not end")


def test_unauthenticated_request_redirects_to_login(client):
    response = client.get("/api/dashboard")
    assert response.status_code == 307
    assert _location(response) == "/login"


def test_public_paths_pass_without_session(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    # Page routes are served by the frontend, so a public page is a plain 404 here
    assert client.get("/login").status_code == 404


def test_invalid_token_redirects_and_clears_cookie(client):
    client.cookies.set("fc_session", "not-a-jwt")
    response = client.get("/api/dashboard")
    assert _location(response) == "/login"
    assert any(h.startswith("fc_session=") for h in _deleted_cookies(response))


def test_signed_in_user_is_sent_away_from_login(client, make_user, login_as):
    login_as(make_user(role="pm"))
    for path in ("/login", "/forgot-password"):
        response = client.get(path)
        assert response.status_code == 307
        assert _location(response) == "/dashboard"


def test_allowed_role_reaches_the_route(client, make_user, login_as):
    login_as(make_user(role="client"))
    response = client.get("/api/dashboard")
    assert response.status_code == 200


def test_disallowed_role_redirects_to_landing_with_error(client, make_user, login_as):
    login_as(make_user(role="pm"))
    response = client.get("/api/users")
    assert response.status_code == 307
    assert _location(response) == "/dashboard?error=unauthorized"


def test_deactivated_claims_sign_the_user_out(client, make_user, login_as):
    login_as(make_user(role="admin", is_active=False))
    response = client.get("/api/dashboard")

    assert response.status_code == 307
    assert _location(response) == "/login?error=account_deactivated"
    deleted = _deleted_cookies(response)
    assert any(h.startswith("fc_session=") for h in deleted)
    assert any(h.startswith("last_activity_update=") for h in deleted)


def test_claims_are_trusted_without_a_lookup(client, make_user, login_as, monkeypatch, db_session):
    user = make_user(role="admin")
    # Demote in the database only; the token still carries "admin"
    user.role = "client"
    db_session.commit()

    def _fail(user_id):
        raise AssertionError("lookup should not run")

    monkeypatch.setattr(user_status, "load_user_status", _fail)
    login_as(user)
    response = client.get("/settings")
    # Not redirected: the unmatched page falls through to a 404
    assert response.status_code == 404


def test_legacy_session_falls_back_to_database(client, make_user, login_as, monkeypatch):
    calls = []
    original = user_status.load_user_status

    def _spy(user_id):
        calls.append(user_id)
        return original(user_id)

    monkeypatch.setattr(user_status, "load_user_status", _spy)
    user = make_user(role="pm", with_claims=False)
    login_as(user)

    response = client.get("/api/users")
    assert _location(response) == "/dashboard?error=unauthorized"
    assert calls == [str(user.id)]


def test_legacy_admin_is_allowed(client, make_user, login_as):
    login_as(make_user(role="admin", with_claims=False))
    assert client.get("/api/users").status_code == 200


def test_legacy_deactivated_user_is_signed_out(client, make_user, login_as):
    login_as(make_user(role="pm", is_active=False, with_claims=False))
    response = client.get("/api/dashboard")
    assert _location(response) == "/login?error=account_deactivated"


def test_failed_lookup_keeps_the_session_open(client, make_user, login_as, monkeypatch):
    monkeypatch.setattr(user_status, "load_user_status", lambda user_id: None)
    login_as(make_user(role="admin", with_claims=False))

    assert client.get("/api/dashboard").status_code == 200
    # The landing page itself is reachable, so nothing redirects back to it
    assert _follow(client, "/dashboard").status_code == 404


def test_unrecognised_role_is_refused_without_a_redirect_loop(client, make_user):
    user = make_user(role="pm")
    token = create_access_token(str(user.id), {"role": "superuser", "is_active": True})
    client.headers["Authorization"] = f"Bearer {token}"

    response = _follow(client, "/dashboard")
    assert response.status_code == 403
    assert response.json() == {"detail": "unauthorized"}
    assert _follow(client, "/api/users").status_code == 403


def test_activity_is_recorded_once_per_interval(client, make_user, login_as, activity_touches, db_session):
    user = make_user(role="pm")
    login_as(user)

    first = client.get("/api/dashboard")
    assert first.status_code == 200
    assert activity_touches == [str(user.id)]
    cookie = next(h for h in first.headers.get_list("set-cookie") if h.startswith("last_activity_update="))
    assert "Max-Age=300" in cookie

    client.get("/api/dashboard")
    assert activity_touches == [str(user.id)]

    db_session.expire_all()
    db_session.refresh(user)
    assert user.last_active_at is not None


def test_activity_not_recorded_when_request_is_redirected(client, make_user, login_as, activity_touches):
    login_as(make_user(role="pm"))
    client.get("/api/users")
    assert activity_touches == []


def test_activity_interval_is_tracked_per_user(client, make_user, login_as, activity_touches):
    first, second = make_user(role="pm"), make_user(role="client")

    login_as(first)
    client.get("/api/dashboard")
    login_as(second)
    response = client.get("/api/dashboard")
    client.get("/api/dashboard")

    assert activity_touches == [str(first.id), str(second.id)]
    cookie = next(h for h in response.headers.get_list("set-cookie") if h.startswith("last_activity_update="))
    assert cookie.startswith(f"last_activity_update={second.id};")


class _BrokenSession:
    def __init__(self):
        self.rolled_back = False
        self.closed = False

    def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    def commit(self):
        raise AssertionError("commit after a failed update")

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


def test_failed_activity_update_is_logged_not_raised(make_user, monkeypatch):
    """The real detached update runs on the executor; its failure never reaches the response."""
    user = make_user(role="pm")
    sessions = []
    done = threading.Event()
    original_touch = user_status.touch_last_active

    def _session_factory():
        sessions.append(_BrokenSession())
        return sessions[-1]

    def _touch(user_id):
        try:
            original_touch(user_id)
        finally:
            done.set()

    monkeypatch.setattr(user_status, "SessionLocal", _session_factory)
    monkeypatch.setattr(user_status, "touch_last_active", _touch)

    with capture_logs() as logs:
        with TestClient(app, follow_redirects=False) as live_client:
            token = create_access_token(str(user.id), user.auth_metadata)
            live_client.headers["Authorization"] = f"Bearer {token}"
            response = live_client.get("/api/dashboard")
            assert done.wait(timeout=5)

    assert response.status_code == 200
    assert len(sessions) == 1
    assert sessions[0].rolled_back and sessions[0].closed
    failures = [entry for entry in logs if entry["event"] == "activity.touch_failed"]
    assert len(failures) == 1
    assert failures[0]["log_level"] == "warning"
    assert failures[0]["user_id"] == str(user.id)
