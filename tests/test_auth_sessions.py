from __future__ import annotations

import time

import apps.festflow.app.auth as auth  # type: ignore[import]
from apps.festflow.app.config import SESSION_COOKIE_NAME
from conftest import login


def test_login_sets_cookie_and_me_returns_user(client, staff):
    resp = client.post("/api/auth/login", json={"name": "Mia", "pin": "2222"})
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Mia"
    assert resp.json()["user"]["roles"] == ["WAITER", "CASHIER"]
    set_cookie = resp.headers.get("set-cookie", "")
    assert SESSION_COOKIE_NAME in set_cookie
    assert "httponly" in set_cookie.lower()

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["id"] == staff["Mia"]


def test_login_name_is_trimmed(client, staff):
    resp = client.post("/api/auth/login", json={"name": "  Mia ", "pin": "2222"})
    assert resp.status_code == 200


def test_wrong_pin_and_unknown_user_are_401(client, staff):
    r1 = client.post("/api/auth/login", json={"name": "Mia", "pin": "9999"})
    assert r1.status_code == 401
    assert r1.json()["detail"] == "invalid credentials"
    r2 = client.post("/api/auth/login", json={"name": "Nobody", "pin": "9999"})
    assert r2.status_code == 401
    assert r2.json()["detail"] == "invalid credentials"


def test_login_body_validation_is_422(client, staff):
    assert client.post("/api/auth/login", json={"name": "Mia", "pin": "1"}).status_code == 422
    assert client.post("/api/auth/login", json={"name": "Mia"}).status_code == 422


def test_me_without_session_is_401(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "unauthorized"


def test_logout_revokes_db_backed_session(client, staff):
    login(client, "Waiter")
    sid = client.cookies.get(SESSION_COOKIE_NAME)
    assert sid

    assert client.post("/api/auth/logout").status_code == 200

    # Replaying the old cookie must not authorize any more.
    resp = client.get("/api/auth/me", headers={"Cookie": f"{SESSION_COOKIE_NAME}={sid}"})
    assert resp.status_code == 401


def test_expired_session_is_rejected(client, staff, monkeypatch):
    login(client, "Waiter")
    real_now = auth._now()
    monkeypatch.setattr(auth, "_now", lambda: real_now + auth.SESSION_TTL_SECS + 1)
    assert client.get("/api/auth/me").status_code == 401


def test_failed_logins_are_rate_limited_per_name(client, staff, monkeypatch):
    monkeypatch.setattr(auth, "LOGIN_MAX_PER_NAME", 3)
    for _ in range(3):
        assert client.post("/api/auth/login", json={"name": "Mia", "pin": "0000"}).status_code == 401
    resp = client.post("/api/auth/login", json={"name": "Mia", "pin": "2222"})
    assert resp.status_code == 429

    # Other users are unaffected.
    assert client.post("/api/auth/login", json={"name": "Waiter", "pin": "1111"}).status_code == 200


def test_failed_logins_are_rate_limited_per_ip(client, staff, monkeypatch):
    monkeypatch.setattr(auth, "LOGIN_MAX_PER_IP", 2)
    assert client.post("/api/auth/login", json={"name": "Mia", "pin": "0000"}).status_code == 401
    assert client.post("/api/auth/login", json={"name": "Bar", "pin": "0000"}).status_code == 401
    assert client.post("/api/auth/login", json={"name": "Waiter", "pin": "1111"}).status_code == 429


def test_role_guard_is_403_for_wrong_role(as_user):
    waiter = as_user("Waiter")
    resp = waiter.get("/api/users")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "forbidden"


def test_admin_manages_users(as_user):
    admin = as_user("Admin")
    resp = admin.post("/api/users", json={"name": "Lena", "roles": ["BAR", "WAITER"], "pin": "7777"})
    assert resp.status_code == 201
    lena = resp.json()
    assert lena["roles"] == ["BAR", "WAITER"]
    assert lena["role"] == "BAR"
    assert lena["active"] is True

    dup = admin.post("/api/users", json={"name": "Lena", "roles": ["BAR"], "pin": "7777"})
    assert dup.status_code == 409

    resp = admin.patch(f"/api/users/{lena['id']}", json={"roles": ["WAITER"], "pin": "8888"})
    assert resp.status_code == 200
    assert resp.json()["roles"] == ["WAITER"]

    names = [u["name"] for u in admin.get("/api/users").json()]
    assert "Lena" in names

    assert admin.patch("/api/users/missing", json={"active": False}).status_code == 404


def test_user_create_validation(as_user):
    admin = as_user("Admin")
    assert admin.post("/api/users", json={"name": "X", "roles": [], "pin": "7777"}).status_code == 422
    assert admin.post("/api/users", json={"name": "X", "roles": ["CHEF"], "pin": "7777"}).status_code == 422
    assert admin.post("/api/users", json={"name": "   ", "roles": ["BAR"], "pin": "7777"}).status_code == 400


def test_changed_pin_applies_to_next_login(client, staff, as_user):
    admin = as_user("Admin")
    assert admin.patch(f"/api/users/{staff['Waiter']}", json={"pin": "9876"}).status_code == 200
    assert client.post("/api/auth/login", json={"name": "Waiter", "pin": "1111"}).status_code == 401
    assert client.post("/api/auth/login", json={"name": "Waiter", "pin": "9876"}).status_code == 200


def test_deactivating_user_revokes_sessions(staff, as_user):
    waiter = as_user("Waiter")
    assert waiter.get("/api/auth/me").status_code == 200

    admin = as_user("Admin")
    resp = admin.patch(f"/api/users/{staff['Waiter']}", json={"active": False})
    assert resp.status_code == 200
    assert resp.json()["active"] is False

    assert waiter.get("/api/auth/me").status_code == 401
    assert waiter.post("/api/auth/login", json={"name": "Waiter", "pin": "1111"}).status_code == 401


def test_prune_rate_store_caps_keys():
    store: dict[str, list[float]] = {}
    now = time.time()
    for i in range(50):
        store[f"k{i}"] = [now + i]
    auth._prune_rate_store(store, max_keys=10, window_secs=60)
    assert len(store) == 10
    # The most recently seen keys survive.
    assert set(store) == {f"k{i}" for i in range(40, 50)}


def test_prune_rate_store_drops_stale_keys_first():
    now = time.time()
    store = {"old": [now - 3600], "fresh-a": [now], "fresh-b": [now]}
    auth._prune_rate_store(store, max_keys=2, window_secs=60)
    assert set(store) == {"fresh-a", "fresh-b"}


def test_prune_rate_store_can_clear_when_disabled():
    store: dict[str, list[float]] = {"a": [1.0], "b": [2.0]}
    auth._prune_rate_store(store, max_keys=0, window_secs=60)
    assert store == {}


def test_failed_logins_with_distinct_names_stay_bounded(client, staff, monkeypatch):
    monkeypatch.setattr(auth, "RATE_STORE_MAX_KEYS", 5)
    monkeypatch.setattr(auth, "LOGIN_MAX_PER_IP", 1000)
    for i in range(20):
        resp = client.post("/api/auth/login", json={"name": f"ghost-{i}", "pin": "0000"})
        assert resp.status_code == 401
    assert len(auth._LOGIN_FAILS_NAME) <= 5
    assert "ghost-19" in auth._LOGIN_FAILS_NAME
