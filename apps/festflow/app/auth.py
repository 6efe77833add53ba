from __future__ import annotations

import logging
import secrets
import time
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .config import (
    LOGIN_MAX_PER_IP,
    LOGIN_MAX_PER_NAME,
    LOGIN_RATE_WINDOW_SECS,
    RATE_STORE_MAX_KEYS,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    SESSION_TTL_SECS,
)
from .db import commit_or_conflict, get_session
from .models import AuthSession, User
from .realtime import hub
from .schemas import LoginIn, MeOut, UserCreate, UserOut, UserUpdate
from .security import hash_pin, verify_pin

_log = logging.getLogger("festflow.auth")

router = APIRouter(prefix="/api")

# Failed login attempts: key -> timestamps within the window.
_LOGIN_FAILS_NAME: Dict[str, List[float]] = {}
_LOGIN_FAILS_IP: Dict[str, List[float]] = {}


def _now() -> int:
    return int(time.time())


def _client_ip(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _recent(store: Dict[str, List[float]], key: str, now: float) -> List[float]:
    events = [ts for ts in store.get(key, []) if ts >= now - LOGIN_RATE_WINDOW_SECS]
    if events:
        store[key] = events
    else:
        store.pop(key, None)
    return events


def _check_login_rate(name: str, ip: str) -> None:
    now = time.time()
    if len(_recent(_LOGIN_FAILS_NAME, name, now)) >= max(1, LOGIN_MAX_PER_NAME):
        raise HTTPException(status_code=429, detail="too many login attempts for this user")
    if len(_recent(_LOGIN_FAILS_IP, ip, now)) >= max(1, LOGIN_MAX_PER_IP):
        raise HTTPException(status_code=429, detail="too many login attempts from this address")


def _prune_rate_store(store: Dict[str, List[float]], *, max_keys: int, window_secs: int) -> None:
    """
    Keep a per-process rate store bounded.

    Only runs once the store holds more than `max_keys` keys: stale keys
    (no event inside the window) go first, then the least recently seen.
    """
    if max_keys <= 0:
        store.clear()
        return
    if len(store) <= max_keys:
        return

    cutoff = time.time() - max(1, window_secs)
    for key, events in list(store.items()):
        if not events or events[-1] < cutoff:
            store.pop(key, None)
    if len(store) <= max_keys:
        return

    by_last_seen = sorted(store.items(), key=lambda kv: kv[1][-1])
    for key, _events in by_last_seen[: len(store) - max_keys]:
        store.pop(key, None)


def _record_login_failure(name: str, ip: str) -> None:
    now = time.time()
    _LOGIN_FAILS_NAME.setdefault(name, []).append(now)
    _LOGIN_FAILS_IP.setdefault(ip, []).append(now)
    _prune_rate_store(_LOGIN_FAILS_NAME, max_keys=RATE_STORE_MAX_KEYS, window_secs=LOGIN_RATE_WINDOW_SECS)
    _prune_rate_store(_LOGIN_FAILS_IP, max_keys=RATE_STORE_MAX_KEYS, window_secs=LOGIN_RATE_WINDOW_SECS)


def reset_login_rate_limits() -> None:
    _LOGIN_FAILS_NAME.clear()
    _LOGIN_FAILS_IP.clear()


def create_session(s: Session, user: User) -> str:
    now = _now()
    s.execute(delete(AuthSession).where(AuthSession.expires_at < now))
    sid = secrets.token_hex(32)
    s.add(AuthSession(id=sid, user_id=user.id, expires_at=now + SESSION_TTL_SECS))
    s.commit()
    return sid


def revoke_user_sessions(s: Session, user_id: str) -> None:
    s.execute(delete(AuthSession).where(AuthSession.user_id == user_id))


def current_user(request: Request, s: Session) -> User | None:
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if not sid:
        return None
    rec = s.get(AuthSession, sid)
    if rec is None:
        return None
    if rec.expires_at < _now():
        s.delete(rec)
        s.commit()
        return None
    user = s.get(User, rec.user_id)
    if user is None or not user.active:
        return None
    return user


def require_auth(request: Request, s: Session = Depends(get_session)) -> User:
    user = current_user(request, s)
    if user is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return user


def require_role(*roles: str):
    allowed = set(roles)

    def _dependency(user: User = Depends(require_auth)) -> User:
        if not allowed.intersection(user.roles):
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dependency


def _set_session_cookie(response: Response, sid: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        sid,
        max_age=SESSION_TTL_SECS,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


@router.get("/auth/users", response_model=List[UserOut])
def login_users(s: Session = Depends(get_session)):
    """Active staff for the login picker; no session required."""
    return s.execute(select(User).where(User.active.is_(True)).order_by(User.name.asc())).scalars().all()


@router.post("/auth/login", response_model=MeOut)
def login(body: LoginIn, request: Request, response: Response, s: Session = Depends(get_session)):
    name = body.name.strip()
    ip = _client_ip(request)
    _check_login_rate(name, ip)
    user = s.execute(select(User).where(User.name == name)).scalar_one_or_none()
    if user is None or not user.active or not user.pin_hash or not verify_pin(body.pin, user.pin_hash):
        _record_login_failure(name, ip)
        _log.info("login failed", extra={"ctx": {"user_name": name, "ip": ip}})
        raise HTTPException(status_code=401, detail="invalid credentials")
    _LOGIN_FAILS_NAME.pop(name, None)
    sid = create_session(s, user)
    _set_session_cookie(response, sid)
    _log.info("login", extra={"ctx": {"user_id": user.id, "roles": user.roles}})
    return MeOut(user=UserOut.model_validate(user))


@router.post("/auth/logout")
def logout(request: Request, response: Response, s: Session = Depends(get_session)):
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        s.execute(delete(AuthSession).where(AuthSession.id == sid))
        s.commit()
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/auth/me", response_model=MeOut)
def me(user: User = Depends(require_auth)):
    return MeOut(user=UserOut.model_validate(user))


# --- Users (admin) ---
@router.get("/users", response_model=List[UserOut])
def list_users(s: Session = Depends(get_session), _admin: User = Depends(require_role("ADMIN"))):
    return s.execute(select(User).order_by(User.name.asc())).scalars().all()


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(body: UserCreate, s: Session = Depends(get_session), _admin: User = Depends(require_role("ADMIN"))):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="name must not be blank")
    user = User(name=name, pin_hash=hash_pin(body.pin))
    user.set_roles(list(body.roles))
    s.add(user)
    commit_or_conflict(s, "user name already exists")
    s.refresh(user)
    hub.publish("user", user.id)
    return user


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    body: UserUpdate,
    s: Session = Depends(get_session),
    admin: User = Depends(require_role("ADMIN")),
):
    user = s.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="user not found")
    if body.roles is not None:
        user.set_roles(list(body.roles))
    if body.pin is not None:
        user.pin_hash = hash_pin(body.pin)
    if body.active is not None:
        user.active = body.active
        if not body.active:
            revoke_user_sessions(s, user.id)
    s.commit()
    s.refresh(user)
    _log.info("user updated", extra={"ctx": {"user_id": user.id, "by": admin.id}})
    hub.publish("user", user.id)
    return user
